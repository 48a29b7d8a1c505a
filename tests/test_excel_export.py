import time

from excel_export import DETAIL_COLUMNS, details_frame, summary_frame
from reconciliation import ComparisonRow
from report import build_report, paginate


def _result(n):
    rows = [ComparisonRow.build(user=f"U{i}", key=f"k{i}", csv_count=i, json_count=1) for i in range(n)]
    return build_report(rows, {"Hazard": 3}, started_at=time.perf_counter())


def test_details_frame_renders_a_page_of_rows():
    result = _result(30)
    page, _ = paginate(result.details, 2, page_size=25)

    df = details_frame(page)

    assert list(df.columns) == DETAIL_COLUMNS
    assert list(df["Created By"]) == [f"k{i}" for i in range(25, 30)]
    assert set(df["Status"]) == {"Mismatch"}


def test_details_frame_of_no_rows_keeps_columns():
    df = details_frame(())

    assert df.empty
    assert list(df.columns) == DETAIL_COLUMNS


def test_summary_frame_mirrors_summary():
    result = _result(3)

    df = summary_frame(result, csv_count_field="Bo", category_substrings={"Hazard": "hazard"})

    values = dict(zip(df["Metric"], df["Value"]))
    assert values["Total CSV Count (Sum of Bo)"] == result.summary.total_csv_count
    assert values["Total JSON Count"] == 3
    assert values["Files containing 'hazard'"] == 3
