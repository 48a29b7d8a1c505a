"""
Excel rendering of a ComparisonResult.

Sheets:
  - Details (one row per grouping key, in result order)
  - Summary (totals + one row per keyword category, copied from the result)
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from reconciliation import ComparisonRow
from report import ComparisonResult


DETAIL_COLUMNS = ["User", "Created By", "CSV Count", "JSON Count", "Difference", "Status"]


def details_frame(rows: Sequence[ComparisonRow]) -> pd.DataFrame:
    """One line per row, e.g. result.details or a page of it."""
    return pd.DataFrame(
        [
            {
                "User": row.user,
                "Created By": row.key,
                "CSV Count": row.csv_count,
                "JSON Count": row.json_count,
                "Difference": row.difference,
                "Status": row.status.value,
            }
            for row in rows
        ],
        columns=DETAIL_COLUMNS,
    )


def summary_frame(
    result: ComparisonResult,
    csv_count_field: Optional[str] = None,
    json_count_field: Optional[str] = None,
    category_substrings: Optional[dict] = None,
) -> pd.DataFrame:
    """
    Metric/Value rows mirroring result.summary. Count field names, when
    known, are shown in the total labels ("Total CSV Count (Sum of Bo)").
    """
    csv_label = "Total CSV Count"
    if csv_count_field:
        csv_label += f" (Sum of {csv_count_field})"
    json_label = "Total JSON Count"
    if json_count_field:
        json_label += f" (Sum of {json_count_field})"

    summary = result.summary
    rows = [
        {"Metric": csv_label, "Value": summary.total_csv_count},
        {"Metric": json_label, "Value": summary.total_json_count},
    ]
    category_substrings = category_substrings or {}
    for name, count in summary.categories.items():
        rows.append({"Metric": f"Files containing '{category_substrings.get(name, name)}'", "Value": count})
    return pd.DataFrame(rows, columns=["Metric", "Value"])


def write_excel_report(
    result: ComparisonResult,
    report_path: Union[str, Path],
    csv_count_field: Optional[str] = None,
    json_count_field: Optional[str] = None,
    category_substrings: Optional[dict] = None,
) -> Path:
    report_path = Path(report_path)
    report_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(report_path, engine="openpyxl") as writer:
        details_frame(result.details).to_excel(writer, sheet_name="Details", index=False)
        summary_frame(
            result,
            csv_count_field=csv_count_field,
            json_count_field=json_count_field,
            category_substrings=category_substrings,
        ).to_excel(writer, sheet_name="Summary", index=False)

    print(f"Excel report written to: {report_path}")
    return report_path
