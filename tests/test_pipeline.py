import pytest

from keyword_classifier import KeywordCategories
from loaders import ParseError
from normalizer import FieldMapping
from pipeline import compare, compare_chunks


CSV_ROWS = [
    {"createdBy": "u1", "user": "Alice", "Bo": "5"},
    {"createdBy": "u2", "user": "Bob", "Bo": "3"},
    {"createdBy": "", "user": "Nobody", "Bo": "9"},
]
JSON_ROWS = [
    {"createdBy": "u1", "user": "Alice", "Blop": 5},
    {"createdBy": "u3", "user": "Carl", "Blop": 2},
    {"createdBy": "u4", "user": "Dana", "Blop": float("nan")},
]
DOCUMENTS = [
    {"identifier": "nearmiss_001.txt", "content": "forklift"},
    {"identifier": "report.txt", "content": "Hazard and Product issue"},
    {"identifier": "misc.txt"},
]

CSV_MAPPING = FieldMapping(key_field="createdBy", user_field="user", count_field="Bo")
JSON_MAPPING = FieldMapping(key_field="createdBy", user_field="user", count_field="Blop")


def _run(categories, **kwargs):
    return compare(CSV_ROWS, JSON_ROWS, DOCUMENTS, CSV_MAPPING, JSON_MAPPING, categories, **kwargs)


def test_compare_end_to_end(categories):
    result = _run(categories)

    assert [(r.key, r.csv_count, r.json_count, r.status.value) for r in result.details] == [
        ("u1", 5, 5, "Match"),
        ("u2", 3, 0, "Mismatch"),
        ("u3", 0, 2, "Mismatch"),
    ]
    assert result.summary.total_csv_count == 8
    assert result.summary.total_json_count == 7
    assert dict(result.summary.categories) == {
        "Nearmiss": 1,
        "Hazard": 1,
        "HarmInjury": 0,
        "Product": 1,
        "SalesDelivery": 0,
    }
    assert result.diagnostics.csv_skipped_rows == 1
    assert result.diagnostics.json_skipped_rows == 1
    assert len(result.diagnostics.messages) == 2


def test_parallel_and_sequential_runs_agree(categories):
    sequential = _run(categories)
    parallel = _run(categories, parallel=True)

    assert parallel.details == sequential.details
    assert parallel.summary == sequential.summary
    assert parallel.diagnostics == sequential.diagnostics


def test_repeated_runs_are_identical(categories):
    first = _run(categories)
    second = _run(categories)

    assert first.details == second.details
    assert first.summary == second.summary


def test_no_document_feed_gives_zero_tally(categories):
    result = compare(CSV_ROWS, JSON_ROWS, None, CSV_MAPPING, JSON_MAPPING, categories)

    assert set(result.summary.categories.values()) == {0}
    assert list(result.summary.categories) == list(categories.names)


def test_empty_sources(categories):
    result = compare([], [], [], CSV_MAPPING, JSON_MAPPING, categories)

    assert result.details == ()
    assert result.summary.total_csv_count == 0
    assert result.summary.total_json_count == 0


def test_no_categories_gives_empty_tally():
    result = compare(CSV_ROWS, JSON_ROWS, DOCUMENTS, CSV_MAPPING, JSON_MAPPING, KeywordCategories(()))

    assert dict(result.summary.categories) == {}


def test_chunked_input_matches_single_chunk(categories):
    chunks = [CSV_ROWS[:1], CSV_ROWS[1:2], CSV_ROWS[2:]]

    chunked = compare_chunks(chunks, [JSON_ROWS], DOCUMENTS, CSV_MAPPING, JSON_MAPPING, categories)

    assert chunked.details == _run(categories).details
    assert chunked.diagnostics.csv_skipped_rows == 1


@pytest.mark.parametrize("parallel", [False, True])
def test_parse_error_in_a_source_propagates(categories, parallel):
    def failing_chunks():
        yield CSV_ROWS
        raise ParseError("csv", "export.csv", "truncated file")

    with pytest.raises(ParseError):
        compare_chunks(
            failing_chunks(), [JSON_ROWS], DOCUMENTS, CSV_MAPPING, JSON_MAPPING, categories, parallel=parallel
        )
