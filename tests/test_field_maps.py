import pytest

from field_maps import (
    CSV_FIELD_CANDIDATES,
    JSON_FIELD_CANDIDATES,
    match_field,
    normalize_field_name,
    resolve_field_mapping,
)
from normalizer import FieldMapping


def test_normalize_field_name():
    assert normalize_field_name("Created By") == "createdby"
    assert normalize_field_name("created_by") == "createdby"
    assert normalize_field_name("createdBy") == "createdby"


def test_csv_export_fields_are_inferred():
    mapping, confidence = resolve_field_mapping(["user", "createdBy", "Bo"], None, CSV_FIELD_CANDIDATES, "CSV")

    assert mapping == FieldMapping(key_field="createdBy", user_field="user", count_field="Bo")
    assert confidence == 1.0


def test_json_export_fields_are_inferred():
    mapping, _ = resolve_field_mapping(["createdBy", "user", "Blop"], {}, JSON_FIELD_CANDIDATES, "JSON")

    assert mapping == FieldMapping(key_field="createdBy", user_field="user", count_field="Blop")


def test_configured_fields_take_precedence():
    columns = ["owner_email", "createdBy", "Qty Logged"]

    mapping, _ = resolve_field_mapping(
        columns, {"key": "owner_email", "count": "Qty Logged"}, CSV_FIELD_CANDIDATES, "CSV"
    )

    assert mapping.key_field == "owner_email"
    assert mapping.count_field == "Qty Logged"


def test_configured_field_missing_from_source_is_an_error():
    with pytest.raises(ValueError, match="not found"):
        resolve_field_mapping(["createdBy", "Bo"], {"count": "Blop"}, CSV_FIELD_CANDIDATES, "CSV")


def test_implicit_count_ignores_count_columns():
    mapping, _ = resolve_field_mapping(
        ["createdBy", "count"], {"implicit_count": True}, JSON_FIELD_CANDIDATES, "JSON"
    )

    assert mapping.count_field is None


def test_no_key_field_is_an_error():
    with pytest.raises(ValueError, match="Cannot proceed"):
        resolve_field_mapping(["colour", "shape"], None, CSV_FIELD_CANDIDATES, "CSV")


def test_empty_source_gets_placeholder_mapping():
    mapping, confidence = resolve_field_mapping([], {"key": "createdBy"}, CSV_FIELD_CANDIDATES, "CSV")

    assert mapping.key_field == "createdBy"
    assert confidence == 1.0


def test_fuzzy_match_lowers_confidence():
    mapping, confidence = resolve_field_mapping(["creatd_by", "count"], None, CSV_FIELD_CANDIDATES, "CSV")

    assert mapping.key_field == "creatd_by"
    assert mapping.count_field == "count"
    assert confidence < 1.0


def test_taken_columns_are_not_reused():
    col, score = match_field(["createdBy"], ["createdBy"], taken=["createdBy"])

    assert col is None
    assert score == 0.0
