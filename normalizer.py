"""
Record normalization for the CSV and JSON exports.

Turns each loaded row into a uniform (key, user, count) SourceRecord using a
FieldMapping that is fixed when the normalizer is built.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

import numpy as np

# Largest count a single cell may carry
MAX_COUNT = int(np.iinfo(np.int64).max)


@dataclass(frozen=True)
class SourceRecord:
    key: str
    user: str
    count: int


@dataclass(frozen=True)
class FieldMapping:
    """
    Which physical field holds the grouping key, the user label and the count.

    count_field=None means every row counts as 1.
    user_field=None means the key doubles as the user label.
    """
    key_field: str
    user_field: Optional[str] = None
    count_field: Optional[str] = None


class MalformedRecordError(ValueError):
    """A source row has no usable grouping key or count."""

    def __init__(self, source: str, row_index: int, reason: str):
        self.source = source
        self.row_index = row_index
        self.reason = reason
        super().__init__(f"{source} row {row_index}: {reason}")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def parse_count(value: Any) -> int:
    """
    Coerce a raw count cell to a non-negative int.

    Accepts ints, integral floats and integral strings with thousands
    separators ("1,200"), up to MAX_COUNT. Raises ValueError for anything else.
    """
    if isinstance(value, bool):
        raise ValueError(f"boolean is not a count: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"non-integral count: {value!r}")
        number = int(value)
    else:
        text = str(value).replace(",", "").strip()
        try:
            number = int(text)
        except ValueError:
            as_float = float(text)
            if not as_float.is_integer():
                raise ValueError(f"non-integral count: {value!r}")
            number = int(as_float)
    if number < 0:
        raise ValueError(f"negative count: {value!r}")
    if number > MAX_COUNT:
        raise ValueError(f"count out of range: {value!r}")
    return number


class RecordNormalizer:
    def __init__(self, mapping: FieldMapping, source: str):
        self.mapping = mapping
        self.source = source
        self.skipped_rows = 0
        self.errors: List[MalformedRecordError] = []
        self._rows_seen = 0

    def normalize(self, rows: Iterable[Mapping[str, Any]]) -> List[SourceRecord]:
        """
        Normalize rows in order. Malformed rows are skipped and recorded on
        self.errors / self.skipped_rows. Can be called once per chunk; row
        indexes and the skip counter carry over between calls.
        """
        records: List[SourceRecord] = []
        for row in rows:
            row_index = self._rows_seen
            self._rows_seen += 1
            try:
                records.append(self._normalize_row(row, row_index))
            except MalformedRecordError as exc:
                self.skipped_rows += 1
                self.errors.append(exc)
        return records

    def _normalize_row(self, row: Mapping[str, Any], row_index: int) -> SourceRecord:
        key_value = row.get(self.mapping.key_field)
        if _is_missing(key_value):
            raise MalformedRecordError(
                self.source, row_index, f"missing grouping key '{self.mapping.key_field}'"
            )
        # JSON numbers next to missing values come back from pandas as floats
        if isinstance(key_value, float) and key_value.is_integer():
            key_value = int(key_value)
        key = str(key_value).strip()

        user = key
        if self.mapping.user_field:
            user_value = row.get(self.mapping.user_field)
            if not _is_missing(user_value):
                user = str(user_value).strip()

        if self.mapping.count_field is None:
            count = 1
        else:
            raw_count = row.get(self.mapping.count_field)
            if _is_missing(raw_count):
                raise MalformedRecordError(
                    self.source, row_index, f"missing count '{self.mapping.count_field}'"
                )
            try:
                count = parse_count(raw_count)
            except ValueError as exc:
                raise MalformedRecordError(self.source, row_index, str(exc)) from exc

        return SourceRecord(key=key, user=user, count=count)
