"""
CSV vs JSON reconciliation engine.

Full outer join of the two normalized record sets on the grouping key, with
counts summed per key on each side. Row order is stable: keys in first-seen
order from the CSV, then keys that only exist in the JSON, in first-seen order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from normalizer import SourceRecord


class MatchStatus(str, Enum):
    MATCH = "Match"
    MISMATCH = "Mismatch"


@dataclass(frozen=True)
class ComparisonRow:
    user: str
    key: str
    csv_count: int
    json_count: int
    difference: int
    status: MatchStatus

    @classmethod
    def build(cls, user: str, key: str, csv_count: int, json_count: int) -> "ComparisonRow":
        difference = abs(csv_count - json_count)
        status = MatchStatus.MATCH if difference == 0 else MatchStatus.MISMATCH
        return cls(
            user=user,
            key=key,
            csv_count=csv_count,
            json_count=json_count,
            difference=difference,
            status=status,
        )

    def to_dict(self) -> dict:
        return {
            "user": self.user,
            "key": self.key,
            "csv_count": self.csv_count,
            "json_count": self.json_count,
            "difference": self.difference,
            "status": self.status.value,
        }


# =========================
# AGGREGATION LAYER
# =========================

def _empty_totals() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "user": pd.Series(dtype="object"),
            "count": pd.Series(dtype="object"),
        },
        index=pd.Index([], dtype="object", name="key"),
    )


def _group_totals(frame: pd.DataFrame) -> pd.DataFrame:
    # sort=False keeps groups in first-seen order; "first" keeps the first label
    if frame.empty:
        return _empty_totals()
    # Counts are summed as Python ints so a per-key total never wraps at int64
    frame = frame.assign(count=frame["count"].map(int).astype(object))
    totals = frame.groupby("key", sort=False).agg(user=("user", "first"), count=("count", "sum"))
    totals["count"] = totals["count"].map(int).astype(object)
    return totals


def aggregate_records(records: Iterable[SourceRecord]) -> pd.DataFrame:
    """
    Collapse records to one row per key (index "key", columns user/count).
    """
    frame = pd.DataFrame(
        [(r.key, r.user, r.count) for r in records],
        columns=["key", "user", "count"],
    )
    return _group_totals(frame)


def combine_aggregates(partials: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """
    Merge per-chunk totals from aggregate_records, in chunk order.

    Used when a large source is read chunk by chunk so that only per-key
    totals are kept in memory.
    """
    non_empty = [p for p in partials if not p.empty]
    if not non_empty:
        return _empty_totals()
    stacked = pd.concat(non_empty).reset_index()
    return _group_totals(stacked)


# =========================
# MERGE + MISMATCH LOGIC
# =========================

def reconcile_aggregates(csv_totals: pd.DataFrame, json_totals: pd.DataFrame) -> List[ComparisonRow]:
    json_only = json_totals.index[~json_totals.index.isin(csv_totals.index)]
    keys = csv_totals.index.append(json_only)

    csv_counts = csv_totals["count"].reindex(keys, fill_value=0).to_numpy(dtype=object)
    json_counts = json_totals["count"].reindex(keys, fill_value=0).to_numpy(dtype=object)
    # CSV label wins; JSON label only for keys the CSV never saw
    users = csv_totals["user"].reindex(keys).fillna(json_totals["user"].reindex(keys))

    differences = np.abs(csv_counts - json_counts)
    statuses = np.where(differences == 0, MatchStatus.MATCH.value, MatchStatus.MISMATCH.value)

    rows: List[ComparisonRow] = []
    for key, user, csv_count, json_count, difference, status in zip(
        keys, users, csv_counts, json_counts, differences, statuses
    ):
        rows.append(
            ComparisonRow(
                user=str(user),
                key=str(key),
                csv_count=int(csv_count),
                json_count=int(json_count),
                difference=int(difference),
                status=MatchStatus(str(status)),
            )
        )
    return rows


def reconcile(csv_records: Iterable[SourceRecord], json_records: Iterable[SourceRecord]) -> List[ComparisonRow]:
    """
    Compare CSV and JSON records by grouping key.

    Every key seen on either side yields exactly one ComparisonRow; a key
    missing on one side is compared against a count of 0.
    """
    return reconcile_aggregates(aggregate_records(csv_records), aggregate_records(json_records))
