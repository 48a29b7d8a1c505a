"""
Report builder: turns reconciliation rows and the keyword tally into the
single ComparisonResult handed to the export and presentation layers.

Totals are computed here and nowhere else; consumers display them as-is.
"""

import math
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from reconciliation import ComparisonRow, MatchStatus


@dataclass(frozen=True)
class Summary:
    total_csv_count: int
    total_json_count: int
    categories: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> Dict[str, int]:
        out = {
            "total_csv_count": self.total_csv_count,
            "total_json_count": self.total_json_count,
        }
        out.update(self.categories)
        return out


@dataclass(frozen=True)
class Diagnostics:
    csv_skipped_rows: int = 0
    json_skipped_rows: int = 0
    skipped_documents: int = 0
    messages: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "csv_skipped_rows": self.csv_skipped_rows,
            "json_skipped_rows": self.json_skipped_rows,
            "skipped_documents": self.skipped_documents,
            "messages": list(self.messages),
        }


@dataclass(frozen=True)
class ComparisonResult:
    details: Tuple[ComparisonRow, ...]
    summary: Summary
    processing_time_seconds: float
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def mismatch_count(self) -> int:
        return sum(1 for row in self.details if row.status is MatchStatus.MISMATCH)

    @property
    def match_count(self) -> int:
        return len(self.details) - self.mismatch_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "details": [row.to_dict() for row in self.details],
            "summary": self.summary.to_dict(),
            "processing_time_seconds": self.processing_time_seconds,
            "diagnostics": self.diagnostics.to_dict(),
        }


def build_summary(rows: Sequence[ComparisonRow], tally: Mapping[str, int]) -> Summary:
    return Summary(
        total_csv_count=sum(row.csv_count for row in rows),
        total_json_count=sum(row.json_count for row in rows),
        categories=MappingProxyType(dict(tally)),
    )


def build_report(
    rows: Sequence[ComparisonRow],
    tally: Mapping[str, int],
    started_at: float,
    diagnostics: Optional[Diagnostics] = None,
) -> ComparisonResult:
    """
    Wrap rows + tally into a ComparisonResult.

    started_at is a time.perf_counter() reading taken when the pipeline began;
    the elapsed time is measured up to this call.
    """
    summary = build_summary(rows, tally)
    elapsed = max(0.0, time.perf_counter() - started_at)
    return ComparisonResult(
        details=tuple(rows),
        summary=summary,
        processing_time_seconds=elapsed,
        diagnostics=diagnostics or Diagnostics(),
    )


def paginate(
    details: Sequence[ComparisonRow], page: int, page_size: int = 25
) -> Tuple[Tuple[ComparisonRow, ...], int]:
    """
    Return (rows on page, total pages). Pages are 1-based; out-of-range pages
    are clamped. An empty detail list has a single empty page.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    total_pages = max(1, math.ceil(len(details) / page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return tuple(details[start:start + page_size]), total_pages
