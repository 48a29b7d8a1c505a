"""
One comparison call: Normalize -> Reconcile -> Classify -> Build.

Operates on already-parsed rows (or row chunks) and a document feed; file
handling lives in loaders.py and main.py.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from keyword_classifier import CategoryTally, DocumentLike, KeywordCategories, KeywordClassifier
from normalizer import FieldMapping, RecordNormalizer
from reconciliation import aggregate_records, combine_aggregates, reconcile_aggregates
from report import ComparisonResult, Diagnostics, build_report

Rows = Iterable[Mapping[str, Any]]

# Per-source sample of skipped-row messages kept in diagnostics
MAX_DIAGNOSTIC_MESSAGES = 20


def _normalize_source(normalizer: RecordNormalizer, chunks: Iterable[Rows]) -> pd.DataFrame:
    # Only per-key totals outlive a chunk
    partials = []
    for chunk in chunks:
        partials.append(aggregate_records(normalizer.normalize(chunk)))
    return combine_aggregates(partials)


def _classify(classifier: KeywordClassifier, documents: Optional[Iterable[DocumentLike]]) -> CategoryTally:
    if documents is None:
        return classifier.empty_tally()
    return classifier.tally(documents)


def _collect_diagnostics(
    csv_normalizer: RecordNormalizer,
    json_normalizer: RecordNormalizer,
    classifier: KeywordClassifier,
) -> Diagnostics:
    messages: List[str] = []
    for errors in (csv_normalizer.errors, json_normalizer.errors, classifier.errors):
        messages.extend(str(exc) for exc in errors[:MAX_DIAGNOSTIC_MESSAGES])
    return Diagnostics(
        csv_skipped_rows=csv_normalizer.skipped_rows,
        json_skipped_rows=json_normalizer.skipped_rows,
        skipped_documents=classifier.skipped_documents,
        messages=tuple(messages),
    )


def compare_chunks(
    csv_chunks: Iterable[Rows],
    json_chunks: Iterable[Rows],
    documents: Optional[Iterable[DocumentLike]],
    csv_mapping: FieldMapping,
    json_mapping: FieldMapping,
    categories: KeywordCategories,
    parallel: bool = False,
    read_content: bool = True,
    started_at: Optional[float] = None,
) -> ComparisonResult:
    """
    Run one comparison over chunked sources.

    With parallel=True the two normalizations and the keyword pass run in a
    thread pool and are all joined before reconciliation. Output is identical
    either way. Any ParseError raised while a source is consumed propagates.
    """
    if started_at is None:
        started_at = time.perf_counter()

    csv_normalizer = RecordNormalizer(csv_mapping, source="csv")
    json_normalizer = RecordNormalizer(json_mapping, source="json")
    classifier = KeywordClassifier(categories, read_content=read_content)

    if parallel:
        with ThreadPoolExecutor(max_workers=3) as executor:
            csv_future = executor.submit(_normalize_source, csv_normalizer, csv_chunks)
            json_future = executor.submit(_normalize_source, json_normalizer, json_chunks)
            tally_future = executor.submit(_classify, classifier, documents)
            csv_totals = csv_future.result()
            json_totals = json_future.result()
            tally = tally_future.result()
    else:
        csv_totals = _normalize_source(csv_normalizer, csv_chunks)
        json_totals = _normalize_source(json_normalizer, json_chunks)
        tally = _classify(classifier, documents)

    rows = reconcile_aggregates(csv_totals, json_totals)
    diagnostics = _collect_diagnostics(csv_normalizer, json_normalizer, classifier)
    return build_report(rows, tally, started_at, diagnostics=diagnostics)


def compare(
    csv_rows: Rows,
    json_rows: Rows,
    documents: Optional[Iterable[DocumentLike]],
    csv_mapping: FieldMapping,
    json_mapping: FieldMapping,
    categories: KeywordCategories,
    parallel: bool = False,
    read_content: bool = True,
) -> ComparisonResult:
    """Run one comparison over fully loaded row lists."""
    return compare_chunks(
        [csv_rows],
        [json_rows],
        documents,
        csv_mapping,
        json_mapping,
        categories,
        parallel=parallel,
        read_content=read_content,
    )
