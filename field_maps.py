"""
Field-map resolution for the CSV and JSON exports.

Provides candidate field names per source, fuzzy matching, and confidence
scoring so a FieldMapping can be resolved once per source before any row is
normalized.
"""

import re
from difflib import SequenceMatcher
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from normalizer import FieldMapping


# =========================
# FIELD CANDIDATES
# =========================

CSV_FIELD_CANDIDATES = {
    "key": ["created_by", "createdby", "created by", "creator", "author", "owner", "user_id", "key", "id"],
    "user": ["user", "username", "user_name", "display_name", "full_name", "name"],
    "count": ["bo", "count", "record_count", "records", "total", "qty"],
}

JSON_FIELD_CANDIDATES = {
    "key": ["createdBy", "created_by", "creator", "author", "owner", "userId", "key", "id"],
    "user": ["user", "userName", "username", "displayName", "fullName", "name"],
    "count": ["blop", "count", "recordCount", "records", "total", "qty"],
}

LOGICAL_FIELDS = ("key", "user", "count")

# Minimum similarity for a fuzzy (non-exact) match
FUZZY_THRESHOLD = 0.8


def normalize_field_name(name: str) -> str:
    """Lowercase and drop separators: 'Created By', 'created_by', 'createdBy' -> 'createdby'."""
    return re.sub(r"[^a-z0-9]+", "", str(name).lower())


def similarity_score(a: str, b: str) -> float:
    """Calculate similarity between two strings (0.0 to 1.0)."""
    return SequenceMatcher(None, a.lower(), b.lower()).ratio()


def match_field(
    columns: Sequence[str],
    candidates: Sequence[str],
    taken: Sequence[str] = (),
) -> Tuple[Optional[str], float]:
    """
    Find the column that best matches any candidate name.

    Exact (normalized) matches win in candidate order; otherwise the best fuzzy
    match at or above FUZZY_THRESHOLD. Columns in `taken` are never returned.
    """
    normalized = {col: normalize_field_name(col) for col in columns if col not in taken}

    for candidate in candidates:
        cand_norm = normalize_field_name(candidate)
        for col, col_norm in normalized.items():
            if cand_norm == col_norm:
                return col, 1.0

    best_col = None
    best_score = 0.0
    for candidate in candidates:
        cand_norm = normalize_field_name(candidate)
        for col, col_norm in normalized.items():
            score = similarity_score(cand_norm, col_norm)
            if score > best_score and score >= FUZZY_THRESHOLD:
                best_score = score
                best_col = col
    return best_col, best_score


def resolve_field_mapping(
    columns: Sequence[str],
    configured: Optional[Mapping[str, Optional[str]]],
    candidates: Mapping[str, List[str]],
    source: str,
) -> Tuple[FieldMapping, float]:
    """
    Build the FieldMapping for one source.

    Configured field names are used as given and must exist in `columns`.
    Unconfigured logical fields are inferred from `candidates`. With
    `implicit_count` set, or when no count field is found, every row counts 1.

    Returns (mapping, confidence) where confidence is the mean match score of
    the inferred fields (1.0 when everything was configured).
    """
    configured = dict(configured or {})
    columns = [str(c) for c in columns]
    implicit_count = bool(configured.pop("implicit_count", False))

    if not columns:
        # Nothing loaded (empty export): the mapping is never applied to a row
        mapping = FieldMapping(
            key_field=configured.get("key") or "key",
            user_field=configured.get("user"),
            count_field=None if implicit_count else configured.get("count"),
        )
        return mapping, 1.0

    resolved: Dict[str, Optional[str]] = {}
    scores: List[float] = []
    for logical in LOGICAL_FIELDS:
        if logical == "count" and implicit_count:
            resolved[logical] = None
            continue
        wanted = configured.get(logical)
        if wanted:
            if wanted not in columns:
                raise ValueError(
                    f"{source}: configured {logical} field '{wanted}' not found. "
                    f"Available fields: {columns}"
                )
            resolved[logical] = wanted
            continue
        taken = [v for v in resolved.values() if v]
        found, score = match_field(columns, candidates.get(logical, []), taken=taken)
        resolved[logical] = found
        if found:
            scores.append(score)

    if not resolved["key"]:
        raise ValueError(
            f"Cannot proceed: no grouping key field found in {source}. "
            f"Available fields: {columns}"
        )

    confidence = sum(scores) / len(scores) if scores else 1.0
    mapping = FieldMapping(
        key_field=resolved["key"],
        user_field=resolved["user"],
        count_field=resolved["count"],
    )
    return mapping, confidence
