"""
Loading of the CSV export, the JSON export and the document feed.

Structural failures (missing file, unparseable CSV/JSON, no list of records)
raise ParseError naming the source. Individual bad rows are not handled here;
that is the normalizer's job.
"""

import json
import zlib
import zipfile
from functools import partial
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import pandas as pd

from keyword_classifier import ClassificationError, Document


JSON_RECORD_KEYS = ("records", "data", "items", "rows")

DEFAULT_CSV_CHUNKSIZE = 50_000


class ParseError(Exception):
    """A source file could not be parsed at all."""

    def __init__(self, source: str, path: Union[str, Path, None], reason: str):
        self.source = source
        self.path = str(path) if path is not None else None
        self.reason = reason
        super().__init__(f"Failed to load {source} source {self.path}: {reason}")


# =========================
# CSV
# =========================

def iter_csv_chunks(path: Union[str, Path], chunksize: int = DEFAULT_CSV_CHUNKSIZE) -> Iterator[pd.DataFrame]:
    """
    Yield the CSV in DataFrame chunks of at most `chunksize` rows.

    All cells are read as strings and blanks stay empty strings, so ids such
    as "00123" survive and missing keys are visible to the normalizer.
    A zero-byte file yields nothing.
    """
    path = Path(path)
    if not path.exists():
        raise ParseError("csv", path, "file not found")

    try:
        reader = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            chunksize=chunksize,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        print(f"[WARN] CSV source {path} is empty.")
        return
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as exc:
        raise ParseError("csv", path, str(exc)) from exc

    with reader:
        while True:
            try:
                chunk = next(reader)
            except StopIteration:
                break
            except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as exc:
                raise ParseError("csv", path, str(exc)) from exc
            yield chunk


def load_csv_rows(path: Union[str, Path]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Read the whole CSV. Returns (rows, columns)."""
    rows: List[Dict[str, Any]] = []
    columns: List[str] = []
    for chunk in iter_csv_chunks(path):
        if not columns:
            columns = [str(c) for c in chunk.columns]
        rows.extend(chunk.to_dict("records"))
    return rows, columns


# =========================
# JSON
# =========================

def _find_record_list(payload: Any, records_key: Optional[str]) -> Optional[list]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None
    if records_key:
        value = payload.get(records_key)
        return value if isinstance(value, list) else None
    for key in JSON_RECORD_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return None


def load_json_rows(
    path: Union[str, Path], records_key: Optional[str] = None
) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Read the JSON export. Returns (rows, columns).

    Accepts a top-level array of objects or an object holding that array under
    `records_key` (or one of JSON_RECORD_KEYS when not given). Nested objects
    are flattened to dotted field names.
    """
    path = Path(path)
    if not path.exists():
        raise ParseError("json", path, "file not found")

    try:
        with path.open("r", encoding="utf-8-sig") as f:
            payload = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError("json", path, str(exc)) from exc

    records = _find_record_list(payload, records_key)
    if records is None:
        where = f"under '{records_key}'" if records_key else "at top level or under " + ", ".join(JSON_RECORD_KEYS)
        raise ParseError("json", path, f"no list of records found {where}")

    bad = [i for i, item in enumerate(records) if not isinstance(item, dict)]
    if bad:
        raise ParseError("json", path, f"record {bad[0]} is not an object")

    if not records:
        print(f"[WARN] JSON source {path} has no records.")
        return [], []

    df = pd.json_normalize(records)
    columns = [str(c) for c in df.columns]
    return df.to_dict("records"), columns


# =========================
# DOCUMENT FEED
# =========================

def iter_directory_documents(root: Union[str, Path]) -> Iterator[Document]:
    """Every file under root, sorted by relative path; content is read lazily."""
    root = Path(root)
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        yield Document(identifier=path.relative_to(root).as_posix(), path=path)


def _read_zip_member(zf: zipfile.ZipFile, info: zipfile.ZipInfo) -> str:
    try:
        return zf.read(info).decode("utf-8", errors="replace")
    except (zipfile.BadZipFile, zlib.error, RuntimeError, OSError) as exc:
        raise ClassificationError(info.filename, f"unreadable archive member: {exc}") from exc


def iter_zip_documents(zip_path: Union[str, Path]) -> Iterator[Document]:
    """Every file member of the archive, in archive order."""
    zip_path = Path(zip_path)
    try:
        zf = zipfile.ZipFile(zip_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ParseError("documents", zip_path, str(exc)) from exc
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            yield Document(identifier=info.filename, reader=partial(_read_zip_member, zf, info))


def iter_json_documents(path: Union[str, Path]) -> Iterator[Dict[str, Any]]:
    """A JSON array of {"identifier": ..., "content": ...} objects."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8-sig") as f:
            payload = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        raise ParseError("documents", path, str(exc)) from exc
    items = _find_record_list(payload, None)
    if items is None:
        raise ParseError("documents", path, "no list of documents found")
    yield from items


def iter_documents(path: Union[str, Path, None]) -> Iterator[Any]:
    """
    Pick a feed reader for `path`: directory, .zip archive or .json listing.
    None gives an empty feed.
    """
    if path is None:
        return iter(())
    path = Path(path)
    if not path.exists():
        raise ParseError("documents", path, "path not found")
    if path.is_dir():
        return iter_directory_documents(path)
    suffix = path.suffix.lower()
    if suffix == ".zip":
        return iter_zip_documents(path)
    if suffix == ".json":
        return iter_json_documents(path)
    raise ParseError("documents", path, f"unsupported document feed type '{suffix}'")
