"""
Keyword classification of the document feed.

Each document is tested against every configured category independently:
case-insensitive substring match on its identifier and content. The result is
a CategoryTally (category name -> number of matching documents).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union


# =========================
# DEFAULT CATEGORIES
# =========================

DEFAULT_CATEGORIES = {
    "Nearmiss": "Nearmiss",
    "Hazard": "Hazard",
    "HarmInjury": "HarmInjury",
    "Product": "Product",
    "SalesDelivery": "SalesDelivery",
}

# Names already used by the summary totals
RESERVED_NAMES = {"total_csv_count", "total_json_count"}

CategoryTally = Dict[str, int]


class ClassificationError(Exception):
    """A document could not be read for classification."""

    def __init__(self, identifier: Optional[str], reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"{identifier or '<unknown document>'}: {reason}")


@dataclass(frozen=True)
class KeywordCategory:
    name: str
    substring: str


@dataclass(frozen=True)
class KeywordCategories:
    categories: Tuple[KeywordCategory, ...]

    def __post_init__(self):
        seen = set()
        for category in self.categories:
            if not category.name or not category.name.strip():
                raise ValueError("Keyword category name must not be empty")
            if not category.substring:
                raise ValueError(f"Keyword category '{category.name}' has an empty substring")
            if category.name in RESERVED_NAMES:
                raise ValueError(f"Keyword category name '{category.name}' is reserved")
            if category.name in seen:
                raise ValueError(f"Duplicate keyword category '{category.name}'")
            seen.add(category.name)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "KeywordCategories":
        return cls(tuple(KeywordCategory(name, substring) for name, substring in mapping.items()))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(category.name for category in self.categories)

    def __iter__(self):
        return iter(self.categories)

    def __len__(self):
        return len(self.categories)


@dataclass(frozen=True)
class Document:
    """
    One item of the document feed.

    content=None with a path set means the text is read from disk on demand.
    A custom `reader` callable (e.g. a ZIP member reader) takes precedence.
    """
    identifier: str
    content: Optional[str] = None
    path: Optional[Path] = None
    reader: Optional[Callable[[], str]] = None

    def text(self) -> str:
        if self.content is not None:
            return self.content
        try:
            if self.reader is not None:
                return self.reader()
            if self.path is not None:
                return self.path.read_text(encoding="utf-8", errors="replace")
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise ClassificationError(self.identifier, f"unreadable content: {exc}") from exc
        return ""


DocumentLike = Union[Document, Mapping[str, Any]]


def coerce_document(item: DocumentLike) -> Document:
    if isinstance(item, Document):
        return item
    if not isinstance(item, Mapping):
        raise ClassificationError(None, f"unsupported document type {type(item).__name__}")
    identifier = item.get("identifier")
    if identifier is None or not str(identifier).strip():
        raise ClassificationError(None, "document has no identifier")
    content = item.get("content")
    if content is not None and not isinstance(content, str):
        raise ClassificationError(str(identifier), f"content is {type(content).__name__}, expected text")
    return Document(identifier=str(identifier), content=content)


class KeywordClassifier:
    def __init__(self, categories: KeywordCategories, read_content: bool = True):
        self.categories = categories
        self.read_content = read_content
        self.skipped_documents = 0
        self.errors: List[ClassificationError] = []
        self._needles = [(c.name, c.substring.casefold()) for c in categories]

    def empty_tally(self) -> CategoryTally:
        return {name: 0 for name in self.categories.names}

    def classify(self, document: DocumentLike) -> Tuple[str, ...]:
        """Return the names of every category the document matches."""
        doc = coerce_document(document)
        haystacks = [doc.identifier.casefold()]
        if self.read_content:
            haystacks.append(doc.text().casefold())
        return tuple(
            name for name, needle in self._needles
            if any(needle in haystack for haystack in haystacks)
        )

    def tally(self, documents: Iterable[DocumentLike]) -> CategoryTally:
        counts = self.empty_tally()
        for document in documents:
            try:
                matched = self.classify(document)
            except ClassificationError as exc:
                self.skipped_documents += 1
                self.errors.append(exc)
                continue
            for name in matched:
                counts[name] += 1
        return counts
