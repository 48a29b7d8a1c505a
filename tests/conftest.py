from pathlib import Path
import sys

import pytest

# Ensure project root (where main.py lives) is on PYTHONPATH
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from keyword_classifier import DEFAULT_CATEGORIES, KeywordCategories  # noqa: E402
from normalizer import FieldMapping, SourceRecord  # noqa: E402


@pytest.fixture
def mapping():
    return FieldMapping(key_field="key", user_field="user", count_field="count")


@pytest.fixture
def categories():
    return KeywordCategories.from_mapping(DEFAULT_CATEGORIES)


@pytest.fixture
def csv_records():
    return [
        SourceRecord(key="u1", user="Alice", count=5),
        SourceRecord(key="u2", user="Bob", count=3),
    ]


@pytest.fixture
def json_records():
    return [
        SourceRecord(key="u1", user="Alice", count=5),
        SourceRecord(key="u3", user="Carl", count=2),
    ]
