"""
Tests for page key canonicalization.
Covers normalization rules, idempotence and the non-raising resolvers.
"""

import os
import sys

# CRITICAL: Set Windows event loop policy FIRST, before other imports
if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Add project root to path
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(BASE_DIR))
except NameError:
    BASE_DIR = Path(os.getcwd())
    sys.path.insert(0, str(BASE_DIR))

import pytest

from mindmap_agent.utils.errors import InvalidUrlError
from mindmap_agent.utils.page_key import (
    fragment_page_key,
    normalize_page_url,
    resolve_page_key,
)
from tests.helpers import make_fragment

NORMALIZATION_TESTS = [
    {
        "test_id": "PK_001",
        "description": "Default port, host case, trailing slash and query order",
        "url": "https://Example.com:443/a/b/?b=2&a=1#x",
        "expected": "https://example.com/a/b?a=1&b=2#x",
    },
    {
        "test_id": "PK_002",
        "description": "Non-default port is kept",
        "url": "http://example.com:8080/chat",
        "expected": "http://example.com:8080/chat",
    },
    {
        "test_id": "PK_003",
        "description": "Bare host gets a root path",
        "url": "https://example.com",
        "expected": "https://example.com/",
    },
    {
        "test_id": "PK_004",
        "description": "Repeated trailing slashes collapse",
        "url": "https://example.com/a/b//",
        "expected": "https://example.com/a/b",
    },
    {
        "test_id": "PK_005",
        "description": "Bare hash is dropped",
        "url": "https://example.com/a#",
        "expected": "https://example.com/a",
    },
    {
        "test_id": "PK_006",
        "description": "Equal keys sorted by value and re-encoded",
        "url": "https://example.com/s?tag=b&tag=a&q=hello world",
        "expected": "https://example.com/s?q=hello%20world&tag=a&tag=b",
    },
]


@pytest.mark.parametrize("case", NORMALIZATION_TESTS, ids=lambda c: c["test_id"])
def test_normalize_page_url(case):
    result = normalize_page_url(case["url"])
    assert result == case["expected"], f"{case['test_id']}: {case['description']}"
    print(f"✅ {case['test_id']}: {case['description']}")


@pytest.mark.parametrize("case", NORMALIZATION_TESTS, ids=lambda c: c["test_id"])
def test_normalize_is_idempotent(case):
    once = normalize_page_url(case["url"])
    assert normalize_page_url(once) == once


def test_equivalent_urls_share_a_key():
    assert normalize_page_url("https://chat.example.com/c/1/?b=2&a=1") == normalize_page_url(
        "https://chat.example.com:443/c/1?a=1&b=2"
    )


@pytest.mark.parametrize("url", ["", "   ", None, "not a url", "/relative/path", "mailto:someone"])
def test_normalize_rejects_unparsable_urls(url):
    with pytest.raises(InvalidUrlError):
        normalize_page_url(url)


def test_invalid_url_error_is_a_value_error():
    with pytest.raises(ValueError):
        normalize_page_url("not a url")


def test_resolve_page_key_falls_back_to_raw_string():
    assert resolve_page_key("not a url") == "not a url"
    assert resolve_page_key("not a url", fallback_to_raw=False) is None
    assert resolve_page_key(None) is None
    assert resolve_page_key("") is None


def test_fragment_page_key_recomputes_from_page_url():
    fragment = make_fragment(
        "m1", page_url="https://example.com/c/1/", normalized_page="stale-key"
    )
    assert fragment_page_key(fragment) == "https://example.com/c/1"


def test_fragment_page_key_uses_stored_key_without_url():
    fragment = make_fragment("m1", page_url=None, normalized_page="https://example.com/c/1")
    assert fragment_page_key(fragment) == "https://example.com/c/1"

    orphan = make_fragment("m2", page_url=None, normalized_page=None)
    assert fragment_page_key(orphan) is None
