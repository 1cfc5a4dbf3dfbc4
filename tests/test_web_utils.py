from __future__ import annotations

from datetime import datetime, timezone

import pytest

from marketlens.tools import web_utils


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.Reuters.com/markets", "reuters.com"),
        ("http://news.example.org/a?b=c", "news.example.org"),
        ("not a url", "unknown"),
        ("", "unknown"),
    ],
)
def test_extract_domain(url, expected):
    assert web_utils.extract_domain(url) == expected


def test_is_valid_url():
    assert web_utils.is_valid_url("https://example.com/a")
    assert not web_utils.is_valid_url("ftp://example.com/a")
    assert not web_utils.is_valid_url("example.com")
    assert not web_utils.is_valid_url("")


def test_clean_text_collapses_whitespace_and_truncates():
    assert web_utils.clean_text("  a \n\t b  ", 10) == "a b"
    assert web_utils.clean_text("abcdefgh", 3) == "abc"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-05-01T10:00:00Z", datetime(2026, 5, 1, 10, tzinfo=timezone.utc)),
        ("2026-05-01", datetime(2026, 5, 1, tzinfo=timezone.utc)),
        ("Fri, 01 May 2026 10:00:00 GMT", datetime(2026, 5, 1, 10, tzinfo=timezone.utc)),
        ("yesterday", None),
        (None, None),
    ],
)
def test_parse_published_date(value, expected):
    assert web_utils.parse_published_date(value) == expected
