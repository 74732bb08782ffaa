"""Tests for base URL normalisation and link building."""

import pytest

from confluence_search.errors import ValidationError
from confluence_search.urls import build_url, sanitize_base_url


def test_sanitize_keeps_only_the_origin() -> None:
    assert sanitize_base_url("https://wiki.example.com/wiki/spaces?x=1") == "https://wiki.example.com"


def test_sanitize_keeps_port() -> None:
    assert sanitize_base_url("http://localhost:8090/") == "http://localhost:8090"


@pytest.mark.parametrize("raw", ["ftp://wiki.example.com", "wiki.example.com", "javascript:alert(1)", ""])
def test_sanitize_rejects_non_http_urls(raw: str) -> None:
    with pytest.raises(ValidationError):
        sanitize_base_url(raw)


def test_build_url_joins_relative_path() -> None:
    assert (
        build_url("https://wiki.example.com", "/display/DEV/Home")
        == "https://wiki.example.com/display/DEV/Home"
    )


@pytest.mark.parametrize(
    "path",
    [None, "", "https://evil.example.com/x", "javascript:alert(1)", "data:text/html,hi"],
)
def test_build_url_refuses_unsafe_paths(path: str | None) -> None:
    assert build_url("https://wiki.example.com", path) == "#"
