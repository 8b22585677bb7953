import pytest

from linkhaven.similarity.text import extract_domain, levenshtein, normalize_url, string_similarity


def test_normalize_url_strips_scheme_www_slash_and_tracking():
    assert normalize_url("https://www.example.com/path/?utm_source=x") == normalize_url("http://example.com/path")
    assert normalize_url("http://example.com/path") == "example.com/path"


def test_normalize_url_keeps_meaningful_query():
    assert normalize_url("https://Example.com/Search?q=Rust&utm_medium=mail&fbclid=1") == "example.com/search?q=rust"


def test_normalize_url_drops_port_and_fragment():
    assert normalize_url("https://example.com:8443/docs/#intro") == "example.com/docs"


@pytest.mark.parametrize("raw, expected", [
    ("Example.com/Path/", "example.com/path"),
    ("not a url", "not a url"),
    ("", ""),
    (None, ""),
])
def test_normalize_url_textual_fallback(raw, expected):
    assert normalize_url(raw) == expected


def test_extract_domain():
    assert extract_domain("https://www.github.com/org/repo") == "github.com"
    assert extract_domain("https://docs.python.org/3/") == "docs.python.org"


@pytest.mark.parametrize("raw", ["not a url", "example.com/path", "", None, "http://[::1"])
def test_extract_domain_fails_soft(raw):
    assert extract_domain(raw) is None


def test_levenshtein():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "") == 3
    assert levenshtein("flaw", "lawn") == 2
    assert levenshtein("sitting", "kitten") == 3


def test_string_similarity_edge_cases():
    assert string_similarity("", "") == 100
    assert string_similarity(None, None) == 100
    assert string_similarity("abc", "") == 0
    assert string_similarity("ABC", "abc") == 100
    # 1 - 3/7
    assert string_similarity("kitten", "sitting") == 57
