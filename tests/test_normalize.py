import pytest

from webarchive.errors import URLParseError
from webarchive.normalize import host_of, normalize


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("HTTP://Example.COM/Path?Q=1", "http://example.com/Path?Q=1"),
        ("http://example.com:80/a", "http://example.com/a"),
        ("https://example.com:443/a", "https://example.com/a"),
        ("https://example.com:8443/a", "https://example.com:8443/a"),
        ("http://example.com:443/a", "http://example.com:443/a"),
        ("http://example.com/a#section", "http://example.com/a"),
        ("  http://example.com/a  ", "http://example.com/a"),
        ("http://user:pw@Example.com/", "http://user:pw@example.com/"),
        ("http://[::1]:8080/x", "http://[::1]:8080/x"),
        ("http://example.com/a/../b?x=%20y", "http://example.com/a/../b?x=%20y"),
    ],
)
def test_normalize_canonical_forms(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize(
    "href, expected",
    [
        ("/a", "http://site.com/a"),
        ("b", "http://site.com/dir/b"),
        ("../c", "http://site.com/c"),
        ("http://X.com/b", "http://x.com/b"),
        ("//cdn.site.com/lib.js", "http://cdn.site.com/lib.js"),
        ("#frag", "http://site.com/dir/page"),
        ("?q=2", "http://site.com/dir/page?q=2"),
    ],
)
def test_normalize_resolves_against_base(href, expected):
    assert normalize(href, base="http://site.com/dir/page") == expected


@pytest.mark.parametrize(
    "raw",
    [
        "http://example.com",
        "HTTPS://Example.com:443/a/b?c=d#e",
        "http://user@host.example:8080/p;params?q",
        "https://example.com/%7Euser/",
        "http://[2001:db8::1]/",
        "http://example.com//double//slash",
    ],
)
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not a url",
        "/relative/path",
        "mailto:someone@example.com",
        "javascript:void(0)",
        "http://example.com:99999/",
        "http://[::1/",
        "http://exa mple.com/",
    ],
)
def test_normalize_rejects_malformed(raw):
    with pytest.raises(URLParseError):
        normalize(raw)


def test_normalize_rejects_non_string():
    with pytest.raises(URLParseError):
        normalize(None)


def test_host_of():
    assert host_of("http://example.com/a") == "example.com"
    assert host_of("https://user@example.com:8443/") == "example.com:8443"
