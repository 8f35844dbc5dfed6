"""
URL canonicalization. Every URL the crawler stores, claims or fetches goes
through ``normalize`` first so equal resources compare equal as strings.
"""

from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from .errors import URLParseError

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}


def normalize(raw: str, base: Optional[str] = None) -> str:
    """Canonicalize ``raw``, resolving it against ``base`` when given.

    Scheme and host are lower-cased, default ports and the fragment are
    dropped, path and query are kept as they are. Raises URLParseError when
    the result is not an absolute URL with a host.
    """
    if not isinstance(raw, str):
        raise URLParseError(repr(raw), "not a string")

    candidate = raw.strip()
    try:
        if base is not None:
            candidate = urljoin(base, candidate)
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as e:
        raise URLParseError(raw, str(e)) from e

    scheme = parts.scheme.lower()
    if not scheme:
        raise URLParseError(raw, "missing scheme")

    host = parts.hostname
    if not host:
        raise URLParseError(raw, "missing host")
    if any(ch.isspace() for ch in host):
        raise URLParseError(raw, "whitespace in host")

    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    userinfo, at, _ = parts.netloc.rpartition("@")
    if at:
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path, parts.query, ""))


def host_of(url: str) -> str:
    """Host (with any non-default port) of an already normalized URL."""
    return urlsplit(url).netloc.rpartition("@")[2]
