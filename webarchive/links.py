"""
Link graph extraction from fetched HTML.
"""

from typing import Iterator, Optional

import structlog
from lxml import etree, html

from .errors import URLParseError
from .models import Link
from .normalize import normalize

logger = structlog.get_logger(__name__)


def parse_html(content: bytes):
    """Parse an HTML body into an lxml document, or None if it can't be parsed."""
    if not content or not content.strip():
        return None
    try:
        return html.document_fromstring(content)
    except (etree.ParserError, ValueError) as e:
        logger.warning("html_parse_failed", error=str(e), size=len(content))
        return None


def extract_links(doc, src_url: str) -> Iterator[Link]:
    """Yield a Link for every ``<a href>`` in ``doc``, in document order.

    ``doc`` only needs an ElementTree-style ``iter(tag)`` and ``get(attr)``.
    Hrefs that don't resolve to an absolute URL are logged and skipped.
    Duplicate edges are yielded as found.
    """
    for anchor in doc.iter("a"):
        href = anchor.get("href")
        if href is None:
            continue
        try:
            dst = normalize(href, base=src_url)
        except URLParseError as e:
            logger.info("link_skipped", src=src_url, href=href, reason=e.reason)
            continue
        yield Link(src=src_url, dst=dst)


def extract_title(doc) -> str:
    title: Optional[str] = doc.findtext(".//title")
    if not title:
        return ""
    return " ".join(title.split())
