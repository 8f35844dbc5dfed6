"""
Records persisted by the crawler: URLs, links between them and fetch snapshots.

Inside the crawler an unset timestamp is ``None`` and an unknown status or
length is ``None``/``-1``; the storage sentinels (epoch ``0`` for "never",
``-1`` for "unknown") only appear in the documents produced by
``to_document`` and read back by ``from_document``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

UNKNOWN = -1


def utcnow() -> datetime:
    """Current UTC time truncated to whole seconds, the resolution we store."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_epoch(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    return int(value.timestamp())


def from_epoch(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def clamp(value: Optional[int]) -> int:
    """Force unknown or out-of-range status/length values to -1."""
    if value is None or value < UNKNOWN:
        return UNKNOWN
    return int(value)


@dataclass
class UrlRecord:
    url: str
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    last_get: Optional[datetime] = None
    host: str = ""
    status: int = UNKNOWN
    content_type: str = ""
    content_length: int = UNKNOWN
    title: str = ""
    hash: str = ""

    @property
    def fetched(self) -> bool:
        return self.last_get is not None

    def to_document(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "created": to_epoch(self.created),
            "updated": to_epoch(self.updated),
            "last_get": to_epoch(self.last_get),
            "host": self.host,
            "status": clamp(self.status),
            "content_type": self.content_type or "",
            "content_length": clamp(self.content_length),
            "title": self.title or "",
            "hash": self.hash or "",
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UrlRecord":
        return cls(
            url=doc["url"],
            created=from_epoch(doc.get("created")),
            updated=from_epoch(doc.get("updated")),
            last_get=from_epoch(doc.get("last_get")),
            host=doc.get("host", ""),
            status=doc.get("status", UNKNOWN),
            content_type=doc.get("content_type", ""),
            content_length=doc.get("content_length", UNKNOWN),
            title=doc.get("title", ""),
            hash=doc.get("hash", ""),
        )


@dataclass
class Link:
    """A hyperlink found in ``src``'s content pointing at ``dst``."""

    src: str
    dst: str
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.src, self.dst)

    def to_document(self) -> Dict[str, Any]:
        return {
            "src": self.src,
            "dst": self.dst,
            "created": to_epoch(self.created),
            "updated": to_epoch(self.updated),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Link":
        return cls(
            src=doc["src"],
            dst=doc["dst"],
            created=from_epoch(doc.get("created")),
            updated=from_epoch(doc.get("updated")),
        )


@dataclass
class Snapshot:
    """Immutable record of a single fetch attempt."""

    url: str
    created: datetime
    status: int = UNKNOWN
    duration: int = 0
    headers: List[Tuple[str, str]] = field(default_factory=list)
    hash: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "created": to_epoch(self.created),
            "status": clamp(self.status),
            "duration": int(self.duration),
            "headers": [[key, value] for key, value in self.headers],
            "hash": self.hash or "",
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Snapshot":
        return cls(
            url=doc["url"],
            created=from_epoch(doc.get("created")),
            status=doc.get("status", UNKNOWN),
            duration=doc.get("duration", 0),
            headers=[(key, value) for key, value in doc.get("headers") or []],
            hash=doc.get("hash", ""),
        )
