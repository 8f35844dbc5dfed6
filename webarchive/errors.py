"""
Exceptions shared by the archive components.
"""


class WebArchiveError(Exception):
    """Base class for all webarchive errors."""


class NotFound(WebArchiveError):
    """A lookup found no record or blob for the given key."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class AlreadyExists(WebArchiveError):
    """An insert collided with an existing key."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} already exists: {key}")


class URLParseError(WebArchiveError, ValueError):
    """A raw URL string could not be turned into a canonical absolute URL."""

    def __init__(self, raw: str, reason: str):
        self.raw = raw
        self.reason = reason
        super().__init__(f"cannot parse URL {raw!r}: {reason}")


class BlobStoreError(WebArchiveError):
    """The object store rejected or failed an operation."""
