"""
MongoDB persistence for the crawl frontier: one repository per record type.

The crawler only ever talks to the repositories; query shapes and document
layout stay in this module.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import AlreadyExists, NotFound
from .models import Link, Snapshot, UrlRecord, clamp, to_epoch, utcnow
from .normalize import host_of, normalize

logger = structlog.get_logger(__name__)

DEFAULT_COLLECTIONS = {
    "urls": "urls",
    "links": "links",
    "snapshots": "snapshots",
}


def _with_attempt(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["last_attempt"] = 0
    return doc


def _contains_filter(field: str, contains: Optional[str]) -> Dict[str, Any]:
    if not contains:
        return {}
    return {field: {"$regex": re.escape(contains), "$options": "i"}}


class UrlRepository:
    def __init__(self, collection):
        self.collection = collection

    def read(self, url: str) -> UrlRecord:
        doc = self.collection.find_one({"url": url})
        if doc is None:
            raise NotFound("url", url)
        return UrlRecord.from_document(doc)

    def exists(self, url: str) -> bool:
        return self.collection.find_one({"url": url}, {"_id": 1}) is not None

    def insert(self, record: UrlRecord) -> UrlRecord:
        """Insert a newly discovered URL. Raises AlreadyExists on a duplicate."""
        record.url = normalize(record.url)
        record.host = host_of(record.url)
        record.created = utcnow()
        record.updated = record.created
        try:
            self.collection.insert_one(_with_attempt(record.to_document()))
        except DuplicateKeyError:
            raise AlreadyExists("url", record.url)
        return record

    def update(self, record: UrlRecord) -> UrlRecord:
        """Overwrite every field of an existing URL row."""
        record.url = normalize(record.url)
        record.updated = utcnow()
        record.status = clamp(record.status)
        record.content_length = clamp(record.content_length)
        # a completed fetch clears any failed-attempt stamp
        result = self.collection.replace_one({"url": record.url}, _with_attempt(record.to_document()))
        if result.matched_count == 0:
            raise NotFound("url", record.url)
        return record

    def delete(self, url: str) -> None:
        result = self.collection.delete_one({"url": url})
        if result.deleted_count == 0:
            raise NotFound("url", url)

    def mark_failed(self, url: str, when: Optional[datetime] = None) -> None:
        """Stamp a failed fetch so the URL rotates behind the rest of the frontier.

        Only the storage-side ``last_attempt`` field changes; the record itself
        stays as it was.
        """
        when = when or utcnow()
        result = self.collection.update_one({"url": url}, {"$set": {"last_attempt": to_epoch(when)}})
        if result.matched_count == 0:
            raise NotFound("url", url)

    def discover(self, url: str) -> UrlRecord:
        """Return the record for ``url``, inserting it first if it is new."""
        try:
            return self.read(url)
        except NotFound:
            pass
        try:
            return self.insert(UrlRecord(url=url))
        except AlreadyExists:
            # another worker inserted it between our read and insert
            return self.read(url)

    def list(self, limit: int = 50, offset: int = 0, contains: Optional[str] = None) -> List[UrlRecord]:
        return self._find(_contains_filter("url", contains), limit, offset)

    def list_fetched(self, limit: int = 50, offset: int = 0) -> List[UrlRecord]:
        return self._find({"last_get": {"$gt": 0}}, limit, offset)

    def list_unfetched(self, limit: int = 50, offset: int = 0) -> List[UrlRecord]:
        return self._find({"last_get": 0}, limit, offset)

    def for_hash(self, content_hash: str) -> List[UrlRecord]:
        cursor = self.collection.find({"hash": content_hash}).sort("url", ASCENDING)
        return [UrlRecord.from_document(doc) for doc in cursor]

    def stale(self, cutoff: datetime, limit: int) -> List[UrlRecord]:
        """Frontier candidates: never fetched, or fetched/updated before ``cutoff``.

        URLs whose latest attempt failed go last, oldest failure first. Among
        the rest the least recently fetched lead, so new URLs (``last_get == 0``)
        come before stale ones.
        """
        epoch = to_epoch(cutoff)
        query = {
            "$or": [
                {"last_get": 0},
                {"last_get": {"$lt": epoch}},
                {"updated": {"$lt": epoch}},
            ]
        }
        cursor = (
            self.collection.find(query)
            .sort([("last_attempt", ASCENDING), ("last_get", ASCENDING), ("created", ASCENDING)])
            .limit(limit)
        )
        return [UrlRecord.from_document(doc) for doc in cursor]

    def _find(self, query: Dict[str, Any], limit: int, offset: int) -> List[UrlRecord]:
        cursor = (
            self.collection.find(query)
            .sort("created", DESCENDING)
            .skip(offset)
            .limit(limit)
        )
        return [UrlRecord.from_document(doc) for doc in cursor]


class LinkRepository:
    def __init__(self, collection):
        self.collection = collection

    def read(self, src: str, dst: str) -> Link:
        doc = self.collection.find_one({"src": src, "dst": dst})
        if doc is None:
            raise NotFound("link", (src, dst))
        return Link.from_document(doc)

    def exists(self, src: str, dst: str) -> bool:
        return self.collection.find_one({"src": src, "dst": dst}, {"_id": 1}) is not None

    def upsert(self, link: Link) -> Link:
        """Record an edge; rediscovery only bumps ``updated``."""
        now = utcnow()
        result = self.collection.update_one(
            {"src": link.src, "dst": link.dst},
            {
                "$set": {"updated": to_epoch(now)},
                "$setOnInsert": {"created": to_epoch(now)},
            },
            upsert=True,
        )
        if result.upserted_id is not None:
            link.created = now
        link.updated = now
        return link

    def delete(self, src: str, dst: str) -> None:
        result = self.collection.delete_one({"src": src, "dst": dst})
        if result.deleted_count == 0:
            raise NotFound("link", (src, dst))

    def outbound(self, src: str) -> List[str]:
        """Destination URLs linked from ``src``."""
        cursor = self.collection.find({"src": src}).sort("dst", ASCENDING)
        return [doc["dst"] for doc in cursor]

    def inbound(self, dst: str) -> List[str]:
        """Source URLs that link to ``dst``."""
        cursor = self.collection.find({"dst": dst}).sort("src", ASCENDING)
        return [doc["src"] for doc in cursor]

    def list(self, limit: int = 50, offset: int = 0, contains: Optional[str] = None) -> List[Link]:
        cursor = (
            self.collection.find(_contains_filter("src", contains))
            .sort("created", DESCENDING)
            .skip(offset)
            .limit(limit)
        )
        return [Link.from_document(doc) for doc in cursor]


class SnapshotRepository:
    def __init__(self, collection):
        self.collection = collection

    def append(self, snapshot: Snapshot) -> Snapshot:
        self.collection.insert_one(snapshot.to_document())
        return snapshot

    def for_url(self, url: str) -> List[Snapshot]:
        cursor = self.collection.find({"url": url}).sort("created", ASCENDING)
        return [Snapshot.from_document(doc) for doc in cursor]

    def list(self, limit: int = 50, offset: int = 0, contains: Optional[str] = None) -> List[Snapshot]:
        cursor = (
            self.collection.find(_contains_filter("url", contains))
            .sort("created", DESCENDING)
            .skip(offset)
            .limit(limit)
        )
        return [Snapshot.from_document(doc) for doc in cursor]


class MongoStorage:
    def __init__(self, config: Dict[str, Any] = None):
        if not config or not config.get("uri"):
            raise ValueError("mongodb config with a 'uri' is required")
        self.connection_string = config["uri"]
        self.database_name = config.get("database", "webarchive")
        self.collection_names = dict(DEFAULT_COLLECTIONS, **(config.get("collections") or {}))

        self.client = None
        self.db = None
        self.urls: Optional[UrlRepository] = None
        self.links: Optional[LinkRepository] = None
        self.snapshots: Optional[SnapshotRepository] = None

    def connect(self, client=None) -> bool:
        """Connect to MongoDB, ensure indexes and build the repositories."""
        try:
            self.client = client or MongoClient(self.connection_string)
            self.db = self.client[self.database_name]
            self._create_indexes()
        except PyMongoError as e:
            logger.error("mongodb_connect_failed", database=self.database_name, error=str(e))
            return False

        self.urls = UrlRepository(self.db[self.collection_names["urls"]])
        self.links = LinkRepository(self.db[self.collection_names["links"]])
        self.snapshots = SnapshotRepository(self.db[self.collection_names["snapshots"]])
        logger.info("mongodb_connected", database=self.database_name)
        return True

    def _create_indexes(self):
        urls = self.db[self.collection_names["urls"]]
        urls.create_index("url", unique=True)
        urls.create_index("created")
        urls.create_index("last_get")
        urls.create_index([("last_attempt", ASCENDING), ("last_get", ASCENDING), ("created", ASCENDING)])
        urls.create_index("hash")

        links = self.db[self.collection_names["links"]]
        links.create_index([("src", ASCENDING), ("dst", ASCENDING)], unique=True)
        links.create_index("dst")

        snapshots = self.db[self.collection_names["snapshots"]]
        snapshots.create_index([("url", ASCENDING), ("created", ASCENDING)])

    def close(self):
        if self.client:
            self.client.close()
