"""
Crawl loop: a fixed pool of async workers drains the due part of the
frontier each cycle.

Per URL: fetch -> archive body -> snapshot -> links -> URL row -> release.
"""

import asyncio
from typing import Optional, Tuple

import structlog
from pymongo.errors import PyMongoError

from .archive import Archiver
from .errors import AlreadyExists, BlobStoreError, URLParseError, WebArchiveError
from .fetcher import FetchResult, HTTPFetcher
from .frontier import GET, FrontierScheduler
from .inflight import InFlightTracker
from .links import extract_links, extract_title, parse_html
from .models import UrlRecord, utcnow
from .normalize import normalize
from .snapshots import SnapshotRecorder
from .storage import MongoStorage

logger = structlog.get_logger(__name__)

# errors a single URL may hit in storage; logged, never fatal to the loop
STORAGE_ERRORS = (PyMongoError, WebArchiveError)


class Crawler:
    """Continuously re-fetches stale URLs and archives what it finds."""

    def __init__(
        self,
        storage: MongoStorage,
        fetcher: HTTPFetcher,
        archiver: Archiver,
        scheduler: FrontierScheduler,
        tracker: InFlightTracker,
        workers: int = 4,
        idle_delay: float = 5.0,
        error_delay: float = 1.0,
    ):
        self.storage = storage
        self.fetcher = fetcher
        self.archiver = archiver
        self.scheduler = scheduler
        self.tracker = tracker
        self.recorder = SnapshotRecorder(storage.snapshots)
        self.workers = max(1, int(workers))
        self.idle_delay = idle_delay
        self.error_delay = error_delay
        self.running = False

    def seed(self, url: str) -> Optional[UrlRecord]:
        """Add a URL to the frontier if it isn't known yet."""
        try:
            url = normalize(url)
        except URLParseError as e:
            logger.warning("seed_rejected", url=url, reason=e.reason)
            return None
        try:
            self.storage.urls.insert(UrlRecord(url=url))
            logger.info("seed_added", url=url)
        except AlreadyExists:
            logger.debug("seed_known", url=url)
        return self.storage.urls.read(url)

    async def start(self):
        """Run crawl cycles until stop() is called."""
        logger.info("crawler_started", workers=self.workers)
        self.running = True
        try:
            while self.running:
                try:
                    processed = await self.run_cycle()
                except Exception as e:
                    logger.error("cycle_failed", error=str(e), exc_info=True)
                    await asyncio.sleep(self.error_delay)
                    continue
                if processed == 0:
                    await asyncio.sleep(self.idle_delay)
        finally:
            self.running = False
            logger.info("crawler_stopped")

    def stop(self):
        self.running = False

    async def run_cycle(self) -> int:
        """Claim a batch of due URLs and crawl it with the worker pool."""
        batch = self.scheduler.next_batch(self.workers * 4)
        if not batch:
            return 0

        queue: asyncio.Queue = asyncio.Queue()
        for item in batch:
            queue.put_nowait(item)

        tasks = [asyncio.create_task(self._worker(queue)) for _ in range(self.workers)]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            # anything still queued was claimed by the scheduler but never started
            while not queue.empty():
                record, _ = queue.get_nowait()
                self.tracker.release(record.url)

        logger.info("cycle_complete", urls=len(batch))
        return len(batch)

    async def _worker(self, queue: asyncio.Queue):
        while True:
            try:
                record, method = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self.crawl_url(record, method)
            except Exception as e:
                logger.error("crawl_failed", url=record.url, method=method, error=str(e), exc_info=True)
            finally:
                self.tracker.release(record.url)

    async def crawl_url(self, record: UrlRecord, method: str = GET) -> FetchResult:
        """Fetch one already-claimed URL and persist everything it produced."""
        logger.info("crawling", url=record.url, method=method)
        result = await self.fetcher.fetch(record.url, method)

        if not result.success:
            # leave the URL row alone so it stays stale and gets retried
            self._record_snapshot(result, "")
            self._mark_failed(record.url)
            return result

        content_hash = ""
        if method == GET and result.content:
            try:
                content_hash = self.archiver.store_content(result.content)
            except BlobStoreError as e:
                # the body was not kept, so the GET does not count
                logger.error("archive_failed", url=record.url, error=str(e))
                self._record_snapshot(result, "")
                self._mark_failed(record.url)
                return result

        self._record_snapshot(result, content_hash)

        record.status = result.status_code
        record.content_type = result.content_type
        record.content_length = result.content_length
        if method == GET:
            record.last_get = utcnow()
            record.hash = content_hash
            if result.is_html and result.content:
                self._store_links(record, result)
        self.storage.urls.update(record)

        logger.info(
            "crawled",
            url=record.url,
            method=method,
            status=result.status_code,
            duration_ms=result.duration_ms,
            hash=content_hash,
        )
        return result

    def _record_snapshot(self, result: FetchResult, content_hash: str):
        try:
            self.recorder.record(result, content_hash)
        except STORAGE_ERRORS as e:
            logger.error("snapshot_failed", url=result.url, error=str(e))

    def _mark_failed(self, url: str):
        try:
            self.storage.urls.mark_failed(url)
        except STORAGE_ERRORS as e:
            logger.error("attempt_stamp_failed", url=url, error=str(e))

    def _store_links(self, record: UrlRecord, result: FetchResult) -> Tuple[int, int]:
        doc = parse_html(result.content)
        if doc is None:
            return 0, 0

        record.title = extract_title(doc)
        stored = failed = 0
        for link in extract_links(doc, record.url):
            try:
                self.storage.urls.discover(link.dst)
                self.storage.links.upsert(link)
                stored += 1
            except STORAGE_ERRORS as e:
                failed += 1
                logger.error("link_store_failed", src=link.src, dst=link.dst, error=str(e))
        logger.debug("links_stored", url=record.url, stored=stored, failed=failed)
        return stored, failed
