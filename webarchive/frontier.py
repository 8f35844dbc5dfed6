"""
Frontier scheduling: which known URLs are due for a HEAD or GET.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

import structlog

from .inflight import InFlightTracker
from .models import UrlRecord, utcnow

logger = structlog.get_logger(__name__)

GET = "GET"
HEAD = "HEAD"


class FrontierScheduler:
    def __init__(
        self,
        urls,
        tracker: InFlightTracker,
        stale_duration: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.urls = urls
        self.tracker = tracker
        self.stale_duration = stale_duration
        self.clock = clock

    def should_enqueue_get(self, record: UrlRecord, now: Optional[datetime] = None) -> bool:
        """GET when the URL was never fetched or its last GET is stale."""
        if self.tracker.is_claimed(record.url):
            return False
        if record.last_get is None:
            return True
        now = now or self.clock()
        return now - record.last_get > self.stale_duration

    def should_enqueue_head(self, record: UrlRecord, now: Optional[datetime] = None) -> bool:
        """HEAD when the record was never updated, never fetched, or its metadata is stale."""
        if self.tracker.is_claimed(record.url):
            return False
        if record.created == record.updated or record.last_get is None:
            return True
        if record.updated is None:
            return True
        now = now or self.clock()
        return now - record.updated > self.stale_duration

    def due_method(self, record: UrlRecord, now: Optional[datetime] = None) -> Optional[str]:
        now = now or self.clock()
        if self.should_enqueue_get(record, now):
            return GET
        if self.should_enqueue_head(record, now):
            return HEAD
        return None

    def next_batch(self, limit: int) -> List[Tuple[UrlRecord, str]]:
        """Claim up to ``limit`` due URLs.

        Each returned URL is claimed in the tracker; the caller must release it.
        """
        now = self.clock()
        candidates = self.urls.stale(now - self.stale_duration, limit * 2)

        batch = []
        for record in candidates:
            if len(batch) >= limit:
                break
            method = self.due_method(record, now)
            if method is None:
                continue
            if not self.tracker.try_claim(record.url):
                logger.debug("claim_skipped", url=record.url)
                continue
            batch.append((record, method))
        return batch
