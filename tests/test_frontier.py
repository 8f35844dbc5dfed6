from datetime import datetime, timedelta, timezone

import pytest

from webarchive.frontier import GET, HEAD, FrontierScheduler
from webarchive.inflight import InFlightTracker
from webarchive.models import UrlRecord

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
STALE = timedelta(hours=1)


def record(url="http://example.com/", created=None, updated=None, last_get=None):
    created = created or NOW - timedelta(days=1)
    return UrlRecord(url=url, created=created, updated=updated or created, last_get=last_get)


@pytest.fixture
def scheduler(tracker):
    return FrontierScheduler(urls=None, tracker=tracker, stale_duration=STALE, clock=lambda: NOW)


def test_get_due_when_never_fetched(scheduler):
    assert scheduler.should_enqueue_get(record())


def test_get_due_only_after_stale_duration(scheduler):
    two_hours = record(updated=NOW - timedelta(hours=2), last_get=NOW - timedelta(hours=2))
    half_hour = record(updated=NOW - timedelta(minutes=30), last_get=NOW - timedelta(minutes=30))

    assert scheduler.should_enqueue_get(two_hours, NOW)
    assert not scheduler.should_enqueue_get(half_hour, NOW)


def test_head_due_when_never_updated(scheduler):
    fresh = record(last_get=NOW - timedelta(minutes=5))
    assert fresh.created == fresh.updated
    assert scheduler.should_enqueue_head(fresh, NOW)


def test_head_due_when_metadata_stale(scheduler):
    created = NOW - timedelta(days=3)
    stale = record(created=created, updated=NOW - timedelta(hours=2), last_get=NOW - timedelta(minutes=10))
    recent = record(created=created, updated=NOW - timedelta(minutes=10), last_get=NOW - timedelta(minutes=10))

    assert scheduler.should_enqueue_head(stale, NOW)
    assert not scheduler.should_enqueue_head(recent, NOW)


def test_claimed_url_is_never_due(scheduler, tracker):
    rec = record(updated=NOW - timedelta(hours=2), last_get=NOW - timedelta(hours=2))
    assert scheduler.should_enqueue_get(rec, NOW)

    assert tracker.try_claim(rec.url)
    assert not scheduler.should_enqueue_get(rec, NOW)
    assert not scheduler.should_enqueue_head(rec, NOW)
    assert scheduler.due_method(rec, NOW) is None

    tracker.release(rec.url)
    assert scheduler.should_enqueue_get(rec, NOW)


def test_due_method_prefers_get(scheduler):
    created = NOW - timedelta(days=3)
    assert scheduler.due_method(record(), NOW) == GET

    head_only = record(created=created, updated=NOW - timedelta(hours=2), last_get=NOW - timedelta(minutes=30))
    assert scheduler.due_method(head_only, NOW) == HEAD

    fresh = record(created=created, updated=NOW - timedelta(minutes=30), last_get=NOW - timedelta(minutes=30))
    assert scheduler.due_method(fresh, NOW) is None


def test_next_batch_claims_due_urls(storage):
    tracker = InFlightTracker()
    for url in ("http://a.com/", "http://b.com/", "http://c.com/"):
        storage.urls.insert(UrlRecord(url=url))
    scheduler = FrontierScheduler(storage.urls, tracker, STALE)

    batch = scheduler.next_batch(limit=2)

    assert len(batch) == 2
    assert all(method == GET for _, method in batch)
    assert all(tracker.is_claimed(rec.url) for rec, _ in batch)


def test_next_batch_skips_urls_already_claimed(storage):
    tracker = InFlightTracker()
    storage.urls.insert(UrlRecord(url="http://a.com/"))
    storage.urls.insert(UrlRecord(url="http://b.com/"))
    tracker.try_claim("http://a.com/")
    scheduler = FrontierScheduler(storage.urls, tracker, STALE)

    batch = scheduler.next_batch(limit=10)

    assert [rec.url for rec, _ in batch] == ["http://b.com/"]


def test_next_batch_ignores_recently_fetched(storage):
    tracker = InFlightTracker()
    rec = storage.urls.insert(UrlRecord(url="http://a.com/"))
    rec.last_get = datetime.now(timezone.utc).replace(microsecond=0)
    storage.urls.update(rec)
    scheduler = FrontierScheduler(storage.urls, tracker, STALE)

    assert scheduler.next_batch(limit=10) == []
