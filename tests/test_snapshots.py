from webarchive.fetcher import FetchResult
from webarchive.snapshots import SnapshotRecorder


def test_failed_attempt_is_recorded_with_unknown_status(storage):
    recorder = SnapshotRecorder(storage.snapshots)
    failed = FetchResult(url="http://a.com/", method="GET", status_code=500, error="Timeout after 30s")

    snapshot = recorder.record(failed, content_hash="1220ignored")

    assert snapshot.status == -1
    assert snapshot.hash == ""
    assert recorder.history("http://a.com/") == [snapshot]


def test_successful_attempt_keeps_headers_in_order(storage):
    recorder = SnapshotRecorder(storage.snapshots)
    ok = FetchResult(
        url="http://a.com/",
        method="GET",
        status_code=200,
        headers=[("content-type", "text/html"), ("set-cookie", "a=1"), ("set-cookie", "b=2")],
        duration_ms=42,
    )

    recorder.record(ok, content_hash="1220abcd")

    [stored] = recorder.history("http://a.com/")
    assert stored.status == 200
    assert stored.duration == 42
    assert stored.hash == "1220abcd"
    assert stored.headers == [("content-type", "text/html"), ("set-cookie", "a=1"), ("set-cookie", "b=2")]
