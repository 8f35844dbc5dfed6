"""
Append-only fetch history. Every attempt gets a snapshot, failed ones
included, so the archive shows when a URL was unreachable.
"""

from typing import List

import structlog

from .fetcher import FetchResult
from .models import UNKNOWN, Snapshot

logger = structlog.get_logger(__name__)


class SnapshotRecorder:
    def __init__(self, snapshots):
        self.snapshots = snapshots

    def record(self, result: FetchResult, content_hash: str = "") -> Snapshot:
        snapshot = Snapshot(
            url=result.url,
            created=result.started,
            status=result.status_code if result.success else UNKNOWN,
            duration=result.duration_ms,
            headers=list(result.headers),
            hash=content_hash if result.success else "",
        )
        self.snapshots.append(snapshot)
        logger.debug(
            "snapshot_recorded",
            url=snapshot.url,
            status=snapshot.status,
            duration_ms=snapshot.duration,
            hash=snapshot.hash,
        )
        return snapshot

    def history(self, url: str) -> List[Snapshot]:
        return self.snapshots.for_url(url)
