"""
Tracks URLs with an outstanding fetch so no two workers fetch the same URL
at once.
"""

import threading
from typing import Set


class InFlightTracker:
    """Process-wide set of claimed URLs guarded by a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._claimed: Set[str] = set()

    def try_claim(self, url: str) -> bool:
        """Claim ``url`` if nobody holds it. Returns False if already claimed."""
        with self._lock:
            if url in self._claimed:
                return False
            self._claimed.add(url)
            return True

    def release(self, url: str) -> None:
        with self._lock:
            self._claimed.discard(url)

    def is_claimed(self, url: str) -> bool:
        with self._lock:
            return url in self._claimed

    def __contains__(self, url: str) -> bool:
        return self.is_claimed(url)

    def __len__(self) -> int:
        with self._lock:
            return len(self._claimed)
