"""Process-wide TTL cache for synthesized performance insights."""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class InsightCacheEntry:
    fingerprint: str
    text: str
    created_at: float


class InsightCache:
    """Thread-safe fingerprint -> insight map with lazy TTL expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, InsightCacheEntry] = {}
        self._lock = Lock()

    def get(self, fingerprint: str) -> Optional[str]:
        """Return the cached text, dropping the entry if it has expired."""
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if self._clock() - entry.created_at >= self.ttl_seconds:
                self._entries.pop(fingerprint, None)
                logger.debug("Insight cache entry %s expired", fingerprint[:12])
                return None
            return entry.text

    def set(self, fingerprint: str, text: str) -> InsightCacheEntry:
        entry = InsightCacheEntry(fingerprint, text, self._clock())
        with self._lock:
            # Last writer wins; concurrent writers store equally valid text.
            self._entries[fingerprint] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.info("Insight cache cleared (%d entries)", dropped)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        return self.get(fingerprint) is not None


# Created at import, cleared on logout, never torn down.
INSIGHT_CACHE = InsightCache()
