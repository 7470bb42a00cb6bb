"""Thread-safe string interning for decoded bplist string records."""

from __future__ import annotations

import logging
import threading
from typing import Final

logger = logging.getLogger(__name__)

type PoolKey = tuple[bytes, str]


class StringPool:
    """Bounded lookup-or-insert cache of decoded strings.

    Entries are keyed by the raw payload bytes together with the codec used
    to decode them, so an ASCII record and a UTF-16 record whose bytes happen
    to match never collide. Equal content decoded through the same pool
    yields the same ``str`` object.

    One pool may be shared between parses running on different threads.
    Concurrent inserts of equal content converge on whichever entry was
    stored first.
    """

    def __init__(self, max_size: int = 4096) -> None:
        """Initialize an empty pool.

        Args:
            max_size: Maximum number of cached strings before the oldest
                entry is evicted
        """
        if not isinstance(max_size, int) or max_size <= 0:
            raise ValueError("max_size must be a positive integer")

        self.max_size: Final = max_size
        self._entries: dict[PoolKey, str] = {}
        self._lock: Final = threading.Lock()

    def get_or_add(self, raw: bytes, encoding: str) -> str:
        """Return the pooled string for ``raw``, decoding it on a miss.

        Args:
            raw: String payload exactly as stored in the record
            encoding: Python codec name for the payload

        Returns:
            The shared ``str`` instance for this content

        Raises:
            UnicodeDecodeError: If ``raw`` is not valid for ``encoding``
        """
        key = (raw, encoding)

        # Fast path without the lock; dict reads are atomic
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        # Decode outside the lock so slow decodes do not serialize callers
        decoded = raw.decode(encoding)

        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                return existing

            if len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("String pool full, evicted %d-byte entry", len(oldest[0]))

            self._entries[key] = decoded
            return decoded

    def clear(self) -> None:
        """Drop every cached string."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
