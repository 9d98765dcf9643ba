"""
Duplicate Filter - Suppresses re-speaking text that was spoken moments ago.

Texts are normalized (whitespace collapsed, trimmed) and reduced to a 32-bit
CRC. A hash seen within the duplicate window is rejected. Hash collisions may
occasionally suppress a distinct text; that is accepted.
"""

import logging
import re
import time
import zlib
from collections import OrderedDict
from typing import Callable, Optional, Dict, Any

from ..core.config import DuplicateConfig
from ..utils.logger import preview

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def text_hash(normalized: str) -> int:
    return zlib.crc32(normalized.encode("utf-8"))


class DuplicateFilter:
    """Hash-based accept/reject gate with a bounded, age-ordered record map."""

    def __init__(self, config: Optional[DuplicateConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or DuplicateConfig()
        self.clock = clock

        # hash -> last seen (seconds); kept ordered oldest first
        self._records: "OrderedDict[int, float]" = OrderedDict()

        self._checked = 0
        self._accepted = 0
        self._duplicates = 0

    def __len__(self) -> int:
        return len(self._records)

    def accept(self, text: str) -> bool:
        """Return True if the text should be spoken, recording it if so."""
        normalized = normalize_text(text or "")
        if not normalized:
            return False

        self._checked += 1
        key = text_hash(normalized)
        now = self.clock()
        window = self.config.window_ms / 1000.0

        last_seen = self._records.get(key)
        if last_seen is not None and now - last_seen < window:
            self._duplicates += 1
            logger.debug(f"Duplicate suppressed: {preview(normalized)!r} (hash {key:08x})")
            return False

        self._records[key] = now
        self._records.move_to_end(key)
        self._accepted += 1

        if len(self._records) > self.config.max_entries:
            self.prune()

        return True

    def seen(self, text: str) -> bool:
        """Whether the text would currently be rejected, without recording it."""
        normalized = normalize_text(text or "")
        if not normalized:
            return False
        last_seen = self._records.get(text_hash(normalized))
        return last_seen is not None and self.clock() - last_seen < self.config.window_ms / 1000.0

    def prune(self):
        """Evict expired records, then the oldest ones while over capacity."""
        now = self.clock()
        window = self.config.window_ms / 1000.0

        while self._records:
            key, last_seen = next(iter(self._records.items()))
            if now - last_seen < window:
                break
            self._records.popitem(last=False)

        if len(self._records) > self.config.max_entries:
            # Never evict down to zero: the newest record was just written.
            target = max(1, int(self.config.max_entries * self.config.prune_ratio))
            evicted = 0
            while len(self._records) > target:
                self._records.popitem(last=False)
                evicted += 1
            logger.info(f"Duplicate records over capacity; evicted {evicted} oldest")

    def clear(self):
        count = len(self._records)
        self._records.clear()
        self._checked = self._accepted = self._duplicates = 0
        logger.debug(f"Duplicate records cleared ({count} removed)")

    def stats(self) -> Dict[str, Any]:
        return {
            'checked': self._checked,
            'accepted': self._accepted,
            'duplicates': self._duplicates,
            'entries': len(self._records),
            'duplicate_rate': round(self._duplicates / self._checked * 100) if self._checked else 0,
        }
