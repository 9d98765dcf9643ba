"""
Chunk Accumulator - Assembles fragmented terminal output into complete utterances.

The assistant CLI writes its replies in arbitrary chunks. An utterance starts at
a chunk carrying a start marker and ends when either the text looks finished
(input prompt drawn, or balanced quotes followed by terminal punctuation) or
no chunk has arrived for the completion timeout.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Dict, Any

from ..core.config import StreamConfig
from ..utils.logger import preview
from .ansi import strip_ansi
from .segments import OPEN_QUOTE, CLOSE_QUOTE

logger = logging.getLogger(__name__)

TERMINAL_PUNCTUATION = re.compile(r"[。！？!?]$")


class AccumulatorState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


@dataclass(frozen=True)
class RawChunk:
    """A decoded fragment of terminal output."""
    text: str
    received_at: float


@dataclass
class Utterance:
    """The open accumulation buffer."""
    started_at: float
    last_chunk_at: float
    parts: List[str] = field(default_factory=list)

    def append(self, chunk: RawChunk):
        self.parts.append(chunk.text)
        self.last_chunk_at = chunk.received_at

    @property
    def text(self) -> str:
        return "\n".join(self.parts)


def ends_with_prompt(text: str, prompt_markers: List[str]) -> bool:
    """True when the last non-blank line is the CLI's input prompt or box frame."""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return False
    last_line = lines[-1].lstrip()
    return any(last_line.startswith(marker) for marker in prompt_markers)


def quotes_balanced(text: str) -> bool:
    opened = text.count(OPEN_QUOTE)
    return opened > 0 and opened == text.count(CLOSE_QUOTE)


def is_utterance_complete(text: str, prompt_markers: List[str]) -> bool:
    """Completion heuristic applied after every chunk."""
    if ends_with_prompt(text, prompt_markers):
        return True
    return quotes_balanced(text) and bool(TERMINAL_PUNCTUATION.search(text.strip()))


class ChunkAccumulator:
    """Turns a push stream of raw chunks into complete utterance strings.

    ``add_chunk`` must be called from the event loop thread; the completion
    timer is scheduled on the running loop. Without a running loop no timer is
    armed and the caller is expected to ``flush()``.
    """

    def __init__(self, config: StreamConfig, on_utterance: Optional[Callable[[str], Any]] = None):
        self.config = config
        self.on_utterance = on_utterance

        self._utterance: Optional[Utterance] = None
        self._timer: Optional[asyncio.TimerHandle] = None

        self.emitted_count = 0
        self.skipped_chunks = 0

    @property
    def state(self) -> AccumulatorState:
        if self._utterance is None:
            return AccumulatorState.IDLE
        return AccumulatorState.ACCUMULATING

    @property
    def is_accumulating(self) -> bool:
        return self._utterance is not None

    def set_callback(self, on_utterance: Callable[[str], Any]):
        self.on_utterance = on_utterance

    def add_chunk(self, data: str):
        """Feed one raw chunk from the transport."""
        if not data:
            return

        text = strip_ansi(data) if self.config.strip_ansi else data
        chunk = RawChunk(text=text, received_at=time.monotonic())

        if self._has_start_marker(chunk.text):
            if self._utterance is not None:
                logger.debug("Start marker while accumulating; force-completing open utterance")
                self.flush()

            self._utterance = Utterance(started_at=chunk.received_at,
                                        last_chunk_at=chunk.received_at)
            self._utterance.append(chunk)
            logger.debug(f"Utterance started ({len(chunk.text)} chars)")
            self._schedule_completion()

        elif self._utterance is not None:
            self._utterance.append(chunk)
            logger.debug(f"Chunk appended, buffer now {len(self._utterance.text)} chars")
            self._schedule_completion()

        else:
            self.skipped_chunks += 1
            logger.debug(f"Chunk outside an utterance skipped: {preview(chunk.text)!r}")

    def flush(self):
        """Force-complete the open utterance, if any."""
        self._cancel_timer()
        self._complete()

    def reset(self):
        """Drop the open utterance without emitting it."""
        self._cancel_timer()
        self._utterance = None
        logger.debug("Accumulator reset")

    def status(self) -> Dict[str, Any]:
        utterance = self._utterance
        return {
            'state': self.state.value,
            'buffer_length': len(utterance.text) if utterance else 0,
            'seconds_since_last_chunk': (time.monotonic() - utterance.last_chunk_at) if utterance else None,
            'timer_pending': self._timer is not None,
            'emitted': self.emitted_count,
            'skipped_chunks': self.skipped_chunks,
        }

    def _has_start_marker(self, text: str) -> bool:
        return any(marker in text for marker in self.config.start_markers)

    def _schedule_completion(self):
        self._cancel_timer()

        if is_utterance_complete(self._utterance.text, self.config.prompt_markers):
            logger.debug("Completion heuristic satisfied")
            self._complete()
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self.config.completion_timeout_ms / 1000.0, self._on_timeout)

    def _on_timeout(self):
        self._timer = None
        logger.debug("Completion timeout reached; emitting buffered text")
        self._complete()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _complete(self):
        utterance, self._utterance = self._utterance, None
        if utterance is None:
            return

        text = utterance.text
        if not text.strip():
            logger.debug("Empty utterance discarded")
            return

        self.emitted_count += 1
        logger.debug(f"Utterance complete ({len(text)} chars, "
                     f"{utterance.last_chunk_at - utterance.started_at:.2f}s)")

        if self.on_utterance is None:
            logger.warning("No utterance callback set; utterance dropped")
            return

        try:
            self.on_utterance(text)
        except Exception as e:
            logger.error(f"Utterance callback failed: {e}", exc_info=True)
