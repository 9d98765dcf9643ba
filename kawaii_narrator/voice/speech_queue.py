"""
Speech Queue - Speaks segments one at a time, in order.

Each item is synthesized, played to the end, and followed by the configured
pause before the next one starts. While it plays, the segment's emotion is
classified and handed to the expression engine; once playback ends the avatar
is returned to neutral. A failure on one item never stops the queue.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Dict, Any

from ..core.config import VoiceConfig
from ..core.event_bus import EventBus
from ..emotion import EmotionClassifier
from ..models.expression import ExpressionEngine
from ..utils.logger import preview
from .errors import PlaybackError, SynthesisError
from .playback import AudioPlayer
from .synthesis import Synthesizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueItem:
    text: str
    enqueued_at: float


class SpeechQueue:
    """Strict FIFO of segments awaiting synthesis and playback."""

    def __init__(self,
                 synthesizer: Synthesizer,
                 player: AudioPlayer,
                 config: VoiceConfig,
                 classifier: Optional[EmotionClassifier] = None,
                 expression: Optional[ExpressionEngine] = None,
                 event_bus: Optional[EventBus] = None):
        self.synthesizer = synthesizer
        self.player = player
        self.config = config
        self.classifier = classifier
        self.expression = expression
        self.event_bus = event_bus

        self._queue: Deque[QueueItem] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self.is_processing = False
        # True once the drain task has taken its first item off the queue
        self._drain_started = False

        self.spoken_count = 0
        self.failed_count = 0
        self.dropped_count = 0

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, text: str):
        """Append a segment and start draining if idle.

        Without a running loop the item stays queued until ``join()`` is
        awaited.
        """
        if not text or not text.strip():
            return

        # A scheduled drain that has not run yet still holds its head item in
        # the queue; that item is already committed and does not count as pending.
        head_claimed = self.is_processing and not self._drain_started
        pending = len(self._queue) - (1 if head_claimed else 0)

        max_size = self.config.max_queue_size
        if max_size > 0 and pending >= max_size:
            index = 1 if head_claimed else 0
            dropped = self._queue[index]
            del self._queue[index]
            self.dropped_count += 1
            logger.warning(f"Speech queue full; dropped oldest item {preview(dropped.text)!r}")

        self._queue.append(QueueItem(text=text, enqueued_at=time.monotonic()))
        logger.debug(f"Queued {preview(text)!r} (queue length {len(self._queue)})")

        self._start_drain()

    def _start_drain(self):
        if self.is_processing or not self._queue:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; speech deferred until join()")
            return
        self.is_processing = True
        self._drain_started = False
        self._drain_task = loop.create_task(self._drain())

    def clear(self) -> int:
        """Drop every pending item. The item currently playing is unaffected."""
        cleared = len(self._queue)
        self._queue.clear()
        if cleared:
            logger.info(f"Speech queue cleared ({cleared} pending items)")
        return cleared

    def set_enabled(self, enabled: bool):
        """Toggle voice output; disabling flushes everything still pending."""
        self.config.enabled = enabled
        if not enabled:
            self.clear()
        logger.info(f"Voice output {'enabled' if enabled else 'disabled'}")

    async def join(self):
        """Wait until the queue has drained."""
        self._start_drain()
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def shutdown(self):
        self.clear()
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self.is_processing = False
        logger.info("Speech queue shutdown")

    def status(self) -> Dict[str, Any]:
        return {
            'queue_length': len(self._queue),
            'is_processing': self.is_processing,
            'spoken': self.spoken_count,
            'failed': self.failed_count,
            'dropped': self.dropped_count,
        }

    async def _drain(self):
        self._drain_started = True
        logger.debug(f"Speech queue processing started ({len(self._queue)} items)")
        try:
            while self._queue:
                if not self.config.enabled:
                    self.clear()
                    break

                item = self._queue.popleft()
                try:
                    await self._speak(item)
                except Exception as e:
                    self.failed_count += 1
                    logger.error(f"Unexpected error speaking {preview(item.text)!r}: {e}", exc_info=True)
        finally:
            self.is_processing = False
            logger.debug("Speech queue processing finished")

    async def _speak(self, item: QueueItem):
        text = item.text
        logger.debug(f"Speaking {preview(text)!r} (waited {time.monotonic() - item.enqueued_at:.2f}s)")

        try:
            audio = await self.synthesizer.synthesize(
                text,
                speaker_id=self.config.speaker_id,
                speed_scale=self.config.speed_scale,
                volume_scale=self.config.volume / 100.0,
            )
        except SynthesisError as e:
            self.failed_count += 1
            logger.error(f"Synthesis failed, skipping {preview(text)!r}: {e}")
            return

        await self._emit("speech_started", text)

        expression_task = None
        if self.classifier is not None and self.expression is not None:
            expression_task = asyncio.create_task(self._express(text))

        played = True
        try:
            await self.player.play(audio)
        except PlaybackError as e:
            played = False
            self.failed_count += 1
            logger.error(f"Playback failed for {preview(text)!r}; treating as ended: {e}")

        if expression_task is not None:
            await expression_task
        if self.expression is not None:
            await self.expression.reset_to_neutral()

        if played:
            self.spoken_count += 1
        await self._emit("speech_ended", text)

        interval = self.config.interval_seconds
        if interval > 0:
            await asyncio.sleep(interval)

    async def _express(self, text: str):
        try:
            result = self.classifier.classify(text)
            await self._emit("emotion_detected", text, result)
            await self.expression.play_emotion(result)
        except Exception as e:
            logger.error(f"Expression update failed: {e}", exc_info=True)

    async def _emit(self, event_name: str, *args):
        if self.event_bus is not None:
            await self.event_bus.emit(event_name, *args)
