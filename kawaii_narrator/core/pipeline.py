"""
Narration Pipeline - Wires the stream, voice and expression components together.

    raw chunks -> ChunkAccumulator -> segments -> DuplicateFilter -> SpeechQueue
                                                   SpeechQueue -> EmotionClassifier -> ExpressionEngine
"""

import asyncio
import logging
from typing import Iterable, Optional, Set

from .config import Config
from .event_bus import EventBus
from ..emotion import EmotionClassifier, load_rules
from ..models.expression import ExpressionEngine, ExpressionSink
from ..stream import ChunkAccumulator, extract_segments
from ..utils.logger import preview
from ..voice.duplicate_filter import DuplicateFilter
from ..voice.playback import AudioPlayer
from ..voice.speech_queue import SpeechQueue
from ..voice.synthesis import Synthesizer

logger = logging.getLogger(__name__)


class NarrationPipeline:
    """Feeds terminal output in, gets a speaking, emoting avatar out."""

    def __init__(self,
                 config: Config,
                 synthesizer: Synthesizer,
                 player: AudioPlayer,
                 sink: ExpressionSink,
                 event_bus: Optional[EventBus] = None,
                 classifier: Optional[EmotionClassifier] = None,
                 duplicate_filter: Optional[DuplicateFilter] = None,
                 channels: Optional[Iterable[str]] = None):
        self.config = config
        self.event_bus = event_bus or EventBus()

        if classifier is None:
            rules_file = config.expression.rules_file
            classifier = EmotionClassifier(load_rules(rules_file) if rules_file else None)
        self.classifier = classifier
        self.duplicate_filter = duplicate_filter or DuplicateFilter(config.duplicates)

        self.expression = ExpressionEngine(sink, config.expression, channels)
        self.speech_queue = SpeechQueue(
            synthesizer=synthesizer,
            player=player,
            config=config.voice,
            classifier=self.classifier,
            expression=self.expression,
            event_bus=self.event_bus,
        )
        self.accumulator = ChunkAccumulator(config.stream, self._handle_utterance)

        self._event_tasks: Set[asyncio.Task] = set()

    async def initialize(self):
        if not self.event_bus.running:
            await self.event_bus.initialize()
        logger.info("Narration pipeline initialized")

    def feed(self, chunk: str):
        """Input callback for the terminal transport."""
        self.accumulator.add_chunk(chunk)

    def set_voice_enabled(self, enabled: bool):
        self.speech_queue.set_enabled(enabled)
        self._publish("voice_toggled", enabled)

    def frame(self, lip_sync_level: float) -> float:
        """Per render frame: blend the current lip-sync level into the avatar."""
        self.expression.set_lip_sync(lip_sync_level)
        return self.expression.update()

    async def drain(self):
        """Complete any open utterance and wait until everything queued is spoken."""
        self.accumulator.flush()
        await self.speech_queue.join()
        if self._event_tasks:
            await asyncio.gather(*self._event_tasks, return_exceptions=True)

    async def shutdown(self):
        self.accumulator.reset()
        await self.speech_queue.shutdown()
        logger.info("Narration pipeline shutdown")

    def _handle_utterance(self, text: str):
        self._publish("utterance_completed", text)

        segments = extract_segments(text,
                                    max_segments=self.config.stream.max_segments,
                                    overflow_notice=self.config.stream.overflow_notice)
        if not segments:
            logger.debug(f"No speakable segment in utterance {preview(text)!r}")
            return

        if not self.config.voice.enabled:
            logger.debug(f"Voice disabled; {len(segments)} segments not queued")
            return

        for segment in segments:
            if self.duplicate_filter.accept(segment):
                self._publish("segment_accepted", segment)
                self.speech_queue.enqueue(segment)
            else:
                self._publish("segment_rejected", segment)

    def _publish(self, event_name: str, *args):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop; {event_name} not published")
            return
        task = loop.create_task(self.event_bus.emit(event_name, *args))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)
