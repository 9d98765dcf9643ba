"""
Main application class for Kawaii Narrator.
Coordinates the narration pipeline, reads terminal output and runs the frame loop.
"""

import asyncio
import codecs
import logging
import signal
import sys
from pathlib import Path
from typing import AsyncIterator, Optional

from .config import Config
from .event_bus import EventBus
from .pipeline import NarrationPipeline
from ..models.avatar import Avatar
from ..utils.logger import preview
from ..voice.playback import PygamePlayer
from ..voice.synthesis import VoicevoxSynthesizer

logger = logging.getLogger(__name__)

READ_SIZE = 4096
FRAME_INTERVAL = 1 / 60


class NarratorApplication:
    """Hosts the pipeline: input transport, audio device, avatar state."""

    def __init__(self, config: Config, input_path: Optional[str] = None):
        self.config = config
        self.input_path = input_path
        self.running = False
        self.event_bus = EventBus()

        self.avatar: Optional[Avatar] = None
        self.synthesizer: Optional[VoicevoxSynthesizer] = None
        self.player: Optional[PygamePlayer] = None
        self.pipeline: Optional[NarrationPipeline] = None
        self._reader_task: Optional[asyncio.Task] = None

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info("Kawaii Narrator application created")

    async def initialize(self):
        """Initialize all application components."""
        logger.info("Initializing application components...")

        try:
            await self.event_bus.initialize()

            self.avatar = Avatar(self.config.avatar, self.config.expression.lip_sync_channel)
            if self.config.avatar.model_path:
                model_path = Path(self.config.avatar.model_path)
                if model_path.exists():
                    await self.avatar.load_vrm_model(model_path)
                else:
                    logger.warning(f"VRM model not found: {model_path}")

            self.synthesizer = VoicevoxSynthesizer(self.config.voice)
            if await self.synthesizer.check_connection():
                await self.synthesizer.list_speakers()

            self.player = PygamePlayer()

            self.pipeline = NarrationPipeline(
                config=self.config,
                synthesizer=self.synthesizer,
                player=self.player,
                sink=self.avatar,
                event_bus=self.event_bus,
                channels=self.avatar.expression_channels,
            )
            await self.pipeline.initialize()

            self._setup_event_handlers()
            logger.info("All components initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize application: {e}", exc_info=True)
            raise

    def _setup_event_handlers(self):
        self.event_bus.subscribe("speech_started", self._handle_speech_started)
        self.event_bus.subscribe("speech_ended", self._handle_speech_ended)
        self.event_bus.subscribe("emotion_detected", self._handle_emotion)
        self.event_bus.subscribe("input_closed", self._handle_input_closed)
        logger.info("Event handlers configured")

    def _handle_speech_started(self, text: str):
        logger.info(f"Speaking: {preview(text, 60)}")

    def _handle_speech_ended(self, text: str):
        logger.debug(f"Finished: {preview(text)}")

    def _handle_emotion(self, text: str, result):
        if not result.is_neutral:
            logger.info(f"Expression: {result.label} {[(c.name, c.weight) for c in result.components]}")

    async def _handle_input_closed(self):
        logger.info("Input closed; finishing queued speech")
        await self.pipeline.drain()
        self.running = False

    async def _input_chunks(self) -> AsyncIterator[bytes]:
        if self.input_path:
            with open(self.input_path, "rb") as f:
                while True:
                    data = await asyncio.to_thread(f.read, READ_SIZE)
                    if not data:
                        break
                    yield data
            return

        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        while True:
            data = await reader.read(READ_SIZE)
            if not data:
                break
            yield data

    async def _read_input(self):
        """Push decoded chunks from stdin or the input file into the pipeline."""
        # Multi-byte characters may be split across reads
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        async for data in self._input_chunks():
            if not self.running:
                break
            text = decoder.decode(data)
            if text:
                self.pipeline.feed(text)

        tail = decoder.decode(b"", final=True)
        if tail:
            self.pipeline.feed(tail)
        await self.event_bus.emit("input_closed")

    def set_voice_enabled(self, enabled: bool):
        if self.pipeline:
            self.pipeline.set_voice_enabled(enabled)

    async def run(self):
        """Main application run loop."""
        try:
            await self.initialize()

            self.running = True
            self._reader_task = asyncio.create_task(self._read_input())
            logger.info("Starting main application loop")

            while self.running:
                try:
                    self.pipeline.frame(self.player.level())
                    await self.event_bus.emit("avatar_frame", self.avatar.snapshot())
                    await asyncio.sleep(FRAME_INTERVAL)
                except Exception as e:
                    logger.error(f"Error in main loop: {e}", exc_info=True)
                    if not self.running:
                        break

        except Exception as e:
            logger.error(f"Application error: {e}", exc_info=True)
            raise
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Shutdown the application gracefully."""
        logger.info("Shutting down application...")
        self.running = False

        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()

        if self.pipeline:
            try:
                await self.pipeline.shutdown()
            except Exception as e:
                logger.error(f"Error shutting down pipeline: {e}")

        if self.player:
            self.player.shutdown()
        if self.synthesizer:
            self.synthesizer.close()

        await self.event_bus.shutdown()
        logger.info("Application shutdown complete")

    def _signal_handler(self, signum, frame):
        """Handle system signals for graceful shutdown."""
        logger.info(f"Received signal {signum}")
        self.running = False
