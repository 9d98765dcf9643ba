"""
Audio Playback - Plays synthesized WAV clips through the pygame mixer.

``play()`` resolves when the clip has finished, which is what the speech
queue waits on before moving to the next segment.
"""

import asyncio
import io
import logging
import time
import wave
from typing import Optional, Protocol

import pygame

from .errors import PlaybackError
from .lip_sync import LipSyncEnvelope, compute_envelope

logger = logging.getLogger(__name__)


class AudioPlayer(Protocol):
    """Playback sink used by the speech queue."""

    async def play(self, audio: bytes) -> None:
        """Play a clip; return at end of playback, raise PlaybackError on failure."""
        ...

    def level(self) -> float:
        """Current lip-sync level (0..1) of the playing clip."""
        ...


class PygamePlayer:
    """pygame mixer backed player with a precomputed lip-sync envelope."""

    def __init__(self):
        self.is_playing = False
        self._channel: Optional[pygame.mixer.Channel] = None
        self._envelope: Optional[LipSyncEnvelope] = None
        self._started_at = 0.0

    def _ensure_mixer(self):
        if not pygame.mixer.get_init():
            pygame.mixer.init()
            logger.info(f"pygame mixer initialized: {pygame.mixer.get_init()}")

    async def play(self, audio: bytes) -> None:
        try:
            self._ensure_mixer()
            envelope = await asyncio.to_thread(compute_envelope, audio)
            sound = pygame.mixer.Sound(file=io.BytesIO(audio))
        except (pygame.error, wave.Error, ValueError, EOFError) as e:
            raise PlaybackError(f"Could not decode audio: {e}") from e

        channel = sound.play()
        if channel is None:
            raise PlaybackError("No free mixer channel")

        length = sound.get_length()
        self._channel = channel
        self._envelope = envelope
        self._started_at = time.monotonic()
        self.is_playing = True
        logger.debug(f"Playback started ({length:.2f}s)")

        try:
            await asyncio.sleep(length)
        except asyncio.CancelledError:
            channel.stop()
            raise
        finally:
            self.is_playing = False
            self._channel = None
            self._envelope = None

        logger.debug("Playback ended")

    def level(self) -> float:
        envelope = self._envelope
        if not self.is_playing or envelope is None:
            return 0.0
        return envelope.level_at(time.monotonic() - self._started_at)

    def stop(self):
        if self._channel is not None:
            self._channel.stop()

    def shutdown(self):
        self.stop()
        if pygame.mixer.get_init():
            pygame.mixer.quit()
        logger.info("Audio playback shutdown complete")
