"""
Voice Synthesis - Client for a VOICEVOX-compatible TTS engine.

The engine speaks a two-step HTTP protocol: ``POST /audio_query`` turns text
into an editable synthesis query, ``POST /synthesis`` renders that query to
WAV. AivisSpeech, VOICEVOX and COEIROINK-compatible servers all accept it.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from ..core.config import VoiceConfig
from ..utils.logger import preview
from .errors import SynthesisError

logger = logging.getLogger(__name__)


class Synthesizer(Protocol):
    """Anything that can turn text into audio bytes."""

    async def synthesize(self, text: str, speaker_id: int,
                         speed_scale: float, volume_scale: float) -> bytes:
        ...


class VoicevoxSynthesizer:
    """HTTP client for the local TTS engine."""

    def __init__(self, config: VoiceConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.speakers: List[Dict[str, Any]] = []

    @property
    def base_url(self) -> str:
        return self.config.engine_url.rstrip("/")

    async def synthesize(self, text: str, speaker_id: int,
                         speed_scale: float, volume_scale: float) -> bytes:
        """Render text to WAV bytes. Raises SynthesisError on any engine failure."""
        if not text or not text.strip():
            raise SynthesisError("Nothing to synthesize")

        logger.debug(f"Synthesizing {preview(text)!r} with speaker {speaker_id}")
        audio = await asyncio.to_thread(self._synthesize_blocking, text, speaker_id,
                                        speed_scale, volume_scale)

        if len(audio) < self.config.min_audio_bytes:
            raise SynthesisError(f"Engine returned only {len(audio)} bytes of audio")

        logger.debug(f"Synthesis complete: {len(audio)} bytes")
        return audio

    def _synthesize_blocking(self, text: str, speaker_id: int,
                             speed_scale: float, volume_scale: float) -> bytes:
        timeout = self.config.request_timeout
        try:
            query_response = self.session.post(
                f"{self.base_url}/audio_query",
                params={'text': text, 'speaker': speaker_id},
                timeout=timeout
            )
            query_response.raise_for_status()
            audio_query = query_response.json()

            audio_query['speedScale'] = speed_scale
            audio_query['volumeScale'] = volume_scale

            synthesis_response = self.session.post(
                f"{self.base_url}/synthesis",
                params={'speaker': speaker_id},
                json=audio_query,
                timeout=timeout
            )
            synthesis_response.raise_for_status()
            return synthesis_response.content

        except requests.RequestException as e:
            raise SynthesisError(f"TTS engine request failed: {e}") from e
        except ValueError as e:
            raise SynthesisError(f"TTS engine returned an invalid audio query: {e}") from e

    async def list_speakers(self) -> List[Dict[str, Any]]:
        """Fetch the engine's speaker list (each with its styles and ids)."""
        try:
            response = await asyncio.to_thread(
                self.session.get, f"{self.base_url}/speakers", timeout=self.config.request_timeout
            )
            response.raise_for_status()
            self.speakers = response.json()
            logger.info(f"Loaded {len(self.speakers)} speakers from TTS engine")
            return self.speakers
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to load speakers: {e}")
            return []

    async def check_connection(self) -> bool:
        """Return True if the engine answers its version endpoint."""
        try:
            response = await asyncio.to_thread(self.session.get, f"{self.base_url}/version", timeout=5)
            response.raise_for_status()
            logger.info(f"TTS engine reachable at {self.base_url} (version {response.text.strip()})")
            return True
        except requests.RequestException as e:
            logger.warning(f"TTS engine not reachable at {self.base_url}: {e}")
            return False

    def close(self):
        self.session.close()
