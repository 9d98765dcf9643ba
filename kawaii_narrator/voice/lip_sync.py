"""
Lip-sync analysis - Derives a mouth-opening level from synthesized audio.

The WAV clip is reduced ahead of playback to one peak amplitude per 1024-sample
window. Peaks are pushed through a steep sigmoid so quiet breaths stay closed
and normal speech opens the mouth quickly.
"""

import io
import logging
import wave
from dataclasses import dataclass
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

WINDOW_SAMPLES = 1024
SILENCE_LEVEL = 0.1


def cook_levels(peaks: np.ndarray) -> np.ndarray:
    """Map raw peak amplitudes (0..1) to mouth levels (0..1)."""
    levels = 1.0 / (1.0 + np.exp(-45.0 * peaks + 5.0))
    levels[levels < SILENCE_LEVEL] = 0.0
    return levels


def decode_wav(audio: bytes) -> Tuple[np.ndarray, int]:
    """Decode WAV bytes to mono float samples in [-1, 1] and the sample rate."""
    with wave.open(io.BytesIO(audio), 'rb') as wf:
        channels = wf.getnchannels()
        sample_width = wf.getsampwidth()
        sample_rate = wf.getframerate()
        frames = wf.readframes(wf.getnframes())

    if sample_width == 1:
        samples = (np.frombuffer(frames, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    elif sample_width == 2:
        samples = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    elif sample_width == 4:
        samples = np.frombuffer(frames, dtype=np.int32).astype(np.float32) / 2147483648.0
    else:
        raise ValueError(f"Unsupported sample width: {sample_width} bytes")

    if channels > 1:
        usable = len(samples) - len(samples) % channels
        samples = samples[:usable].reshape(-1, channels).mean(axis=1)

    return samples, sample_rate


@dataclass
class LipSyncEnvelope:
    """Per-window mouth levels for one clip."""
    levels: np.ndarray
    sample_rate: int
    window: int = WINDOW_SAMPLES

    @property
    def duration(self) -> float:
        return len(self.levels) * self.window / self.sample_rate if self.sample_rate else 0.0

    def level_at(self, seconds: float) -> float:
        if seconds < 0 or not len(self.levels):
            return 0.0
        index = int(seconds * self.sample_rate / self.window)
        if index >= len(self.levels):
            return 0.0
        return float(self.levels[index])


def compute_envelope(audio: bytes, window: int = WINDOW_SAMPLES) -> LipSyncEnvelope:
    """Analyse a WAV clip into a lip-sync envelope."""
    samples, sample_rate = decode_wav(audio)
    if not len(samples):
        return LipSyncEnvelope(np.zeros(0, dtype=np.float32), sample_rate, window)

    padded = len(samples) + (-len(samples)) % window
    blocks = np.zeros(padded, dtype=np.float32)
    blocks[:len(samples)] = np.abs(samples)
    peaks = blocks.reshape(-1, window).max(axis=1)

    envelope = LipSyncEnvelope(cook_levels(peaks), sample_rate, window)
    logger.debug(f"Lip-sync envelope: {len(envelope.levels)} windows, {envelope.duration:.2f}s")
    return envelope
