"""
Expression Engine - Smoothly transitions the avatar between emotions.

Every transition runs under one lock, so a new emotion requested while another
is animating waits for it to finish. Applying an emotion first eases the
previous one back to zero, then eases the new channel(s) up to their targets.
A lip-sync channel is blended on top every frame.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

from ..core.config import ExpressionConfig
from ..emotion import EmotionResult, NEUTRAL

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = ("happy", "sad", "angry", "surprised", "relaxed", "neutral")


class ExpressionSink(Protocol):
    """Renderer side: receives channel weights, read once per frame."""

    def set_channel_weight(self, channel: str, weight: float) -> None:
        ...


@dataclass
class ExpressionState:
    current_emotion: str = "neutral"
    weights: Dict[str, float] = field(default_factory=dict)
    transition_in_progress: bool = False


def ease_out_cubic(t: float) -> float:
    return 1.0 - (1.0 - t) ** 3


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class ExpressionEngine:
    """Owns the avatar's expression weights."""

    def __init__(self, sink: ExpressionSink, config: Optional[ExpressionConfig] = None,
                 channels: Optional[Iterable[str]] = None):
        self.sink = sink
        self.config = config or ExpressionConfig()
        self.channels: List[str] = list(dict.fromkeys(channels or DEFAULT_CHANNELS))

        self._weights: Dict[str, float] = {channel: 0.0 for channel in self.channels}
        self._current: EmotionResult = NEUTRAL
        self._lip_sync_level = 0.0
        self._lock = asyncio.Lock()

    @property
    def transition_in_progress(self) -> bool:
        return self._lock.locked()

    @property
    def current_emotion(self) -> EmotionResult:
        return self._current

    @property
    def state(self) -> ExpressionState:
        return ExpressionState(
            current_emotion=self._current.name,
            weights=dict(self._weights),
            transition_in_progress=self.transition_in_progress,
        )

    def weight(self, channel: str) -> float:
        return self._weights.get(channel, 0.0)

    async def play_emotion(self, result: EmotionResult):
        """Neutralize the active emotion, then ease in ``result``."""
        async with self._lock:
            if not self._current.is_neutral:
                previous = self._current
                await self._animate({channel: 0.0 for channel in previous.channels},
                                    self.config.neutralize_ms)
                self._current = NEUTRAL
                logger.debug(f"Neutralized {previous.label}")

            if result.is_neutral:
                return

            targets = {component.name: _clamp(component.weight) for component in result.components}
            self._current = result
            await self._animate(targets, self.config.apply_ms, start=0.0)
            logger.debug(f"Applied {result.label}: {targets}")

    async def reset_to_neutral(self):
        """Ease every known expression channel to zero and drop the lip-sync level."""
        async with self._lock:
            self._lip_sync_level = 0.0
            self._write(self.config.lip_sync_channel, 0.0)

            self._current = NEUTRAL
            await self._animate({channel: 0.0 for channel in self._known_channels()},
                                self.config.neutralize_ms)
            logger.debug("Expression reset to neutral")

    def set_lip_sync(self, level: float):
        self._lip_sync_level = _clamp(level)

    def update(self) -> float:
        """Per-frame: push the blended lip-sync weight to the sink."""
        if self._current.is_neutral:
            scale = self.config.lip_sync_neutral_scale
        else:
            scale = self.config.lip_sync_emotion_scale
        weight = self._lip_sync_level * scale
        self._write(self.config.lip_sync_channel, weight)
        return weight

    def _known_channels(self) -> List[str]:
        lip = self.config.lip_sync_channel
        return [channel for channel in dict.fromkeys(list(self.channels) + list(self._weights))
                if channel != lip]

    async def _animate(self, targets: Dict[str, float], duration_ms: int,
                       start: Optional[float] = None):
        """Ease all target channels together over ``duration_ms``."""
        if not targets:
            return

        starts = {channel: self._weights.get(channel, 0.0) if start is None else start
                  for channel in targets}

        frame_ms = max(1, self.config.frame_ms)
        steps = max(1, round(duration_ms / frame_ms)) if duration_ms > 0 else 0

        if steps == 0:
            for channel, target in targets.items():
                self._write(channel, target)
            return

        for step in range(1, steps + 1):
            await asyncio.sleep(frame_ms / 1000.0)
            eased = ease_out_cubic(step / steps)
            for channel, target in targets.items():
                begin = starts[channel]
                self._write(channel, begin + (target - begin) * eased)

    def _write(self, channel: str, weight: float):
        self._weights[channel] = weight
        try:
            self.sink.set_channel_weight(channel, weight)
        except Exception as e:
            logger.error(f"Expression sink rejected {channel}={weight:.3f}: {e}")
