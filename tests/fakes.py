"""Stand-ins for the TTS engine, audio device and avatar renderer."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Tuple

from kawaii_narrator.core.config import Config
from kawaii_narrator.voice.errors import PlaybackError, SynthesisError


def fast_config(**voice_overrides) -> Config:
    """Config with timings shrunk so scenarios finish in milliseconds."""
    config = Config()
    config.stream.completion_timeout_ms = 50
    config.voice.interval_seconds = 0
    config.expression.neutralize_ms = 5
    config.expression.apply_ms = 5
    config.expression.frame_ms = 1
    for key, value in voice_overrides.items():
        setattr(config.voice, key, value)
    return config


@dataclass
class SynthesisCall:
    text: str
    speaker_id: int
    speed_scale: float
    volume_scale: float


class FakeSynthesizer:
    def __init__(self, fail_on=()):
        self.calls: List[SynthesisCall] = []
        self.fail_on = set(fail_on)

    @property
    def texts(self) -> List[str]:
        return [call.text for call in self.calls]

    async def synthesize(self, text, speaker_id, speed_scale, volume_scale):
        self.calls.append(SynthesisCall(text, speaker_id, speed_scale, volume_scale))
        await asyncio.sleep(0)
        if text in self.fail_on:
            raise SynthesisError("engine unavailable")
        return ("audio:" + text).encode("utf-8")


class FakePlayer:
    def __init__(self, duration: float = 0.02, fail_on=()):
        self.duration = duration
        self.fail_on = set(fail_on)
        self.events: List[Tuple[str, str, float]] = []
        self.playing = 0
        self.max_concurrent = 0

    def started(self) -> List[str]:
        return [text for kind, text, _ in self.events if kind == "start"]

    async def play(self, audio: bytes):
        text = audio.decode("utf-8")[len("audio:"):]
        loop = asyncio.get_running_loop()
        self.playing += 1
        self.max_concurrent = max(self.max_concurrent, self.playing)
        self.events.append(("start", text, loop.time()))
        try:
            if text in self.fail_on:
                raise PlaybackError("device lost")
            await asyncio.sleep(self.duration)
        finally:
            self.playing -= 1
            self.events.append(("end", text, loop.time()))

    def level(self) -> float:
        return 0.8 if self.playing else 0.0


class RecordingSink:
    def __init__(self):
        self.writes: List[Tuple[str, float]] = []
        self.weights: Dict[str, float] = {}

    def set_channel_weight(self, channel, weight):
        self.writes.append((channel, weight))
        self.weights[channel] = weight

    def indexes(self, channel) -> List[int]:
        return [i for i, (name, _) in enumerate(self.writes) if name == channel]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds
