"""Voice output errors. The speech queue turns these into skipped items."""


class VoiceError(Exception):
    """Base class for synthesis and playback failures."""


class SynthesisError(VoiceError):
    """The TTS engine could not produce audio for a text."""


class PlaybackError(VoiceError):
    """Synthesized audio could not be decoded or played."""
