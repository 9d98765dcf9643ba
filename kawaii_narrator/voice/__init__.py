"""Voice output: duplicate suppression, synthesis, playback and the speech queue."""

from .errors import VoiceError, SynthesisError, PlaybackError

__all__ = ["VoiceError", "SynthesisError", "PlaybackError"]
