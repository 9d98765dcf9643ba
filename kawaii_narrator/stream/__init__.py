"""Raw terminal stream handling: ANSI cleanup, utterance assembly, segment extraction."""

from .accumulator import ChunkAccumulator, AccumulatorState, RawChunk, Utterance
from .ansi import strip_ansi
from .segments import extract_segments

__all__ = [
    "ChunkAccumulator",
    "AccumulatorState",
    "RawChunk",
    "Utterance",
    "strip_ansi",
    "extract_segments",
]
