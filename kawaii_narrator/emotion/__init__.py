"""Rule-based emotion classification for spoken segments."""

from .classifier import (
    EmotionClassifier,
    EmotionComponent,
    EmotionKind,
    EmotionResult,
    EmotionRule,
    NEUTRAL,
    make_rule,
)
from .rules import DEFAULT_RULES, load_rules

__all__ = [
    "EmotionClassifier",
    "EmotionComponent",
    "EmotionKind",
    "EmotionResult",
    "EmotionRule",
    "NEUTRAL",
    "make_rule",
    "DEFAULT_RULES",
    "load_rules",
]
