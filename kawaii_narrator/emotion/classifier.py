"""
Emotion Classifier - Maps a spoken segment to an avatar emotion.

Rules are evaluated in descending priority; within a rule the regular
expressions are tried before the keywords, each in list order. The first hit
wins. No hit yields ``NEUTRAL``.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Sequence, Tuple, List

from ..utils.logger import preview

logger = logging.getLogger(__name__)


class EmotionKind(str, Enum):
    NEUTRAL = "neutral"
    SINGLE = "single"
    COMPLEX = "complex"


@dataclass(frozen=True)
class EmotionComponent:
    name: str
    weight: float


@dataclass(frozen=True)
class EmotionResult:
    """Outcome of classifying one segment."""
    kind: EmotionKind
    components: Tuple[EmotionComponent, ...] = ()
    duration_ms: int = 0
    label: str = "neutral"

    @property
    def is_neutral(self) -> bool:
        return self.kind is EmotionKind.NEUTRAL

    @property
    def name(self) -> str:
        """Primary emotion channel."""
        return self.components[0].name if self.components else "neutral"

    @property
    def weight(self) -> float:
        return self.components[0].weight if self.components else 0.0

    @property
    def channels(self) -> List[str]:
        return [component.name for component in self.components]

    @classmethod
    def single(cls, name: str, weight: float, duration_ms: int = 1000,
               label: Optional[str] = None) -> "EmotionResult":
        return cls(EmotionKind.SINGLE, (EmotionComponent(name, weight),), duration_ms, label or name)

    @classmethod
    def complex(cls, components: Sequence[Tuple[str, float]], duration_ms: int = 1000,
                label: str = "complex") -> "EmotionResult":
        parts = tuple(EmotionComponent(name, weight) for name, weight in components)
        return cls(EmotionKind.COMPLEX, parts, duration_ms, label)


NEUTRAL = EmotionResult(EmotionKind.NEUTRAL)


@dataclass(frozen=True)
class EmotionRule:
    """One row of the emotion table."""
    name: str
    priority: int
    result: EmotionResult
    patterns: Tuple[Pattern, ...] = ()
    keywords: Tuple[str, ...] = ()

    def match(self, text: str) -> Optional[str]:
        """Return what matched (for logging), or None."""
        for pattern in self.patterns:
            if pattern.search(text):
                return f"pattern {pattern.pattern}"
        for keyword in self.keywords:
            if keyword in text:
                return f"keyword {keyword}"
        return None


def make_rule(name: str, priority: int, *,
              emotion: Optional[str] = None,
              weight: float = 1.0,
              emotions: Optional[Sequence[Tuple[str, float]]] = None,
              patterns: Sequence[str] = (),
              keywords: Sequence[str] = (),
              duration_ms: int = 1000) -> EmotionRule:
    """Build a rule with either a single ``emotion`` or several ``emotions``."""
    if emotions:
        result = EmotionResult.complex(emotions, duration_ms, label=name)
    elif emotion:
        result = EmotionResult.single(emotion, weight, duration_ms, label=name)
    else:
        raise ValueError(f"Emotion rule '{name}' needs 'emotion' or 'emotions'")

    return EmotionRule(
        name=name,
        priority=priority,
        result=result,
        patterns=tuple(re.compile(p) for p in patterns),
        keywords=tuple(keywords),
    )


class EmotionClassifier:
    """Pure text -> EmotionResult mapping over an ordered rule table."""

    def __init__(self, rules: Optional[Sequence[EmotionRule]] = None):
        if rules is None:
            from .rules import DEFAULT_RULES
            rules = DEFAULT_RULES
        # sorted() is stable: equal priorities keep table order
        self.rules: Tuple[EmotionRule, ...] = tuple(sorted(rules, key=lambda rule: -rule.priority))

    def classify(self, text: str) -> EmotionResult:
        if not text:
            return NEUTRAL

        for rule in self.rules:
            hit = rule.match(text)
            if hit:
                logger.info(f"Emotion detected: {rule.name} ({hit})")
                return rule.result

        logger.debug(f"No emotion detected: {preview(text)!r}")
        return NEUTRAL
