"""
Segment extraction - pulls the speakable 『...』 spans out of an utterance.
"""

import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)

OPEN_QUOTE = "『"
CLOSE_QUOTE = "』"

# Only balanced, non-empty pairs; a stray opening quote never swallows the next span.
SEGMENT_PATTERN = re.compile(f"{OPEN_QUOTE}([^{OPEN_QUOTE}{CLOSE_QUOTE}]+){CLOSE_QUOTE}")


def extract_segments(text: str,
                     max_segments: Optional[int] = None,
                     overflow_notice: str = "") -> List[str]:
    """Return the quoted segments of an utterance in order of appearance.

    When more than ``max_segments`` spans are present only the first ones are
    kept and ``overflow_notice`` (formatted with ``remaining``) is appended in
    place of the rest.
    """
    if not text:
        return []

    segments = [span for span in SEGMENT_PATTERN.findall(text) if span.strip()]

    if max_segments and len(segments) > max_segments:
        remaining = len(segments) - max_segments
        logger.warning(f"Segment limit reached: speaking {max_segments} of {len(segments)}")
        segments = segments[:max_segments]
        if overflow_notice:
            segments.append(overflow_notice.format(remaining=remaining))

    return segments
