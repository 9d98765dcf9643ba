"""
ANSI control sequence removal for terminal output.
"""

import re

# CSI (colors, cursor movement), OSC (window titles, hyperlinks) and
# two-byte escapes, in that order of precedence.
_CSI = r"\x1b\[[0-?]*[ -/]*[@-~]"
_OSC = r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
_ESC = r"\x1b[@-Z\\-_]"

ANSI_PATTERN = re.compile(f"{_CSI}|{_OSC}|{_ESC}")


def strip_ansi(text: str) -> str:
    """Remove escape sequences and carriage returns from decoded terminal text."""
    if not text:
        return ""
    return ANSI_PATTERN.sub("", text).replace("\r", "")
