"""
Video Duration Codec

Parses the ISO-8601 style durations returned by the YouTube Data API
(``PT1H2M5S``) and formats seconds for display (``1:02:05`` / ``4:07``).

Durations are advisory everywhere they are used, so neither function raises:
anything unparseable or non-finite is treated as zero.
"""

import math
import re
from typing import Optional, Union

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def parse_duration(text: Optional[str]) -> int:
    """Return the total number of seconds in ``text``; 0 when it does not match."""
    if not text or not isinstance(text, str):
        return 0

    match = _DURATION_RE.match(text.strip())
    if not match:
        return 0

    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: Union[int, float, None]) -> str:
    """
    Format seconds as ``H:MM:SS``, or ``M:SS`` when under an hour.

    Negative, NaN, infinite and None inputs format as ``0:00``; fractional
    seconds are floored.
    """
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        value = 0.0
    if not math.isfinite(value) or value < 0:
        value = 0.0

    total = int(math.floor(value))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
