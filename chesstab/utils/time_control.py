# ==============================================================================
# time_control.py  –  "base+increment" time-control parsing
#
# Shared by callback projection and derived fields:
#   "300+5" → (300, 5)    "600" → (600, 0)    "-" / "" → (None, None)
# ==============================================================================

from __future__ import annotations

import math
from typing import Any, Optional, Tuple

TimeControl = Tuple[Optional[int], Optional[int]]


def _parse_seconds(segment: str) -> Optional[int]:
    """Parse one segment as whole seconds; non-finite or junk → None."""
    try:
        value = float(segment.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value)


def parse_time_control(value: Any) -> TimeControl:
    """
    Split a time-control string into (initial_seconds, increment_seconds).

    A missing increment counts as 0; any unparseable part becomes None
    independently of the other (``"abc+2"`` → ``(None, 2)``).
    """
    if value is None:
        return None, None

    text = str(value).strip()
    if not text or text == "-":
        return None, None

    parts = text.split("+")
    initial = _parse_seconds(parts[0])
    increment = _parse_seconds(parts[1]) if len(parts) > 1 else 0
    return initial, increment
