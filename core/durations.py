"""
core/durations.py -- Parse short duration strings such as "15m" or "30d".

Token lifetimes are configured the same way everywhere (JWT_ACCESS_EXPIRES_IN,
JWT_REFRESH_EXPIRES_IN). Both the token codec and the cookie transport read
the lifetime through parse_duration() so a signed token and the cookie that
carries it always expire together.

Accepted forms:
  "900"  -- bare integer, seconds
  "45s", "15m", "12h", "30d", "2w"
  whitespace between number and unit is tolerated ("15 m")

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import re
from datetime import timedelta

_UNITS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$", re.IGNORECASE)


def parse_duration(value: str) -> timedelta:
    """Return the timedelta for a duration string.

    Raises ValueError for empty, negative, zero or unrecognised values. A zero
    lifetime would mint tokens that are already expired, so it is rejected
    here rather than surfacing later as a confusing 401.
    """
    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ValueError(f"Invalid duration format: {value!r}")
    amount = int(match.group(1))
    unit = (match.group(2) or "s").lower()
    seconds = amount * _UNITS[unit]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=seconds)
