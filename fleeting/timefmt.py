from __future__ import annotations
import math


def _whole_seconds(seconds: float) -> int:
    try:
        s = float(seconds)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(s) or s <= 0:
        return 0
    return int(s)


def _split(s: int):
    d = s // 86_400
    h = (s % 86_400) // 3_600
    m = (s % 3_600) // 60
    sec = s % 60
    return d, h, m, sec


def format_remaining(seconds: float) -> str:
    """Countdown text, e.g. "2d 14h", "3h 45m", "4m 05s"."""
    s = _whole_seconds(seconds)
    if s == 0:
        return "0s"

    d, h, m, sec = _split(s)
    if d > 0:
        return f"{d}d {h:02d}h"
    if h > 0:
        return f"{h}h {m:02d}m"
    if m > 0:
        return f"{m}m {sec:02d}s"
    return f"{sec}s"


def format_compact(seconds: float) -> str:
    """Short form for the countdown badge: "2d", "1d 1h", "5m", "59s"."""
    s = _whole_seconds(seconds)
    if s == 0:
        return "0s"

    d, h, m, _ = _split(s)
    if d > 0:
        return f"{d}d {h}h" if h > 0 else f"{d}d"
    if h > 0:
        return f"{h}h {m}m" if m > 0 else f"{h}h"
    if m > 0:
        return f"{m}m"
    return f"{s}s"
