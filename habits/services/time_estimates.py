"""
Time estimates attached to habits: one of a few presets, or free-form HH:MM.
"""
import re
from typing import Optional, Tuple

# preset -> (minutes, short display)
TIME_PRESETS = {
    "5min": (5, "5m"),
    "15min": (15, "15m"),
    "30min": (30, "30m"),
    "1hr": (60, "1h"),
}

_CUSTOM_TIME = re.compile(r"(\d{1,2}):([0-5]\d)")


def is_valid_time_estimate(value: str) -> bool:
    return value in TIME_PRESETS or bool(_CUSTOM_TIME.fullmatch(value))


def _parse(value: str) -> Optional[Tuple[int, int]]:
    if value in TIME_PRESETS:
        minutes = TIME_PRESETS[value][0]
        return minutes // 60, minutes % 60

    if ":" in value:
        hours, _, minutes = value.partition(":")
        try:
            return int(hours), int(minutes)
        except ValueError:
            return None
    return None


def time_estimate_to_minutes(value: Optional[str]) -> int:
    if not value:
        return 0
    parsed = _parse(value)
    if parsed is None:
        return 0
    hours, minutes = parsed
    return hours * 60 + minutes


def time_estimate_to_seconds(value: Optional[str]) -> int:
    return time_estimate_to_minutes(value) * 60


def format_time_estimate(value: Optional[str]) -> str:
    """
    Short display form: presets use their fixed label, HH:MM becomes
    e.g. "1h 30m". Anything unparseable is returned unchanged.
    """
    if not value:
        return ""
    if value in TIME_PRESETS:
        return TIME_PRESETS[value][1]

    parsed = _parse(value)
    if parsed is None:
        return value

    hours, minutes = parsed
    if hours == 0 and minutes == 0:
        return "0m"

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def format_seconds(seconds: int) -> str:
    """Countdown display, M:SS."""
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"
