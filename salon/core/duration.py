"""Service duration helpers. Durations are stored as minutes and shown as "H:MM"."""
import re

_HHMM = re.compile(r"^\s*(\d+):(\d+)\s*$")


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours}:{mins:02d}"


def is_valid_duration(value: str) -> bool:
    match = _HHMM.match(value)
    if match:
        hours, mins = int(match.group(1)), int(match.group(2))
        return mins < 60 and hours * 60 + mins > 0
    try:
        return float(value) > 0
    except ValueError:
        return False


def parse_duration(value: str) -> int:
    """Accepts "H:MM" or decimal hours ("2.5" -> 150)."""
    if not is_valid_duration(value):
        raise ValueError(f"Invalid duration: {value!r}")
    match = _HHMM.match(value)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))
    decimal = float(value)
    hours = int(decimal)
    return hours * 60 + round((decimal - hours) * 60)
