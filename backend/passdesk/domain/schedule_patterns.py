"""
Schedule pattern resolution.

A batch repeats weekly on a fixed set of weekdays named by a short pattern
code. This module is the single table every caller resolves codes through,
plus the HH:MM parsing used for batch start/end times.
"""

import re
from typing import Dict, FrozenSet, Iterable, Tuple

from passdesk.core.enums import WEEK_ORDER, Weekday
from passdesk.core.exceptions import ValidationException

MON, TUE, WED, THU, FRI, SAT, SUN = WEEK_ORDER

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

# Canonical codes and the weekdays they cover
PATTERN_DAYS: Dict[str, FrozenSet[Weekday]] = {
    "mwf": frozenset({MON, WED, FRI}),
    "tts": frozenset({TUE, THU, SAT}),
    "ss": frozenset({SAT, SUN}),
    "mtwtf": frozenset({MON, TUE, WED, THU, FRI}),
    "mtwtfs": frozenset({MON, TUE, WED, THU, FRI, SAT}),
    "mtwtfss": frozenset(WEEK_ORDER),
    # Coaching "daily" batches run Monday to Saturday
    "daily": frozenset({MON, TUE, WED, THU, FRI, SAT}),
}

PATTERN_LABELS: Dict[str, str] = {
    "mwf": "Mon/Wed/Fri",
    "tts": "Tue/Thu/Sat",
    "ss": "Sat/Sun",
    "mtwtf": "Monday to Friday",
    "mtwtfs": "Monday to Saturday",
    "mtwtfss": "All days",
    "daily": "Daily (Mon-Sat)",
}

# Display labels and common spellings that resolve to a canonical code
_ALIASES: Dict[str, str] = {
    "mon/wed/fri": "mwf",
    "tue/thu/sat": "tts",
    "sat/sun": "ss",
    "weekends": "ss",
    "weekdays": "mtwtf",
    "monday to friday": "mtwtf",
    "mon-fri": "mtwtf",
    "monday to saturday": "mtwtfs",
    "mon-sat": "mtwtfs",
    "all days": "mtwtfss",
    "everyday": "mtwtfss",
    "mon-sun": "mtwtfss",
}


def normalize_pattern(pattern: str) -> str:
    """Canonical code for a pattern, or the cleaned input when unknown."""
    cleaned = " ".join((pattern or "").strip().lower().split())
    compact = cleaned.replace(" / ", "/")
    if compact in PATTERN_DAYS:
        return compact
    return _ALIASES.get(compact, compact)


def weekdays_of(pattern: str) -> FrozenSet[Weekday]:
    """
    Weekdays covered by a pattern code.

    Unknown codes resolve to the empty set so they can never overlap with
    anything.
    """
    return PATTERN_DAYS.get(normalize_pattern(pattern), frozenset())


def is_known_pattern(pattern: str) -> bool:
    return normalize_pattern(pattern) in PATTERN_DAYS


def pattern_label(pattern: str) -> str:
    code = normalize_pattern(pattern)
    return PATTERN_LABELS.get(code, pattern)


def require_pattern(pattern: str) -> str:
    """Canonical code, raising ValidationException for unknown patterns."""
    code = normalize_pattern(pattern)
    if code not in PATTERN_DAYS:
        raise ValidationException(
            f"Unknown schedule pattern '{pattern}'",
            code="INVALID_PATTERN",
            details={"pattern": pattern, "allowed": sorted(PATTERN_DAYS)},
        )
    return code


def to_minutes(time_string: str) -> int:
    """Parse ``HH:MM`` (24h) into minutes since midnight."""
    match = _TIME_RE.match((time_string or "").strip())
    if not match:
        raise ValidationException(
            f"Invalid time '{time_string}', expected HH:MM",
            code="INVALID_TIME",
            details={"value": time_string},
        )
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationException(
            f"Invalid time '{time_string}', expected HH:MM",
            code="INVALID_TIME",
            details={"value": time_string},
        )
    return hours * 60 + minutes


def format_minutes(total: int) -> str:
    """12-hour label for minutes since midnight, e.g. 960 -> '4:00 PM'."""
    hours, minutes = divmod(total % MINUTES_PER_DAY, 60)
    period = "PM" if hours >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{minutes:02d} {period}"


def sort_days(days: Iterable[Weekday]) -> Tuple[Weekday, ...]:
    return tuple(sorted(set(days), key=lambda d: d.position))
