import pytest

from passdesk.core.enums import Weekday
from passdesk.core.exceptions import ValidationException
from passdesk.domain.schedule_patterns import (
    PATTERN_DAYS,
    format_minutes,
    is_known_pattern,
    normalize_pattern,
    pattern_label,
    require_pattern,
    sort_days,
    to_minutes,
    weekdays_of,
)

MON, TUE, WED, THU, FRI, SAT, SUN = (
    Weekday.MON,
    Weekday.TUE,
    Weekday.WED,
    Weekday.THU,
    Weekday.FRI,
    Weekday.SAT,
    Weekday.SUN,
)


class TestWeekdaysOf:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("mwf", {MON, WED, FRI}),
            ("tts", {TUE, THU, SAT}),
            ("ss", {SAT, SUN}),
            ("mtwtf", {MON, TUE, WED, THU, FRI}),
            ("mtwtfs", {MON, TUE, WED, THU, FRI, SAT}),
            ("mtwtfss", {MON, TUE, WED, THU, FRI, SAT, SUN}),
        ],
    )
    def test_canonical_codes(self, code, expected) -> None:
        assert weekdays_of(code) == frozenset(expected)

    def test_daily_means_monday_to_saturday(self) -> None:
        assert weekdays_of("daily") == frozenset({MON, TUE, WED, THU, FRI, SAT})
        assert SUN not in weekdays_of("daily")

    def test_unknown_code_resolves_to_no_days(self) -> None:
        assert weekdays_of("fortnightly") == frozenset()
        assert weekdays_of("") == frozenset()

    def test_display_labels_and_case_resolve(self) -> None:
        assert weekdays_of("Mon/Wed/Fri") == weekdays_of("mwf")
        assert weekdays_of("  MWF ") == weekdays_of("mwf")
        assert weekdays_of("Monday to Friday") == weekdays_of("mtwtf")
        assert weekdays_of("weekends") == weekdays_of("ss")


class TestPatternValidation:
    def test_require_pattern_returns_canonical_code(self) -> None:
        assert require_pattern("Tue/Thu/Sat") == "tts"
        assert normalize_pattern("ALL DAYS") == "mtwtfss"

    def test_require_pattern_rejects_unknown(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            require_pattern("biweekly")
        assert exc_info.value.code == "INVALID_PATTERN"
        assert exc_info.value.details["allowed"] == sorted(PATTERN_DAYS)

    def test_is_known_and_label(self) -> None:
        assert is_known_pattern("ss")
        assert not is_known_pattern("xyz")
        assert pattern_label("mwf") == "Mon/Wed/Fri"
        assert pattern_label("xyz") == "xyz"


class TestTimes:
    @pytest.mark.parametrize(
        "value,minutes",
        [("00:00", 0), ("6:30", 390), ("16:00", 960), ("23:59", 1439)],
    )
    def test_to_minutes(self, value, minutes) -> None:
        assert to_minutes(value) == minutes

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "1600", "", "16:0"])
    def test_to_minutes_rejects_malformed(self, value) -> None:
        with pytest.raises(ValidationException) as exc_info:
            to_minutes(value)
        assert exc_info.value.code == "INVALID_TIME"

    def test_format_minutes(self) -> None:
        assert format_minutes(0) == "12:00 AM"
        assert format_minutes(960) == "4:00 PM"
        assert format_minutes(720 + 30) == "12:30 PM"
        assert format_minutes(390) == "6:30 AM"


def test_sort_days_orders_monday_first() -> None:
    assert sort_days({SUN, MON, FRI, MON}) == (MON, FRI, SUN)
