"""Tests for end date parsing utilities."""

from datetime import date

import pytest

from zento_markets.core.timestamps import format_end_date, parse_end_date, replace_end_day

_JAN_1_2030_UTC = 1893456000
_LAST_SECOND = 86_399


class TestParseEndDate:
    """Tests for parse_end_date."""

    def test_date_and_time(self) -> None:
        """Parse a full DD/MM/YYYY HH:MM:SS value."""
        assert parse_end_date("01/01/2030 12:00:00") == _JAN_1_2030_UTC + 43_200

    def test_time_without_seconds(self) -> None:
        """Accept a time of day without seconds."""
        assert parse_end_date("01/01/2030 06:30") == _JAN_1_2030_UTC + 6 * 3600 + 30 * 60

    def test_date_only_defaults_to_end_of_day(self) -> None:
        """Default a bare date to 23:59:59 UTC."""
        assert parse_end_date("01/01/2030") == _JAN_1_2030_UTC + _LAST_SECOND

    @pytest.mark.parametrize("value", ["", "2030-01-01", "31/02/2030", "01/01/2030 25:00", "a b c"])
    def test_invalid_raises(self, value: str) -> None:
        """Raise ValueError for unparseable input."""
        with pytest.raises(ValueError, match="Cannot parse end date"):
            parse_end_date(value)


class TestFormatEndDate:
    """Tests for format_end_date."""

    def test_format(self) -> None:
        """Format a timestamp in display format."""
        assert format_end_date(_JAN_1_2030_UTC) == "01/01/2030 00:00:00"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("29/02/2028", "29/02/2028 23:59:59"),
            ("15/07/2031 06:30", "15/07/2031 06:30:00"),
            ("31/12/2030 23:59:59", "31/12/2030 23:59:59"),
            ("01/01/2030 00:00:00", "01/01/2030 00:00:00"),
        ],
    )
    def test_parse_then_format_keeps_calendar_date(self, value: str, expected: str) -> None:
        """Reformatting a parsed end date yields the same day and time."""
        formatted = format_end_date(parse_end_date(value))
        assert formatted == expected
        assert formatted.split()[0] == value.split()[0]


class TestReplaceEndDay:
    """Tests for replace_end_day."""

    def test_keeps_time_of_day(self) -> None:
        """Move to a new day while keeping the existing time."""
        assert replace_end_day("01/01/2030 08:15:00", date(2030, 3, 4)) == "04/03/2030 08:15:00"

    def test_empty_uses_default_time(self) -> None:
        """Use the end-of-day time when there is no existing value."""
        assert replace_end_day("", date(2030, 3, 4)) == "04/03/2030 23:59:59"
