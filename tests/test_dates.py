"""Tests for date parameter parsing."""

from datetime import date, datetime, time

import pytest

from phenobase.dates import is_date_only, parse_date, parse_datetime


class TestParseDatetime:
    """Tests for parse_datetime."""

    def test_none(self):
        assert parse_datetime(None) is None

    def test_date_only_start(self):
        assert parse_datetime("2017-06-15") == datetime(2017, 6, 15, 0, 0)

    def test_date_only_end_covers_the_day(self):
        assert parse_datetime("2017-06-15", end_of_day=True) == datetime.combine(date(2017, 6, 15), time.max)

    @pytest.mark.parametrize("text", [
        "2017-06-15T10:00:00+0200",
        "2017-06-15T10:00:00+02:00",
        "2017-06-15T08:00:00Z",
    ])
    def test_offsets_are_converted_to_utc(self, text):
        assert parse_datetime(text) == datetime(2017, 6, 15, 8, 0)

    def test_naive_datetime_kept(self):
        assert parse_datetime("2017-06-15T10:30:00") == datetime(2017, 6, 15, 10, 30)

    @pytest.mark.parametrize("text", ["15/06/2017", "yesterday", "2017-13-01"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_datetime(text)


class TestParseDate:
    """Tests for parse_date."""

    def test_date(self):
        assert parse_date("2017-06-15") == date(2017, 6, 15)

    def test_datetime_is_truncated(self):
        assert parse_date("2017-06-15T23:30:00+0000") == date(2017, 6, 15)

    def test_is_date_only(self):
        assert is_date_only(" 2017-06-15 ")
        assert not is_date_only("2017-06-15T00:00:00")
