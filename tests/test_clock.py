"""Tests for standup.core.clock — timezone and window helpers."""

from standup.core.clock import local_date, local_parts, minutes_apart, within_window


class TestLocalParts:
    def test_parts_in_timezone(self, at):
        parts = local_parts(at(2025, 3, 10, 8, 5), "America/Bogota")
        assert (parts.hour, parts.minute, parts.ymd) == (8, 5, "2025-03-10")

    def test_unknown_timezone_uses_default(self, at):
        epoch = at(2025, 3, 10, 8, 5)
        assert local_parts(epoch, "Not/AZone") == local_parts(epoch, "America/Bogota")

    def test_empty_timezone_uses_default(self, at):
        epoch = at(2025, 3, 10, 8, 5, tz="Europe/Madrid")
        assert local_parts(epoch, None, "Europe/Madrid").hour == 8

    def test_local_date_crosses_midnight(self, at):
        epoch = at(2025, 3, 10, 23, 30)
        assert local_date(epoch, "America/Bogota") == "2025-03-10"
        assert local_date(epoch, "Europe/Madrid") == "2025-03-11"


class TestWindow:
    def test_inclusive_edges(self):
        assert within_window(8, 10, 8, 0, 10) is True
        assert within_window(7, 50, 8, 0, 10) is True
        assert within_window(8, 11, 8, 0, 10) is False

    def test_wraps_around_midnight(self):
        assert minutes_apart(23, 55, 0, 0) == 5
        assert within_window(23, 55, 0, 5, 10) is True
        assert within_window(0, 5, 23, 58, 10) is True
