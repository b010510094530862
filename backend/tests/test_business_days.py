"""
Unit tests for business day arithmetic.
"""
from datetime import date, datetime, timezone

from services.business_days import add_business_days, business_days_between, is_business_day


class TestBusinessDays:

    def test_weekends_are_not_business_days(self):
        assert is_business_day(date(2026, 10, 16))      # Friday
        assert not is_business_day(date(2026, 10, 17))  # Saturday
        assert not is_business_day(date(2026, 10, 18))  # Sunday

    def test_between_excludes_start_includes_end(self):
        # Fri -> Mon
        assert business_days_between(date(2026, 10, 16), date(2026, 10, 19)) == 1
        # Mon -> next Mon
        assert business_days_between(date(2026, 10, 12), date(2026, 10, 19)) == 5

    def test_between_same_or_reversed_is_zero(self):
        assert business_days_between(date(2026, 10, 19), date(2026, 10, 19)) == 0
        assert business_days_between(date(2026, 10, 19), date(2026, 10, 1)) == 0

    def test_between_accepts_datetimes(self):
        start = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)
        end = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)
        assert business_days_between(start, end) == 12

    def test_weekend_start(self):
        # Sat -> Wed: Mon, Tue, Wed
        assert business_days_between(date(2026, 10, 17), date(2026, 10, 21)) == 3

    def test_add_forward_skips_weekend(self):
        assert add_business_days(date(2026, 10, 16), 1) == date(2026, 10, 19)
        assert add_business_days(date(2026, 10, 19), 10) == date(2026, 11, 2)

    def test_add_backward(self):
        assert add_business_days(date(2026, 10, 19), -1) == date(2026, 10, 16)

    def test_add_and_count_agree(self):
        start = date(2026, 10, 19)
        for days in (1, 5, 30, 40, 41):
            assert business_days_between(add_business_days(start, -days), start) == days
