"""Tests for premium expiry calculation."""

from datetime import UTC, datetime

from premium.services.subscription_dates import add_months, next_premium_expiry


class TestAddMonths:
    def test_simple(self):
        assert add_months(datetime(2025, 3, 10, tzinfo=UTC), 1) == datetime(2025, 4, 10, tzinfo=UTC)

    def test_year_rollover(self):
        assert add_months(datetime(2025, 12, 5, tzinfo=UTC), 1) == datetime(2026, 1, 5, tzinfo=UTC)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2025, 1, 31, tzinfo=UTC), 1) == datetime(2025, 2, 28, tzinfo=UTC)

    def test_leap_year(self):
        assert add_months(datetime(2024, 1, 31, tzinfo=UTC), 1) == datetime(2024, 2, 29, tzinfo=UTC)

    def test_keeps_time_of_day(self):
        dt = datetime(2025, 6, 1, 13, 45, 7, tzinfo=UTC)
        assert add_months(dt, 3) == datetime(2025, 9, 1, 13, 45, 7, tzinfo=UTC)


class TestNextPremiumExpiry:
    now = datetime(2025, 5, 10, 12, 0, tzinfo=UTC)

    def test_first_purchase(self):
        assert next_premium_expiry(self.now, None) == datetime(2025, 6, 10, 12, 0, tzinfo=UTC)

    def test_lapsed_membership_starts_from_now(self):
        expired = datetime(2025, 4, 1, tzinfo=UTC)
        assert next_premium_expiry(self.now, expired) == datetime(2025, 6, 10, 12, 0, tzinfo=UTC)

    def test_renewal_stacks_on_remaining_time(self):
        running = datetime(2025, 5, 20, 12, 0, tzinfo=UTC)
        assert next_premium_expiry(self.now, running) == datetime(2025, 6, 20, 12, 0, tzinfo=UTC)

    def test_multi_month_period(self):
        assert next_premium_expiry(self.now, None, months=12) == datetime(
            2026, 5, 10, 12, 0, tzinfo=UTC
        )
