"""
Temporal Conformance Tests

INVARIANTS:

    period(t) = floor((t - start) / duration)
    t1 ≤ t2 ⟹ period(t1) ≤ period(t2)
    claim(trader, p) is only possible once period(now) > p
    every action is booked in period(now) at the time of the call
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import timedelta
from decimal import Decimal

from dexledger import (
    ManualClock, PeriodClock, PeriodWindowError, EligibilityError, ValidationError,
)

from tests.helpers import START, PERIOD, build_market, advance, usdc


class TestPeriodIndexing:

    @given(st.integers(min_value=0, max_value=10**9), st.integers(min_value=0, max_value=10**9))
    @settings(max_examples=50)
    def test_period_is_monotonic(self, a, b):
        """
        PROPERTY: Later timestamps never map to earlier periods.
        """
        periods = PeriodClock(ManualClock(START), START, PERIOD)
        early, late = sorted((a, b))
        assert periods.period_at(START + timedelta(seconds=early)) <= \
            periods.period_at(START + timedelta(seconds=late))

    @given(st.integers(min_value=0, max_value=500), st.integers(min_value=0, max_value=2_591_999))
    @settings(max_examples=50)
    def test_period_bounds_contain_timestamp(self, period, offset):
        periods = PeriodClock(ManualClock(START), START, PERIOD)
        t = START + PERIOD * period + timedelta(seconds=offset)
        assert periods.period_at(t) == period
        first, end = periods.period_bounds(period)
        assert first <= t < end

    def test_boundary_second(self):
        periods = PeriodClock(ManualClock(START), START, PERIOD)
        assert periods.period_at(START + PERIOD - timedelta(seconds=1)) == 0
        assert periods.period_at(START + PERIOD) == 1

    def test_before_start_rejected(self):
        periods = PeriodClock(ManualClock(START), START, PERIOD)
        with pytest.raises(ValidationError):
            periods.period_at(START - timedelta(seconds=1))


class TestActionsBookedInCurrentPeriod:

    def test_positions_follow_the_clock(self, market):
        assert market.open_position("trader1", usdc(100), True) == 0
        advance(market, periods=1)
        assert market.open_position("trader1", usdc(50), True) == 1
        assert market.close_position("trader1", usdc(20), True) == 1

        assert market.get_trader_position_for_period("trader1", 0, True) == usdc(100)
        assert market.get_trader_position_for_period("trader1", 1, True) == usdc(30)
        assert market.get_trader_position("trader1", True) == usdc(130)

    def test_close_across_periods_clamps_period_position(self, market):
        """Closing exposure opened earlier floors the current period at zero."""
        market.open_position("trader1", usdc(100), True)
        advance(market, periods=1)
        market.close_position("trader1", usdc(60), True)

        assert market.get_trader_position_for_period("trader1", 1, True) == 0
        assert market.pool_totals(1).long == 0
        assert market.get_trader_position("trader1", True) == usdc(40)
        assert market.total_volume(1) == usdc(60)


class TestClaimWindow:

    def test_current_period_not_claimable(self, market):
        market.open_position("trader1", usdc(100), True)
        advance(market, 60)
        market.open_position("trader2", usdc(100), True)
        market.open_position("trader1", usdc(100), True)
        with pytest.raises(PeriodWindowError, match="Cannot claim for ongoing or future periods"):
            market.claim_rewards("trader1", 0)

    @given(st.integers(min_value=1, max_value=50))
    @settings(max_examples=20, deadline=None)
    def test_future_periods_not_claimable(self, ahead):
        market = build_market()
        with pytest.raises(PeriodWindowError):
            market.claim_rewards("trader1", ahead)

    def test_last_second_of_period_still_ongoing(self):
        m = build_market()
        m.open_position("trader1", usdc(100), True)
        advance(m, 60)
        m.open_position("trader2", usdc(100), True)
        m.open_position("trader1", usdc(100), True)
        advance(m, int(PERIOD.total_seconds()) - 61)
        with pytest.raises(PeriodWindowError):
            m.claim_rewards("trader1", 0)
        advance(m, 1)
        assert m.claim_rewards("trader1", 0) == Decimal("3000")

    def test_past_period_passes_window_check(self, market):
        """An idle past period fails on eligibility, not on the window."""
        advance(market, periods=2)
        with pytest.raises(EligibilityError):
            market.claim_rewards("trader1", 1)

    def test_old_periods_stay_claimable(self, concluded_market):
        advance(concluded_market, periods=12)
        assert concluded_market.claim_rewards("trader1", 0) == Decimal("180000")

    def test_negative_period_rejected(self, market):
        with pytest.raises(ValidationError):
            market.claim_rewards("trader1", -1)
