"""
positions.py - Period-indexed position ledger

Tracks, for every trader, two views of the same positions:

    - per period: what the trader opened (minus what it closed) in that
      period, floored at zero
    - aggregate: running total across all periods, the balance close and
      withdraw are checked against

A position opened in period 0 and closed in period 1 leaves the period-1
figure at zero (the floor) while the aggregate drops by the full amount.
The two counters are deliberately kept disjoint.

Pools follow the per-period figure (also floored) and volume counts every
open, close and withdraw at full size.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from .core import (
    Position, PoolTotals, Side, TraderPeriod, TransferAgent, ZERO,
    InsufficientPositionError, CooldownError,
    EVENT_POSITION_OPENED, EVENT_POSITION_CLOSED, EVENT_POSITION_WITHDRAWN,
    to_amount, require_wallet_id,
)
from .clock import PeriodClock
from .config import MarketSettings
from .events import EventLog
from .guard import ReentrancyGuard
from .journal import StateJournal
from .participation import ParticipationTracker
from .rewards import RewardAccrualEngine


class PositionLedger:
    """
    Entry point for trading actions.

    Each action holds the reentrancy guard for its whole duration and runs
    inside one journal block, so a failure anywhere (including the outgoing
    release) leaves every counter as it was.

    Example:
        positions.open_position("alice", Decimal("500000000"), is_long=True)
        positions.close_position("alice", Decimal("500000000"), is_long=True)
    """

    def __init__(
        self,
        periods: PeriodClock,
        escrow: TransferAgent,
        participation: Optional[ParticipationTracker] = None,
        rewards: Optional[RewardAccrualEngine] = None,
        settings: Optional[MarketSettings] = None,
        guard: Optional[ReentrancyGuard] = None,
        journal: Optional[StateJournal] = None,
        events: Optional[EventLog] = None,
    ):
        self.periods = periods
        self.escrow = escrow
        self.journal = journal or StateJournal()
        self.settings = settings or MarketSettings()
        self.events = events or EventLog(self.journal, verbose=False)
        self.participation = participation or ParticipationTracker(self.journal)
        self.rewards = rewards or RewardAccrualEngine(self.settings, self.journal, self.events)
        self.guard = guard or ReentrancyGuard()

        self._period_positions: Dict[TraderPeriod, Position] = {}
        self._aggregates: Dict[str, Position] = {}
        self._pools: Dict[int, PoolTotals] = {}
        self._last_action: Dict[str, datetime] = {}

    # ========================================================================
    # TRADING ACTIONS
    # ========================================================================

    def open_position(self, trader: str, amount: Decimal, is_long: bool) -> int:
        """
        Escrow amount from trader and book it in the current period.

        Returns:
            Period the position was booked in

        Raises:
            ValidationError: Empty trader or non-positive/fractional amount
            MarketPaused: While trading is suspended
            CooldownError: Trader acted too recently
            TransferFailed: Escrow rejected (nothing is booked)
        """
        with self.guard("open_position"):
            trader, amount, now, period = self._prepare(trader, amount)
            side = Side.of(is_long)
            with self.journal.atomic():
                self.escrow.debit(trader, amount)
                try:
                    self._increase(trader, period, side, amount)
                    self.participation.record_action(trader, period)
                    self._finish(trader, period, side, amount, now, EVENT_POSITION_OPENED)
                except Exception:
                    self.escrow.credit(trader, amount)
                    raise
            return period

    def close_position(self, trader: str, amount: Decimal, is_long: bool) -> int:
        """
        Reduce trader's position and release amount from escrow.

        Raises:
            InsufficientPositionError: aggregate(trader, side) < amount
            TransferFailed: Release rejected (all bookkeeping rolled back)
        """
        with self.guard("close_position"):
            trader, amount, now, period = self._prepare(trader, amount)
            side = Side.of(is_long)
            self._require_position(trader, side, amount)
            with self.journal.atomic():
                self._decrease(trader, period, side, amount)
                self.participation.record_action(trader, period)
                self._finish(trader, period, side, amount, now, EVENT_POSITION_CLOSED)
                self.escrow.credit(trader, amount)
            return period

    def withdraw_from_position(self, trader: str, amount: Decimal, is_long: bool) -> int:
        """
        Like close_position, but reverses one prior action in the period's
        participation count instead of adding one.
        """
        with self.guard("withdraw_from_position"):
            trader, amount, now, period = self._prepare(trader, amount)
            side = Side.of(is_long)
            self._require_position(trader, side, amount)
            with self.journal.atomic():
                self._decrease(trader, period, side, amount)
                self.participation.reverse_action(trader, period)
                self._finish(trader, period, side, amount, now, EVENT_POSITION_WITHDRAWN)
                self.escrow.credit(trader, amount)
            return period

    def _prepare(self, trader, amount):
        self.settings.require_active()
        trader = require_wallet_id(trader)
        amount = to_amount(amount, "size")
        now = self.periods.now()
        self.check_cooldown(trader, now)
        return trader, amount, now, self.periods.period_at(now)

    def check_cooldown(self, trader: str, now: datetime) -> None:
        """
        Raises:
            CooldownError: If trader's last action is less than the cooldown ago
        """
        last = self._last_action.get(trader)
        if last is not None and now - last < self.settings.cooldown:
            raise CooldownError("Cooldown period has not elapsed")

    def _require_position(self, trader: str, side: Side, amount: Decimal) -> None:
        if self.get_trader_position(trader, side is Side.LONG) < amount:
            raise InsufficientPositionError(f"Insufficient {side.value} position")

    # ========================================================================
    # BOOKKEEPING
    # ========================================================================

    def _increase(self, trader: str, period: int, side: Side, amount: Decimal) -> None:
        key = (trader, period)
        pos = self._period_positions.get(key, Position())
        agg = self._aggregates.get(trader, Position())
        pool = self._pools.get(period, PoolTotals())

        self._set(self._period_positions, key, pos.with_size(side, pos.size(side) + amount))
        self._set(self._aggregates, trader, agg.with_size(side, agg.size(side) + amount))
        pool = pool.with_size(side, pool.size(side) + amount)
        self._set(self._pools, period, PoolTotals(pool.long, pool.short, pool.volume + amount))

    def _decrease(self, trader: str, period: int, side: Side, amount: Decimal) -> None:
        key = (trader, period)
        pos = self._period_positions.get(key, Position())
        agg = self._aggregates.get(trader, Position())
        pool = self._pools.get(period, PoolTotals())

        self._set(self._period_positions, key, pos.with_size(side, max(pos.size(side) - amount, ZERO)))
        self._set(self._aggregates, trader, agg.with_size(side, agg.size(side) - amount))
        pool = pool.with_size(side, max(pool.size(side) - amount, ZERO))
        self._set(self._pools, period, PoolTotals(pool.long, pool.short, pool.volume + amount))

    def _finish(self, trader: str, period: int, side: Side, amount: Decimal,
                now: datetime, action: str) -> None:
        self._set(self._last_action, trader, now)
        self.events.emit(action, now, trader=trader, period=period, amount=amount, side=side)
        self.rewards.on_action(trader, period, amount, now, self.total_volume(period))

    def _set(self, store: dict, key, value) -> None:
        self.journal.record(store, key)
        store[key] = value

    # ========================================================================
    # READS
    # ========================================================================

    def current_period(self) -> int:
        return self.periods.current_period()

    def get_trader_position(self, trader: str, is_long: bool) -> Decimal:
        """Aggregate size on one side across all periods."""
        return self._aggregates.get(trader, Position()).size(Side.of(is_long))

    def get_trader_position_for_period(self, trader: str, period: int, is_long: bool) -> Decimal:
        return self._period_positions.get((trader, period), Position()).size(Side.of(is_long))

    def pool_totals(self, period: int) -> PoolTotals:
        return self._pools.get(period, PoolTotals())

    def total_long_pool(self, period: int) -> Decimal:
        return self.pool_totals(period).long

    def total_short_pool(self, period: int) -> Decimal:
        return self.pool_totals(period).short

    def total_volume(self, period: int) -> Decimal:
        return self.pool_totals(period).volume

    def last_action_time(self, trader: str) -> Optional[datetime]:
        return self._last_action.get(trader)

    def traders(self) -> List[str]:
        return sorted(self._aggregates)

    def periods_touched(self) -> List[int]:
        return sorted(self._pools)

    def positions_in_period(self, period: int) -> Dict[str, Position]:
        return {t: pos for (t, p), pos in self._period_positions.items() if p == period}

    def total_aggregate(self) -> Decimal:
        """Sum of every trader's long and short aggregate."""
        return sum((p.long + p.short for p in self._aggregates.values()), ZERO)
