"""
rewards.py - "Last mover" time-weighted reward accrual

Each period has at most one holder: the trader who acted most recently.
Only the holder accrues. Whenever someone acts, the outgoing holder's dwell
time since its snapshot timestamp is converted into reward:

    reward += trunc(rate * seconds_held * holder_cumulative_size / period_volume)

and the acting trader becomes the new holder. Accrual is O(1) per action
and happens only as a side effect of trading; nothing runs at period
boundaries, so the last holder of a period is never finalized.

Every other participant accrues nothing while someone else holds the slot.
A trader who regains the slot keeps its old snapshot timestamp, so the time
between losing and regaining the slot counts at the next finalization.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .core import (
    Snapshot, RewardEntry, TraderPeriod, ZERO,
    EVENT_REWARD_ACCRUED, whole_seconds,
)
from .config import MarketSettings
from .events import EventLog
from .journal import StateJournal


class RewardAccrualEngine:
    """
    Holds snapshots, holders and finalized reward entries.

    Args:
        settings: Runtime settings; reward_rate is read at every accrual
        journal: Undo journal shared with the rest of the market
        events: Event log receiving REWARD_ACCRUED records
    """

    def __init__(
        self,
        settings: Optional[MarketSettings] = None,
        journal: Optional[StateJournal] = None,
        events: Optional[EventLog] = None,
    ):
        self.settings = settings or MarketSettings()
        self.journal = journal or StateJournal()
        self.events = events or EventLog(self.journal, verbose=False)
        self._holders: Dict[int, str] = {}
        self._snapshots: Dict[Tuple[int, str], Snapshot] = {}
        self._rewards: Dict[TraderPeriod, RewardEntry] = {}

    # ========================================================================
    # ACCRUAL
    # ========================================================================

    def on_action(
        self,
        trader: str,
        period: int,
        size: Decimal,
        now: datetime,
        total_volume: Decimal,
    ) -> Decimal:
        """
        Finalize the outgoing holder and install trader as holder.

        Must run after the action's volume has been added to the period, so
        total_volume includes size.

        Returns:
            Reward credited to the outgoing holder (0 if none)
        """
        accrued = self._finalize_holder(period, now, total_volume)

        key = (period, trader)
        self.journal.record(self._snapshots, key)
        snapshot = self._snapshots.get(key) or Snapshot(timestamp=now)
        self._snapshots[key] = Snapshot(
            timestamp=snapshot.timestamp,
            cumulative_size=snapshot.cumulative_size + size,
        )

        self.journal.record(self._holders, period)
        self._holders[period] = trader
        return accrued

    def _finalize_holder(self, period: int, now: datetime, total_volume: Decimal) -> Decimal:
        holder = self._holders.get(period)
        if holder is None:
            return ZERO

        key = (period, holder)
        snapshot = self._snapshots[key]
        dt = whole_seconds(snapshot.timestamp, now)
        if dt <= 0 or total_volume <= 0:
            return ZERO

        # Exact integer floor; operands are non-negative so this truncates.
        num, den = self.settings.reward_rate.as_integer_ratio()
        reward = Decimal(
            (num * dt * int(snapshot.cumulative_size)) // (den * int(total_volume))
        )

        entry_key = (holder, period)
        self.journal.record(self._rewards, entry_key)
        self._rewards[entry_key] = self._rewards.get(entry_key, RewardEntry()).accrue(reward)

        self.journal.record(self._snapshots, key)
        self._snapshots[key] = Snapshot(timestamp=now, cumulative_size=snapshot.cumulative_size)

        self.events.emit(
            EVENT_REWARD_ACCRUED, now, trader=holder, period=period, amount=reward,
            seconds=dt, cumulative_size=snapshot.cumulative_size, total_volume=total_volume,
        )
        return reward

    # ========================================================================
    # CLAIM SUPPORT
    # ========================================================================

    def mark_claimed(self, trader: str, period: int) -> RewardEntry:
        """
        Flip the entry to claimed. The amount is kept.

        Raises:
            AlreadyClaimedError: If the entry was already claimed
        """
        key = (trader, period)
        entry = self._rewards.get(key, RewardEntry()).mark_claimed()
        self.journal.record(self._rewards, key)
        self._rewards[key] = entry
        return entry

    # ========================================================================
    # READS
    # ========================================================================

    def claimable_rewards(self, trader: str, period: int) -> Tuple[bool, Decimal]:
        """(claimed, amount) for the pair; (False, 0) if nothing accrued."""
        return self.reward_entry(trader, period).as_tuple()

    def reward_entry(self, trader: str, period: int) -> RewardEntry:
        return self._rewards.get((trader, period), RewardEntry())

    def holder(self, period: int) -> Optional[str]:
        return self._holders.get(period)

    def snapshot(self, period: int, trader: str) -> Optional[Snapshot]:
        return self._snapshots.get((period, trader))

    def total_accrued(self, period: int) -> Decimal:
        return sum(
            (e.amount for (_, p), e in self._rewards.items() if p == period),
            ZERO,
        )
