"""
claims.py - At-most-once reward payout

State machine per (trader, period):

    Unclaimed --claim()--> Claimed     (terminal)

The claimed flag is set before the payout is issued. If the payout fails the
journal restores the flag, so a reward is never paid twice and a failed
payout never burns the claim.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Optional, Tuple, TYPE_CHECKING

from .core import (
    TransferAgent, ValidationError, PeriodWindowError, EligibilityError,
    AlreadyClaimedError, BelowMinimumError, ReserveUnderfundedError,
    EVENT_REWARD_CLAIMED, require_wallet_id,
)
from .clock import PeriodClock
from .config import MarketSettings
from .events import EventLog
from .guard import ReentrancyGuard
from .journal import StateJournal
from .participation import ParticipationTracker
from .rewards import RewardAccrualEngine

if TYPE_CHECKING:
    from .positions import PositionLedger


class ClaimGateway:
    """
    Validates and pays finalized rewards out of the reward reserve.

    Args:
        periods: Period clock (claims are only allowed for past periods)
        participation: Eligibility source
        rewards: Holder of the reward entries
        reserve: Transfer agent paying out reward tokens
        positions: If given, its trader cooldown also gates claims
    """

    def __init__(
        self,
        periods: PeriodClock,
        participation: ParticipationTracker,
        rewards: RewardAccrualEngine,
        reserve: TransferAgent,
        settings: Optional[MarketSettings] = None,
        guard: Optional[ReentrancyGuard] = None,
        journal: Optional[StateJournal] = None,
        events: Optional[EventLog] = None,
        positions: Optional['PositionLedger'] = None,
    ):
        self.periods = periods
        self.participation = participation
        self.rewards = rewards
        self.reserve = reserve
        self.settings = settings or MarketSettings()
        self.guard = guard or ReentrancyGuard()
        self.journal = journal or StateJournal()
        self.events = events or EventLog(self.journal, verbose=False)
        self.positions = positions

    def claim(self, trader: str, period: int) -> Decimal:
        """
        Pay trader's finalized reward for a concluded period.

        Returns:
            Amount paid, in reward base units

        Raises:
            PeriodWindowError: period is the current period or later
            EligibilityError: fewer than two actions in the period
            AlreadyClaimedError: reward already paid
            BelowMinimumError: reward is zero or under the minimum claim
            ReserveUnderfundedError: reserve cannot cover the payout
            CooldownError: trader acted too recently
            MarketPaused: claims are suspended
        """
        with self.guard("claim"):
            self.settings.require_active()
            trader = require_wallet_id(trader)
            period = _require_period(period)
            now = self.periods.now()
            if self.positions is not None:
                self.positions.check_cooldown(trader, now)

            if period >= self.periods.period_at(now):
                raise PeriodWindowError("Cannot claim for ongoing or future periods")
            if not self.participation.is_eligible(trader, period):
                raise EligibilityError("Not participated and not eligible for rewards")
            entry = self.rewards.reward_entry(trader, period)
            if entry.claimed:
                raise AlreadyClaimedError("Previously claimed for this period")
            if entry.amount <= 0 or entry.amount < self.settings.min_claim_threshold:
                raise BelowMinimumError(
                    f"Reward {entry.amount} is below the minimum claim "
                    f"{self.settings.min_claim_threshold}"
                )
            if self.reserve.available() < entry.amount:
                raise ReserveUnderfundedError(
                    f"Reserve holds {self.reserve.available()}, claim needs {entry.amount}"
                )

            with self.journal.atomic():
                self.rewards.mark_claimed(trader, period)
                self.events.emit(EVENT_REWARD_CLAIMED, now, trader=trader,
                                 period=period, amount=entry.amount)
                self.reserve.credit(trader, entry.amount)
            return entry.amount

    def set_reserve(self, reserve: TransferAgent) -> None:
        self.journal.record(vars(self), "reserve")
        self.reserve = reserve

    def claimable_rewards(self, trader: str, period: int) -> Tuple[bool, Decimal]:
        return self.rewards.claimable_rewards(trader, period)

    def is_eligible(self, trader: str, period: int) -> bool:
        return self.participation.is_eligible(trader, period)


def _require_period(period) -> int:
    if isinstance(period, bool) or not isinstance(period, int) or period < 0:
        raise ValidationError(f"period must be a non-negative int, got {period!r}")
    return period
