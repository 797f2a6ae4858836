"""
market.py - Market facade and factory

DerivativesMarket wires one clock, one reentrancy guard, one journal and one
event log into the position ledger, participation tracker, reward engine,
claim gateway and admin. Components share those four objects, so a guard
held by a trade blocks a claim re-entered from a transfer hook, and a
failed call rolls back state in every component at once.

create_market() builds a self-contained market over an in-process token
ledger. Production callers can construct DerivativesMarket directly with
their own TransferAgent and AccessControl implementations.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .core import (
    AccessControl, TransferAgent, Move, TransactionOrigin, OriginType,
    ExecuteResult, PoolTotals, LedgerError, TransferFailed, ZERO,
    SYSTEM_WALLET, ESCROW_WALLET, REWARD_RESERVE_WALLET,
    build_transaction, collateral_token, reward_token, to_amount, require_wallet_id,
)
from .access import MarketAdmin, RoleRegistry
from .claims import ClaimGateway
from .clock import ManualClock, PeriodClock
from .config import MarketConfig, MarketSettings
from .events import EventLog
from .guard import ReentrancyGuard
from .journal import StateJournal
from .ledger import Ledger
from .participation import ParticipationTracker
from .positions import PositionLedger
from .rewards import RewardAccrualEngine
from .transfer import LedgerTransferAgent


class DerivativesMarket:
    """
    Period-indexed position ledger with last-mover rewards.

    Attributes:
        periods: PeriodClock resolving the active period
        positions: PositionLedger (open, close, withdraw and reads)
        participation: ParticipationTracker
        rewards: RewardAccrualEngine
        claims: ClaimGateway
        admin: MarketAdmin (role-gated setters)
        events: EventLog shared by all components
        ledger: Token ledger, when built by create_market()
    """

    def __init__(
        self,
        periods: PeriodClock,
        escrow: TransferAgent,
        reserve: TransferAgent,
        access: AccessControl,
        settings: Optional[MarketSettings] = None,
        verbose: bool = True,
        ledger: Optional[Ledger] = None,
    ):
        self.periods = periods
        self.escrow = escrow
        self.settings = settings or MarketSettings()
        self.journal = StateJournal()
        self.guard = ReentrancyGuard("market")
        self.events = EventLog(self.journal, verbose=verbose)
        self.ledger = ledger
        self._fund_nonce = 0

        self.participation = ParticipationTracker(self.journal)
        self.rewards = RewardAccrualEngine(self.settings, self.journal, self.events)
        self.positions = PositionLedger(
            periods, escrow, self.participation, self.rewards,
            self.settings, self.guard, self.journal, self.events,
        )
        self.claims = ClaimGateway(
            periods, self.participation, self.rewards, reserve,
            self.settings, self.guard, self.journal, self.events,
            positions=self.positions,
        )
        self.admin = MarketAdmin(
            access, self.settings, self.claims, periods.clock,
            self.events, self.guard, self.journal,
        )

    # ========================================================================
    # TRADING AND CLAIMS
    # ========================================================================

    def open_position(self, trader: str, amount, is_long: bool) -> int:
        return self.positions.open_position(trader, amount, is_long)

    def close_position(self, trader: str, amount, is_long: bool) -> int:
        return self.positions.close_position(trader, amount, is_long)

    def withdraw_from_position(self, trader: str, amount, is_long: bool) -> int:
        return self.positions.withdraw_from_position(trader, amount, is_long)

    def claim_rewards(self, trader: str, period: int) -> Decimal:
        return self.claims.claim(trader, period)

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def reserve(self) -> TransferAgent:
        return self.claims.reserve

    def current_period(self) -> int:
        return self.periods.current_period()

    def get_trader_position(self, trader: str, is_long: bool) -> Decimal:
        return self.positions.get_trader_position(trader, is_long)

    def get_trader_position_for_period(self, trader: str, period: int, is_long: bool) -> Decimal:
        return self.positions.get_trader_position_for_period(trader, period, is_long)

    def pool_totals(self, period: int) -> PoolTotals:
        return self.positions.pool_totals(period)

    def total_volume(self, period: int) -> Decimal:
        return self.positions.total_volume(period)

    def claimable_rewards(self, trader: str, period: int) -> Tuple[bool, Decimal]:
        return self.rewards.claimable_rewards(trader, period)

    def is_eligible(self, trader: str, period: int) -> bool:
        return self.participation.is_eligible(trader, period)

    def balance_of(self, wallet_id: str, unit_symbol: str) -> Decimal:
        return self._require_ledger().get_balance(wallet_id, unit_symbol)

    # ========================================================================
    # SETUP AND CHECKS
    # ========================================================================

    def fund(self, wallet_id: str, unit_symbol: str, amount) -> None:
        """
        Issue tokens from the system wallet. Registers wallet_id if needed.

        Raises:
            LedgerError: If the market has no token ledger
            TransferFailed: If the ledger rejects the issuance
        """
        ledger = self._require_ledger()
        wallet_id = require_wallet_id(wallet_id, "wallet")
        amount = to_amount(amount)
        if not ledger.is_registered(wallet_id):
            ledger.register_wallet(wallet_id)
        now = self.periods.now()
        if now > ledger.current_time:
            ledger.advance_time(now)

        self._fund_nonce += 1
        move = Move(amount, unit_symbol, SYSTEM_WALLET, wallet_id,
                    f"fund:{wallet_id}:{self._fund_nonce}")
        origin = TransactionOrigin(OriginType.SYSTEM, "fund", reference=wallet_id)
        result = ledger.execute(build_transaction(ledger, [move], origin))
        if result != ExecuteResult.APPLIED:
            raise TransferFailed(f"Funding {wallet_id} with {amount} {unit_symbol} {result.value}")

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check the market's accounting invariants.

        - escrow custody equals the sum of all trader aggregates
        - in every period, each pool side is at most the sum of that
          period's per-trader positions (equal unless a close was clamped)

        Returns:
            Dict with 'valid', 'escrow', 'aggregate' and 'violations'.
        """
        violations = []
        escrow = self.escrow.available()
        aggregate = self.positions.total_aggregate()
        if escrow != aggregate:
            violations.append({'check': 'escrow', 'expected': aggregate, 'actual': escrow})

        for period in self.positions.periods_touched():
            pool = self.positions.pool_totals(period)
            held = self.positions.positions_in_period(period).values()
            long_sum = sum((p.long for p in held), ZERO)
            short_sum = sum((p.short for p in held), ZERO)
            if pool.long > long_sum or pool.short > short_sum:
                violations.append({
                    'check': 'pool', 'period': period,
                    'pool': (pool.long, pool.short), 'positions': (long_sum, short_sum),
                })

        return {
            'valid': not violations,
            'escrow': escrow,
            'aggregate': aggregate,
            'violations': violations,
        }

    def _require_ledger(self) -> Ledger:
        if self.ledger is None:
            raise LedgerError("Market was built without a token ledger")
        return self.ledger


def create_market(
    admin: str = "owner",
    config: Optional[MarketConfig] = None,
    clock: Optional[ManualClock] = None,
    verbose: bool = True,
    name: str = "dex",
) -> DerivativesMarket:
    """
    Build a market over a fresh token ledger.

    The ledger gets a collateral unit (6 decimals) and a reward unit
    (18 decimals) named by the config, plus the escrow and reward reserve
    custody wallets. The reserve starts empty; fund it with
    market.fund(REWARD_RESERVE_WALLET, reward_symbol, amount).

    Example:
        market = create_market(verbose=False)
        market.fund("alice", "USDC", Decimal("10000000000"))
        market.open_position("alice", Decimal("500000000"), is_long=True)
    """
    config = config or MarketConfig()
    clock = clock or ManualClock(config.start or datetime(2025, 1, 1))
    start = config.start if config.start is not None else clock.now()

    ledger = Ledger(name, initial_time=clock.now(), verbose=verbose)
    ledger.register_unit(collateral_token(config.collateral_symbol, "Collateral"))
    ledger.register_unit(reward_token(config.reward_symbol, "Reward"))

    escrow = LedgerTransferAgent(ledger, config.collateral_symbol, ESCROW_WALLET,
                                 OriginType.ESCROW, clock)
    reserve = LedgerTransferAgent(ledger, config.reward_symbol, REWARD_RESERVE_WALLET,
                                  OriginType.REWARD, clock)
    periods = PeriodClock(clock, start, config.period_duration)

    return DerivativesMarket(
        periods, escrow, reserve, RoleRegistry(admin),
        settings=MarketSettings.from_config(config),
        verbose=verbose,
        ledger=ledger,
    )
