"""
helpers.py - Test helpers for markets and their collaborators

Provides:
- Amount helpers (usdc, rwd), token issuance and a funded-market builder
- Transfer agents that fail on demand, and an in-memory agent
- capture_state() for before/after comparisons
- Hypothesis strategies for random trading sequences
"""

from __future__ import annotations
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from hypothesis import strategies as st

from dexledger import (
    TransferFailed, InsufficientPositionError, InsufficientFunds,
    DerivativesMarket, ManualClock, MarketConfig, Ledger, Move, ExecuteResult,
    TransactionOrigin, OriginType, build_transaction,
    create_market, REWARD_RESERVE_WALLET, SYSTEM_WALLET, DEFAULT_PERIOD_DURATION,
)


START = datetime(2025, 1, 1)
PERIOD = DEFAULT_PERIOD_DURATION
TRADERS = ("trader1", "trader2", "trader3")


def usdc(whole) -> Decimal:
    """Whole USDC to base units (6 decimals)."""
    return (Decimal(str(whole)) * Decimal(10) ** 6).quantize(Decimal(1))


def rwd(whole) -> Decimal:
    """Whole reward tokens to base units (18 decimals)."""
    return (Decimal(str(whole)) * Decimal(10) ** 18).quantize(Decimal(1))


INITIAL_USDC = usdc(10_000)
INITIAL_RESERVE = rwd(1_000_000)


def build_market(
    traders=TRADERS,
    initial: Decimal = INITIAL_USDC,
    reserve: Decimal = INITIAL_RESERVE,
    config: Optional[MarketConfig] = None,
) -> DerivativesMarket:
    """Fresh market at START with funded traders and reward reserve."""
    market = create_market(
        admin="owner",
        config=config,
        clock=ManualClock(START),
        verbose=False,
    )
    for trader in traders:
        market.fund(trader, "USDC", initial)
    if reserve:
        market.fund(REWARD_RESERVE_WALLET, "RWD", reserve)
    return market


def advance(market: DerivativesMarket, seconds: int = 0, periods: int = 0) -> datetime:
    """Move the market's clock forward."""
    return market.periods.clock.advance(timedelta(seconds=seconds) + PERIOD * periods)


def mint(ledger: Ledger, wallet: str, qty, unit: str = "USDC", ref: str = "mint") -> ExecuteResult:
    """Issue qty of unit from the system wallet."""
    tx = build_transaction(ledger, [
        Move(Decimal(qty), unit, SYSTEM_WALLET, wallet, ref)
    ], TransactionOrigin(OriginType.SYSTEM, "mint"))
    return ledger.execute(tx)


# =============================================================================
# TRANSFER AGENTS
# =============================================================================

class MemoryTransferAgent:
    """TransferAgent over a plain dict. Records every call."""

    def __init__(self, balances: Optional[Dict[str, Decimal]] = None, custody: Decimal = Decimal("0")):
        self.balances: Dict[str, Decimal] = dict(balances or {})
        self.custody = custody
        self.calls: List[Tuple[str, str, Decimal]] = []

    def debit(self, wallet_id: str, amount: Decimal) -> None:
        held = self.balances.get(wallet_id, Decimal("0"))
        if held < amount:
            raise TransferFailed(f"{wallet_id} holds {held}, needs {amount}")
        self.balances[wallet_id] = held - amount
        self.custody += amount
        self.calls.append(("debit", wallet_id, amount))

    def credit(self, wallet_id: str, amount: Decimal) -> None:
        if self.custody < amount:
            raise TransferFailed(f"custody holds {self.custody}, needs {amount}")
        self.custody -= amount
        self.balances[wallet_id] = self.balances.get(wallet_id, Decimal("0")) + amount
        self.calls.append(("credit", wallet_id, amount))

    def available(self) -> Decimal:
        return self.custody


class FailingTransferAgent:
    """Reports a healthy balance but rejects transfers."""

    def __init__(self, available: Decimal = Decimal("10") ** 30, fail_debit: bool = True,
                 fail_credit: bool = True):
        self._available = available
        self.fail_debit = fail_debit
        self.fail_credit = fail_credit
        self.attempts = 0

    def debit(self, wallet_id: str, amount: Decimal) -> None:
        self.attempts += 1
        if self.fail_debit:
            raise TransferFailed(f"debit of {amount} from {wallet_id} refused")

    def credit(self, wallet_id: str, amount: Decimal) -> None:
        self.attempts += 1
        if self.fail_credit:
            raise TransferFailed(f"credit of {amount} to {wallet_id} refused")

    def available(self) -> Decimal:
        return self._available


# =============================================================================
# STATE COMPARISON
# =============================================================================

def capture_state(market: DerivativesMarket) -> Dict[str, Any]:
    """
    Snapshot of every piece of market and token ledger state.

    Stored records are immutable dataclasses, so shallow copies suffice.
    """
    state = {
        "period_positions": dict(market.positions._period_positions),
        "aggregates": dict(market.positions._aggregates),
        "pools": dict(market.positions._pools),
        "last_action": dict(market.positions._last_action),
        "participation": dict(market.participation._counts),
        "holders": dict(market.rewards._holders),
        "snapshots": dict(market.rewards._snapshots),
        "rewards": dict(market.rewards._rewards),
        "events": len(market.events.events),
        "settings": repr(market.settings),
        "reserve": repr(market.claims.reserve),
    }
    if market.ledger is not None:
        state["balances"] = {
            wallet: dict(bals) for wallet, bals in market.ledger.balances.items()
        }
        state["transactions"] = len(market.ledger.transaction_log)
    return state


# =============================================================================
# OPERATION SEQUENCES
# =============================================================================

def apply_operation(market: DerivativesMarket, op: Tuple[str, str, int, bool, int]) -> bool:
    """
    Advance the clock, then run one trading action.

    op is (action, trader, whole USDC, is_long, seconds to advance first).
    Returns True if the action succeeded, False if it was refused for lack
    of position or funds.
    """
    action, trader, whole, is_long, seconds = op
    advance(market, seconds)
    call = {
        "open": market.open_position,
        "close": market.close_position,
        "withdraw": market.withdraw_from_position,
    }[action]
    try:
        call(trader, usdc(whole), is_long)
    except (InsufficientPositionError, InsufficientFunds):
        return False
    return True


# (action, trader, whole USDC, is_long, seconds before the action)
operation = st.tuples(
    st.sampled_from(["open", "open", "close", "withdraw"]),
    st.sampled_from(TRADERS),
    st.integers(min_value=1, max_value=3000),
    st.booleans(),
    st.integers(min_value=0, max_value=15 * 86400),
)
operations = st.lists(operation, min_size=1, max_size=25)
