"""
Core types for the period ledger and reward system.

This module provides the foundational data structures shared by every component:
1. Protocols: LedgerView, Clock, TransferAgent, AccessControl
2. Token ledger records: Move, PendingTransaction, Transaction, Unit
3. Market records: Position, PoolTotals, Snapshot, RewardEntry, MarketEvent
4. Exceptions: LedgerError and the market error taxonomy
5. Unit factories: collateral and reward tokens

Amounts are Decimal values in integral base units of their token
(500 USDC with 6 decimals is Decimal("500000000")).
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from enum import Enum
import hashlib
from typing import (
    Dict, Optional, Any, Protocol, Tuple, FrozenSet, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# All accounting is done in Decimal. The global context is configured once at
# module load; other code must use decimal.localcontext() for local changes.
#
#   - prec=50: sums of amounts (at most MAX_AMOUNT_DIGITS digits) stay exact
#   - rounding=ROUND_HALF_EVEN: default; reward truncation is integer floor division
#
_DEX_DECIMAL_CONTEXT = getcontext()
_DEX_DECIMAL_CONTEXT.prec = 50
_DEX_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance. Exempt from balance validation.
SYSTEM_WALLET = "system"

# Custody wallets owned by the market.
ESCROW_WALLET = "escrow"
REWARD_RESERVE_WALLET = "reward_reserve"

UNIT_TYPE_COLLATERAL = "COLLATERAL"
UNIT_TYPE_REWARD = "REWARD"

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

# Widest accepted amount in digits. Sums of amounts stay inside the 50-digit context.
MAX_AMOUNT_DIGITS = 40

# 30-day accounting periods.
DEFAULT_PERIOD_DURATION = timedelta(seconds=2_592_000)

# Reward base units per unit of size-share per second.
DEFAULT_REWARD_RATE = Decimal("100")

DEFAULT_COOLDOWN = timedelta(0)
DEFAULT_MIN_CLAIM_THRESHOLD = Decimal("0")

ZERO = Decimal("0")

# Market event actions (strings, matching the unit type convention).
EVENT_POSITION_OPENED = "POSITION_OPENED"
EVENT_POSITION_CLOSED = "POSITION_CLOSED"
EVENT_POSITION_WITHDRAWN = "POSITION_WITHDRAWN"
EVENT_REWARD_ACCRUED = "REWARD_ACCRUED"
EVENT_REWARD_CLAIMED = "REWARD_CLAIMED"
EVENT_REWARD_RATE_UPDATED = "REWARD_RATE_UPDATED"
EVENT_COOLDOWN_PERIOD_UPDATED = "COOLDOWN_PERIOD_UPDATED"
EVENT_MIN_CLAIM_UPDATED = "MIN_CLAIM_THRESHOLD_UPDATED"
EVENT_RESERVE_UPDATED = "REWARD_RESERVE_UPDATED"
EVENT_PAUSED = "PAUSED"
EVENT_UNPAUSED = "UNPAUSED"
EVENT_FUNDS_RESCUED = "FUNDS_RESCUED"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# (trader, period) key used by the per-period stores.
TraderPeriod = Tuple[str, int]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to token ledger state.

    Functions accepting a LedgerView declare that they only read balances.
    The Ledger class implements this protocol alongside its mutation methods.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """Return the balance of a unit in a wallet."""
        ...

    def is_registered(self, wallet_id: str) -> bool:
        """Return whether a wallet is known to the ledger."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of time for the market. Must never move backwards."""

    def now(self) -> datetime:
        ...


@runtime_checkable
class TransferAgent(Protocol):
    """
    Value-transfer collaborator.

    debit() pulls funds from a wallet into the agent's custody, credit() pays
    out of custody. Both raise on failure and leave balances untouched.
    """

    def debit(self, wallet_id: str, amount: Decimal) -> None:
        ...

    def credit(self, wallet_id: str, amount: Decimal) -> None:
        ...

    def available(self) -> Decimal:
        """Balance currently held in custody."""
        ...


@runtime_checkable
class AccessControl(Protocol):
    """Role lookup used by administrative operations."""

    def has_role(self, role: str, caller: str) -> bool:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a token transaction execution attempt.

    APPLIED: validated and applied.
    ALREADY_APPLIED: intent_id seen before (idempotent no-op).
    REJECTED: failed validation (insufficient funds, unknown wallet, ...).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a token transaction originated."""
    USER_ACTION = "user_action"    # Direct transfer between wallets
    ESCROW = "escrow"              # Position escrow or release
    REWARD = "reward"              # Reward payout or rescue
    SYSTEM = "system"              # Issuance, initial setup


class Side(Enum):
    """Position side. Long and short are tracked independently."""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def of(cls, is_long: bool) -> 'Side':
        return cls.LONG if is_long else cls.SHORT


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger and market errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a unit that is not registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a wallet that is not registered with the ledger."""
    pass


class TransferFailed(LedgerError):
    """Raised by a transfer agent when the token ledger rejects a move."""
    pass


class InsufficientFunds(TransferFailed):
    """Raised when a debit would take a wallet below the unit's minimum balance."""
    pass


class ValidationError(LedgerError, ValueError):
    """Non-positive or non-integral size, empty trader id, bad configuration."""
    pass


class InsufficientPositionError(LedgerError):
    """Close or withdraw for more than the trader's aggregate position."""
    pass


class PeriodWindowError(LedgerError):
    """Claim attempted for the current or a future period."""
    pass


class EligibilityError(LedgerError):
    """Trader did not participate enough in the period to claim."""
    pass


class AlreadyClaimedError(LedgerError):
    """Reward for this (trader, period) has already been paid."""
    pass


class BelowMinimumError(LedgerError):
    """Reward is zero or below the minimum claim threshold."""
    pass


class ReserveUnderfundedError(LedgerError):
    """Reward reserve cannot cover the payout."""
    pass


class CooldownError(LedgerError):
    """Trader acted again before the cooldown elapsed."""
    pass


class AuthorizationError(LedgerError):
    """Caller lacks the role required for an administrative operation."""
    pass


class ReentrancyError(LedgerError):
    """A state-changing entry point was entered while another was in flight."""
    pass


class MarketPaused(LedgerError):
    """Trading and claiming are suspended."""
    pass


# ============================================================================
# TOKEN LEDGER RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Provenance of a token transaction.

    Attributes:
        origin_type: ESCROW, REWARD, SYSTEM or USER_ACTION
        source_id: Component or user that built the transaction
        reference: Free-form reference (trader, period, ...)
    """
    origin_type: OriginType
    source_id: str
    reference: Optional[str] = None

    def __repr__(self) -> str:
        ref = f", ref={self.reference}" if self.reference else ""
        return f"Origin({self.origin_type.value}:{self.source_id}{ref})"


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: Positive, finite amount to transfer.
        unit_symbol: Unit being transferred (e.g., "USDC").
        source: Wallet debited.
        dest: Wallet credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if not self.quantity.is_finite():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity <= QUANTITY_EPSILON:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}->{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """Canonical string for a Decimal: Decimal("1.0") and Decimal("1") agree."""
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _compute_intent_id(moves: Tuple[Move, ...], origin: TransactionOrigin) -> str:
    """
    Deterministic content hash of a transaction's intent.

    Built only from moves and origin, never from timestamps, so the same
    business transaction always hashes the same. Used for idempotency.
    """
    parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.reference:
        parts.append(f"ref:{origin.reference}")
    ordered = sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
    )
    for m in ordered:
        parts.append(f"move:{_normalize_decimal(m.quantity)}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")
    return hashlib.sha256("|".join(parts).encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    Token transaction before execution (intent).

    intent_id is computed from the content when not supplied.
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(self, 'intent_id', _compute_intent_id(self.moves, self.origin))

    def is_empty(self) -> bool:
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves,
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction stamped with the view's current time.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: Moves to include
        origin: Transaction origin (defaults to a USER_ACTION origin)

    Example:
        tx = build_transaction(ledger, [
            Move(Decimal("100"), "USDC", "alice", "bob", "payment_001")
        ])
        ledger.execute(tx)
    """
    if origin is None:
        origin = TransactionOrigin(OriginType.USER_ACTION, "user")
    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Executed, immutable record of a token transaction (fact).

    Attributes:
        moves: Value transfers applied
        origin: Who built the transaction and why
        timestamp: When the PendingTransaction was created
        intent_id: Content hash (idempotency key)
        exec_id: Unique execution identifier
        ledger_name: Ledger that executed it
        execution_time: Ledger time at execution
        sequence_number: Monotonic within the ledger
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.contract_ids is None:
            object.__setattr__(self, 'contract_ids', frozenset(m.contract_id for m in self.moves))

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"Transaction({self.exec_id}, {self.origin}, [{moves}])"


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a token held in the ledger.

    Attributes:
        symbol: Short identifier (e.g., "USDC").
        name: Human-readable name.
        unit_type: COLLATERAL or REWARD.
        min_balance: Minimum balance in any non-system wallet.
        max_balance: Maximum balance in any wallet.
        decimal_places: Token decimals, informational; amounts are base units.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: int = 0

    def round(self, value: Decimal) -> Decimal:
        """Round to a whole number of base units."""
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return value.quantize(Decimal(1), rounding=ROUND_HALF_EVEN)

    def to_base_units(self, whole: Decimal) -> Decimal:
        """Convert a whole-token amount (e.g. 500 USDC) into base units."""
        return (Decimal(str(whole)) * (Decimal(10) ** self.decimal_places)).quantize(
            Decimal(1), rounding=ROUND_DOWN
        )


def collateral_token(symbol: str, name: str, decimal_places: int = 6) -> Unit:
    """
    Create the collateral unit positions are escrowed in.

    No overdraft: a trader can only escrow what they hold.
    """
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_COLLATERAL,
                decimal_places=decimal_places)


def reward_token(symbol: str, name: str, decimal_places: int = 18) -> Unit:
    """Create the unit rewards are paid in."""
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_REWARD,
                decimal_places=decimal_places)


# ============================================================================
# MARKET RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Position:
    """Long and short size for one trader in one period. Never netted."""
    long: Decimal = ZERO
    short: Decimal = ZERO

    def size(self, side: Side) -> Decimal:
        return self.long if side is Side.LONG else self.short

    def with_size(self, side: Side, value: Decimal) -> 'Position':
        if side is Side.LONG:
            return replace(self, long=value)
        return replace(self, short=value)


@dataclass(frozen=True, slots=True)
class PoolTotals:
    """Aggregate long/short size and total traded volume for one period."""
    long: Decimal = ZERO
    short: Decimal = ZERO
    volume: Decimal = ZERO

    def size(self, side: Side) -> Decimal:
        return self.long if side is Side.LONG else self.short

    def with_size(self, side: Side, value: Decimal) -> 'PoolTotals':
        if side is Side.LONG:
            return replace(self, long=value)
        return replace(self, short=value)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Time-weighting record for one trader in one period.

    Attributes:
        timestamp: Start of the not-yet-rewarded holding interval
        cumulative_size: Sum of the trader's action sizes this period
    """
    timestamp: datetime
    cumulative_size: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class RewardEntry:
    """
    Finalized reward for one (trader, period).

    amount only grows through accrual; claimed flips False -> True once.
    """
    amount: Decimal = ZERO
    claimed: bool = False

    def accrue(self, reward: Decimal) -> 'RewardEntry':
        return replace(self, amount=self.amount + reward)

    def mark_claimed(self) -> 'RewardEntry':
        if self.claimed:
            raise AlreadyClaimedError("Previously claimed for this period")
        return replace(self, claimed=True)

    def as_tuple(self) -> Tuple[bool, Decimal]:
        return self.claimed, self.amount


@dataclass(frozen=True, slots=True)
class MarketEvent:
    """
    Immutable audit record of a market action.

    Attributes:
        sequence: Monotonic position in the event log
        timestamp: Clock time of the action
        action: One of the EVENT_* constants
        trader: Acting trader (or admin caller)
        period: Period the action was booked in, if any
        amount: Size, reward or new setting value
        side: Position side for trading events
        details: Extra (key, value) pairs, frozen for hashability
    """
    sequence: int
    timestamp: datetime
    action: str
    trader: Optional[str] = None
    period: Optional[int] = None
    amount: Optional[Any] = None
    side: Optional[Side] = None
    details: Tuple[Tuple[str, Any], ...] = ()

    @property
    def details_dict(self) -> Dict[str, Any]:
        return dict(self.details)

    def __repr__(self) -> str:
        parts = [f"#{self.sequence}", self.action]
        if self.trader:
            parts.append(f"trader={self.trader}")
        if self.period is not None:
            parts.append(f"period={self.period}")
        if self.side is not None:
            parts.append(f"side={self.side.value}")
        if self.amount is not None:
            parts.append(f"amount={self.amount}")
        return f"MarketEvent({' '.join(parts)})"


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def to_amount(value: Any, what: str = "amount") -> Decimal:
    """
    Coerce a size or reward to a positive, whole number of base units.

    Raises:
        ValidationError: if not finite, not positive, fractional, or wider than
            MAX_AMOUNT_DIGITS digits
    """
    if isinstance(value, bool):
        raise ValidationError(f"{what} must be a number, got {value!r}")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except ArithmeticError:
            raise ValidationError(f"{what} must be a number, got {value!r}") from None
    if not value.is_finite():
        raise ValidationError(f"{what} must be finite, got {value}")
    if value <= 0:
        raise ValidationError(f"{what} must be positive, got {value}")
    if value.adjusted() >= MAX_AMOUNT_DIGITS:
        raise ValidationError(f"{what} must have at most {MAX_AMOUNT_DIGITS} digits, got {value}")
    if value != value.to_integral_value():
        raise ValidationError(f"{what} must be a whole number of base units, got {value}")
    return value


def require_wallet_id(wallet_id: Any, what: str = "trader") -> str:
    """Reject empty or non-string wallet identifiers."""
    if not isinstance(wallet_id, str) or not wallet_id.strip():
        raise ValidationError(f"{what} must be a non-empty wallet id, got {wallet_id!r}")
    return wallet_id


def whole_seconds(start: datetime, end: datetime) -> int:
    """Elapsed whole seconds from start to end (floor)."""
    return (end - start) // timedelta(seconds=1)
