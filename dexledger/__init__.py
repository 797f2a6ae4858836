"""
dexledger - Period ledger and last-mover rewards for a derivatives venue

Positions are booked per accounting period and in a running aggregate.
Whenever a trader acts, the previous "last mover" of that period is paid a
time-weighted share of volume; after the period ends, eligible traders can
claim what they accrued, exactly once.

Usage:
    from datetime import timedelta
    from decimal import Decimal
    from dexledger import create_market, REWARD_RESERVE_WALLET

    market = create_market(admin="owner", verbose=False)
    market.fund("alice", "USDC", Decimal("10000000000"))
    market.fund("bob", "USDC", Decimal("10000000000"))
    market.fund(REWARD_RESERVE_WALLET, "RWD", Decimal("1000000000000000000000000"))

    clock = market.periods.clock
    market.open_position("alice", Decimal("500000000"), is_long=True)
    clock.advance(timedelta(hours=1))
    market.open_position("bob", Decimal("500000000"), is_long=False)
    clock.advance(timedelta(hours=1))
    market.close_position("alice", Decimal("500000000"), is_long=True)

    clock.advance(timedelta(days=30))
    claimed, amount = market.claimable_rewards("alice", 0)
    market.claim_rewards("alice", 0)
"""

# Core types
from .core import (
    LedgerView,
    Clock,
    TransferAgent,
    AccessControl,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    ExecuteResult,
    Side,
    Unit,
    Position,
    PoolTotals,
    Snapshot,
    RewardEntry,
    MarketEvent,
    build_transaction,
    collateral_token,
    reward_token,
    to_amount,
    SYSTEM_WALLET,
    ESCROW_WALLET,
    REWARD_RESERVE_WALLET,
    UNIT_TYPE_COLLATERAL,
    UNIT_TYPE_REWARD,
    DEFAULT_PERIOD_DURATION,
    DEFAULT_REWARD_RATE,
    EVENT_POSITION_OPENED,
    EVENT_POSITION_CLOSED,
    EVENT_POSITION_WITHDRAWN,
    EVENT_REWARD_ACCRUED,
    EVENT_REWARD_CLAIMED,
    EVENT_REWARD_RATE_UPDATED,
    EVENT_COOLDOWN_PERIOD_UPDATED,
    EVENT_MIN_CLAIM_UPDATED,
    EVENT_RESERVE_UPDATED,
    EVENT_PAUSED,
    EVENT_UNPAUSED,
    EVENT_FUNDS_RESCUED,
)

# Errors
from .core import (
    LedgerError,
    InsufficientFunds,
    UnitNotRegistered,
    WalletNotRegistered,
    TransferFailed,
    ValidationError,
    InsufficientPositionError,
    PeriodWindowError,
    EligibilityError,
    AlreadyClaimedError,
    BelowMinimumError,
    ReserveUnderfundedError,
    CooldownError,
    AuthorizationError,
    ReentrancyError,
    MarketPaused,
)

# Token ledger and collaborators
from .ledger import Ledger, TransferHook
from .transfer import LedgerTransferAgent
from .clock import ManualClock, SystemClock, PeriodClock
from .access import RoleRegistry, MarketAdmin, ADMIN_ROLE, PAUSER_ROLE
from .config import MarketConfig, MarketSettings, load_config

# Market components
from .guard import ReentrancyGuard
from .journal import StateJournal
from .events import EventLog
from .participation import ParticipationTracker, MIN_ACTIONS_FOR_ELIGIBILITY
from .rewards import RewardAccrualEngine
from .positions import PositionLedger
from .claims import ClaimGateway
from .market import DerivativesMarket, create_market


__all__ = [
    # Core types
    'LedgerView', 'Clock', 'TransferAgent', 'AccessControl',
    'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin',
    'OriginType', 'ExecuteResult', 'Side', 'Unit',
    'Position', 'PoolTotals', 'Snapshot', 'RewardEntry', 'MarketEvent',
    'build_transaction', 'collateral_token', 'reward_token', 'to_amount',
    'SYSTEM_WALLET', 'ESCROW_WALLET', 'REWARD_RESERVE_WALLET',
    'UNIT_TYPE_COLLATERAL', 'UNIT_TYPE_REWARD',
    'DEFAULT_PERIOD_DURATION', 'DEFAULT_REWARD_RATE',
    'EVENT_POSITION_OPENED', 'EVENT_POSITION_CLOSED', 'EVENT_POSITION_WITHDRAWN',
    'EVENT_REWARD_ACCRUED', 'EVENT_REWARD_CLAIMED', 'EVENT_REWARD_RATE_UPDATED',
    'EVENT_COOLDOWN_PERIOD_UPDATED', 'EVENT_MIN_CLAIM_UPDATED', 'EVENT_RESERVE_UPDATED',
    'EVENT_PAUSED', 'EVENT_UNPAUSED', 'EVENT_FUNDS_RESCUED',

    # Errors
    'LedgerError', 'InsufficientFunds',
    'UnitNotRegistered', 'WalletNotRegistered', 'TransferFailed',
    'ValidationError', 'InsufficientPositionError', 'PeriodWindowError',
    'EligibilityError', 'AlreadyClaimedError', 'BelowMinimumError',
    'ReserveUnderfundedError', 'CooldownError', 'AuthorizationError',
    'ReentrancyError', 'MarketPaused',

    # Token ledger and collaborators
    'Ledger', 'TransferHook', 'LedgerTransferAgent',
    'ManualClock', 'SystemClock', 'PeriodClock',
    'RoleRegistry', 'MarketAdmin', 'ADMIN_ROLE', 'PAUSER_ROLE',
    'MarketConfig', 'MarketSettings', 'load_config',

    # Market components
    'ReentrancyGuard', 'StateJournal', 'EventLog',
    'ParticipationTracker', 'MIN_ACTIONS_FOR_ELIGIBILITY',
    'RewardAccrualEngine', 'PositionLedger', 'ClaimGateway',
    'DerivativesMarket', 'create_market',
]

__version__ = '1.0.0'
