#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: One Reward Period Step by Step

A guided walk through a market: funding, trading, last-mover accrual,
period rollover and claiming. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup      - The market, funded wallets, the reward reserve
  4-6:  Trading    - Opening, the last-mover slot, closing
  7-8:  Claiming   - Rollover, eligibility, exactly-once payout
  9:    Safety     - Refused calls leave no trace, conservation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from dexledger import (
    DerivativesMarket, ManualClock, MarketConfig, create_market,
    ESCROW_WALLET, REWARD_RESERVE_WALLET,
    EligibilityError, AlreadyClaimedError, InsufficientPositionError, PeriodWindowError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    reward_rate: Decimal = Decimal("100")

    # Base units: USDC has 6 decimals, RWD has 18
    trader_usdc: Decimal = Decimal("10000") * 10 ** 6
    reserve_rwd: Decimal = Decimal("1000000") * 10 ** 18
    position_size: Decimal = Decimal("500") * 10 ** 6
    dwell: timedelta = timedelta(hours=1)


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(market: DerivativesMarket, wallets):
    for wallet in wallets:
        usdc = market.balance_of(wallet, "USDC")
        rwd = market.balance_of(wallet, "RWD")
        print(f"  {wallet:<16} USDC={usdc:>16}  RWD={rwd}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_create_market() -> DerivativesMarket:
    step_header(1, "The Market",
        "A market is a token ledger, a period clock and a reward engine.")

    print(">>> market = create_market(admin='owner', config=MarketConfig(...))")
    config = MarketConfig(reward_rate=CONFIG.reward_rate, start=CONFIG.start_time)
    market = create_market(admin="owner", config=config,
                           clock=ManualClock(CONFIG.start_time), verbose=True)

    section_header("Initial State")
    print(f"Periods:          {market.periods}")
    print(f"Current period:   {market.current_period()}")
    print(f"Settings:         {market.settings}")
    print(f"Units:            {market.ledger.list_units()}")
    print(f"Wallets:          {sorted(market.ledger.registered_wallets)}")
    return market


def step_02_fund_traders(market: DerivativesMarket) -> DerivativesMarket:
    step_header(2, "Funding Traders",
        "Collateral enters the economy from the system wallet.")

    for trader in ("alice", "bob", "carol"):
        market.fund(trader, "USDC", CONFIG.trader_usdc)

    section_header("Balances")
    show_balances(market, ["alice", "bob", "carol"])
    print(f"\nUSDC total supply (system wallet included): {market.ledger.total_supply('USDC')}")
    return market


def step_03_fund_reserve(market: DerivativesMarket) -> DerivativesMarket:
    step_header(3, "The Reward Reserve",
        "Claims are paid from a reserve wallet, never minted on demand.")

    market.fund(REWARD_RESERVE_WALLET, "RWD", CONFIG.reserve_rwd)
    print(f"Reserve holds: {market.reserve.available()} RWD base units")
    return market


# ============================================================================
# PHASE 2: TRADING (Steps 4-6)
# ============================================================================

def step_04_first_open(market: DerivativesMarket) -> DerivativesMarket:
    step_header(4, "The First Mover",
        "The first action in a period installs its trader as holder; nobody is paid yet.")

    market.open_position("alice", CONFIG.position_size, True)
    print(f"Holder of period 0:    {market.rewards.holder(0)}")
    print(f"alice claimable:       {market.claimable_rewards('alice', 0)}")
    print(f"Escrow custody:        {market.balance_of(ESCROW_WALLET, 'USDC')}")
    return market


def step_05_second_mover(market: DerivativesMarket) -> DerivativesMarket:
    step_header(5, "Changing Hands",
        "When someone else acts, the outgoing holder is paid for its dwell time.")

    market.periods.clock.advance(CONFIG.dwell)
    market.open_position("bob", CONFIG.position_size, False)

    section_header("Accrual")
    print("  reward = rate * seconds_held * holder_size / period_volume  (rounded down)")
    print(f"  {CONFIG.reward_rate} * {int(CONFIG.dwell.total_seconds())} * "
          f"{CONFIG.position_size} / {market.total_volume(0)}")
    print(f"\nalice claimable: {market.claimable_rewards('alice', 0)}")
    print(f"Holder now:      {market.rewards.holder(0)}")
    return market


def step_06_close(market: DerivativesMarket) -> DerivativesMarket:
    step_header(6, "Closing",
        "Closing releases collateral and is itself an action that changes the holder.")

    market.periods.clock.advance(CONFIG.dwell)
    market.close_position("alice", CONFIG.position_size, True)

    section_header("Over-closing is refused")
    try:
        market.close_position("alice", CONFIG.position_size, True)
    except InsufficientPositionError as exc:
        print(f"  refused: {exc}")

    section_header("Period 0 so far")
    print(f"  pools:  {market.pool_totals(0)}")
    print(f"  alice:  {market.claimable_rewards('alice', 0)} actions={market.participation.count('alice', 0)}")
    print(f"  bob:    {market.claimable_rewards('bob', 0)} actions={market.participation.count('bob', 0)}")
    show_balances(market, ["alice", "bob"])
    return market


# ============================================================================
# PHASE 3: CLAIMING (Steps 7-8)
# ============================================================================

def step_07_rollover(market: DerivativesMarket) -> DerivativesMarket:
    step_header(7, "Period Rollover",
        "Rewards can only be claimed once their period has ended.")

    try:
        market.claim_rewards("alice", 0)
    except PeriodWindowError as exc:
        print(f"  too early: {exc}")

    market.periods.clock.advance(market.periods.duration)
    print(f"\nCurrent period: {market.current_period()}")
    return market


def step_08_claims(market: DerivativesMarket) -> DerivativesMarket:
    step_header(8, "Claiming",
        "Eligible traders are paid once; a single action is not enough.")

    paid = market.claim_rewards("alice", 0)
    print(f"alice paid {paid} RWD base units")

    for trader in ("alice", "bob"):
        try:
            market.claim_rewards(trader, 0)
        except (AlreadyClaimedError, EligibilityError) as exc:
            print(f"  {trader} refused: {type(exc).__name__}: {exc}")

    show_balances(market, ["alice", "bob", REWARD_RESERVE_WALLET])
    return market


# ============================================================================
# PHASE 4: SAFETY (Step 9)
# ============================================================================

def step_09_conservation(market: DerivativesMarket) -> None:
    step_header(9, "Conservation",
        "Escrow always equals open exposure, and tokens are never created by trading.")

    result = market.verify_conservation()
    print(f"Market invariants valid: {result['valid']}")
    print(f"  escrow={result['escrow']} aggregate={result['aggregate']}")
    check = market.ledger.verify_double_entry({"USDC": Decimal("0"), "RWD": Decimal("0")})
    print(f"Token supplies: {check['supplies']}")
    print(f"Events recorded: {dict(market.events.counts())}")


def main():
    print("=" * 70)
    print("       DEXLEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    market = step_01_create_market()
    wait_for_enter()
    for step in (step_02_fund_traders, step_03_fund_reserve, step_04_first_open,
                 step_05_second_mover, step_06_close, step_07_rollover, step_08_claims):
        market = step(market)
        wait_for_enter()
    step_09_conservation(market)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See dexledger/rewards.py for the accrual rule
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
