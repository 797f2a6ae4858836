"""
conftest.py - Shared pytest fixtures for market tests

Provides common fixtures used across unit, conformance and functional tests:
- Token ledgers (empty, with collateral and reward units)
- Funded markets over a manual clock
- A market with one concluded reward period
"""

import pytest

from dexledger import Ledger, collateral_token, reward_token

from tests.helpers import START, build_market, advance, usdc


@pytest.fixture
def empty_ledger():
    """Fresh token ledger with no registrations."""
    return Ledger("test", START, verbose=False)


@pytest.fixture
def token_ledger():
    """Token ledger with USDC and RWD units and two wallets."""
    ledger = Ledger("test", START, verbose=False)
    ledger.register_unit(collateral_token("USDC", "USD Coin"))
    ledger.register_unit(reward_token("RWD", "Reward"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def market():
    """Market with three traders holding 10,000 USDC and a funded reserve."""
    return build_market()


@pytest.fixture
def clock(market):
    return market.periods.clock


@pytest.fixture
def concluded_market():
    """
    Period 0 concluded with known rewards (rate 100):

        t=0     trader1 opens long 500 USDC
        t=3600  trader2 opens short 500 USDC  -> trader1 accrues 180000
        t=7200  trader1 closes long 500 USDC  -> trader2 accrues 120000

    trader1 acted twice (eligible), trader2 once (not eligible). The clock
    is then moved into period 1.
    """
    market = build_market()
    market.open_position("trader1", usdc(500), True)
    advance(market, 3600)
    market.open_position("trader2", usdc(500), False)
    advance(market, 3600)
    market.close_position("trader1", usdc(500), True)
    advance(market, periods=1)
    return market
