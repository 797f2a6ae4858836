"""
test_transfer_agent.py - Unit tests for LedgerTransferAgent
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from dexledger import (
    LedgerTransferAgent, ManualClock, OriginType, TransferAgent,
    TransferFailed, InsufficientFunds, ESCROW_WALLET,
)
from tests.helpers import START, mint


@pytest.fixture
def escrow(token_ledger):
    mint(token_ledger, "alice", "1000")
    return LedgerTransferAgent(token_ledger, "USDC", ESCROW_WALLET)


class TestLedgerTransferAgent:

    def test_satisfies_protocol(self, escrow):
        assert isinstance(escrow, TransferAgent)

    def test_registers_custody_wallet(self, token_ledger):
        LedgerTransferAgent(token_ledger, "RWD", "reserve", OriginType.REWARD)
        assert token_ledger.is_registered("reserve")

    def test_debit_moves_into_custody(self, escrow, token_ledger):
        escrow.debit("alice", Decimal("400"))
        assert token_ledger.get_balance("alice", "USDC") == Decimal("600")
        assert escrow.available() == Decimal("400")

    def test_credit_pays_out_of_custody(self, escrow, token_ledger):
        escrow.debit("alice", Decimal("400"))
        escrow.credit("bob", Decimal("150"))
        assert token_ledger.get_balance("bob", "USDC") == Decimal("150")
        assert escrow.available() == Decimal("250")

    def test_equal_transfers_are_not_collapsed(self, escrow, token_ledger):
        logged = len(token_ledger.transaction_log)
        escrow.debit("alice", Decimal("100"))
        escrow.debit("alice", Decimal("100"))
        assert escrow.available() == Decimal("200")
        assert len(token_ledger.transaction_log) == logged + 2

    def test_insufficient_funds(self, escrow, token_ledger):
        with pytest.raises(InsufficientFunds, match="alice holds 1000"):
            escrow.debit("alice", Decimal("1001"))
        assert token_ledger.get_balance("alice", "USDC") == Decimal("1000")

    def test_custody_cannot_overdraw(self, escrow):
        with pytest.raises(InsufficientFunds):
            escrow.credit("alice", Decimal("1"))

    def test_unregistered_wallet_fails(self, escrow):
        with pytest.raises(TransferFailed, match="rejected"):
            escrow.debit("carol", Decimal("1"))

    def test_invalid_amount_fails(self, escrow):
        with pytest.raises(TransferFailed, match="Invalid debit"):
            escrow.debit("alice", Decimal("0"))

    def test_origin_recorded(self, escrow, token_ledger):
        escrow.debit("alice", Decimal("1"))
        tx = token_ledger.transaction_log[-1]
        assert tx.origin.origin_type is OriginType.ESCROW
        assert tx.origin.reference == "alice"

    def test_clock_advances_ledger_time(self, token_ledger):
        clock = ManualClock(START)
        mint(token_ledger, "alice", "10")
        agent = LedgerTransferAgent(token_ledger, "USDC", ESCROW_WALLET, clock=clock)
        clock.advance(timedelta(hours=2))
        agent.debit("alice", Decimal("1"))
        assert token_ledger.current_time == START + timedelta(hours=2)
        assert token_ledger.transaction_log[-1].execution_time == START + timedelta(hours=2)
