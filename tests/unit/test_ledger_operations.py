"""
test_ledger_operations.py - Unit tests for the token Ledger

Tests:
- Ledger creation and configuration
- Wallet and unit registration
- Balance reads
- Time management
- Transaction execution, rejection and idempotency
- Transfer hooks
- Supply checks
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from dexledger import (
    Ledger, Move, ExecuteResult, TransactionOrigin, OriginType,
    build_transaction, collateral_token,
    WalletNotRegistered, UnitNotRegistered, SYSTEM_WALLET,
)

from tests.helpers import mint as _mint


class TestLedgerCreation:
    """Tests for Ledger initialization."""

    def test_create_ledger_with_options(self):
        t = datetime(2025, 1, 1, 9, 30)
        ledger = Ledger(name="tokens", initial_time=t, verbose=False)
        assert ledger.name == "tokens"
        assert ledger.current_time == t
        assert ledger.verbose is False

    def test_system_wallet_registered(self):
        ledger = Ledger("test", verbose=False)
        assert ledger.is_registered(SYSTEM_WALLET)


class TestRegistration:
    """Tests for wallet and unit registration."""

    def test_register_wallet(self, empty_ledger):
        assert empty_ledger.register_wallet("alice") == "alice"
        assert empty_ledger.is_registered("alice")

    def test_register_duplicate_wallet_raises(self, empty_ledger):
        empty_ledger.register_wallet("alice")
        with pytest.raises(ValueError, match="already registered"):
            empty_ledger.register_wallet("alice")

    def test_register_unit(self, empty_ledger):
        empty_ledger.register_unit(collateral_token("USDC", "USD Coin"))
        assert empty_ledger.list_units() == ["USDC"]
        assert empty_ledger.get_unit("USDC").decimal_places == 6

    def test_register_duplicate_unit_raises(self, empty_ledger):
        empty_ledger.register_unit(collateral_token("USDC", "USD Coin"))
        with pytest.raises(ValueError, match="already registered"):
            empty_ledger.register_unit(collateral_token("USDC", "USD Coin"))

    def test_register_unit_verbose_prints(self, capsys):
        ledger = Ledger("test", verbose=True)
        ledger.register_unit(collateral_token("USDC", "USD Coin"))
        assert "Registered: USDC" in capsys.readouterr().out

    def test_unknown_unit_and_wallet(self, token_ledger):
        with pytest.raises(UnitNotRegistered):
            token_ledger.get_unit("EUR")
        with pytest.raises(WalletNotRegistered):
            token_ledger.get_balance("carol", "USDC")
        with pytest.raises(UnitNotRegistered):
            token_ledger.get_balance("alice", "EUR")


class TestBalances:

    def test_initial_balance_zero(self, token_ledger):
        assert token_ledger.get_balance("alice", "USDC") == Decimal("0")

    def test_system_wallet_goes_negative_on_issue(self, token_ledger):
        _mint(token_ledger, "alice", "500")
        assert token_ledger.get_balance("alice", "USDC") == Decimal("500")
        assert token_ledger.get_balance(SYSTEM_WALLET, "USDC") == Decimal("-500")


class TestTime:

    def test_advance_time(self, token_ledger):
        t = token_ledger.current_time + timedelta(hours=1)
        token_ledger.advance_time(t)
        assert token_ledger.current_time == t

    def test_cannot_go_backwards(self, token_ledger):
        with pytest.raises(ValueError, match="backwards"):
            token_ledger.advance_time(token_ledger.current_time - timedelta(seconds=1))


class TestExecute:
    """Tests for transaction execution."""

    def test_mint_applies(self, token_ledger):
        assert _mint(token_ledger, "alice", "1000") == ExecuteResult.APPLIED
        assert token_ledger.get_balance("alice", "USDC") == Decimal("1000")
        assert token_ledger.get_balance(SYSTEM_WALLET, "USDC") == Decimal("-1000")
        assert len(token_ledger.transaction_log) == 1

    def test_overdraft_rejected(self, token_ledger):
        tx = build_transaction(token_ledger, [
            Move(Decimal("1"), "USDC", "alice", "bob", "pay")
        ])
        assert token_ledger.execute(tx) == ExecuteResult.REJECTED
        assert token_ledger.get_balance("bob", "USDC") == Decimal("0")
        assert token_ledger.transaction_log == []

    def test_unregistered_wallet_rejected(self, token_ledger):
        tx = build_transaction(token_ledger, [
            Move(Decimal("1"), "USDC", SYSTEM_WALLET, "carol", "pay")
        ])
        assert token_ledger.execute(tx) == ExecuteResult.REJECTED

    def test_future_timestamp_rejected(self, token_ledger):
        from dexledger import PendingTransaction
        pending = PendingTransaction(
            (Move(Decimal("1"), "USDC", SYSTEM_WALLET, "alice", "m"),),
            TransactionOrigin(OriginType.SYSTEM, "mint"),
            token_ledger.current_time + timedelta(seconds=1),
        )
        assert token_ledger.execute(pending) == ExecuteResult.REJECTED

    def test_duplicate_intent_already_applied(self, token_ledger):
        assert _mint(token_ledger, "alice", "10", ref="m1") == ExecuteResult.APPLIED
        assert _mint(token_ledger, "alice", "10", ref="m1") == ExecuteResult.ALREADY_APPLIED
        assert token_ledger.get_balance("alice", "USDC") == Decimal("10")

    def test_sequence_numbers_monotonic(self, token_ledger):
        _mint(token_ledger, "alice", "1", ref="a")
        _mint(token_ledger, "bob", "1", ref="b")
        seqs = [tx.sequence_number for tx in token_ledger.transaction_log]
        assert seqs == [0, 1]

    def test_multi_move_all_or_nothing(self, token_ledger):
        _mint(token_ledger, "alice", "10")
        tx = build_transaction(token_ledger, [
            Move(Decimal("10"), "USDC", "alice", "bob", "leg1"),
            Move(Decimal("5"), "USDC", "alice", "bob", "leg2"),
        ])
        assert token_ledger.execute(tx) == ExecuteResult.REJECTED
        assert token_ledger.get_balance("alice", "USDC") == Decimal("10")


class TestTransferHooks:
    """Hooks run after the moves; a failing hook unwinds them."""

    def test_hook_sees_applied_transaction(self, token_ledger):
        seen = []
        token_ledger.add_transfer_hook(
            lambda tx: seen.append(token_ledger.get_balance("alice", "USDC"))
        )
        _mint(token_ledger, "alice", "10")
        assert seen == [Decimal("10")]

    def test_failing_hook_unwinds_and_raises(self, token_ledger):
        def hook(tx):
            raise RuntimeError("recipient refused")

        token_ledger.add_transfer_hook(hook)
        with pytest.raises(RuntimeError, match="refused"):
            _mint(token_ledger, "alice", "10")
        assert token_ledger.get_balance("alice", "USDC") == Decimal("0")
        assert token_ledger.get_balance(SYSTEM_WALLET, "USDC") == Decimal("0")
        assert token_ledger.transaction_log == []

        # Intent was not recorded, so it can be retried once the hook is gone
        token_ledger.remove_transfer_hook(hook)
        assert _mint(token_ledger, "alice", "10") == ExecuteResult.APPLIED

    def test_unwound_transaction_leaves_no_sequence_gap(self, token_ledger):
        _mint(token_ledger, "alice", "1", ref="a")

        def hook(tx):
            raise RuntimeError("recipient refused")

        token_ledger.add_transfer_hook(hook)
        with pytest.raises(RuntimeError):
            _mint(token_ledger, "bob", "1", ref="b")
        token_ledger.remove_transfer_hook(hook)

        _mint(token_ledger, "bob", "1", ref="b")
        seqs = [tx.sequence_number for tx in token_ledger.transaction_log]
        assert seqs == [0, 1]


class TestSupply:

    def test_total_supply_conserved(self, token_ledger):
        _mint(token_ledger, "alice", "100")
        tx = build_transaction(token_ledger, [Move(Decimal("40"), "USDC", "alice", "bob", "pay")])
        token_ledger.execute(tx)
        assert token_ledger.total_supply("USDC") == Decimal("0")
        result = token_ledger.verify_double_entry({"USDC": Decimal("0"), "RWD": Decimal("0")})
        assert result["valid"]

    def test_verify_double_entry_reports_discrepancy(self, token_ledger):
        _mint(token_ledger, "alice", "5")
        result = token_ledger.verify_double_entry({"USDC": Decimal("5"), "EUR": Decimal("1")})
        assert not result["valid"]
        assert {d["unit"] for d in result["discrepancies"]} == {"USDC", "EUR"}

