"""
transfer.py - Transfer agents over the token ledger

A LedgerTransferAgent owns one custody wallet for one unit. The market uses
two of them: the escrow agent (collateral held against open positions) and
the reserve agent (reward tokens paid out by claims).

Every debit/credit is its own token transaction. A unique contract_id per
call keeps the ledger's content-hash idempotency from collapsing two equal
transfers into one.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Optional

from .core import (
    Clock, Move, OriginType, TransactionOrigin, ExecuteResult,
    InsufficientFunds, TransferFailed, SYSTEM_WALLET, build_transaction,
)
from .ledger import Ledger


class LedgerTransferAgent:
    """
    TransferAgent backed by a custody wallet in a token Ledger.

    Example:
        escrow = LedgerTransferAgent(ledger, "USDC", "escrow", OriginType.ESCROW)
        escrow.debit("alice", Decimal("500000000"))   # alice -> escrow
        escrow.credit("alice", Decimal("500000000"))  # escrow -> alice
    """

    def __init__(
        self,
        ledger: Ledger,
        unit_symbol: str,
        custody_wallet: str,
        origin_type: OriginType = OriginType.ESCROW,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            ledger: Token ledger holding the balances
            unit_symbol: Unit this agent moves
            custody_wallet: Wallet funds are pulled into and paid out of
            origin_type: Recorded on every transaction for the audit trail
            clock: If given, the ledger's time is advanced to clock.now()
                   before each transfer so execution times line up
        """
        ledger.get_unit(unit_symbol)
        if not ledger.is_registered(custody_wallet):
            ledger.register_wallet(custody_wallet)
        self.ledger = ledger
        self.unit_symbol = unit_symbol
        self.custody_wallet = custody_wallet
        self.origin_type = origin_type
        self.clock = clock
        self._nonce = 0

    def debit(self, wallet_id: str, amount: Decimal) -> None:
        """Pull amount from wallet_id into custody."""
        self._transfer(wallet_id, self.custody_wallet, amount, "debit")

    def credit(self, wallet_id: str, amount: Decimal) -> None:
        """Pay amount out of custody to wallet_id."""
        self._transfer(self.custody_wallet, wallet_id, amount, "credit")

    def available(self) -> Decimal:
        return self.ledger.get_balance(self.custody_wallet, self.unit_symbol)

    def _transfer(self, source: str, dest: str, amount: Decimal, direction: str) -> None:
        if self.clock is not None:
            now = self.clock.now()
            if now > self.ledger.current_time:
                self.ledger.advance_time(now)

        self._nonce += 1
        counterparty = source if direction == "debit" else dest
        contract_id = f"{self.custody_wallet}:{direction}:{counterparty}:{self._nonce}"
        try:
            move = Move(amount, self.unit_symbol, source, dest, contract_id)
        except ValueError as exc:
            raise TransferFailed(f"Invalid {direction} of {amount} {self.unit_symbol}: {exc}") from exc

        if source != SYSTEM_WALLET and self.ledger.is_registered(source):
            held = self.ledger.get_balance(source, self.unit_symbol)
            if held - amount < self.ledger.get_unit(self.unit_symbol).min_balance:
                raise InsufficientFunds(
                    f"{source} holds {held} {self.unit_symbol}, {direction} needs {amount}"
                )

        origin = TransactionOrigin(self.origin_type, self.custody_wallet, reference=counterparty)
        result = self.ledger.execute(build_transaction(self.ledger, [move], origin))
        if result != ExecuteResult.APPLIED:
            raise TransferFailed(
                f"{direction} of {amount} {self.unit_symbol} {source}->{dest} {result.value}"
            )

    def __repr__(self) -> str:
        return f"LedgerTransferAgent({self.unit_symbol} @ {self.custody_wallet})"
