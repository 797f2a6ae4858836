"""
ledger.py - Double-Entry Token Ledger

The token ledger holds every wallet's collateral and reward balances. The
market never touches balances directly; it escrows, releases and pays out
through transfer agents (transfer.py) that submit moves here.

Key responsibilities:
    - Implements LedgerView for read-only access
    - Executes transactions atomically (all moves succeed or all fail)
    - Content-hash idempotency: the same intent is never applied twice
    - Transfer hooks run after the moves; a failing hook unwinds them
    - Always logs: every applied transaction is kept in transaction_log
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Set, Optional, Tuple, Any
from decimal import Decimal

from .core import (
    Move, Transaction, Unit, PendingTransaction, ExecuteResult, SYSTEM_WALLET,
    UnitNotRegistered, WalletNotRegistered,
)


# Called with the applied Transaction before it is logged.
TransferHook = Callable[[Transaction], None]


class Ledger:
    """
    Double-entry token ledger with validation and audit trail.

    Thread Safety:
        Not thread-safe. The market serializes access with its reentrancy guard.

    Example:
        ledger = Ledger("tokens")
        ledger.register_unit(collateral_token("USDC", "USD Coin"))
        ledger.register_wallet("alice")

        tx = build_transaction(ledger, [
            Move(Decimal("1000"), "USDC", SYSTEM_WALLET, "alice", "mint_alice")
        ], origin=TransactionOrigin(OriginType.SYSTEM, "mint"))
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create a token ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time (default: 1970-01-01)
            verbose: Print applied/rejected transactions (default: True)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._next_sequence: int = 0
        self._transfer_hooks: List[TransferHook] = []

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Get the balance of a unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Total of a unit across all wallets, system wallet included.

        Wallets are summed in sorted order for a deterministic result.
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            (self.balances[w].get(unit_symbol, Decimal("0")) for w in sorted(self.registered_wallets)),
            Decimal("0"),
        )

    def verify_double_entry(
        self,
        expected_supplies: Optional[Dict[str, Decimal]] = None,
        tolerance: Decimal = Decimal("0")
    ) -> Dict[str, Any]:
        """
        Verify that every unit's total supply matches what is expected.

        Args:
            expected_supplies: Optional unit -> expected total
            tolerance: Maximum allowed difference

        Returns:
            Dict with 'valid', 'supplies' and 'discrepancies'.
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply
            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                difference = abs(current_supply - expected)
                if difference > tolerance:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': current_supply,
                        'difference': difference,
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': Decimal("0"),
                        'difference': abs(expected),
                        'error': 'unit not registered',
                    })

        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def add_transfer_hook(self, hook: TransferHook) -> None:
        """
        Register a callback run after each applied transaction's moves.

        Hooks model recipient callbacks of the underlying token. An exception
        raised by a hook unwinds the moves and propagates to the caller of
        execute().
        """
        self._transfer_hooks.append(hook)

    def remove_transfer_hook(self, hook: TransferHook) -> None:
        self._transfer_hooks.remove(hook)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}"""
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if the intent was executed before
            ExecuteResult.REJECTED if validation failed

        Raises:
            Whatever a transfer hook raises; the moves are unwound first.
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"REJECTED: {reason}")
            return ExecuteResult.REJECTED

        # Reserved before hooks run so a hook's own transfers get later numbers.
        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=pending.moves,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        logged = len(self.transaction_log)
        self._execute_moves(tx.moves)
        try:
            for hook in list(self._transfer_hooks):
                hook(tx)
        except Exception:
            self._unwind_moves(tx.moves)
            # Hand the number back unless a hook's own transfer was logged after it.
            if len(self.transaction_log) == logged:
                self._next_sequence = sequence
            raise

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            print(f"APPLIED: {tx!r}")
        return ExecuteResult.APPLIED

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a pending transaction.

        Checks: timestamp not in the future, units and wallets registered,
        resulting balances within each unit's min/max (system wallet exempt).

        Returns:
            (True, "") or (False, reason)
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        net: Dict[Tuple[str, str], Decimal] = {}
        for move in pending.moves:
            unit = self.units[move.unit_symbol]
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = unit.round(net.get(key_src, Decimal("0")) - move.quantity)
            net[key_dst] = unit.round(net.get(key_dst, Decimal("0")) + move.quantity)

        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_sym]
            proposed = unit.round(self.balances[wallet][unit_sym] + delta)
            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if proposed > unit.max_balance:
                return False, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        return True, ""

    def _apply_move(self, move: Move, sign: int) -> None:
        unit = self.units[move.unit_symbol]
        qty = move.quantity * sign
        self.balances[move.source][move.unit_symbol] = unit.round(
            self.balances[move.source][move.unit_symbol] - qty)
        self.balances[move.dest][move.unit_symbol] = unit.round(
            self.balances[move.dest][move.unit_symbol] + qty)

    def _execute_moves(self, moves) -> None:
        for move in moves:
            self._apply_move(move, 1)

    def _unwind_moves(self, moves) -> None:
        """Reverse moves in the opposite order they were applied."""
        for move in reversed(tuple(moves)):
            self._apply_move(move, -1)
