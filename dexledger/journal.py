"""
journal.py - Undo journal for all-or-nothing market calls

Components record the previous value of every dict slot (or list length)
before writing it. If the enclosing atomic() block raises, the journal walks
its entries backwards and restores them, the same way a ledger unwinds
moves: newest change first.

Outside an atomic() block record() is a no-op, so read paths and tests that
drive components directly pay nothing.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Iterator, List, MutableMapping, Optional, Tuple


_MISSING = object()


class StateJournal:
    """
    Records old values so a failed call can be rolled back.

    Example:
        journal = StateJournal()
        with journal.atomic():
            journal.record(balances, "alice")
            balances["alice"] = new_value
            release_funds()   # raises -> balances["alice"] restored
    """

    def __init__(self):
        self._entries: Optional[List[Tuple[str, Any, Any, Any]]] = None
        self._depth = 0

    @property
    def active(self) -> bool:
        return self._entries is not None

    def record(self, store: MutableMapping, key: Any) -> None:
        """Remember store[key] (or its absence) before it is overwritten."""
        if self._entries is None:
            return
        old = store[key] if key in store else _MISSING
        self._entries.append(("item", store, key, old))

    def record_append(self, items: list) -> None:
        """Remember a list's length before something is appended to it."""
        if self._entries is None:
            return
        self._entries.append(("list", items, len(items), None))

    @contextmanager
    def atomic(self) -> Iterator['StateJournal']:
        """
        All-or-nothing block. Nested blocks join the outermost one.

        On any exception every recorded change is undone and the exception
        propagates unchanged.
        """
        if self._entries is not None:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._entries = []
        try:
            yield self
        except BaseException:
            self._rollback()
            raise
        finally:
            self._entries = None

    def _rollback(self) -> None:
        for kind, target, key, old in reversed(self._entries):
            if kind == "list":
                del target[key:]
            elif old is _MISSING:
                target.pop(key, None)
            else:
                target[key] = old
