"""
guard.py - Reentrancy guard

Every entry point that issues an external transfer holds this guard for its
whole duration. A transfer callback that tries to enter any guarded entry
point while the first call is in flight is rejected with ReentrancyError.
"""

from __future__ import annotations
import threading

from .core import ReentrancyError


class ReentrancyGuard:
    """
    Scoped, non-reentrant lock.

    Acquisition never blocks: execution is serialized, so a lock that is
    already held can only mean a nested call from the same flow.

    Example:
        guard = ReentrancyGuard()
        with guard:
            escrow.debit(trader, amount)
    """

    def __init__(self, name: str = "market"):
        self.name = name
        self._lock = threading.Lock()
        self._owner = None

    @property
    def held(self) -> bool:
        return self._lock.locked()

    def acquire(self, owner: str = "") -> None:
        if not self._lock.acquire(blocking=False):
            raise ReentrancyError(
                f"Reentrant call into {self.name}"
                + (f" ({owner} while {self._owner} in flight)" if owner else "")
            )
        self._owner = owner or None

    def release(self) -> None:
        self._owner = None
        self._lock.release()

    def __call__(self, owner: str) -> '_NamedHold':
        """Hold the guard under a name, for clearer error messages."""
        return _NamedHold(self, owner)

    def __enter__(self) -> 'ReentrancyGuard':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class _NamedHold:
    def __init__(self, guard: ReentrancyGuard, owner: str):
        self._guard = guard
        self._owner = owner

    def __enter__(self) -> ReentrancyGuard:
        self._guard.acquire(self._owner)
        return self._guard

    def __exit__(self, exc_type, exc, tb) -> None:
        self._guard.release()
