"""
participation.py - Per-period action counts and claim eligibility
"""

from __future__ import annotations
from typing import Dict, Optional

from .core import TraderPeriod
from .journal import StateJournal


# Opening and later closing (or two opens) in the same period qualifies.
MIN_ACTIONS_FOR_ELIGIBILITY = 2


class ParticipationTracker:
    """
    Counts state-changing actions per (trader, period).

    Opens and closes increment the count. A withdraw reverses one prior
    action (never below zero).
    """

    def __init__(self, journal: Optional[StateJournal] = None):
        self.journal = journal or StateJournal()
        self._counts: Dict[TraderPeriod, int] = {}

    def record_action(self, trader: str, period: int) -> int:
        key = (trader, period)
        self.journal.record(self._counts, key)
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    def reverse_action(self, trader: str, period: int) -> int:
        key = (trader, period)
        current = self._counts.get(key, 0)
        if current > 0:
            self.journal.record(self._counts, key)
            self._counts[key] = current - 1
            return current - 1
        return 0

    def count(self, trader: str, period: int) -> int:
        return self._counts.get((trader, period), 0)

    def is_eligible(self, trader: str, period: int) -> bool:
        return self.count(trader, period) >= MIN_ACTIONS_FOR_ELIGIBILITY
