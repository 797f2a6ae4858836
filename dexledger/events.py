"""
events.py - Market audit trail

The event log is to the market what the transaction log is to the token
ledger: every successful state change leaves exactly one record, and a call
that fails leaves none (appends are journaled and rolled back with the rest
of the call).
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from .core import MarketEvent, Side
from .journal import StateJournal


class EventLog:
    """
    Append-only list of MarketEvent records.

    With verbose=True each event is also printed as it is emitted.
    """

    def __init__(self, journal: Optional[StateJournal] = None, verbose: bool = True):
        self.events: List[MarketEvent] = []
        self.journal = journal or StateJournal()
        self.verbose = verbose

    def emit(
        self,
        action: str,
        timestamp: datetime,
        trader: Optional[str] = None,
        period: Optional[int] = None,
        amount: Optional[Any] = None,
        side: Optional[Side] = None,
        **details: Any,
    ) -> MarketEvent:
        event = MarketEvent(
            sequence=len(self.events),
            timestamp=timestamp,
            action=action,
            trader=trader,
            period=period,
            amount=amount,
            side=side,
            details=tuple(sorted(details.items())),
        )
        self.journal.record_append(self.events)
        self.events.append(event)
        if self.verbose:
            print(f"[{timestamp.isoformat()}] {event!r}")
        return event

    def filter(self, action: Optional[str] = None, trader: Optional[str] = None,
               period: Optional[int] = None) -> List[MarketEvent]:
        """Events matching every given criterion, in emission order."""
        return [
            e for e in self.events
            if (action is None or e.action == action)
            and (trader is None or e.trader == trader)
            and (period is None or e.period == period)
        ]

    def counts(self) -> Dict[str, int]:
        result: Dict[str, int] = {}
        for e in self.events:
            result[e.action] = result.get(e.action, 0) + 1
        return result

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)
