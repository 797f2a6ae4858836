"""
access.py - Roles and administrative operations

Authorization is a collaborator queried on every call (AccessControl
protocol), not state baked into the market. RoleRegistry is the in-process
implementation; anything with has_role(role, caller) can replace it.
"""

from __future__ import annotations
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional, Set

from .core import (
    AccessControl, Clock, TransferAgent, AuthorizationError,
    EVENT_REWARD_RATE_UPDATED, EVENT_COOLDOWN_PERIOD_UPDATED,
    EVENT_MIN_CLAIM_UPDATED, EVENT_RESERVE_UPDATED, EVENT_PAUSED,
    EVENT_UNPAUSED, EVENT_FUNDS_RESCUED,
    to_amount, require_wallet_id,
)
from .claims import ClaimGateway
from .config import MarketSettings, validate_reward_rate, validate_cooldown, validate_min_claim
from .events import EventLog
from .guard import ReentrancyGuard
from .journal import StateJournal


ADMIN_ROLE = "ADMIN"
PAUSER_ROLE = "PAUSER"


class RoleRegistry:
    """
    Role -> members map. The initial admin holds every role.

    Example:
        roles = RoleRegistry("owner")
        roles.grant_role("owner", PAUSER_ROLE, "ops")
    """

    def __init__(self, admin: str):
        admin = require_wallet_id(admin, "admin")
        self._members: Dict[str, Set[str]] = {
            ADMIN_ROLE: {admin},
            PAUSER_ROLE: {admin},
        }

    def has_role(self, role: str, caller: str) -> bool:
        return caller in self._members.get(role, ())

    def grant_role(self, caller: str, role: str, account: str) -> None:
        self._require_admin(caller)
        self._members.setdefault(role, set()).add(require_wallet_id(account, "account"))

    def revoke_role(self, caller: str, role: str, account: str) -> None:
        self._require_admin(caller)
        self._members.get(role, set()).discard(account)

    def members(self, role: str) -> Set[str]:
        return set(self._members.get(role, ()))

    def _require_admin(self, caller: str) -> None:
        if not self.has_role(ADMIN_ROLE, caller):
            raise AuthorizationError(f"{caller} is missing role {ADMIN_ROLE}")


class MarketAdmin:
    """
    Role-gated setters over the market's runtime settings.

    Every operation checks the caller first; a rejected call changes
    nothing and emits nothing.
    """

    def __init__(
        self,
        access: AccessControl,
        settings: MarketSettings,
        claims: ClaimGateway,
        clock: Clock,
        events: Optional[EventLog] = None,
        guard: Optional[ReentrancyGuard] = None,
        journal: Optional[StateJournal] = None,
    ):
        self.access = access
        self.settings = settings
        self.claims = claims
        self.clock = clock
        self.journal = journal or StateJournal()
        self.events = events or EventLog(self.journal, verbose=False)
        self.guard = guard or ReentrancyGuard()

    def _require(self, role: str, caller: str) -> None:
        if not self.access.has_role(role, caller):
            raise AuthorizationError(f"{caller} is missing role {role}")

    def _write(self, target: object, name: str, value: object) -> None:
        """Journaled attribute write, undone if the enclosing call fails."""
        self.journal.record(vars(target), name)
        setattr(target, name, value)

    def set_reward_rate(self, caller: str, rate: Decimal) -> None:
        self._require(ADMIN_ROLE, caller)
        rate = validate_reward_rate(rate)
        with self.guard("set_reward_rate"), self.journal.atomic():
            self._write(self.settings, "reward_rate", rate)
            self.events.emit(EVENT_REWARD_RATE_UPDATED, self.clock.now(), trader=caller, amount=rate)

    def set_cooldown_period(self, caller: str, cooldown: timedelta) -> None:
        self._require(ADMIN_ROLE, caller)
        cooldown = validate_cooldown(cooldown)
        with self.guard("set_cooldown_period"), self.journal.atomic():
            self._write(self.settings, "cooldown", cooldown)
            self.events.emit(EVENT_COOLDOWN_PERIOD_UPDATED, self.clock.now(), trader=caller,
                             amount=int(cooldown.total_seconds()))

    def set_min_claim_threshold(self, caller: str, threshold: Decimal) -> None:
        self._require(ADMIN_ROLE, caller)
        threshold = validate_min_claim(threshold)
        with self.guard("set_min_claim_threshold"), self.journal.atomic():
            self._write(self.settings, "min_claim_threshold", threshold)
            self.events.emit(EVENT_MIN_CLAIM_UPDATED, self.clock.now(), trader=caller, amount=threshold)

    def set_reward_reserve(self, caller: str, reserve: TransferAgent) -> None:
        self._require(ADMIN_ROLE, caller)
        with self.guard("set_reward_reserve"), self.journal.atomic():
            self.claims.set_reserve(reserve)
            self.events.emit(EVENT_RESERVE_UPDATED, self.clock.now(), trader=caller,
                             reserve=repr(reserve))

    def pause(self, caller: str) -> None:
        self._require(PAUSER_ROLE, caller)
        with self.guard("pause"), self.journal.atomic():
            self._write(self.settings, "paused", True)
            self.events.emit(EVENT_PAUSED, self.clock.now(), trader=caller)

    def unpause(self, caller: str) -> None:
        self._require(PAUSER_ROLE, caller)
        with self.guard("unpause"), self.journal.atomic():
            self._write(self.settings, "paused", False)
            self.events.emit(EVENT_UNPAUSED, self.clock.now(), trader=caller)

    def rescue_funds(self, caller: str, to: str, amount: Decimal) -> None:
        """
        Pay amount out of the reward reserve to an arbitrary wallet.

        Raises:
            AuthorizationError: caller is not an admin
            TransferFailed: reserve cannot cover amount
        """
        self._require(ADMIN_ROLE, caller)
        to = require_wallet_id(to, "recipient")
        amount = to_amount(amount)
        with self.guard("rescue_funds"):
            with self.journal.atomic():
                self.events.emit(EVENT_FUNDS_RESCUED, self.clock.now(), trader=caller,
                                 amount=amount, recipient=to)
                self.claims.reserve.credit(to, amount)
