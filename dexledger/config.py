"""
config.py - Market configuration

MarketConfig is fixed at construction (period geometry, token symbols).
MarketSettings holds the values administrators may change at runtime
(reward rate, cooldown, minimum claim, pause flag). Components read the
settings object on every call, so an admin change takes effect on the next
action without rebuilding anything.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional

from .core import (
    ValidationError, MarketPaused,
    DEFAULT_PERIOD_DURATION, DEFAULT_REWARD_RATE, DEFAULT_COOLDOWN,
    DEFAULT_MIN_CLAIM_THRESHOLD,
)


@dataclass(frozen=True, slots=True)
class MarketConfig:
    """
    Immutable construction parameters.

    Attributes:
        period_duration: Length of every accounting period
        reward_rate: Initial reward base units per size-share per second
        cooldown: Initial minimum time between a trader's actions
        min_claim_threshold: Initial minimum payable reward
        collateral_symbol: Unit positions are escrowed in
        reward_symbol: Unit rewards are paid in
        start: Beginning of period 0 (None: the clock's time at construction)
    """
    period_duration: timedelta = DEFAULT_PERIOD_DURATION
    reward_rate: Decimal = DEFAULT_REWARD_RATE
    cooldown: timedelta = DEFAULT_COOLDOWN
    min_claim_threshold: Decimal = DEFAULT_MIN_CLAIM_THRESHOLD
    collateral_symbol: str = "USDC"
    reward_symbol: str = "RWD"
    start: Optional[datetime] = None

    def __post_init__(self):
        if self.period_duration <= timedelta(0):
            raise ValidationError(f"period_duration must be positive, got {self.period_duration}")
        validate_reward_rate(self.reward_rate)
        validate_cooldown(self.cooldown)
        validate_min_claim(self.min_claim_threshold)
        if not self.collateral_symbol or not self.reward_symbol:
            raise ValidationError("collateral_symbol and reward_symbol are required")
        if self.collateral_symbol == self.reward_symbol:
            raise ValidationError("collateral and reward units must differ")


class MarketSettings:
    """Admin-owned runtime values. Mutated only through MarketAdmin."""

    def __init__(
        self,
        reward_rate: Decimal = DEFAULT_REWARD_RATE,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        min_claim_threshold: Decimal = DEFAULT_MIN_CLAIM_THRESHOLD,
        paused: bool = False,
    ):
        self.reward_rate = validate_reward_rate(reward_rate)
        self.cooldown = validate_cooldown(cooldown)
        self.min_claim_threshold = validate_min_claim(min_claim_threshold)
        self.paused = paused

    @classmethod
    def from_config(cls, config: MarketConfig) -> 'MarketSettings':
        return cls(
            reward_rate=config.reward_rate,
            cooldown=config.cooldown,
            min_claim_threshold=config.min_claim_threshold,
        )

    def require_active(self) -> None:
        if self.paused:
            raise MarketPaused("Market is paused")

    def __repr__(self) -> str:
        return (
            f"MarketSettings(rate={self.reward_rate}, cooldown={self.cooldown}, "
            f"min_claim={self.min_claim_threshold}, paused={self.paused})"
        )


def validate_reward_rate(rate: Decimal) -> Decimal:
    if not isinstance(rate, Decimal) or not rate.is_finite() or rate < 0:
        raise ValidationError(f"reward_rate must be a non-negative Decimal, got {rate!r}")
    return rate


def validate_cooldown(cooldown: timedelta) -> timedelta:
    if not isinstance(cooldown, timedelta) or cooldown < timedelta(0):
        raise ValidationError(f"cooldown must be a non-negative timedelta, got {cooldown!r}")
    return cooldown


def validate_min_claim(threshold: Decimal) -> Decimal:
    if not isinstance(threshold, Decimal) or not threshold.is_finite() or threshold < 0:
        raise ValidationError(f"min_claim_threshold must be a non-negative Decimal, got {threshold!r}")
    return threshold


def _as_decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, float)):
        raise ValidationError(f"{key}: use a string or int, not {type(value).__name__}")
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"{key}: not a number: {value!r}") from None


def _as_duration(value: Any, key: str) -> timedelta:
    """timedelta passes through; int/str values are seconds."""
    if isinstance(value, timedelta):
        return value
    seconds = _as_decimal(value, key)
    if seconds != seconds.to_integral_value():
        raise ValidationError(f"{key}: seconds must be whole, got {value!r}")
    return timedelta(seconds=int(seconds))


def _as_datetime(value: Any, key: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"{key}: not an ISO timestamp: {value!r}") from None
    raise ValidationError(f"{key}: expected datetime or ISO string, got {value!r}")


_CONVERTERS = {
    "period_duration": _as_duration,
    "reward_rate": _as_decimal,
    "cooldown": _as_duration,
    "min_claim_threshold": _as_decimal,
    "collateral_symbol": lambda v, k: str(v),
    "reward_symbol": lambda v, k: str(v),
    "start": _as_datetime,
}


def load_config(mapping: Mapping[str, Any]) -> MarketConfig:
    """
    Build a MarketConfig from plain values (e.g. parsed JSON or TOML).

    Durations are whole seconds, amounts are strings or ints, start is an
    ISO-8601 timestamp. Missing keys take the defaults.

    Example:
        config = load_config({"period_duration": 86400, "reward_rate": "250"})

    Raises:
        ValidationError: On unknown keys or unconvertible values
    """
    unknown = set(mapping) - set(_CONVERTERS)
    if unknown:
        raise ValidationError(f"Unknown config keys: {sorted(unknown)}")
    kwargs = {key: _CONVERTERS[key](value, key) for key, value in mapping.items()}
    return MarketConfig(**kwargs)
