"""Simulation configuration parameters."""

import logging
import math
import re
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("seat_market.config")

RESERVE_POLICIES = ("fixed", "team_scaled")
SIMULATION_MODES = ("ticks", "one_shot")

_INT_FIELDS = {
    "base_demand",
    "total_aircraft_seats",
    "days_per_tick",
    "departure_horizon_days",
    "pooling_start_price",
    "pooling_price_min",
    "pooling_price_max",
    "price_history_limit",
    "version",
}
_OPTIONAL_FLOAT_FIELDS = {"market_price_elasticity"}
_STR_FIELDS = {"reserve_policy", "simulation_mode"}
_OPTIONAL_STR_FIELDS = {"name", "description"}


class ConfigValidationError(ValueError):
    """Raised when a configuration value is present but not acceptable."""


def _to_snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


@dataclass(frozen=True)
class SimulationConfig:
    """Immutable configuration snapshot for one game session."""

    # Metadata
    name: Optional[str] = None
    description: Optional[str] = None

    # Demand model
    base_demand: int = 100
    demand_volatility: float = 0.1
    price_elasticity: float = -1.5
    market_price_elasticity: Optional[float] = None  # Defaults to price_elasticity * 0.6
    reference_price: float = 199.0
    market_concentration: float = 0.7

    # Aircraft and fix-seat auction
    total_aircraft_seats: int = 1000
    fix_seat_price: float = 60.0  # Unit cost assumed when no clearing price exists
    fix_seat_min_bid: float = 80.0
    per_team_budget: float = 20000.0

    # Pooling reserve withheld from the auction
    pooling_reserve_ratio: float = 0.3
    reserve_policy: str = "fixed"
    reserve_ratio_per_team: float = 0.05  # Only used by the "team_scaled" policy
    max_reserve_ratio: float = 0.9

    # Pooling market
    pooling_cost: float = 30.0
    cost_volatility: float = 0.05
    pooling_start_price: int = 150
    pooling_price_min: int = 80
    pooling_price_max: int = 300
    price_history_limit: int = 30

    # Simulated time
    days_per_tick: int = 1
    departure_horizon_days: int = 30

    # "ticks" runs the pooling market; "one_shot" uses the legacy round calculator
    simulation_mode: str = "ticks"

    version: int = 1

    def __post_init__(self):
        """Validate configuration after initialization."""
        non_negative = {
            "base_demand": self.base_demand,
            "demand_volatility": self.demand_volatility,
            "fix_seat_price": self.fix_seat_price,
            "fix_seat_min_bid": self.fix_seat_min_bid,
            "per_team_budget": self.per_team_budget,
            "pooling_cost": self.pooling_cost,
            "cost_volatility": self.cost_volatility,
            "reserve_ratio_per_team": self.reserve_ratio_per_team,
        }
        for key, value in non_negative.items():
            if value < 0:
                raise ConfigValidationError(f"{key} must be >= 0, got {value}")

        positive = {
            "total_aircraft_seats": self.total_aircraft_seats,
            "reference_price": self.reference_price,
            "days_per_tick": self.days_per_tick,
            "departure_horizon_days": self.departure_horizon_days,
            "pooling_price_min": self.pooling_price_min,
            "price_history_limit": self.price_history_limit,
            "version": self.version,
        }
        for key, value in positive.items():
            if value <= 0:
                raise ConfigValidationError(f"{key} must be > 0, got {value}")

        if not 0 <= self.pooling_reserve_ratio < 1:
            raise ConfigValidationError(
                f"pooling_reserve_ratio must be in [0, 1), got {self.pooling_reserve_ratio}"
            )
        if not 0 <= self.max_reserve_ratio < 1:
            raise ConfigValidationError(
                f"max_reserve_ratio must be in [0, 1), got {self.max_reserve_ratio}"
            )
        if not 0 <= self.market_concentration <= 1:
            raise ConfigValidationError(
                f"market_concentration must be in [0, 1], got {self.market_concentration}"
            )
        if self.pooling_price_min > self.pooling_price_max:
            raise ConfigValidationError(
                f"pooling_price_min ({self.pooling_price_min}) > pooling_price_max ({self.pooling_price_max})"
            )
        if not self.pooling_price_min <= self.pooling_start_price <= self.pooling_price_max:
            raise ConfigValidationError(
                f"pooling_start_price ({self.pooling_start_price}) outside "
                f"[{self.pooling_price_min}, {self.pooling_price_max}]"
            )
        if self.reserve_policy not in RESERVE_POLICIES:
            raise ConfigValidationError(
                f"reserve_policy must be one of {RESERVE_POLICIES}, got {self.reserve_policy!r}"
            )
        if self.simulation_mode not in SIMULATION_MODES:
            raise ConfigValidationError(
                f"simulation_mode must be one of {SIMULATION_MODES}, got {self.simulation_mode!r}"
            )

    @property
    def market_price_elasticity_effective(self) -> float:
        """Market-level elasticity, derived from the team-level one when unset."""
        if self.market_price_elasticity is None:
            return self.price_elasticity * 0.6
        return self.market_price_elasticity

    @property
    def ticks_per_round(self) -> int:
        return math.ceil(self.departure_horizon_days / self.days_per_tick)

    def reserve_ratio_for(self, team_count: int) -> float:
        """Fraction of aircraft seats withheld from the auction for the pooling market."""
        if self.reserve_policy == "team_scaled":
            scaled = self.pooling_reserve_ratio + self.reserve_ratio_per_team * max(0, team_count - 1)
            return min(self.max_reserve_ratio, scaled)
        return self.pooling_reserve_ratio

    def capacity_cap_for(self, team_count: int) -> int:
        """Seats offered in the fix-seat auction."""
        ratio = self.reserve_ratio_for(team_count)
        # 1e-9 absorbs float error such as 1000 * (1 - 0.3) = 699.999...
        return max(0, math.floor(self.total_aircraft_seats * (1 - ratio) + 1e-9))

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return asdict(self)

    def apply_patch(self, patch: Mapping[str, Any]) -> "SimulationConfig":
        """
        Merge a partial update into a new snapshot with the next version number.

        The current snapshot is left untouched. Malformed patch values keep
        the current setting.

        Raises:
            ConfigValidationError: If the merged configuration is invalid
        """
        merged = self.to_dict()
        for key, value in _normalize_keys(patch).items():
            if key in merged and _coerce(key, value) is _MALFORMED:
                logger.warning(
                    f"Malformed value for {key}: {value!r}; keeping {merged[key]!r}"
                )
                continue
            merged[key] = value
        merged["version"] = self.version + 1
        return SimulationConfig.from_dict(merged)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SimulationConfig":
        """
        Create configuration from a dictionary.

        Keys may be snake_case or camelCase. Missing or malformed values fall
        back to their documented defaults; present but invalid values (negative
        capacities, inverted price bands and so on) raise ConfigValidationError.
        """
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}

        for key, value in _normalize_keys(data or {}).items():
            if key not in known:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            coerced = _coerce(key, value)
            if coerced is _MALFORMED:
                logger.warning(
                    f"Malformed value for {key}: {value!r}; using default {known[key].default!r}"
                )
                continue
            kwargs[key] = coerced

        return cls(**kwargs)


_MALFORMED = object()


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {_to_snake(str(key)): value for key, value in data.items()}


def _coerce(key: str, value: Any) -> Any:
    """Coerce a raw value to the field's type, or return _MALFORMED."""
    if key in _OPTIONAL_STR_FIELDS:
        return None if value is None else str(value)
    if key in _STR_FIELDS:
        return value if isinstance(value, str) and value else _MALFORMED

    if value is None:
        # An explicit None only means something for optional numbers
        return None if key in _OPTIONAL_FLOAT_FIELDS else _MALFORMED
    if isinstance(value, bool):
        return _MALFORMED

    try:
        number = float(value)
    except (TypeError, ValueError):
        return _MALFORMED
    if not math.isfinite(number):
        return _MALFORMED

    if key in _INT_FIELDS:
        if not number.is_integer():
            return _MALFORMED
        return int(number)
    return number
