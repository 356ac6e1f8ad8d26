"""Demand model: total market demand and per-team market shares."""

import math
from typing import Dict, Iterable, List

from seatmarket.models import Team
from seatmarket.simulation.config import SimulationConfig
from seatmarket.simulation.rng import RandomSource


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def retail_price(team: Team, config: SimulationConfig) -> float:
    """A team's retail price, or the reference price when none is set."""
    price = team["decisions"].get("price")
    if price is None or price <= 0:
        return config.reference_price
    return float(price)


def pooling_capacity(team: Team, config: SimulationConfig) -> int:
    """Seats a team backs with pooled inventory, from its pooling percentage."""
    share = (team["decisions"].get("pooling_allocation") or 0) / 100
    return round_half_up(config.total_aircraft_seats * share)


def team_capacity(team: Team, config: SimulationConfig) -> int:
    """Allocated fix seats plus pooling capacity."""
    fix_seats = team["decisions"].get("fix_seats_allocated") or 0
    return fix_seats + pooling_capacity(team, config)


def capacity_weighted_price(teams: Iterable[Team], config: SimulationConfig) -> float:
    """Average retail price across teams, weighted by each team's capacity."""
    teams = list(teams)
    capacities = [team_capacity(team, config) for team in teams]
    total_capacity = max(1, sum(capacities))
    weighted = sum(retail_price(team, config) * cap for team, cap in zip(teams, capacities))
    return weighted / total_capacity


def compute_market_shares(
    teams: List[Team],
    config: SimulationConfig,
    rng: RandomSource
) -> Dict[str, float]:
    """
    Split the market between teams by price and capacity competitiveness.

    Each team's competitiveness is a price factor (elasticity applied to its
    price relative to the reference price) times a capacity factor. The raw
    share is jittered by U(0.85, 1.15), clamped to [0.01, 0.99] and the
    result renormalized so the shares sum to 1.

    Args:
        teams: Teams competing in the market
        config: Simulation configuration
        rng: Random source for the jitter

    Returns:
        Mapping of team_id to market share
    """
    shares: Dict[str, float] = {}
    if not teams:
        return shares

    factors = []
    for team in teams:
        ratio = clamp(retail_price(team, config) / config.reference_price, 0.1, 3.0)
        price_factor = clamp(ratio ** config.price_elasticity, 0.05, 3.0)
        capacity_factor = clamp(team_capacity(team, config) / 50, 0.1, 2.0)
        factors.append(price_factor * capacity_factor)

    total_competitiveness = sum(factors)

    for team, factor in zip(teams, factors):
        raw_share = factor / total_competitiveness
        jitter = rng.uniform(0.85, 1.15)
        shares[team["team_id"]] = clamp(raw_share * jitter, 0.01, 0.99)

    total_shares = sum(shares.values())
    return {team_id: share / total_shares for team_id, share in shares.items()}


def compute_total_demand(
    config: SimulationConfig,
    weighted_price: float,
    rng: RandomSource
) -> int:
    """
    Total passengers in the market for one round.

    baseDemand is shocked by N(0, demandVolatility) and a seasonal U(0.9, 1.1)
    factor, then scaled by the market price index raised to the market-level
    elasticity. Never less than 10.
    """
    shock = rng.gauss(0, config.demand_volatility)
    seasonal = rng.uniform(0.9, 1.1)
    demand_base = max(10.0, config.base_demand * (1 + shock) * seasonal)

    price_index = clamp((weighted_price or config.reference_price) / config.reference_price, 0.5, 1.5)
    demand = demand_base * price_index ** config.market_price_elasticity_effective
    return max(10, round_half_up(demand))
