"""Round aggregation: turn tick ledgers into round results and commit them."""

import copy
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from seatmarket.models import RoundResult, Session, Team, PHASE_PRE_PURCHASE, PHASE_SIMULATION
from seatmarket.simulation.config import SimulationConfig
from seatmarket.simulation.demand import (
    capacity_weighted_price,
    clamp,
    compute_market_shares,
    compute_total_demand,
    pooling_capacity,
    retail_price,
    round_half_up,
    team_capacity,
)
from seatmarket.simulation.rng import RandomSource

logger = logging.getLogger("seat_market.ledger")

# Legacy calculator operating costs
FIXED_COST_PER_SEAT = 20
VARIABLE_COST_PER_SOLD_SEAT = 15


def calculate_legacy_costs(
    team: Team,
    sold: int,
    config: SimulationConfig,
    pooling_price: float,
    rng: RandomSource
) -> float:
    """
    Round cost under the one-shot calculator.

    Fixed seats at the clearing price (or the list fix-seat price), a per-seat
    capacity charge, a per-sold-seat variable charge and pooled seats at the
    pooling price, times a N(0, costVolatility) shock and a fleet-size scale
    factor.
    """
    decisions = team["decisions"]
    fix_seats = decisions.get("fix_seats_allocated") or 0
    clearing_price = decisions.get("fix_seat_clearing_price")
    unit_price = clearing_price if clearing_price and clearing_price > 0 else config.fix_seat_price

    fix_seat_cost = fix_seats * unit_price
    fixed_costs = team_capacity(team, config) * FIXED_COST_PER_SEAT
    variable_costs = sold * VARIABLE_COST_PER_SOLD_SEAT

    pooled_used = max(0, min(pooling_capacity(team, config), sold - min(sold, fix_seats)))
    pooling_usage_cost = pooled_used * pooling_price

    cost_multiplier = 1 + rng.gauss(0, config.cost_volatility)
    scale_factor = clamp(1 - (config.total_aircraft_seats / 200) * 0.1, 0.85, 1.0)

    return (fix_seat_cost + fixed_costs + variable_costs + pooling_usage_cost) * cost_multiplier * scale_factor


def calculate_legacy_round_results(
    teams: List[Team],
    config: SimulationConfig,
    rng: RandomSource,
    pooling_price: Optional[float] = None
) -> List[Dict]:
    """
    One-shot round calculator used when a team has no tick ledger.

    Total demand is split by market share and capped by each team's capacity.

    Returns:
        One dict per team with sold, demand, revenue, cost and capacity
    """
    if not teams:
        return []

    if pooling_price is None:
        pooling_price = config.pooling_cost

    weighted_price = capacity_weighted_price(teams, config)
    total_demand = compute_total_demand(config, weighted_price, rng)
    shares = compute_market_shares(teams, config, rng)

    logger.debug(f"  Legacy calculator: total demand {total_demand} across {len(teams)} teams")

    results = []
    for team in teams:
        demand = round_half_up(total_demand * shares.get(team["team_id"], 0))
        capacity = team_capacity(team, config)
        sold = min(demand, capacity)
        revenue = sold * retail_price(team, config)
        cost = calculate_legacy_costs(team, sold, config, pooling_price, rng)
        results.append({
            "team_id": team["team_id"],
            "sold": sold,
            "demand": demand,
            "revenue": revenue,
            "cost": cost,
            "capacity": capacity,
            "insolvent": False
        })
    return results


def finalize_round(session: Session, rng: RandomSource) -> Tuple[Session, List[RoundResult]]:
    """
    Close the current round.

    Reads every team's tick ledger (falling back to the one-shot calculator
    for teams without one), derives unsold seats, market share and final
    insolvency, adds profit to team totals, advances the round counter and
    clears the ledgers. Works on a copy, so either every team is finalized or
    none is.

    Calling it outside the simulation phase changes nothing and returns no
    results; a round can only be finalized once.

    Args:
        session: Session in the simulation phase
        rng: Random source for the fallback calculator

    Returns:
        (updated session, round results)
    """
    if session["phase"] != PHASE_SIMULATION:
        logger.warning(
            f"finalize_round called in phase {session['phase']!r} "
            f"(round {session['round_number']}); nothing to finalize"
        )
        return session, []

    session = copy.deepcopy(session)
    config = session["config"]
    teams = session["teams"]
    ledgers = session["tick_ledgers"]
    round_number = session["round_number"]

    raw: Dict[str, Dict] = {}
    for team_id, ledger in ledgers.items():
        if team_id not in teams:
            continue
        raw[team_id] = {
            "team_id": team_id,
            "sold": ledger["sold"],
            "demand": ledger["demand"],
            "revenue": ledger["revenue"],
            "cost": ledger["cost"],
            "capacity": ledger["fix_allocated"] + ledger["pool_capacity"],
            "insolvent": ledger["insolvent"]
        }

    without_ledger = [team for team_id, team in teams.items() if team_id not in raw]
    if without_ledger:
        market = session.get("pooling_market")
        pooling_price = market["current_price"] if market else None
        logger.info(f"  {len(without_ledger)} team(s) without a tick ledger, using the one-shot calculator")
        for entry in calculate_legacy_round_results(without_ledger, config, rng, pooling_price):
            raw[entry["team_id"]] = entry

    total_sold = sum(entry["sold"] for entry in raw.values())

    results: List[RoundResult] = []
    for team_id, team in teams.items():
        entry = raw[team_id]
        revenue = round(entry["revenue"], 2)
        cost = round(entry["cost"], 2)
        profit = round(revenue - cost, 2)

        insolvent = entry["insolvent"]
        if not insolvent and round_number > 0:
            insolvent = profit < 0 and -profit > config.per_team_budget

        results.append({
            "team_id": team_id,
            "team_name": team["name"],
            "round_number": round_number,
            "sold": entry["sold"],
            "revenue": revenue,
            "cost": cost,
            "profit": profit,
            "unsold": max(0, entry["demand"] - entry["sold"]),
            "market_share": round(entry["sold"] / total_sold, 4) if total_sold > 0 else 0.0,
            "demand": entry["demand"],
            "avg_price": retail_price(team, config),
            "capacity": entry["capacity"],
            "insolvent": insolvent
        })

    # Commit
    for result in results:
        team = teams[result["team_id"]]
        team["total_profit"] = round(team["total_profit"] + result["profit"], 2)
        team["total_revenue"] = round(team["total_revenue"] + result["revenue"], 2)
        team["rounds_played"] += 1

    session["last_round_results"] = results
    session["round_history"] = session["round_history"] + results
    session["round_number"] = round_number + 1
    session["phase"] = PHASE_PRE_PURCHASE
    session["tick_ledgers"] = {}
    session["returned_demand"] = 0
    session["days_remaining"] = 0
    session["updated_at"] = datetime.now().isoformat()

    logger.info(
        f"Round {round_number} finalized: {total_sold} seats sold, "
        f"total profit {sum(r['profit'] for r in results):.2f}"
    )
    return session, results
