"""Pooling market: tick-by-tick demand realization, matching and repricing."""

import copy
import logging
import math
from typing import Dict, List, Tuple, Any

from seatmarket.models import PoolingMarket, TickLedger, Session, PHASE_SIMULATION
from seatmarket.simulation.config import SimulationConfig
from seatmarket.simulation.demand import clamp, pooling_capacity, retail_price, round_half_up
from seatmarket.simulation.errors import PhaseError
from seatmarket.simulation.rng import RandomSource

logger = logging.getLogger("seat_market.pooling")

# Price dynamics
SHORTFALL_RATIO = 0.9
SURPLUS_RATIO = 1.1
MAX_PRICE_STEP = 20
ADJUSTMENT_WEIGHT = 0.35
MEAN_REVERSION_RATE = 0.02
TARGET_COST_MARKUP = 1.2


def init_pooling_market(
    config: SimulationConfig,
    reserve_capacity: int,
    offered_capacity: int
) -> PoolingMarket:
    """Create the pooling market for a new round."""
    return {
        "current_price": config.pooling_start_price,
        "total_capacity": reserve_capacity,
        "available_capacity": reserve_capacity,
        "offered_capacity": offered_capacity,
        "last_pooling_demand": 0,
        "price_history": []
    }


def init_tick_ledgers(session: Session, reserve_capacity: int) -> Dict[str, TickLedger]:
    """
    Open a ledger per team from its auction outcome and pooling allocation.

    The fixed-seat bill (allocated seats at the clearing price) is booked up
    front.
    """
    config = session["config"]
    ledgers: Dict[str, TickLedger] = {}

    for team_id, team in session["teams"].items():
        decisions = team["decisions"]
        fix_allocated = decisions.get("fix_seats_allocated") or 0
        clearing_price = decisions.get("fix_seat_clearing_price") or 0
        pool_cap = min(pooling_capacity(team, config), reserve_capacity)

        ledgers[team_id] = {
            "fix_allocated": fix_allocated,
            "fix_remaining": fix_allocated,
            "pool_capacity": pool_cap,
            "pool_remaining": pool_cap,
            "sold": 0,
            "pool_used": 0,
            "demand": 0,
            "revenue": 0.0,
            "cost": float(fix_allocated * clearing_price),
            "insolvent": False,
            "insolvent_at_tick": None
        }

    return ledgers


def split_demand(
    tick_demand: int,
    prices: Dict[str, float],
    price_elasticity: float
) -> Dict[str, int]:
    """
    Distribute a tick's demand across teams by softmax on price distance.

    weight_i = exp(-k * (price_i - avg_price)) with k = clamp(elasticity / 50,
    0.008, 0.08). Whole passengers are handed out by largest remainder, ties
    by team id, so the parts always add up to ``tick_demand``.
    """
    if not prices or tick_demand <= 0:
        return {team_id: 0 for team_id in prices}

    avg_price = sum(prices.values()) / len(prices)
    k = clamp(price_elasticity / 50, 0.008, 0.08)
    weights = {team_id: math.exp(-k * (price - avg_price)) for team_id, price in prices.items()}
    total_weight = sum(weights.values())

    exact = {team_id: tick_demand * w / total_weight for team_id, w in weights.items()}
    split = {team_id: int(math.floor(value)) for team_id, value in exact.items()}

    leftover = tick_demand - sum(split.values())
    by_remainder = sorted(exact, key=lambda team_id: (-(exact[team_id] - split[team_id]), team_id))
    for team_id in by_remainder[:leftover]:
        split[team_id] += 1

    return split


def update_pool_price(
    market: PoolingMarket,
    config: SimulationConfig,
    total_pool_remaining: int,
    pooling_demand: int,
    rng: RandomSource
) -> int:
    """
    Next pooling price from the supply/demand ratio.

    A ratio below 0.9 pushes the price up by up to 20, above 1.1 down by up to
    20, scaled by the shortfall or surplus. 35% of that step is blended with a
    2% drift toward 1.2x the pooling cost and U(-1, 1) noise; the result is
    rounded and clamped to the configured band.
    """
    price = market["current_price"]
    ratio = total_pool_remaining / max(1, pooling_demand)

    adjustment = 0.0
    if ratio < SHORTFALL_RATIO:
        adjustment = MAX_PRICE_STEP * min(1.0, 1 - ratio)
    elif ratio > SURPLUS_RATIO:
        adjustment = -MAX_PRICE_STEP * min(1.0, ratio - 1)

    drift = MEAN_REVERSION_RATE * (TARGET_COST_MARKUP * config.pooling_cost - price)
    noise = rng.uniform(-1, 1)

    new_price = price + ADJUSTMENT_WEIGHT * adjustment + drift + noise
    return int(clamp(round_half_up(new_price), config.pooling_price_min, config.pooling_price_max))


def pool_draw_order(alive: List[str], prices: Dict[str, float]) -> List[str]:
    """Order in which teams draw on the shared pool: cheapest first, then team id."""
    return sorted(alive, key=lambda team_id: (prices[team_id], team_id))


def advance_one_tick(session: Session, rng: RandomSource) -> Tuple[Session, bool]:
    """
    Advance the pooling market by one tick.

    Works on a copy; the session passed in is not modified.

    Args:
        session: Session in the simulation phase
        rng: Random source for demand, price noise

    Returns:
        (updated session, whether the simulated horizon is exhausted)
    """
    if session["phase"] != PHASE_SIMULATION:
        raise PhaseError(f"Cannot advance a tick in phase {session['phase']!r}")

    session = copy.deepcopy(session)
    config = session["config"]

    if session["days_remaining"] <= 0:
        return session, True

    if config.simulation_mode == "one_shot":
        # Legacy mode settles the whole round at finalize time
        session["days_remaining"] = 0
        return session, True

    tick = session["tick"] + 1
    ledgers = session["tick_ledgers"]
    market = session["pooling_market"]
    teams = session["teams"]

    # 1. Alive set
    alive = sorted(team_id for team_id, ledger in ledgers.items() if not ledger["insolvent"])
    prices = {team_id: retail_price(teams[team_id], config) for team_id in alive}

    # 2. Tick demand plus an even share of returned demand
    tick_demand = round_half_up(config.base_demand * rng.uniform(0.8, 1.2))
    returned_share = 0
    if alive and session["returned_demand"] > 0:
        ticks_left = max(1, math.ceil(session["days_remaining"] / config.days_per_tick))
        returned_share = min(
            session["returned_demand"],
            math.ceil(session["returned_demand"] / ticks_left)
        )
        session["returned_demand"] -= returned_share
        tick_demand += returned_share

    # 3. Split across alive teams
    team_demand = split_demand(tick_demand, prices, config.price_elasticity)

    # 4. Demand that fixed seats cannot cover
    pooling_demand = sum(
        max(0, team_demand[team_id] - ledgers[team_id]["fix_remaining"]) for team_id in alive
    )

    # 5. Reprice
    total_pool_remaining = min(
        sum(ledgers[team_id]["pool_remaining"] for team_id in alive),
        market["available_capacity"]
    )
    new_price = update_pool_price(market, config, total_pool_remaining, pooling_demand, rng)
    market["current_price"] = new_price
    market["last_pooling_demand"] = pooling_demand
    market["price_history"].append({"price": new_price, "demand": tick_demand, "tick": tick})
    if len(market["price_history"]) > config.price_history_limit:
        market["price_history"] = market["price_history"][-config.price_history_limit:]

    # 6. Match: own fixed seats first, then the shared pool in draw order
    unserved: Dict[str, int] = {}
    for team_id in alive:
        ledger = ledgers[team_id]
        demand = team_demand[team_id]
        from_fix = min(demand, ledger["fix_remaining"])
        ledger["fix_remaining"] -= from_fix
        ledger["demand"] += demand
        ledger["sold"] += from_fix
        ledger["revenue"] += from_fix * prices[team_id]
        unserved[team_id] = demand - from_fix

    for team_id in pool_draw_order(alive, prices):
        ledger = ledgers[team_id]
        from_pool = min(unserved[team_id], ledger["pool_remaining"], market["available_capacity"])
        if from_pool <= 0:
            continue
        ledger["pool_remaining"] -= from_pool
        market["available_capacity"] -= from_pool
        ledger["pool_used"] += from_pool
        ledger["sold"] += from_pool
        ledger["revenue"] += from_pool * prices[team_id]
        ledger["cost"] += from_pool * new_price

    # 7. Insolvency
    for team_id in alive:
        ledger = ledgers[team_id]
        profit = ledger["revenue"] - ledger["cost"]
        if profit < 0 and -profit > config.per_team_budget:
            ledger["insolvent"] = True
            ledger["insolvent_at_tick"] = tick
            session["returned_demand"] += ledger["sold"]
            session["returned_demand_total"] += ledger["sold"]
            logger.info(
                f"  Tick {tick}: {teams[team_id]['name']} insolvent "
                f"(loss {-profit:.2f} > budget {config.per_team_budget:.2f}), "
                f"{ledger['sold']} seats returned to the market"
            )

    # 8. Clock
    session["tick"] = tick
    session["days_remaining"] = max(0, session["days_remaining"] - config.days_per_tick)
    completed = session["days_remaining"] <= 0

    logger.debug(
        f"  Tick {tick}: demand={tick_demand} (returned {returned_share}), "
        f"pooling demand={pooling_demand}, pool left={market['available_capacity']}, "
        f"price={new_price}, days remaining={session['days_remaining']}"
    )

    return session, completed


def pooling_market_snapshot(session: Session) -> Dict[str, Any]:
    """Read-only view of the pooling market for external consumers."""
    market = session.get("pooling_market")
    if market is None:
        return {}
    return {
        "current_price": market["current_price"],
        "total_capacity": market["total_capacity"],
        "available_capacity": market["available_capacity"],
        "offered_capacity": market["offered_capacity"],
        "last_pooling_demand": market["last_pooling_demand"],
        "price_history": list(market["price_history"]),
        "tick": session["tick"],
        "days_remaining": session["days_remaining"]
    }
