"""Phase state machine: prePurchase -> simulation -> prePurchase, once per round."""

import copy
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from seatmarket.models import (
    RoundResult,
    Session,
    Team,
    TeamDecisionUpdate,
    TeamRegistration,
    PHASE_PRE_PURCHASE,
    PHASE_SIMULATION,
)
from seatmarket.simulation.auction import run_fix_seat_auction
from seatmarket.simulation.config import SimulationConfig
from seatmarket.simulation.demand import pooling_capacity
from seatmarket.simulation.errors import PhaseError, UnknownTeamError
from seatmarket.simulation.ledger import finalize_round
from seatmarket.simulation.pooling import advance_one_tick, init_pooling_market, init_tick_ledgers
from seatmarket.simulation.rng import RandomSource

logger = logging.getLogger("seat_market.phases")

# Decisions that are locked once bidding closes
BID_FIELDS = ("fix_seats_requested", "fix_seat_bid_price", "pooling_allocation")


def _require_phase(session: Session, phase: str, action: str) -> None:
    if session["phase"] != phase:
        raise PhaseError(f"Cannot {action} in phase {session['phase']!r} (requires {phase!r})")


def _touch(session: Session) -> None:
    session["updated_at"] = datetime.now().isoformat()


def create_session(
    session_id: Optional[str] = None,
    config: Optional[SimulationConfig] = None
) -> Session:
    """Create a new session in the pre-purchase phase of round 0."""
    now = datetime.now().isoformat()
    return {
        "session_id": session_id or str(uuid.uuid4()),
        "phase": PHASE_PRE_PURCHASE,
        "round_number": 0,
        "config": config or SimulationConfig(),
        "teams": {},
        "pooling_market": None,
        "tick_ledgers": {},
        "returned_demand": 0,
        "returned_demand_total": 0,
        "tick": 0,
        "days_remaining": 0,
        "allocation_summary": None,
        "last_round_results": [],
        "round_history": [],
        "created_at": now,
        "updated_at": now
    }


def register_team(
    session: Session,
    name: str,
    team_id: Optional[str] = None
) -> Tuple[Session, Team]:
    """
    Add a team with default decisions.

    Raises:
        PhaseError: If a round is being simulated
        ValueError: If the name or id is already taken
    """
    _require_phase(session, PHASE_PRE_PURCHASE, "register a team")
    registration = TeamRegistration(name=name, team_id=team_id)
    session = copy.deepcopy(session)

    if any(team["name"] == registration.name for team in session["teams"].values()):
        raise ValueError(f"Team name already taken: {registration.name}")

    new_id = registration.team_id or str(uuid.uuid4())
    if new_id in session["teams"]:
        raise ValueError(f"Team id already taken: {new_id}")

    team: Team = {
        "team_id": new_id,
        "name": registration.name,
        "decisions": {
            "price": session["config"].reference_price,
            "fix_seats_requested": 0,
            "fix_seat_bid_price": 0.0,
            "pooling_allocation": 0.0,
            "fix_seats_allocated": 0,
            "fix_seat_clearing_price": None,
            "fix_seats_requested_original": 0,
            "disqualified_for_low_bid": False
        },
        "total_profit": 0.0,
        "total_revenue": 0.0,
        "rounds_played": 0
    }
    session["teams"][new_id] = team
    _touch(session)

    logger.info(f"Team registered: {registration.name} ({new_id})")
    return session, team


def remove_team(session: Session, team_id: str) -> Session:
    """Drop a team between rounds."""
    _require_phase(session, PHASE_PRE_PURCHASE, "remove a team")
    if team_id not in session["teams"]:
        raise UnknownTeamError(team_id)

    session = copy.deepcopy(session)
    del session["teams"][team_id]
    _touch(session)
    return session


def update_team_decision(session: Session, team_id: str, patch: Mapping[str, Any]) -> Session:
    """
    Apply a partial decision update for one team.

    Bid fields (fix-seat quantity, bid price, pooling allocation) can only
    change while bidding is open; the retail price can change at any time and
    takes effect from the next tick.

    Raises:
        pydantic.ValidationError: On malformed values
        PhaseError: On a bid change outside the pre-purchase phase
        UnknownTeamError: If the team does not exist
    """
    if team_id not in session["teams"]:
        raise UnknownTeamError(team_id)

    changes = TeamDecisionUpdate.model_validate(dict(patch)).changes()
    locked = [key for key in BID_FIELDS if key in changes]
    if locked and session["phase"] != PHASE_PRE_PURCHASE:
        raise PhaseError(f"Bidding is closed; cannot change {', '.join(locked)}")

    session = copy.deepcopy(session)
    session["teams"][team_id]["decisions"].update(changes)
    _touch(session)
    return session


def update_session_config(session: Session, patch: Mapping[str, Any]) -> Session:
    """Apply a configuration patch between rounds, producing a new config version."""
    _require_phase(session, PHASE_PRE_PURCHASE, "change the configuration")

    new_config = session["config"].apply_patch(patch)
    session = copy.deepcopy(session)
    session["config"] = new_config
    _touch(session)

    logger.info(f"Session {session['session_id']} configuration updated to version {new_config.version}")
    return session


def start_simulation_phase(session: Session) -> Tuple[Session, Dict[str, Any]]:
    """
    Close bidding: run the fix-seat auction and open the pooling market.

    Returns:
        (session in the simulation phase, allocation summary)
    """
    _require_phase(session, PHASE_PRE_PURCHASE, "start the simulation phase")
    if not session["teams"]:
        raise PhaseError("Cannot start the simulation phase without teams")

    session, summary = run_fix_seat_auction(session)
    config = session["config"]

    reserve = summary["pooling_reserve_capacity"]
    offered = min(reserve, sum(pooling_capacity(team, config) for team in session["teams"].values()))

    session["pooling_market"] = init_pooling_market(config, reserve, offered)
    if config.simulation_mode == "ticks":
        session["tick_ledgers"] = init_tick_ledgers(session, reserve)
    else:
        session["tick_ledgers"] = {}
    session["returned_demand"] = 0
    session["returned_demand_total"] = 0
    session["tick"] = 0
    session["days_remaining"] = config.departure_horizon_days
    session["phase"] = PHASE_SIMULATION
    _touch(session)

    logger.info(
        f"Session {session['session_id']} round {session['round_number']}: simulation phase started "
        f"({config.departure_horizon_days} days, {config.days_per_tick} day(s) per tick)"
    )
    return session, summary


def end_phase_now(session: Session, rng: RandomSource) -> Tuple[Session, List[RoundResult]]:
    """
    Force the round to end with whatever ledger state exists.

    Safe to call repeatedly: outside the simulation phase it is a no-op.
    """
    if session["phase"] != PHASE_SIMULATION:
        logger.debug(f"end_phase_now: session {session['session_id']} already in {session['phase']!r}")
        return session, []

    if session["days_remaining"] > 0:
        logger.info(
            f"Session {session['session_id']}: ending round {session['round_number']} early "
            f"with {session['days_remaining']} day(s) to departure"
        )
    return finalize_round(session, rng)


__all__ = [
    "create_session",
    "register_team",
    "remove_team",
    "update_team_decision",
    "update_session_config",
    "start_simulation_phase",
    "advance_one_tick",
    "end_phase_now",
]
