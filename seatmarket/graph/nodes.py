"""Graph nodes for the round workflow."""

import logging
from functools import wraps
from typing import Any, Callable, Dict

from seatmarket.models import RoundState
from seatmarket.simulation.phases import advance_one_tick, end_phase_now, start_simulation_phase
from seatmarket.simulation.rng import RandomSource

logger = logging.getLogger("seat_market.nodes")


def log_node_execution(func):
    """Decorator to log node execution start and completion."""
    @wraps(func)
    def wrapper(state: RoundState) -> Dict[str, Any]:
        node_name = func.__name__
        round_number = state["session"]["round_number"]
        logger.debug(f"[Round {round_number}] Node START: {node_name}")
        try:
            result = func(state)
            logger.debug(f"[Round {round_number}] Node COMPLETE: {node_name}")
            return result
        except Exception as e:
            logger.error(f"[Round {round_number}] Node FAILED: {node_name} - {str(e)}")
            raise
    return wrapper


@log_node_execution
def run_auction(state: RoundState) -> Dict[str, Any]:
    """Close bidding and open the pooling market."""
    session, summary = start_simulation_phase(state["session"])
    return {
        "session": session,
        "allocation_summary": summary,
        "completed": False,
        "ticks_run": 0
    }


def create_advance_tick(rng: RandomSource) -> Callable[[RoundState], Dict[str, Any]]:
    """Create the tick node bound to a random source."""
    @log_node_execution
    def advance_tick(state: RoundState) -> Dict[str, Any]:
        session, completed = advance_one_tick(state["session"], rng)
        ticks_run = state["ticks_run"]
        if session["tick"] != state["session"]["tick"]:
            ticks_run += 1
        return {"session": session, "completed": completed, "ticks_run": ticks_run}
    return advance_tick


def create_finalize_round(rng: RandomSource) -> Callable[[RoundState], Dict[str, Any]]:
    """Create the finalize node bound to a random source."""
    @log_node_execution
    def finalize_round(state: RoundState) -> Dict[str, Any]:
        session, results = end_phase_now(state["session"], rng)
        return {"session": session, "results": results}
    return finalize_round
