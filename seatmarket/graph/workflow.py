"""LangGraph workflow definition."""

import logging
from typing import Literal
from langgraph.graph import StateGraph, END
from seatmarket.models import RoundState
from seatmarket.simulation.rng import RandomSource
from seatmarket.graph import nodes

# Get logger for workflow routing
logger = logging.getLogger("seat_market.workflow")


def should_continue(state: RoundState) -> Literal["advance_tick", "finalize_round"]:
    """Keep ticking until the horizon is exhausted."""
    if state["completed"]:
        logger.debug(f"[Round {state['session']['round_number']}] Router: horizon reached → finalize_round")
        return "finalize_round"
    return "advance_tick"


def create_round_graph(rng: RandomSource):
    """
    Create the LangGraph workflow that plays one round.

    run_auction → advance_tick (repeated until the horizon is exhausted) →
    finalize_round → END

    Args:
        rng: Random source shared by every tick and the finalizer

    Returns:
        Compiled StateGraph ready to run
    """
    graph = StateGraph(RoundState)

    graph.add_node("run_auction", nodes.run_auction)
    graph.add_node("advance_tick", nodes.create_advance_tick(rng))
    graph.add_node("finalize_round", nodes.create_finalize_round(rng))

    graph.set_entry_point("run_auction")

    graph.add_edge("run_auction", "advance_tick")
    graph.add_conditional_edges(
        "advance_tick",
        should_continue,
        {
            "advance_tick": "advance_tick",
            "finalize_round": "finalize_round"
        }
    )
    graph.add_edge("finalize_round", END)

    return graph.compile()


def recursion_limit_for(ticks_per_round: int) -> int:
    """Graph steps needed for a round: auction, every tick, finalize, plus slack."""
    return ticks_per_round + 10
