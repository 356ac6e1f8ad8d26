"""Market engine: configuration, auction, pooling market, rounds and phases.

The headless runner is imported from ``seatmarket.simulation.runner`` directly.
"""

from .config import SimulationConfig, ConfigValidationError
from .errors import PhaseError, UnknownSessionError, UnknownTeamError
from .rng import RandomSource, make_rng
from .demand import compute_market_shares, compute_total_demand
from .auction import allocate_fix_seats, run_fix_seat_auction
from .pooling import advance_one_tick, pooling_market_snapshot
from .ledger import finalize_round
from .phases import (
    create_session,
    register_team,
    remove_team,
    update_team_decision,
    update_session_config,
    start_simulation_phase,
    end_phase_now
)
from .registry import SessionRegistry, SessionHandle
from .scheduler import TickScheduler
from .analytics import summarize_rounds, build_leaderboard, summarize_session

__all__ = [
    "SimulationConfig",
    "ConfigValidationError",
    "PhaseError",
    "UnknownSessionError",
    "UnknownTeamError",
    "RandomSource",
    "make_rng",
    "compute_market_shares",
    "compute_total_demand",
    "allocate_fix_seats",
    "run_fix_seat_auction",
    "advance_one_tick",
    "pooling_market_snapshot",
    "finalize_round",
    "create_session",
    "register_team",
    "remove_team",
    "update_team_decision",
    "update_session_config",
    "start_simulation_phase",
    "end_phase_now",
    "SessionRegistry",
    "SessionHandle",
    "TickScheduler",
    "summarize_rounds",
    "build_leaderboard",
    "summarize_session"
]
