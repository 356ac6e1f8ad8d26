"""Data models for the simulation."""

from .state import (
    TeamDecisions,
    Team,
    FixSeatBid,
    FixSeatAllocation,
    PriceObservation,
    PoolingMarket,
    TickLedger,
    RoundResult,
    Session,
    RoundState,
    PHASE_PRE_PURCHASE,
    PHASE_SIMULATION
)
from .schemas import TeamRegistration, TeamDecisionUpdate

__all__ = [
    "TeamDecisions",
    "Team",
    "FixSeatBid",
    "FixSeatAllocation",
    "PriceObservation",
    "PoolingMarket",
    "TickLedger",
    "RoundResult",
    "Session",
    "RoundState",
    "PHASE_PRE_PURCHASE",
    "PHASE_SIMULATION",
    "TeamRegistration",
    "TeamDecisionUpdate"
]
