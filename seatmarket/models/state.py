"""State models for the seat market simulation."""

from typing import TypedDict, List, Dict, Optional, Any


class TeamDecisions(TypedDict):
    """A team's own decisions plus the auction outcome written back onto it."""
    price: float  # Retail price per seat
    fix_seats_requested: int
    fix_seat_bid_price: float
    pooling_allocation: float  # Percent (0-100) of total aircraft seats backed by pooled inventory
    fix_seats_allocated: int
    fix_seat_clearing_price: Optional[float]  # None when nothing was allocated
    fix_seats_requested_original: int  # Request before the round-0 budget cap
    disqualified_for_low_bid: bool


class Team(TypedDict):
    """An airline team."""
    team_id: str
    name: str
    decisions: TeamDecisions
    total_profit: float
    total_revenue: float
    rounds_played: int


class FixSeatBid(TypedDict):
    """A sealed bid for fixed-price seats."""
    team_id: str
    quantity: int
    bid_price: float


class FixSeatAllocation(TypedDict):
    """Auction outcome for one team."""
    requested: int  # After the budget cap
    requested_original: int
    bid_price: float
    allocated: int
    clearing_price: Optional[float]
    disqualified_for_low_bid: bool


class PriceObservation(TypedDict):
    """One entry in the pooling price history."""
    price: int
    demand: int
    tick: int


class PoolingMarket(TypedDict):
    """The secondary (pooling) market shared by all teams."""
    current_price: int
    total_capacity: int
    available_capacity: int
    offered_capacity: int
    last_pooling_demand: int
    price_history: List[PriceObservation]


class TickLedger(TypedDict):
    """Per-team running totals for the round in progress."""
    fix_allocated: int
    fix_remaining: int
    pool_capacity: int
    pool_remaining: int
    sold: int
    pool_used: int
    demand: int
    revenue: float
    cost: float
    insolvent: bool
    insolvent_at_tick: Optional[int]


class RoundResult(TypedDict):
    """Finalized per-team outcome of one round."""
    team_id: str
    team_name: str
    round_number: int
    sold: int
    revenue: float
    cost: float
    profit: float
    unsold: int
    market_share: float
    demand: int
    avg_price: float
    capacity: int
    insolvent: bool


class Session(TypedDict):
    """The complete state of one game session."""

    session_id: str

    # Phase machine
    phase: str  # "prePurchase" or "simulation"
    round_number: int

    # Immutable configuration snapshot
    config: Any  # SimulationConfig (using Any to avoid circular import)

    teams: Dict[str, Team]

    # Simulation phase state (reset every round)
    pooling_market: Optional[PoolingMarket]
    tick_ledgers: Dict[str, TickLedger]
    returned_demand: int  # Seats freed by insolvent teams, not yet redistributed
    returned_demand_total: int
    tick: int
    days_remaining: int
    allocation_summary: Optional[Dict[str, Any]]

    # Results
    last_round_results: List[RoundResult]
    round_history: List[RoundResult]

    created_at: str
    updated_at: str


class RoundState(TypedDict):
    """LangGraph state for playing one round headlessly."""
    session: Session
    allocation_summary: Optional[Dict[str, Any]]
    completed: bool  # Horizon exhausted
    ticks_run: int
    results: List[RoundResult]


PHASE_PRE_PURCHASE = "prePurchase"
PHASE_SIMULATION = "simulation"
