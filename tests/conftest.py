"""Shared fixtures for the seat market test suite."""

import pytest

from seatmarket.config import reset_config
from seatmarket.simulation import (
    SimulationConfig,
    create_session,
    register_team,
    update_team_decision,
    make_rng
)


def build_team(team_id, name=None, price=199.0, fix_requested=0, bid=0.0, pooling=0.0,
               allocated=0, clearing_price=None):
    """A team dict as the phase machine would produce it."""
    return {
        "team_id": team_id,
        "name": name or team_id,
        "decisions": {
            "price": price,
            "fix_seats_requested": fix_requested,
            "fix_seat_bid_price": bid,
            "pooling_allocation": pooling,
            "fix_seats_allocated": allocated,
            "fix_seat_clearing_price": clearing_price,
            "fix_seats_requested_original": fix_requested,
            "disqualified_for_low_bid": False
        },
        "total_profit": 0.0,
        "total_revenue": 0.0,
        "rounds_played": 0
    }


@pytest.fixture
def make_team():
    return build_team


@pytest.fixture
def rng():
    """Seeded random source."""
    return make_rng(1234)


@pytest.fixture
def config():
    return SimulationConfig()


@pytest.fixture
def make_session():
    """Factory for a pre-purchase session with teams and decisions."""
    def _make(teams, config=None, round_number=0):
        session = create_session(session_id="test-session", config=config or SimulationConfig())
        session["round_number"] = round_number
        for team_id, decisions in teams.items():
            session, _ = register_team(session, name=team_id.title(), team_id=team_id)
            if decisions:
                session = update_team_decision(session, team_id, decisions)
        return session
    return _make


@pytest.fixture
def three_team_session(make_session):
    return make_session({
        "alpha": {"price": 189, "fix_seats_requested": 200, "fix_seat_bid_price": 100, "pooling_allocation": 10},
        "bravo": {"price": 205, "fix_seats_requested": 150, "fix_seat_bid_price": 120, "pooling_allocation": 15},
        "charlie": {"price": 179, "fix_seats_requested": 100, "fix_seat_bid_price": 90, "pooling_allocation": 20}
    })


@pytest.fixture
def app_env(monkeypatch, tmp_path):
    """Point configuration at a temporary database with automatic ticking off."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("TICK_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("RNG_SEED", "7")
    reset_config()
    yield tmp_path
    reset_config()
