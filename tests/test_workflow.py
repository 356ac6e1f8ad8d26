"""Tests for the LangGraph round workflow and the headless runner."""

import json
import logging

import pytest

from seatmarket.graph import create_round_graph, recursion_limit_for
from seatmarket.models import PHASE_PRE_PURCHASE
from seatmarket.simulation import SimulationConfig, make_rng
from seatmarket.simulation.runner import SimulationRunner


TEAMS = [
    {
        "name": "Aurora Air",
        "team_id": "aurora",
        "decisions": {"price": 189, "fix_seats_requested": 200, "fix_seat_bid_price": 95, "pooling_allocation": 10}
    },
    {
        "name": "Borealis",
        "team_id": "borealis",
        "decisions": {"price": 205, "fix_seats_requested": 150, "fix_seat_bid_price": 110, "pooling_allocation": 15}
    }
]


class TestRoundGraph:
    """One round through the compiled graph."""

    def test_plays_a_full_round(self, three_team_session):
        graph = create_round_graph(make_rng(3))
        config = three_team_session["config"]

        final = graph.invoke(
            {
                "session": three_team_session,
                "allocation_summary": None,
                "completed": False,
                "ticks_run": 0,
                "results": []
            },
            {"recursion_limit": recursion_limit_for(config.ticks_per_round)}
        )

        assert final["completed"] is True
        assert final["ticks_run"] == config.ticks_per_round
        assert final["allocation_summary"]["total_allocated"] == 450
        assert len(final["results"]) == 3
        assert final["session"]["phase"] == PHASE_PRE_PURCHASE
        assert final["session"]["round_number"] == 1

    def test_one_shot_round_skips_ticks(self, three_team_session):
        three_team_session["config"] = SimulationConfig(simulation_mode="one_shot")
        graph = create_round_graph(make_rng(3))

        final = graph.invoke(
            {
                "session": three_team_session,
                "allocation_summary": None,
                "completed": False,
                "ticks_run": 0,
                "results": []
            },
            {"recursion_limit": recursion_limit_for(1)}
        )

        assert final["ticks_run"] == 0
        assert len(final["results"]) == 3


class TestSimulationRunner:
    """Whole games without the HTTP layer."""

    def test_runs_multiple_rounds(self):
        config = SimulationConfig(name="runner test", departure_horizon_days=10)
        runner = SimulationRunner(config, TEAMS, num_rounds=3, seed=42, log_level=logging.WARNING, log_to_file=False)

        results = runner.run()

        assert [r["round_number"] for r in results["rounds"]] == [0, 1, 2]
        for round_entry in results["rounds"]:
            assert round_entry["ticks"] == 10
            assert len(round_entry["results"]) == 2

        summary = results["summary"]
        assert summary["rounds_completed"] == 3
        assert len(summary["leaderboard"]) == 2
        assert summary["leaderboard"][0]["profit"] >= summary["leaderboard"][1]["profit"]
        assert results["final_session"]["config"]["name"] == "runner test"

    def test_same_seed_same_game(self):
        config = SimulationConfig(departure_horizon_days=8)
        first = SimulationRunner(config, TEAMS, num_rounds=2, seed=7, log_level=logging.WARNING, log_to_file=False).run()
        second = SimulationRunner(config, TEAMS, num_rounds=2, seed=7, log_level=logging.WARNING, log_to_file=False).run()
        assert [r["results"] for r in first["rounds"]] == [r["results"] for r in second["rounds"]]

    def test_save_results(self, tmp_path):
        config = SimulationConfig(departure_horizon_days=3)
        runner = SimulationRunner(config, TEAMS, seed=1, log_level=logging.WARNING, log_to_file=False)
        results = runner.run()

        path = tmp_path / "results.json"
        runner.save_results(results, str(path))

        saved = json.loads(path.read_text())
        assert saved["seed"] == 1
        assert len(saved["rounds"]) == 1
        assert saved["summary"]["leaderboard"][0]["name"] in {"Aurora Air", "Borealis"}

    def test_requires_teams_and_rounds(self):
        with pytest.raises(ValueError):
            SimulationRunner(SimulationConfig(), [], log_to_file=False)
        with pytest.raises(ValueError):
            SimulationRunner(SimulationConfig(), TEAMS, num_rounds=0, log_to_file=False)
