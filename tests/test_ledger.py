"""Tests for round aggregation."""

import pytest

from seatmarket.models import PHASE_PRE_PURCHASE
from seatmarket.simulation import (
    SimulationConfig,
    advance_one_tick,
    finalize_round,
    make_rng,
    start_simulation_phase
)
from seatmarket.simulation.ledger import calculate_legacy_round_results


def play_round(session, rng):
    session, _ = start_simulation_phase(session)
    completed = False
    while not completed:
        session, completed = advance_one_tick(session, rng)
    return session


class TestFinalizeRound:
    """Turning tick ledgers into round results."""

    def test_results_match_ledgers(self, three_team_session, rng):
        session = play_round(three_team_session, rng)
        ledgers = session["tick_ledgers"]

        finalized, results = finalize_round(session, rng)

        assert len(results) == 3
        total_sold = sum(ledger["sold"] for ledger in ledgers.values())
        for result in results:
            ledger = ledgers[result["team_id"]]
            assert result["sold"] == ledger["sold"]
            assert result["demand"] == ledger["demand"]
            assert result["unsold"] == ledger["demand"] - ledger["sold"]
            assert result["revenue"] == round(ledger["revenue"], 2)
            assert result["cost"] == round(ledger["cost"], 2)
            assert result["profit"] == pytest.approx(result["revenue"] - result["cost"])
            assert result["capacity"] == ledger["fix_allocated"] + ledger["pool_capacity"]
            assert result["market_share"] == round(ledger["sold"] / total_sold, 4)
            assert result["round_number"] == 0

        assert sum(r["market_share"] for r in results) == pytest.approx(1.0, abs=1e-3)

    def test_commits_and_resets_round_state(self, three_team_session, rng):
        session = play_round(three_team_session, rng)
        finalized, results = finalize_round(session, rng)

        assert finalized["phase"] == PHASE_PRE_PURCHASE
        assert finalized["round_number"] == 1
        assert finalized["tick_ledgers"] == {}
        assert finalized["returned_demand"] == 0
        assert finalized["last_round_results"] == results
        assert finalized["round_history"] == results
        for result in results:
            team = finalized["teams"][result["team_id"]]
            assert team["total_profit"] == result["profit"]
            assert team["rounds_played"] == 1

        # Input session untouched
        assert session["phase"] != PHASE_PRE_PURCHASE
        assert session["teams"]["alpha"]["rounds_played"] == 0

    def test_second_finalize_does_not_double_count(self, three_team_session, rng):
        session = play_round(three_team_session, rng)
        finalized, results = finalize_round(session, rng)
        profits = {team_id: team["total_profit"] for team_id, team in finalized["teams"].items()}

        again, second_results = finalize_round(finalized, rng)

        assert second_results == []
        assert again["round_number"] == 1
        assert {team_id: team["total_profit"] for team_id, team in again["teams"].items()} == profits
        assert again["round_history"] == results

    def test_forced_end_mid_round_uses_partial_ledgers(self, three_team_session, rng):
        session, _ = start_simulation_phase(three_team_session)
        for _ in range(5):
            session, _ = advance_one_tick(session, rng)

        finalized, results = finalize_round(session, rng)
        for result in results:
            assert result["sold"] == session["tick_ledgers"][result["team_id"]]["sold"]
        assert finalized["round_number"] == 1

    def test_no_sales_gives_zero_market_share(self, make_session, rng):
        session = make_session({"alpha": {}, "bravo": {}})
        session, _ = start_simulation_phase(session)
        _, results = finalize_round(session, rng)
        for result in results:
            assert result["sold"] == 0
            assert result["market_share"] == 0.0


class TestFinalInsolvencyCheck:
    """Budget check at round end only applies after round 0."""

    def _loss_session(self, make_session, round_number):
        config = SimulationConfig(per_team_budget=1000)
        session = make_session(
            {"alpha": {"fix_seats_requested": 50, "fix_seat_bid_price": 100}},
            config=config,
            round_number=round_number
        )
        session, _ = start_simulation_phase(session)
        return session

    def test_round_zero_skips_final_check(self, make_session, rng):
        session = self._loss_session(make_session, round_number=0)
        # Round 0 caps the request at 1000 / 100 = 10 seats
        assert session["tick_ledgers"]["alpha"]["fix_allocated"] == 10
        session["tick_ledgers"]["alpha"]["cost"] = 5000.0

        _, results = finalize_round(session, rng)
        assert results[0]["profit"] == -5000.0
        assert results[0]["insolvent"] is False

    def test_later_rounds_flag_losses_beyond_budget(self, make_session, rng):
        session = self._loss_session(make_session, round_number=2)
        session["tick_ledgers"]["alpha"]["cost"] = 5000.0

        _, results = finalize_round(session, rng)
        assert results[0]["insolvent"] is True

    def test_early_insolvency_flag_is_kept(self, make_session, rng):
        session = self._loss_session(make_session, round_number=0)
        session["tick_ledgers"]["alpha"]["insolvent"] = True
        session["tick_ledgers"]["alpha"]["insolvent_at_tick"] = 3

        _, results = finalize_round(session, rng)
        assert results[0]["insolvent"] is True


class TestLegacyCalculator:
    """One-shot calculator used when a team has no tick ledger."""

    def test_one_shot_mode_uses_legacy_results(self, three_team_session, rng):
        three_team_session["config"] = SimulationConfig(simulation_mode="one_shot")
        session = play_round(three_team_session, rng)

        finalized, results = finalize_round(session, rng)

        assert len(results) == 3
        for result in results:
            assert 0 <= result["sold"] <= result["capacity"]
            assert result["sold"] <= result["demand"]
            assert result["cost"] > 0
        assert finalized["round_number"] == 1

    def test_team_without_ledger_falls_back(self, three_team_session, rng):
        session, _ = start_simulation_phase(three_team_session)
        del session["tick_ledgers"]["charlie"]

        _, results = finalize_round(session, rng)
        by_team = {r["team_id"]: r for r in results}
        assert set(by_team) == {"alpha", "bravo", "charlie"}
        assert by_team["alpha"]["sold"] == 0
        assert by_team["charlie"]["demand"] > 0

    def test_legacy_results_are_reproducible(self, make_team, config):
        teams = [
            make_team("a", price=180, allocated=100, clearing_price=90, pooling=10),
            make_team("b", price=220, allocated=150, clearing_price=110, pooling=5)
        ]
        first = calculate_legacy_round_results(teams, config, make_rng(9))
        second = calculate_legacy_round_results(teams, config, make_rng(9))
        assert first == second
        assert calculate_legacy_round_results([], config, make_rng(9)) == []
