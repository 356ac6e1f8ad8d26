"""Tests for round history and leaderboard views."""

from seatmarket.simulation import build_leaderboard, summarize_rounds, summarize_session


def result(team_id, round_number, sold, demand, profit, insolvent=False):
    return {
        "team_id": team_id,
        "team_name": team_id.title(),
        "round_number": round_number,
        "sold": sold,
        "revenue": sold * 200.0,
        "cost": sold * 200.0 - profit,
        "profit": profit,
        "unsold": demand - sold,
        "market_share": 0.5,
        "demand": demand,
        "avg_price": 200.0,
        "capacity": 100,
        "insolvent": insolvent
    }


class TestSummarizeRounds:
    """Grouping results by round."""

    def test_groups_and_totals(self):
        summary = summarize_rounds([
            result("b", 1, 40, 50, -100.0, insolvent=True),
            result("a", 0, 80, 100, 300.0),
            result("b", 0, 60, 100, 200.0),
            result("a", 1, 50, 50, 150.0),
        ])

        assert [r["round_number"] for r in summary] == [0, 1]
        first, second = summary
        assert first["total_sold"] == 140
        assert first["total_demand"] == 200
        assert first["total_profit"] == 500.0
        assert first["load_factor"] == 0.7
        assert len(first["team_results"]) == 2
        assert second["insolvent_teams"] == 1
        assert second["total_profit"] == 50.0

    def test_empty_history(self):
        assert summarize_rounds([]) == []


class TestLeaderboard:
    """Ranking teams."""

    def test_ranked_by_profit(self, three_team_session):
        three_team_session["teams"]["alpha"]["total_profit"] = 100.0
        three_team_session["teams"]["bravo"]["total_profit"] = 900.0
        three_team_session["teams"]["charlie"]["total_profit"] = 100.0

        board = build_leaderboard(three_team_session)

        assert [row["team_id"] for row in board] == ["bravo", "alpha", "charlie"]
        assert [row["rank"] for row in board] == [1, 2, 3]
        assert board[0]["avg_price"] == 205

    def test_session_summary(self, three_team_session):
        summary = summarize_session(three_team_session)
        assert summary["rounds_completed"] == 0
        assert summary["rounds"] == []
        assert summary["total_profit"] == 0
        assert len(summary["leaderboard"]) == 3
