"""Round history and leaderboard views."""

from typing import Any, Dict, List

from seatmarket.models import RoundResult, Session
from seatmarket.simulation.demand import retail_price, team_capacity


def summarize_rounds(results: List[RoundResult]) -> List[Dict[str, Any]]:
    """
    Group round results by round number with market-wide totals.

    Args:
        results: Round results in any order

    Returns:
        One entry per round, ascending by round number
    """
    rounds: Dict[int, Dict[str, Any]] = {}
    for result in results:
        round_number = result["round_number"]
        if round_number not in rounds:
            rounds[round_number] = {
                "round_number": round_number,
                "team_results": [],
                "total_demand": 0,
                "total_sold": 0,
                "total_revenue": 0.0,
                "total_cost": 0.0,
                "total_profit": 0.0,
                "insolvent_teams": 0
            }

        entry = rounds[round_number]
        entry["team_results"].append(result)
        entry["total_demand"] += result["demand"]
        entry["total_sold"] += result["sold"]
        entry["total_revenue"] += result["revenue"]
        entry["total_cost"] += result["cost"]
        entry["total_profit"] += result["profit"]
        if result["insolvent"]:
            entry["insolvent_teams"] += 1

    summary = []
    for round_number in sorted(rounds):
        entry = rounds[round_number]
        entry["total_revenue"] = round(entry["total_revenue"], 2)
        entry["total_cost"] = round(entry["total_cost"], 2)
        entry["total_profit"] = round(entry["total_profit"], 2)
        entry["load_factor"] = (
            round(entry["total_sold"] / entry["total_demand"], 4) if entry["total_demand"] > 0 else 0.0
        )
        summary.append(entry)
    return summary


def build_leaderboard(session: Session) -> List[Dict[str, Any]]:
    """Teams ranked by cumulative profit, ties by name."""
    config = session["config"]
    last_share = {r["team_id"]: r["market_share"] for r in session["last_round_results"]}

    rows = [
        {
            "team_id": team_id,
            "name": team["name"],
            "profit": team["total_profit"],
            "revenue": team["total_revenue"],
            "rounds_played": team["rounds_played"],
            "market_share": last_share.get(team_id, 0.0),
            "avg_price": retail_price(team, config),
            "capacity": team_capacity(team, config)
        }
        for team_id, team in session["teams"].items()
    ]
    rows.sort(key=lambda row: (-row["profit"], row["name"]))

    for rank, row in enumerate(rows, start=1):
        row["rank"] = rank
    return rows


def summarize_session(session: Session) -> Dict[str, Any]:
    rounds = summarize_rounds(session["round_history"])
    return {
        "session_id": session["session_id"],
        "phase": session["phase"],
        "rounds_completed": session["round_number"],
        "total_sold": sum(r["total_sold"] for r in rounds),
        "total_demand": sum(r["total_demand"] for r in rounds),
        "total_profit": round(sum(r["total_profit"] for r in rounds), 2),
        "rounds": rounds,
        "leaderboard": build_leaderboard(session)
    }
