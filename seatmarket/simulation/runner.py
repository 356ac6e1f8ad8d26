"""Headless game runner and orchestration."""

import copy
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from seatmarket.models import RoundState, Session
from seatmarket.simulation.analytics import summarize_session
from seatmarket.simulation.config import SimulationConfig
from seatmarket.simulation.phases import create_session, register_team, update_team_decision
from seatmarket.simulation.rng import make_rng
from seatmarket.graph.workflow import create_round_graph, recursion_limit_for
from seatmarket.utils import setup_logger


class SimulationRunner:
    """Plays a whole game without the HTTP layer: teams, rounds, results."""

    def __init__(
        self,
        config: SimulationConfig,
        teams: List[Mapping[str, Any]],
        num_rounds: int = 1,
        seed: Optional[int] = None,
        log_level: int = logging.INFO,
        log_to_file: bool = True
    ):
        """
        Initialize simulation runner.

        Args:
            config: Simulation configuration
            teams: One entry per team: ``name``, optional ``team_id`` and
                ``decisions`` (a decision patch applied before the first round)
            num_rounds: Rounds to play
            seed: Seed for the game's random source
            log_level: Logging level (DEBUG for per-tick detail, INFO for summary)
            log_to_file: Also write a timestamped log file under logs/
        """
        if num_rounds < 1:
            raise ValueError(f"num_rounds must be >= 1, got {num_rounds}")
        if not teams:
            raise ValueError("At least one team is required")

        self.config = config
        self.teams = list(teams)
        self.num_rounds = num_rounds
        self.seed = seed
        self.rng = make_rng(seed)
        self.graph = create_round_graph(self.rng)
        self.logger = setup_logger(level=log_level, log_to_file=log_to_file)

    def create_initial_session(self) -> Session:
        """Create the session and register every team with its decisions."""
        session = create_session(config=self.config)
        for entry in self.teams:
            session, team = register_team(session, entry["name"], entry.get("team_id"))
            decisions = entry.get("decisions")
            if decisions:
                session = update_team_decision(session, team["team_id"], decisions)
        return session

    def run(self) -> Dict[str, Any]:
        """
        Run the complete game.

        Returns:
            Results with per-round outcomes, the final session and a summary
        """
        start_time = datetime.now()

        self.logger.info("=" * 80)
        self.logger.info(f"Starting Game: {self.config.name or 'unnamed'}")
        if self.config.description:
            self.logger.info(f"Description: {self.config.description}")
        self.logger.info(
            f"Rounds: {self.num_rounds}, teams: {len(self.teams)}, "
            f"horizon: {self.config.departure_horizon_days} days, mode: {self.config.simulation_mode}"
        )
        self.logger.info("=" * 80)

        session = self.create_initial_session()
        rounds = []

        for _ in range(self.num_rounds):
            state = self._run_round(session)
            session = state["session"]
            rounds.append({
                "round_number": session["round_number"] - 1,
                "allocation_summary": state["allocation_summary"],
                "ticks": state["ticks_run"],
                "results": state["results"]
            })
            self._log_round_summary(state)

        end_time = datetime.now()
        duration = (end_time - start_time).total_seconds()

        summary = summarize_session(session)
        self._log_summary(summary)

        final_session = copy.deepcopy(session)
        final_session["config"] = self.config.to_dict()

        return {
            "config": self.config.to_dict(),
            "seed": self.seed,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": duration,
            "rounds": rounds,
            "final_session": final_session,
            "summary": summary
        }

    def _run_round(self, session: Session) -> RoundState:
        """Stream one round through the graph, merging node updates into the state."""
        state: RoundState = {
            "session": session,
            "allocation_summary": None,
            "completed": False,
            "ticks_run": 0,
            "results": []
        }
        round_number = session["round_number"]
        self.logger.info(f"--- Round {round_number} ---")

        limit = recursion_limit_for(self.config.ticks_per_round)
        try:
            for event in self.graph.stream(state, {"recursion_limit": limit}):
                for node_name, node_output in event.items():
                    if not node_output:
                        continue
                    state.update(node_output)
                    if node_name == "advance_tick":
                        self._log_tick(state["session"])
        except Exception as e:
            self.logger.error(f"Error during round {round_number}: {str(e)}")
            self.logger.exception("Full traceback:")
            raise

        return state

    def _log_tick(self, session: Session):
        market = session["pooling_market"]
        if not market or not market["price_history"]:
            return
        last = market["price_history"][-1]
        if last["tick"] != session["tick"]:
            return
        self.logger.debug(
            f"  Tick {session['tick']}: demand={last['demand']}, pool price={last['price']}, "
            f"pool left={market['available_capacity']}, days remaining={session['days_remaining']}"
        )
        if session["tick"] % 10 == 0:
            self.logger.info(f"  Progress: tick {session['tick']}/{self.config.ticks_per_round}")

    def _log_round_summary(self, state: RoundState):
        allocation = state["allocation_summary"] or {}
        self.logger.info(
            f"  Auction: {allocation.get('total_allocated', 0)}/{allocation.get('capacity_cap', 0)} "
            f"fixed seats allocated, pooling reserve {allocation.get('pooling_reserve_capacity', 0)}"
        )
        for result in state["results"]:
            flag = " [INSOLVENT]" if result["insolvent"] else ""
            self.logger.info(
                f"  {result['team_name']}: sold {result['sold']}/{result['demand']}, "
                f"revenue ${result['revenue']:.2f}, cost ${result['cost']:.2f}, "
                f"profit ${result['profit']:.2f}, share {result['market_share']:.2%}{flag}"
            )

    def _log_summary(self, summary: Dict[str, Any]):
        """Log final leaderboard."""
        self.logger.info("")
        self.logger.info("=" * 80)
        self.logger.info("FINAL LEADERBOARD")
        self.logger.info("=" * 80)
        for row in summary["leaderboard"]:
            self.logger.info(
                f"  {row['rank']}. {row['name']}: profit ${row['profit']:.2f} "
                f"over {row['rounds_played']} round(s)"
            )
        self.logger.info(f"  Seats sold: {summary['total_sold']} of {summary['total_demand']} demanded")
        self.logger.info("=" * 80)

    def save_results(self, results: Dict[str, Any], filepath: str):
        """
        Save game results to file.

        Args:
            results: Game results
            filepath: Path to save file
        """
        with open(filepath, 'w') as f:
            json.dump(results, f, indent=2, default=str)
