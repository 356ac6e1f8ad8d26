"""Example script to run a game programmatically."""

import logging
from seatmarket.simulation import SimulationConfig
from seatmarket.simulation.runner import SimulationRunner


def main():
    """Run a small three-team game."""
    # Create configuration
    config = SimulationConfig(
        name="Three airlines - baseline",
        description="Mixed fix-seat and pooling strategies over three rounds",
        base_demand=120,
        total_aircraft_seats=1000,
        per_team_budget=20000,
        departure_horizon_days=30,
        days_per_tick=1
    )

    teams = [
        {
            "name": "Aurora Air",
            "decisions": {"price": 189, "fix_seats_requested": 250, "fix_seat_bid_price": 95, "pooling_allocation": 10}
        },
        {
            "name": "Borealis",
            "decisions": {"price": 205, "fix_seats_requested": 200, "fix_seat_bid_price": 110, "pooling_allocation": 15}
        },
        {
            "name": "Cirrus Jet",
            "decisions": {"price": 179, "fix_seats_requested": 150, "fix_seat_bid_price": 85, "pooling_allocation": 25}
        }
    ]

    print("=" * 80)
    print(f"Running game: {config.name}")
    print(f"Description: {config.description}")
    print(f"Horizon: {config.departure_horizon_days} days, {len(teams)} teams")
    print("=" * 80)

    runner = SimulationRunner(config, teams, num_rounds=3, seed=42, log_level=logging.INFO)
    results = runner.run()

    # Print summary
    print("\n" + "=" * 80)
    print("GAME RESULTS")
    print("=" * 80)

    summary = results['summary']

    for round_summary in summary['rounds']:
        print(f"\nRound {round_summary['round_number']}:")
        print(f"  Demand: {round_summary['total_demand']}, sold: {round_summary['total_sold']}")
        print(f"  Profit: ${round_summary['total_profit']:.2f}")
        for result in round_summary['team_results']:
            insolvent = " (insolvent)" if result['insolvent'] else ""
            print(f"    {result['team_name']}: {result['sold']} sold, ${result['profit']:.2f}{insolvent}")

    print("\nLeaderboard:")
    for row in summary['leaderboard']:
        print(f"  {row['rank']}. {row['name']}: ${row['profit']:.2f}")

    runner.save_results(results, "game_results.json")

    print("\n" + "=" * 80)
    print("Results saved to: game_results.json")
    print("Detailed logs saved to: logs/seat_market_*.log")
    print("=" * 80)

    return results


if __name__ == "__main__":
    main()
