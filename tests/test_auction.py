"""Tests for the fix-seat auction."""

import pytest

from seatmarket.simulation import SimulationConfig, allocate_fix_seats, run_fix_seat_auction, make_rng
from seatmarket.simulation.auction import budget_capped_quantity


def bid(team_id, quantity, bid_price):
    return {"team_id": team_id, "quantity": quantity, "bid_price": bid_price}


class TestAllocateFixSeats:
    """Allocation rules."""

    def test_equal_bids_split_capacity_evenly(self):
        """Two teams request 100 at 50 against a cap of 100."""
        allocations = allocate_fix_seats([bid("a", 100, 50), bid("b", 100, 50)], capacity_cap=100, min_bid=0)

        assert allocations["a"]["allocated"] == 50
        assert allocations["b"]["allocated"] == 50
        assert allocations["a"]["clearing_price"] == 50
        assert allocations["b"]["clearing_price"] == 50

    def test_low_bid_is_disqualified(self):
        """A bid below the minimum gets nothing; the other team gets its full request."""
        allocations = allocate_fix_seats([bid("low", 100, 70), bid("high", 120, 95)], capacity_cap=700, min_bid=80)

        assert allocations["low"]["allocated"] == 0
        assert allocations["low"]["disqualified_for_low_bid"] is True
        assert allocations["low"]["clearing_price"] is None
        assert allocations["high"]["allocated"] == 120
        assert allocations["high"]["disqualified_for_low_bid"] is False

    def test_bid_equal_to_minimum_qualifies(self):
        allocations = allocate_fix_seats([bid("a", 10, 80)], capacity_cap=100, min_bid=80)
        assert allocations["a"]["allocated"] == 10
        assert allocations["a"]["disqualified_for_low_bid"] is False

    def test_higher_tiers_served_first(self):
        allocations = allocate_fix_seats(
            [bid("a", 300, 100), bid("b", 300, 120), bid("c", 300, 90)],
            capacity_cap=500,
            min_bid=80
        )
        assert allocations["b"]["allocated"] == 300
        assert allocations["a"]["allocated"] == 200
        assert allocations["c"]["allocated"] == 0
        assert allocations["c"]["clearing_price"] is None

    def test_pay_as_bid_clearing_prices(self):
        allocations = allocate_fix_seats([bid("a", 50, 100), bid("b", 50, 130)], capacity_cap=700, min_bid=80)
        assert allocations["a"]["clearing_price"] == 100
        assert allocations["b"]["clearing_price"] == 130

    def test_pro_rata_leftover_goes_to_largest_remainder(self):
        allocations = allocate_fix_seats(
            [bid("a", 6, 100), bid("b", 3, 100), bid("c", 2, 100)],
            capacity_cap=10,
            min_bid=0
        )
        # Exact shares: a 60/11=5.45, b 30/11=2.73, c 20/11=1.82; floors 5, 2, 1; two leftovers
        assert allocations["a"]["allocated"] == 5
        assert allocations["b"]["allocated"] == 3
        assert allocations["c"]["allocated"] == 2
        assert sum(a["allocated"] for a in allocations.values()) == 10

    def test_equal_remainders_break_ties_by_team_id(self):
        allocations = allocate_fix_seats(
            [bid("zulu", 1, 100), bid("alpha", 1, 100), bid("mike", 1, 100)],
            capacity_cap=2,
            min_bid=0
        )
        assert allocations["alpha"]["allocated"] == 1
        assert allocations["mike"]["allocated"] == 1
        assert allocations["zulu"]["allocated"] == 0

    def test_allocation_never_exceeds_cap_and_full_requests_when_fit(self):
        rng = make_rng(21)
        for _ in range(200):
            bids = [
                bid(f"t{i}", int(rng.uniform(0, 400)), round(rng.uniform(60, 140)))
                for i in range(int(rng.uniform(1, 8)))
            ]
            cap = int(rng.uniform(0, 900))
            allocations = allocate_fix_seats(bids, cap, min_bid=80)

            assert sum(a["allocated"] for a in allocations.values()) <= cap
            qualified_total = sum(a["requested"] for a in allocations.values() if not a["disqualified_for_low_bid"])
            for allocation in allocations.values():
                if allocation["disqualified_for_low_bid"]:
                    assert allocation["allocated"] == 0
                elif qualified_total <= cap:
                    assert allocation["allocated"] == allocation["requested"]
                assert allocation["allocated"] <= allocation["requested"]

    def test_repeated_runs_are_identical(self):
        bids = [bid("c", 333, 100), bid("a", 333, 100), bid("b", 333, 100), bid("d", 50, 150)]
        first = allocate_fix_seats(bids, 700, min_bid=80)
        for _ in range(5):
            assert allocate_fix_seats(list(reversed(bids)), 700, min_bid=80) == first

    def test_zero_capacity(self):
        allocations = allocate_fix_seats([bid("a", 10, 100)], capacity_cap=0, min_bid=80)
        assert allocations["a"]["allocated"] == 0
        assert allocations["a"]["clearing_price"] is None


class TestBudgetCap:
    """Round-0 budget capping."""

    def test_caps_request_at_affordable_quantity(self):
        assert budget_capped_quantity(500, 100, 20000) == 200
        assert budget_capped_quantity(150, 100, 20000) == 150
        assert budget_capped_quantity(10, 333, 1000) == 3

    def test_non_positive_bid_price_allocates_nothing(self):
        assert budget_capped_quantity(100, 0, 20000) == 0
        assert budget_capped_quantity(100, -5, 20000) == 0

    def test_budget_cap_keeps_original_request(self):
        allocations = allocate_fix_seats([bid("a", 500, 100)], 700, min_bid=80, budget_cap=20000)
        assert allocations["a"]["requested_original"] == 500
        assert allocations["a"]["requested"] == 200
        assert allocations["a"]["allocated"] == 200


class TestRunFixSeatAuction:
    """Auction over a session."""

    def test_writes_outcome_onto_teams(self, make_session):
        session = make_session({
            "alpha": {"fix_seats_requested": 300, "fix_seat_bid_price": 100},
            "bravo": {"fix_seats_requested": 50, "fix_seat_bid_price": 60}
        })
        updated, summary = run_fix_seat_auction(session)

        alpha = updated["teams"]["alpha"]["decisions"]
        bravo = updated["teams"]["bravo"]["decisions"]
        assert alpha["fix_seats_allocated"] == 200  # 20000 / 100
        assert alpha["fix_seats_requested_original"] == 300
        assert alpha["fix_seat_clearing_price"] == 100
        assert bravo["fix_seats_allocated"] == 0
        assert bravo["disqualified_for_low_bid"] is True
        assert bravo["fix_seat_clearing_price"] is None

        assert summary["capacity_cap"] == 700
        assert summary["total_allocated"] == 200
        assert summary["pooling_reserve_capacity"] == 800
        assert summary["min_qualifying_bid"] == 100
        assert updated["allocation_summary"] == summary

        # Input session untouched
        assert session["teams"]["alpha"]["decisions"]["fix_seats_allocated"] == 0

    def test_no_budget_cap_after_first_round(self, make_session):
        session = make_session({"alpha": {"fix_seats_requested": 300, "fix_seat_bid_price": 100}}, round_number=1)
        updated, _ = run_fix_seat_auction(session)
        assert updated["teams"]["alpha"]["decisions"]["fix_seats_allocated"] == 300

    def test_summary_without_winners(self, make_session):
        session = make_session({"alpha": {"fix_seats_requested": 10, "fix_seat_bid_price": 10}})
        _, summary = run_fix_seat_auction(session)
        assert summary["min_qualifying_bid"] is None
        assert summary["pooling_reserve_capacity"] == SimulationConfig().total_aircraft_seats
