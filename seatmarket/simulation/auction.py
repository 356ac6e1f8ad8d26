"""Sealed-bid, pay-as-bid auction for fixed-price seats."""

import copy
import logging
from itertools import groupby
from typing import Dict, List, Optional, Tuple, Any

from seatmarket.models import FixSeatBid, FixSeatAllocation, Session

logger = logging.getLogger("seat_market.auction")


def budget_capped_quantity(quantity: int, bid_price: float, budget: float) -> int:
    """
    Largest quantity affordable within the budget at the bid price.

    A zero or negative bid price counts as an infinite unit cost, so nothing
    is affordable.
    """
    if bid_price <= 0:
        return 0
    return min(quantity, int(budget // bid_price))


def allocate_fix_seats(
    bids: List[FixSeatBid],
    capacity_cap: int,
    min_bid: float,
    budget_cap: Optional[float] = None
) -> Dict[str, FixSeatAllocation]:
    """
    Allocate at most ``capacity_cap`` fixed seats across sealed bids.

    Bids below ``min_bid`` are disqualified. Remaining bids are served in price
    tiers from the highest bid down; a tier that does not fit the remaining
    capacity is pro-rated, with the leftover single seats going to the largest
    fractional remainders (ties by team id). Each allocated team pays its own
    bid.

    Args:
        bids: One bid per team
        capacity_cap: Seats available to the auction
        min_bid: Minimum qualifying bid price
        budget_cap: If given, caps each request at floor(budget_cap / bid_price)

    Returns:
        Allocation per team_id
    """
    allocations: Dict[str, FixSeatAllocation] = {}
    qualified: List[Tuple[str, int, float]] = []

    for bid in bids:
        team_id = bid["team_id"]
        original = max(0, int(bid["quantity"]))
        bid_price = float(bid["bid_price"])
        requested = original
        if budget_cap is not None:
            requested = budget_capped_quantity(original, bid_price, budget_cap)

        disqualified = bid_price < min_bid
        allocations[team_id] = {
            "requested": requested,
            "requested_original": original,
            "bid_price": bid_price,
            "allocated": 0,
            "clearing_price": None,
            "disqualified_for_low_bid": disqualified
        }
        if disqualified:
            logger.debug(f"  {team_id}: bid {bid_price} below minimum {min_bid}, disqualified")
        elif requested > 0:
            qualified.append((team_id, requested, bid_price))

    remaining = max(0, int(capacity_cap))
    qualified.sort(key=lambda entry: (-entry[2], entry[0]))

    for bid_price, tier_iter in groupby(qualified, key=lambda entry: entry[2]):
        tier = list(tier_iter)
        if remaining <= 0:
            break

        tier_total = sum(requested for _, requested, _ in tier)

        if tier_total <= remaining:
            granted = {team_id: requested for team_id, requested, _ in tier}
        else:
            # Exact integer pro-rata: requested * remaining / tier_total
            granted = {}
            remainders = []
            for team_id, requested, _ in tier:
                share, remainder = divmod(requested * remaining, tier_total)
                granted[team_id] = share
                remainders.append((remainder, team_id))

            leftover = remaining - sum(granted.values())
            remainders.sort(key=lambda entry: (-entry[0], entry[1]))
            for _, team_id in remainders[:leftover]:
                granted[team_id] += 1

            logger.debug(
                f"  Tier @ {bid_price}: {tier_total} requested for {remaining} seats, pro-rated"
            )

        for team_id, seats in granted.items():
            allocations[team_id]["allocated"] = seats
            if seats > 0:
                allocations[team_id]["clearing_price"] = bid_price
        remaining -= sum(granted.values())

    return allocations


def run_fix_seat_auction(session: Session) -> Tuple[Session, Dict[str, Any]]:
    """
    Run the auction for every team in the session and write the outcome back.

    The first round (round 0) caps each request at what the per-team budget
    can pay for at the team's own bid.

    Args:
        session: Session in the pre-purchase phase

    Returns:
        (updated session, allocation summary)
    """
    session = copy.deepcopy(session)
    config = session["config"]
    teams = session["teams"]

    capacity_cap = config.capacity_cap_for(len(teams))
    budget_cap = config.per_team_budget if session["round_number"] == 0 else None

    bids: List[FixSeatBid] = [
        {
            "team_id": team_id,
            "quantity": team["decisions"].get("fix_seats_requested") or 0,
            "bid_price": team["decisions"].get("fix_seat_bid_price") or 0
        }
        for team_id, team in teams.items()
    ]

    logger.info(
        f"Fix-seat auction (round {session['round_number']}): {len(bids)} bids, "
        f"capacity cap {capacity_cap}, min bid {config.fix_seat_min_bid}"
    )

    allocations = allocate_fix_seats(bids, capacity_cap, config.fix_seat_min_bid, budget_cap)

    for team_id, allocation in allocations.items():
        decisions = teams[team_id]["decisions"]
        decisions["fix_seats_allocated"] = allocation["allocated"]
        decisions["fix_seat_clearing_price"] = allocation["clearing_price"]
        decisions["fix_seats_requested_original"] = allocation["requested_original"]
        decisions["disqualified_for_low_bid"] = allocation["disqualified_for_low_bid"]

    summary = build_allocation_summary(session, allocations, capacity_cap)
    session["allocation_summary"] = summary

    logger.info(
        f"  Allocated {summary['total_allocated']}/{capacity_cap} seats, "
        f"pooling reserve {summary['pooling_reserve_capacity']}"
    )
    return session, summary


def build_allocation_summary(
    session: Session,
    allocations: Dict[str, FixSeatAllocation],
    capacity_cap: int
) -> Dict[str, Any]:
    """Per-team auction outcome plus market-wide totals."""
    config = session["config"]
    total_allocated = sum(a["allocated"] for a in allocations.values())
    winning_bids = [a["bid_price"] for a in allocations.values() if a["allocated"] > 0]

    return {
        "round_number": session["round_number"],
        "capacity_cap": capacity_cap,
        "min_bid": config.fix_seat_min_bid,
        "min_qualifying_bid": min(winning_bids) if winning_bids else None,
        "total_requested": sum(a["requested"] for a in allocations.values()),
        "total_allocated": total_allocated,
        "pooling_reserve_capacity": config.total_aircraft_seats - total_allocated,
        "teams": [
            {
                "team_id": team_id,
                "team_name": session["teams"][team_id]["name"],
                "requested": allocation["requested"],
                "requested_original": allocation["requested_original"],
                "bid_price": allocation["bid_price"],
                "allocated": allocation["allocated"],
                "clearing_price": allocation["clearing_price"],
                "disqualified_for_low_bid": allocation["disqualified_for_low_bid"]
            }
            for team_id, allocation in allocations.items()
        ]
    }
