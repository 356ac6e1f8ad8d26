"""Database operations for round results and high scores."""

from typing import Any, Dict, List, Optional
from sqlalchemy import create_engine, desc
from sqlalchemy.orm import sessionmaker, Session
from seatmarket.database.models import Base, HighScore, RoundResultRecord
from seatmarket.config import get_config
from seatmarket.models import RoundResult


def get_engine():
    """Get database engine."""
    config = get_config()
    return create_engine(config.database_url)


def get_session() -> Session:
    """Get database session."""
    engine = get_engine()
    SessionLocal = sessionmaker(bind=engine)
    return SessionLocal()


def init_database():
    """Initialize database tables."""
    engine = get_engine()
    Base.metadata.create_all(engine)


def save_round_results(session_id: str, results: List[RoundResult]) -> int:
    """
    Store a finalized round.

    Args:
        session_id: Session the round belongs to
        results: Round results as returned by finalize

    Returns:
        Number of rows written
    """
    session = get_session()

    try:
        for result in results:
            session.add(RoundResultRecord(
                session_id=session_id,
                round_number=result["round_number"],
                team_id=result["team_id"],
                team_name=result["team_name"],
                sold=result["sold"],
                revenue=result["revenue"],
                cost=result["cost"],
                profit=result["profit"],
                unsold=result["unsold"],
                market_share=result["market_share"],
                demand=result["demand"],
                avg_price=result["avg_price"],
                capacity=result["capacity"],
                insolvent=result["insolvent"]
            ))
        session.commit()
        return len(results)

    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_round_history(session_id: str, round_number: Optional[int] = None) -> List[Dict[str, Any]]:
    """Stored round results for a session, ordered by round then team name."""
    session = get_session()

    try:
        query = session.query(RoundResultRecord).filter(RoundResultRecord.session_id == session_id)
        if round_number is not None:
            query = query.filter(RoundResultRecord.round_number == round_number)
        records = query.order_by(RoundResultRecord.round_number, RoundResultRecord.team_name).all()

        return [
            {
                "team_id": r.team_id,
                "team_name": r.team_name,
                "round_number": r.round_number,
                "sold": r.sold,
                "revenue": r.revenue,
                "cost": r.cost,
                "profit": r.profit,
                "unsold": r.unsold,
                "market_share": r.market_share,
                "demand": r.demand,
                "avg_price": r.avg_price,
                "capacity": r.capacity,
                "insolvent": r.insolvent
            }
            for r in records
        ]
    finally:
        session.close()


def save_high_score(session_id: str, team_name: str, total_profit: float, rounds_played: int) -> int:
    """
    Record a team's cumulative result.

    Returns:
        High score ID
    """
    if rounds_played <= 0:
        raise ValueError("rounds_played must be positive")

    session = get_session()

    try:
        score = HighScore(
            session_id=session_id,
            team_name=team_name,
            total_profit=total_profit,
            rounds_played=rounds_played,
            avg_profit_per_round=round(total_profit / rounds_played, 2)
        )
        session.add(score)
        session.commit()
        return score.id

    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_high_scores(limit: int = 10) -> List[Dict[str, Any]]:
    session = get_session()

    try:
        scores = (
            session.query(HighScore)
            .order_by(desc(HighScore.total_profit))
            .limit(limit)
            .all()
        )
        return [
            {
                "id": s.id,
                "session_id": s.session_id,
                "team_name": s.team_name,
                "total_profit": s.total_profit,
                "rounds_played": s.rounds_played,
                "avg_profit_per_round": s.avg_profit_per_round,
                "achieved_at": s.achieved_at.isoformat() if s.achieved_at else None
            }
            for s in scores
        ]
    finally:
        session.close()


def reset_all_data() -> None:
    """Delete every stored round result and high score."""
    session = get_session()

    try:
        session.query(RoundResultRecord).delete()
        session.query(HighScore).delete()
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
