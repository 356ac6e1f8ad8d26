"""Database models for storing round results and high scores."""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class RoundResultRecord(Base):
    """One team's outcome for one finalized round."""
    __tablename__ = "round_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    team_id = Column(String(64), nullable=False)
    team_name = Column(String(64), nullable=False)

    sold = Column(Integer, default=0)
    revenue = Column(Float, default=0.0)
    cost = Column(Float, default=0.0)
    profit = Column(Float, default=0.0)
    unsold = Column(Integer, default=0)
    market_share = Column(Float, default=0.0)
    demand = Column(Integer, default=0)
    avg_price = Column(Float, default=0.0)
    capacity = Column(Integer, default=0)
    insolvent = Column(Boolean, default=False)

    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<RoundResultRecord(session='{self.session_id}', round={self.round_number}, team='{self.team_name}')>"


class HighScore(Base):
    """Best cumulative results across sessions."""
    __tablename__ = "high_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False)
    team_name = Column(String(64), nullable=False)
    total_profit = Column(Float, nullable=False)
    rounds_played = Column(Integer, default=1)
    avg_profit_per_round = Column(Float, nullable=False)
    achieved_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<HighScore(team='{self.team_name}', total_profit={self.total_profit})>"
