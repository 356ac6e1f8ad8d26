"""Database models and operations."""

from .models import Base, RoundResultRecord, HighScore
from .operations import (
    init_database,
    save_round_results,
    get_round_history,
    save_high_score,
    get_high_scores,
    reset_all_data
)

__all__ = [
    "Base",
    "RoundResultRecord",
    "HighScore",
    "init_database",
    "save_round_results",
    "get_round_history",
    "save_high_score",
    "get_high_scores",
    "reset_all_data"
]
