"""LangGraph workflow for headless rounds."""

from .workflow import create_round_graph, recursion_limit_for

__all__ = [
    "create_round_graph",
    "recursion_limit_for"
]
