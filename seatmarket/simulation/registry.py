"""Session registry: one handle per session, one in-flight operation per session."""

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from seatmarket.models import RoundResult, Session, Team
from seatmarket.simulation import phases
from seatmarket.simulation.config import SimulationConfig
from seatmarket.simulation.errors import UnknownSessionError
from seatmarket.simulation.rng import make_rng

logger = logging.getLogger("seat_market.registry")


class SessionHandle:
    """
    Owns one session, its random source and the lock that serializes work on it.

    Every operation swaps in the new session snapshot returned by the core only
    after the core call succeeds.
    """

    def __init__(self, session: Session, seed: Optional[int] = None):
        self._session = session
        self.rng = make_rng(seed)
        self.lock = threading.Lock()

    @property
    def session_id(self) -> str:
        return self._session["session_id"]

    @property
    def session(self) -> Session:
        """The current snapshot. Treat as read-only."""
        with self.lock:
            return self._session

    def _apply(self, operation: Callable[[Session], Tuple[Session, Any]]) -> Any:
        with self.lock:
            new_session, output = operation(self._session)
            self._session = new_session
            return output

    def register_team(self, name: str, team_id: Optional[str] = None) -> Team:
        return self._apply(lambda s: phases.register_team(s, name, team_id))

    def remove_team(self, team_id: str) -> None:
        self._apply(lambda s: (phases.remove_team(s, team_id), None))

    def update_team_decision(self, team_id: str, patch: Mapping[str, Any]) -> None:
        self._apply(lambda s: (phases.update_team_decision(s, team_id, patch), None))

    def update_config(self, patch: Mapping[str, Any]) -> SimulationConfig:
        def operation(s: Session):
            updated = phases.update_session_config(s, patch)
            return updated, updated["config"]
        return self._apply(operation)

    def start_simulation(self) -> Dict[str, Any]:
        return self._apply(phases.start_simulation_phase)

    def advance_tick(self) -> bool:
        """Run one tick. Returns True once the simulated horizon is exhausted."""
        return self._apply(lambda s: phases.advance_one_tick(s, self.rng))

    def end_phase(self) -> List[RoundResult]:
        """Finalize the round now. Returns [] if there was nothing to finalize."""
        return self._apply(lambda s: phases.end_phase_now(s, self.rng))


class SessionRegistry:
    """Explicit map of session id to handle."""

    def __init__(self, seed: Optional[int] = None):
        self._handles: Dict[str, SessionHandle] = {}
        self._lock = threading.Lock()
        self._seed = seed

    def create(
        self,
        config: Optional[SimulationConfig] = None,
        session_id: Optional[str] = None
    ) -> SessionHandle:
        session = phases.create_session(session_id, config)
        handle = SessionHandle(session, seed=self._seed)
        with self._lock:
            if handle.session_id in self._handles:
                raise ValueError(f"Session already exists: {handle.session_id}")
            self._handles[handle.session_id] = handle
        logger.info(f"Session created: {handle.session_id}")
        return handle

    def get(self, session_id: str) -> SessionHandle:
        with self._lock:
            handle = self._handles.get(session_id)
        if handle is None:
            raise UnknownSessionError(session_id)
        return handle

    def remove(self, session_id: str) -> None:
        with self._lock:
            if session_id not in self._handles:
                raise UnknownSessionError(session_id)
            del self._handles[session_id]
        logger.info(f"Session removed: {session_id}")

    def list(self) -> List[SessionHandle]:
        with self._lock:
            return list(self._handles.values())

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
