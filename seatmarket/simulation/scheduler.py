"""Background tick scheduling for sessions in the simulation phase."""

import logging
import threading
from typing import Callable, Dict, List, Optional

from seatmarket.models import RoundResult
from seatmarket.simulation.errors import PhaseError
from seatmarket.simulation.registry import SessionHandle

logger = logging.getLogger("seat_market.scheduler")

CompletionCallback = Callable[[SessionHandle, List[RoundResult]], None]


class TickScheduler:
    """
    Advances running sessions one tick per interval on daemon threads.

    When the horizon runs out the round is finalized and ``on_complete`` is
    called with the round results. Stopping a session only cancels future
    ticks; the tick in progress always completes under the session lock.
    """

    def __init__(self, interval_seconds: float, on_complete: Optional[CompletionCallback] = None):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.interval_seconds = interval_seconds
        self.on_complete = on_complete
        self._threads: Dict[str, threading.Thread] = {}
        self._stop_events: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def start(self, handle: SessionHandle) -> None:
        """Begin ticking a session, replacing any earlier schedule for it."""
        self.stop(handle.session_id)

        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(handle, stop_event),
            name=f"ticks-{handle.session_id}",
            daemon=True
        )
        with self._lock:
            self._threads[handle.session_id] = thread
            self._stop_events[handle.session_id] = stop_event
        thread.start()

        logger.info(f"Tick scheduler started for session {handle.session_id} (every {self.interval_seconds}s)")

    def stop(self, session_id: str, wait: bool = True) -> None:
        """Cancel future ticks for a session. Safe to call if nothing is scheduled."""
        with self._lock:
            stop_event = self._stop_events.pop(session_id, None)
            thread = self._threads.pop(session_id, None)

        if stop_event is None:
            return
        stop_event.set()
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval_seconds + 5)

        logger.info(f"Tick scheduler stopped for session {session_id}")

    def stop_all(self) -> None:
        with self._lock:
            session_ids = list(self._stop_events)
        for session_id in session_ids:
            self.stop(session_id)

    def is_running(self, session_id: str) -> bool:
        with self._lock:
            thread = self._threads.get(session_id)
        return thread is not None and thread.is_alive()

    def _run(self, handle: SessionHandle, stop_event: threading.Event) -> None:
        session_id = handle.session_id
        try:
            while not stop_event.wait(self.interval_seconds):
                try:
                    completed = handle.advance_tick()
                except PhaseError:
                    # Round was ended from elsewhere
                    logger.debug(f"Session {session_id} left the simulation phase, scheduler exiting")
                    break

                if completed:
                    results = handle.end_phase()
                    if results and self.on_complete is not None:
                        self.on_complete(handle, results)
                    break
        except Exception as e:
            logger.error(f"Tick scheduler for session {session_id} failed: {str(e)}", exc_info=True)
        finally:
            with self._lock:
                if self._stop_events.get(session_id) is stop_event:
                    del self._stop_events[session_id]
                    del self._threads[session_id]
