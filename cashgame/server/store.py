"""
In-memory session store.

Holds one ``CashGame`` per session with a version counter. Every update goes
through ``SessionStore.update`` under a lock: the operation gets the current
game, returns the next one, and the store bumps the version. Passing
``expected_version`` turns the update into a compare-and-set so two clients
working from the same snapshot cannot overwrite each other.
"""

from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, TypeVar

from cashgame.core.errors import StateConflict
from cashgame.core.session import CashGame


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionNotFound(KeyError):
    pass


@dataclass
class StoredSession:
    """A session and the version of its last write."""
    session_id: str
    game: CashGame
    version: int = 0


class SessionStore:
    """
    Manages cash game sessions.

    Usage:
        store = SessionStore()
        session = store.create()
        session, _ = store.update(session.session_id, lambda g: (buy_in(g, "Ana", 100), None))
    """

    def __init__(self):
        self.sessions: Dict[str, StoredSession] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def create(self, game: Optional[CashGame] = None) -> StoredSession:
        with self._lock:
            self._counter += 1
            session_id = f"session-{self._counter}"
            stored = StoredSession(session_id=session_id, game=game or CashGame())
            self.sessions[session_id] = stored
        logger.info(f"Created {session_id}")
        return stored

    def get(self, session_id: str) -> StoredSession:
        stored = self.sessions.get(session_id)
        if stored is None:
            raise SessionNotFound(session_id)
        return stored

    def _checked(self, session_id: str, expected_version: Optional[int]) -> StoredSession:
        stored = self.get(session_id)
        if expected_version is not None and expected_version != stored.version:
            raise StateConflict(
                f"Session changed (version {stored.version}, expected {expected_version})"
            )
        return stored

    def update(
        self,
        session_id: str,
        operation: Callable[[CashGame], Tuple[CashGame, T]],
        expected_version: Optional[int] = None,
    ) -> Tuple[StoredSession, T]:
        """
        Apply an operation to a session and store its result.

        Raises:
            SessionNotFound: If the session does not exist.
            StateConflict: If ``expected_version`` is stale.
        """
        with self._lock:
            stored = self._checked(session_id, expected_version)
            game, result = operation(stored.game)
            stored.game = game
            stored.version += 1
        return stored, result

    def close(
        self,
        session_id: str,
        operation: Callable[[CashGame], T],
        expected_version: Optional[int] = None,
    ) -> T:
        """
        Run a final operation on a session and remove it in one step.

        The session is only removed if the operation returns normally.

        Raises:
            SessionNotFound: If the session does not exist.
            StateConflict: If ``expected_version`` is stale.
        """
        with self._lock:
            stored = self._checked(session_id, expected_version)
            result = operation(stored.game)
            del self.sessions[session_id]
        logger.info(f"Closed {session_id}")
        return result

    def delete(self, session_id: str) -> None:
        with self._lock:
            self.get(session_id)
            del self.sessions[session_id]
        logger.info(f"Deleted {session_id}")
