"""In-process registry of active import sessions."""

import logging
import threading
from collections import OrderedDict
from typing import List

from import_engine.imports.constants import ImportStep
from import_engine.imports.exceptions import SessionNotFoundError
from import_engine.imports.session import ImportSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Keeps import sessions between requests, scoped per company.

    Only sessions whose upload succeeded are added. When the registry is
    full, completed sessions are dropped first, then the least recently
    used ones.
    """

    def __init__(self, max_sessions: int = 100):
        """
        Args:
            max_sessions: Number of sessions kept in memory
        """
        self._sessions: "OrderedDict[str, ImportSession]" = OrderedDict()
        self.max_sessions = max_sessions
        self._lock = threading.Lock()

    def add(self, session: ImportSession) -> None:
        with self._lock:
            self._sessions[session.id] = session
            self._sessions.move_to_end(session.id)
            evicted = self._evict()
        for session_id in evicted:
            logger.info(f"Evicted import session {session_id}")
        logger.info(f"Registered import session {session.id} for company {session.company_id}")

    def _evict(self) -> List[str]:
        evicted = []
        if len(self._sessions) > self.max_sessions:
            complete = [sid for sid, s in self._sessions.items() if s.step == ImportStep.COMPLETE]
            for session_id in complete[: len(self._sessions) - self.max_sessions]:
                del self._sessions[session_id]
                evicted.append(session_id)
        while len(self._sessions) > self.max_sessions:
            session_id, _ = self._sessions.popitem(last=False)
            evicted.append(session_id)
        return evicted

    def get(self, session_id: str, company_id: str) -> ImportSession:
        """
        Raises:
            SessionNotFoundError: If the session does not exist or belongs to another company
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.company_id == company_id:
                self._sessions.move_to_end(session_id)
                return session
        raise SessionNotFoundError(f"Import session '{session_id}' not found")

    def discard(self, session_id: str, company_id: str) -> None:
        session = self.get(session_id, company_id)
        with self._lock:
            self._sessions.pop(session.id, None)
        logger.info(f"Discarded import session {session_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
