"""
In-memory registry of injector calibration sessions.

Each session owns one CharacterizationEngine. Nothing is persisted; sessions
live for the lifetime of the process. Once the cap is reached, creating a
new session evicts the oldest one.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from calculations import CharacterizationEngine

logger = logging.getLogger(__name__)


@dataclass
class CalibrationSession:
    id: int
    engine: CharacterizationEngine = field(default_factory=CharacterizationEngine)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Held while a request mutates or reads this session's engine
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class SessionRegistry:
    """Thread-safe map of session id -> CalibrationSession."""

    def __init__(self, max_sessions: int = 64):
        self.max_sessions = max(1, max_sessions)
        self._sessions: dict[int, CalibrationSession] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self) -> CalibrationSession:
        with self._lock:
            while len(self._sessions) >= self.max_sessions:
                # dicts keep insertion order, so the first key is the oldest
                oldest_id = next(iter(self._sessions))
                del self._sessions[oldest_id]
                logger.info(f"Evicted session {oldest_id} (limit {self.max_sessions})")

            session = CalibrationSession(id=self._next_id)
            self._next_id += 1
            self._sessions[session.id] = session

        logger.info(f"Created session {session.id}")
        return session

    def get(self, session_id: int) -> Optional[CalibrationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def all(self) -> list[CalibrationSession]:
        with self._lock:
            return list(self._sessions.values())

    def delete(self, session_id: int) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Deleted session {session_id}")
        return removed is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
