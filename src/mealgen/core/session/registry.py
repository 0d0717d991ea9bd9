from __future__ import annotations

from threading import Lock

from mealgen.core.errors import SessionNotFound
from mealgen.core.session.session import GenerationSession


class SessionRegistry:
    """
    Thread-safe, in-process view of live generation sessions.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._sessions: dict[str, GenerationSession] = {}

    def add(self, session: GenerationSession) -> None:
        with self._lock:
            if session.generation_id in self._sessions:
                raise RuntimeError(f"duplicate generation id: {session.generation_id}")
            self._sessions[session.generation_id] = session

    def get(self, generation_id: str) -> GenerationSession:
        with self._lock:
            session = self._sessions.get(generation_id)
        if session is None:
            raise SessionNotFound(generation_id)
        return session

    def remove(self, generation_id: str) -> GenerationSession:
        with self._lock:
            session = self._sessions.pop(generation_id, None)
        if session is None:
            raise SessionNotFound(generation_id)
        return session

    def list(self) -> list[GenerationSession]:
        with self._lock:
            items = list(self._sessions.values())
        items.sort(key=lambda s: s.created_at_utc, reverse=True)
        return items

    def close_all(self) -> int:
        with self._lock:
            items = list(self._sessions.values())
            self._sessions.clear()
        for s in items:
            s.close()
        return len(items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
