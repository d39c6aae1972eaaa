"""Session state shared by every call of a single client.

The state is a ``(session_id, initialized)`` pair. It is read by every
submission (to pick auth headers) and written only by the init and end
flows, so it is guarded by a reader/writer lock. The lock only protects
the in-memory pair and is never held across I/O.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """Shared-read / exclusive-write lock with writer preference.

    Waiting writers block new readers so a steady stream of submissions
    cannot starve an init or end-session call.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode."""
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock in exclusive mode."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SessionState:
    """Session id and initialized flag, updated atomically.

    Invariant: ``initialized`` is True exactly when ``session_id`` is
    non-empty.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._session_id = ""
        self._initialized = False

    def snapshot(self) -> tuple[str, bool]:
        """Return the current ``(session_id, initialized)`` pair."""
        with self._lock.read():
            return self._session_id, self._initialized

    @property
    def session_id(self) -> str:
        """Current session id, empty when no session is active."""
        with self._lock.read():
            return self._session_id

    @property
    def initialized(self) -> bool:
        """Whether a session is active."""
        with self._lock.read():
            return self._initialized

    def set(self, session_id: str, initialized: bool) -> None:
        """Replace the pair.

        Raises:
            ValueError: If the pair breaks the session invariant.
        """
        if initialized != bool(session_id):
            raise ValueError(
                "initialized must be True exactly when session_id is non-empty"
            )
        with self._lock.write():
            self._session_id = session_id
            self._initialized = initialized

    def clear(self) -> None:
        """Reset to the uninitialized state."""
        self.set("", False)

    def clear_if(self, session_id: str) -> bool:
        """Clear only if the stored session id is still ``session_id``.

        Returns:
            True if the state was cleared.
        """
        with self._lock.write():
            if self._session_id != session_id:
                return False
            self._session_id = ""
            self._initialized = False
            return True
