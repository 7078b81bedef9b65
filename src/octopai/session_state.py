"""
Shared session state pushed by agent hooks.

The event socket listener thread writes; the classifier reads from fetch
worker threads. Every access goes through one lock.

Entries are never deleted. A branch whose session disappears simply stops
being looked up. To avoid trusting a push forever (a hook that stopped
firing, a crashed agent), reads ignore entries older than ``max_age``
seconds and the classifier falls back to the pane heuristic for them.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .settings import DEFAULT_SESSION_STATE_MAX_AGE


@dataclass(frozen=True)
class PushedState:
    status: str
    received_at: float


class SessionStateStore:
    """Thread-safe mapping of session/branch name -> pushed status label."""

    def __init__(
        self,
        max_age: float = DEFAULT_SESSION_STATE_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            max_age: Seconds after which a push is distrusted (0 = never)
            clock: Time source, injectable for tests
        """
        self.max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._states: Dict[str, PushedState] = {}

    def set(self, session: str, status: str) -> None:
        """Record a push; the latest push for a session wins."""
        with self._lock:
            self._states[session] = PushedState(status, self._clock())

    def get(self, session: str) -> Optional[str]:
        """Pushed status for a session, or None if absent or stale."""
        with self._lock:
            entry = self._states.get(session)
        if entry is None:
            return None
        if self.max_age > 0 and self._clock() - entry.received_at > self.max_age:
            return None
        return entry.status

    def __contains__(self, session: str) -> bool:
        return self.get(session) is not None

    def snapshot(self) -> Dict[str, str]:
        """Copy of all entries, stale ones included."""
        with self._lock:
            return {name: entry.status for name, entry in self._states.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
