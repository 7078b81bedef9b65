"""
Protocol definitions for external dependencies.

SessionBackend is the capability interface over the terminal multiplexer.
Exactly one implementation is chosen at startup (see
implementations.detect_backend); tests swap in fakes that satisfy the same
protocol.
"""

from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class SessionBackend(Protocol):
    """Interface for named, persistent terminal sessions."""

    name: str

    def list_sessions(self) -> List[str]:
        """List session names.

        Never raises; returns an empty list on any tool error.
        """
        ...

    def create_session(self, name: str, working_dir: str) -> None:
        """Create a detached session running a shell in working_dir.

        Raises:
            SessionBackendError: If the multiplexer reports failure
        """
        ...

    def send_keys(self, name: str, text: str) -> None:
        """Type literal text into the session's primary pane, then submit.

        Fire-and-forget: failures are absorbed.
        """
        ...

    def capture_pane(self, name: str) -> Optional[str]:
        """Snapshot of the visible text of the session's primary pane.

        Returns:
            Pane text, or None if capture is impossible
        """
        ...

    def attach(self, name: str) -> None:
        """Hand the controlling terminal to the session until detach.

        Raises:
            SessionBackendError: If the multiplexer cannot be started
        """
        ...

    def kill_session(self, name: str) -> None:
        """Kill a session. Errors are ignored (it may already be gone)."""
        ...
