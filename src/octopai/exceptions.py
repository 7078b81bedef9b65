"""
Exception types for Octopai.

Transient tool failures are swallowed at the fetch boundary and never reach
these types; they are reserved for user-facing action failures and fatal
startup problems.
"""

from typing import Optional


class OctopaiError(Exception):
    """Base class for all Octopai errors."""


class CommandError(OctopaiError):
    """An external command (git, gh, ...) exited non-zero or could not run."""

    def __init__(self, message: str, stderr: Optional[str] = None):
        super().__init__(message)
        self.stderr = stderr or ""


class SessionBackendError(OctopaiError):
    """The terminal multiplexer refused to create or attach a session."""


class BackendNotFoundError(OctopaiError):
    """Neither tmux nor screen is installed."""


class EventSocketError(OctopaiError):
    """The event socket could not be bound."""


class LocalStoreError(OctopaiError):
    """A local issue/PR record could not be found or written."""
