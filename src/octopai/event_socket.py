"""
Unix socket listener for session state pushed by agent hooks.

Each connection carries exactly one UTF-8 JSON object
``{"session": "<name>", "status": "<label>"}`` and is read to EOF. Valid
messages overwrite the session's entry in the SessionStateStore; anything
else is dropped without a reply.
"""

import json
import os
import socketserver
import threading
from pathlib import Path
from typing import Optional, Tuple

from .exceptions import EventSocketError
from .logging_config import get_logger
from .session_state import SessionStateStore


log = get_logger("event_socket")


def parse_event(payload: bytes) -> Optional[Tuple[str, str]]:
    """Decode one event payload into (session, status), or None if malformed."""
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    session = data.get("session")
    status = data.get("status")
    if not isinstance(session, str) or not isinstance(status, str):
        return None
    if not session or not status:
        return None
    return session, status


class _EventHandler(socketserver.StreamRequestHandler):
    """Reads one event per connection."""

    def handle(self) -> None:
        try:
            payload = self.rfile.read()
        except OSError:
            return
        event = parse_event(payload)
        if event is None:
            log.debug(f"Dropped malformed event ({len(payload)} bytes)")
            return
        session, status = event
        self.server.store.set(session, status)
        log.debug(f"Session {session} pushed {status}")


class _EventServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True

    def __init__(self, path: str, store: SessionStateStore):
        self.store = store
        super().__init__(path, _EventHandler)


class EventSocketListener:
    """Owns the socket file and the background accept loop."""

    def __init__(self, socket_path: Path, store: SessionStateStore):
        self.socket_path = Path(socket_path)
        self.store = store
        self._server: Optional[_EventServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Bind the socket and start accepting in a daemon thread.

        A leftover socket file from a previous run is removed first.

        Raises:
            EventSocketError: If the socket cannot be bound
        """
        if self.running:
            return

        try:
            self.socket_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise EventSocketError(f"Cannot remove stale socket {self.socket_path}: {e}") from e

        try:
            self._server = _EventServer(str(self.socket_path), self.store)
        except OSError as e:
            raise EventSocketError(f"Cannot bind event socket {self.socket_path}: {e}") from e

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="octopai-event-socket",
            daemon=True,
        )
        self._thread.start()
        log.info(f"Listening for session events on {self.socket_path}")

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        try:
            os.unlink(self.socket_path)
        except OSError:
            pass

    def __enter__(self) -> "EventSocketListener":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
