"""
Real implementations of the SessionBackend protocol.

TmuxBackend talks to tmux through libtmux; ScreenBackend drives GNU screen
with plain subprocess calls. Neither keeps any session state of its own:
every call goes back to the multiplexer.
"""

import os
import re
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional

import libtmux
from libtmux.exc import LibTmuxException
from libtmux._internal.query_list import ObjectDoesNotExist

from .dependency_check import find_executable
from .exceptions import BackendNotFoundError, SessionBackendError
from .logging_config import get_logger


log = get_logger("backend")


class TmuxBackend:
    """SessionBackend over tmux, using libtmux."""

    name = "tmux"

    def __init__(self, socket_name: Optional[str] = None):
        """Initialize with optional socket name for test isolation.

        If no socket_name is provided, checks OCTOPAI_TMUX_SOCKET env var.
        """
        self._socket_name = socket_name or os.environ.get("OCTOPAI_TMUX_SOCKET")
        self._server: Optional[libtmux.Server] = None

    @property
    def server(self) -> libtmux.Server:
        """Lazy-load the tmux server connection."""
        if self._server is None:
            if self._socket_name:
                self._server = libtmux.Server(socket_name=self._socket_name)
            else:
                self._server = libtmux.Server()
        return self._server

    def _tmux_cmd(self, *args: str) -> List[str]:
        cmd = ["tmux"]
        if self._socket_name:
            cmd += ["-L", self._socket_name]
        return cmd + list(args)

    def _get_session(self, name: str) -> Optional[libtmux.Session]:
        try:
            return self.server.sessions.get(session_name=name)
        except (LibTmuxException, ObjectDoesNotExist):
            return None

    def _get_pane(self, name: str) -> Optional[libtmux.Pane]:
        """First pane of the session's active window."""
        sess = self._get_session(name)
        if sess is None:
            return None
        try:
            window = sess.active_window
            if window is None or not window.panes:
                return None
            return window.panes[0]
        except LibTmuxException:
            return None

    def list_sessions(self) -> List[str]:
        try:
            return [s.session_name for s in self.server.sessions if s.session_name]
        except LibTmuxException:
            return []

    def create_session(self, name: str, working_dir: str) -> None:
        try:
            self.server.new_session(
                session_name=name,
                start_directory=working_dir,
                attach=False,
            )
        except LibTmuxException as e:
            raise SessionBackendError(f"tmux error: {e}") from e

    def send_keys(self, name: str, text: str) -> None:
        try:
            pane = self._get_pane(name)
            if pane is None:
                return
            # Text and Enter go as separate commands; agents drop an Enter
            # that arrives in the same write as the text.
            pane.send_keys(text, enter=False, literal=True)
            time.sleep(0.1)
            pane.send_keys("", enter=True)
        except LibTmuxException as e:
            log.debug(f"send_keys to {name} failed: {e}")

    def capture_pane(self, name: str) -> Optional[str]:
        try:
            pane = self._get_pane(name)
            if pane is None:
                return None
            captured = pane.capture_pane()
            if isinstance(captured, list):
                return "\n".join(captured)
            return captured
        except LibTmuxException:
            return None

    def attach(self, name: str) -> None:
        try:
            subprocess.run(self._tmux_cmd("attach-session", "-t", name))
        except OSError as e:
            raise SessionBackendError(f"Failed to attach: {e}") from e

    def kill_session(self, name: str) -> None:
        sess = self._get_session(name)
        if sess is None:
            return
        try:
            sess.kill()
        except LibTmuxException:
            pass


# `screen -ls` lines look like "\t12345.issue-4\t(Detached)"
_SCREEN_LS_PATTERN = re.compile(r"^\s*\d+\.(\S+)\s")


def parse_screen_ls(output: str) -> List[str]:
    """Extract session names from `screen -ls` output."""
    names = []
    for line in output.splitlines():
        match = _SCREEN_LS_PATTERN.match(line)
        if match:
            names.append(match.group(1))
    return names


class ScreenBackend:
    """SessionBackend over GNU screen."""

    name = "screen"

    def _run(self, args: List[str], cwd: Optional[str] = None) -> Optional[subprocess.CompletedProcess]:
        try:
            return subprocess.run(
                ["screen"] + args,
                capture_output=True,
                text=True,
                timeout=10,
                cwd=cwd,
            )
        except (subprocess.SubprocessError, OSError) as e:
            log.debug(f"screen {' '.join(args)} failed: {e}")
            return None

    def list_sessions(self) -> List[str]:
        # screen -ls exits 1 whenever sessions exist, so only stdout matters
        result = self._run(["-ls"])
        if result is None:
            return []
        return parse_screen_ls(result.stdout)

    def create_session(self, name: str, working_dir: str) -> None:
        try:
            result = subprocess.run(
                ["screen", "-dmS", name],
                capture_output=True,
                text=True,
                timeout=10,
                cwd=working_dir,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise SessionBackendError(f"Failed to create screen session: {e}") from e
        if result.returncode != 0:
            raise SessionBackendError(f"screen error: {result.stderr.strip()}")

    def send_keys(self, name: str, text: str) -> None:
        self._run(["-S", name, "-p", "0", "-X", "stuff", text])
        time.sleep(0.1)
        self._run(["-S", name, "-p", "0", "-X", "stuff", "\r"])

    def capture_pane(self, name: str) -> Optional[str]:
        fd, temp_path = tempfile.mkstemp(prefix="octopai-hardcopy-", suffix=".txt")
        os.close(fd)
        try:
            result = self._run(["-S", name, "-p", "0", "-X", "hardcopy", temp_path])
            if result is None or result.returncode != 0:
                return None
            return Path(temp_path).read_text(errors="replace")
        except OSError:
            return None
        finally:
            try:
                os.unlink(temp_path)
            except OSError:
                pass

    def attach(self, name: str) -> None:
        try:
            subprocess.run(["screen", "-r", name])
        except OSError as e:
            raise SessionBackendError(f"Failed to attach: {e}") from e

    def kill_session(self, name: str) -> None:
        self._run(["-S", name, "-X", "quit"])


_BACKENDS = {
    "tmux": TmuxBackend,
    "screen": ScreenBackend,
}


def detect_backend(preferred: Optional[str] = None):
    """Pick the session backend once, at startup.

    A configured preference wins when that tool is installed; otherwise tmux
    is preferred over screen.

    Raises:
        BackendNotFoundError: If neither multiplexer is installed
    """
    order = ["tmux", "screen"]
    if preferred in _BACKENDS:
        order.remove(preferred)
        order.insert(0, preferred)

    for tool in order:
        if find_executable(tool):
            log.info(f"Using {tool} session backend")
            return _BACKENDS[tool]()

    raise BackendNotFoundError(
        "No terminal multiplexer found. "
        "Install tmux (preferred) or GNU screen."
    )
