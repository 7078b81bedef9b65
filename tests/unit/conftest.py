"""
Unit test configuration for Octopai.

Every unit test runs against a throwaway state directory so nothing touches
the user's ~/.octopai (config, local store, prompts, logs).
"""

import tempfile
import shutil
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_state_dir(monkeypatch, tmp_path):
    """Point OCTOPAI_STATE_DIR and the config file at a temp directory."""
    from octopai import config

    state_dir = tmp_path / "octopai-state"
    monkeypatch.setenv("OCTOPAI_STATE_DIR", str(state_dir))
    monkeypatch.setattr(config, "CONFIG_PATH", state_dir / "config.yaml")
    return state_dir


@pytest.fixture
def socket_path():
    """A short Unix socket path (AF_UNIX paths are limited to ~100 bytes)."""
    directory = tempfile.mkdtemp(prefix="octopai-")
    try:
        yield Path(directory) / "events.sock"
    finally:
        shutil.rmtree(directory, ignore_errors=True)
