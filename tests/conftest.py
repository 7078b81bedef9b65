"""
Pytest configuration for Octopai tests.

This module provides shared fixtures and configuration for all tests.
"""

import os
import shutil
import subprocess

import pytest

# Rich falls back to an 80-column width when output is not a terminal, which
# wraps CLI messages mid-phrase; pin a wide width before octopai.cli is imported.
os.environ["COLUMNS"] = "200"


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "requires_git: mark test as needing a real git binary"
    )


@pytest.fixture(scope="session")
def git_available():
    """Skip tests that shell out to git when it is not installed"""
    if shutil.which("git") is None:
        pytest.skip("git not installed or not in PATH")
    try:
        subprocess.run(["git", "--version"], capture_output=True, timeout=5, check=True)
    except (subprocess.SubprocessError, OSError):
        pytest.skip("git not runnable")
    return True
