"""
Tests for dependency checking.

Tests the dependency_check module which reports which of the external
tools Octopai drives are installed.
"""

import subprocess
from unittest.mock import patch

from octopai.dependency_check import (
    Dependency,
    check_dependencies,
    check_tool,
    detect_ai_tools,
    find_executable,
    gh_available,
    has_missing_required,
)

from tests.fixtures import completed


def which_for(*installed):
    return lambda name: f"/usr/bin/{name}" if name in installed else None


class TestFindExecutable:
    """Tests for find_executable."""

    def test_finds_existing_executable(self):
        with patch("shutil.which") as mock_which:
            mock_which.return_value = "/usr/bin/git"
            assert find_executable("git") == "/usr/bin/git"

    def test_returns_none_for_missing(self):
        with patch("shutil.which") as mock_which:
            mock_which.return_value = None
            assert find_executable("nonexistent_binary_xyz") is None


class TestCheckTool:

    def test_missing_tool_not_run(self):
        with patch("octopai.dependency_check.find_executable", return_value=None), \
             patch("octopai.dependency_check.subprocess.run") as mock_run:
            assert check_tool("gh") == (False, None)
            mock_run.assert_not_called()

    def test_version_first_line(self):
        with patch("octopai.dependency_check.find_executable", return_value="/usr/bin/gh"), \
             patch("octopai.dependency_check.subprocess.run",
                   return_value=completed(stdout="gh version 2.40.0\nhttps://github.com/cli\n")) as mock_run:
            assert check_tool("gh") == (True, "gh version 2.40.0")
            assert mock_run.call_args[0][0] == ["gh", "--version"]

    def test_multiplexers_use_dash_v(self):
        with patch("octopai.dependency_check.find_executable", return_value="/usr/bin/screen"), \
             patch("octopai.dependency_check.subprocess.run",
                   return_value=completed(stdout="Screen version 4.09.00", returncode=1)) as mock_run:
            assert check_tool("screen") == (True, "Screen version 4.09.00")
            assert mock_run.call_args[0][0] == ["screen", "-V"]

    def test_version_from_stderr(self):
        with patch("octopai.dependency_check.find_executable", return_value="/usr/bin/tmux"), \
             patch("octopai.dependency_check.subprocess.run",
                   return_value=completed(stderr="tmux 3.4")):
            assert check_tool("tmux") == (True, "tmux 3.4")

    def test_installed_but_unrunnable(self):
        with patch("octopai.dependency_check.find_executable", return_value="/usr/bin/git"), \
             patch("octopai.dependency_check.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("git", 10)):
            assert check_tool("git") == (True, None)


class TestCheckDependencies:

    def _check(self, *installed):
        with patch("octopai.dependency_check.find_executable", side_effect=which_for(*installed)), \
             patch("octopai.dependency_check.subprocess.run", return_value=completed(stdout="v1")):
            return {dep.name: dep for dep in check_dependencies()}

    def test_everything_installed(self):
        deps = self._check("gh", "git", "tmux", "screen", "claude", "cursor-agent")

        assert all(dep.available for dep in deps.values())
        assert not has_missing_required(list(deps.values()))

    def test_gh_is_optional(self):
        deps = self._check("git", "tmux", "claude")

        assert deps["gh"].available is False
        assert deps["gh"].required is False
        assert not has_missing_required(list(deps.values()))

    def test_either_agent_satisfies(self):
        deps = self._check("git", "screen", "cursor-agent")

        assert deps["claude/cursor"].available is True
        assert deps["tmux/screen"].available is True

    def test_no_multiplexer_is_missing_required(self):
        deps = self._check("git", "claude")

        assert deps["tmux/screen"].available is False
        assert has_missing_required(list(deps.values()))


class TestHasMissingRequired:

    def test_optional_missing_is_fine(self):
        deps = [Dependency("gh", "GitHub CLI", required=False, available=False)]
        assert has_missing_required(deps) is False

    def test_required_missing(self):
        deps = [Dependency("git", "Version control", required=True, available=False)]
        assert has_missing_required(deps) is True


class TestToolProbes:

    def test_gh_available(self):
        with patch("octopai.dependency_check.find_executable", side_effect=which_for("gh")):
            assert gh_available() is True
        with patch("octopai.dependency_check.find_executable", side_effect=which_for()):
            assert gh_available() is False

    def test_detect_ai_tools(self):
        with patch("octopai.dependency_check.find_executable", side_effect=which_for("cursor-agent")):
            assert detect_ai_tools() == (False, True)
