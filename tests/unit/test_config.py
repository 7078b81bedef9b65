"""
Unit tests for config module.
"""

import pytest

from octopai import config
from octopai.settings import (
    DEFAULT_NUDGE_MAX,
    DEFAULT_NUDGE_MESSAGE,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_SESSION_STATE_MAX_AGE,
)


def write_config(text: str) -> None:
    config.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    config.CONFIG_PATH.write_text(text)


class TestLoadConfig:
    """Test config loading functionality."""

    def test_returns_empty_dict_when_no_file(self):
        assert config.load_config() == {}

    def test_loads_valid_yaml(self):
        write_config("repo: acme/widgets\nlocal_mode: true\n")

        result = config.load_config()

        assert result["repo"] == "acme/widgets"
        assert result["local_mode"] is True

    def test_returns_empty_dict_on_invalid_yaml(self):
        """Should return empty dict when YAML is invalid."""
        write_config("invalid: yaml: content: [")
        assert config.load_config() == {}

    def test_returns_empty_dict_when_yaml_is_not_dict(self):
        write_config("- item1\n- item2\n")
        assert config.load_config() == {}

    def test_save_then_load(self):
        config.save_config({"repo": "acme/widgets", "nudge_max": 3})
        assert config.load_config() == {"repo": "acme/widgets", "nudge_max": 3}


class TestRepo:

    def test_none_when_unset(self):
        assert config.get_repo() is None

    def test_blank_is_none(self):
        write_config("repo: '   '\n")
        assert config.get_repo() is None

    def test_set_repo_keeps_other_keys(self):
        write_config("refresh_interval: 45\n")
        config.set_repo("acme/widgets")

        assert config.get_repo() == "acme/widgets"
        assert config.get_refresh_interval() == 45


class TestGlobalSettings:

    def test_defaults(self):
        assert config.get_local_mode() is False
        assert config.get_multiplexer() is None
        assert config.get_refresh_interval() == DEFAULT_REFRESH_INTERVAL
        assert config.get_nudge_max() == DEFAULT_NUDGE_MAX
        assert config.get_nudge_message() == DEFAULT_NUDGE_MESSAGE
        assert config.get_session_state_max_age() == DEFAULT_SESSION_STATE_MAX_AGE

    def test_refresh_interval_has_minimum(self):
        write_config("refresh_interval: 1\n")
        assert config.get_refresh_interval() == 5

    def test_non_numeric_int_falls_back_to_default(self):
        write_config("refresh_interval: soon\nnudge_max: lots\n")
        assert config.get_refresh_interval() == DEFAULT_REFRESH_INTERVAL
        assert config.get_nudge_max() == DEFAULT_NUDGE_MAX

    def test_negative_values_clamped_to_zero(self):
        write_config("nudge_max: -2\nsession_state_max_age: -1\n")
        assert config.get_nudge_max() == 0
        assert config.get_session_state_max_age() == 0

    @pytest.mark.parametrize("value,expected", [
        ("tmux", "tmux"),
        ("screen", "screen"),
        ("zellij", None),
    ])
    def test_multiplexer(self, value, expected):
        write_config(f"multiplexer: {value}\n")
        assert config.get_multiplexer() == expected

    def test_custom_nudge_message(self):
        write_config("nudge_message: keep going\n")
        assert config.get_nudge_message() == "keep going"

    def test_blank_nudge_message_uses_default(self):
        write_config("nudge_message: ''\n")
        assert config.get_nudge_message() == DEFAULT_NUDGE_MESSAGE


class TestRepoSettings:
    """Per-repository settings under the ``repos`` key."""

    def test_defaults(self):
        assert config.get_pr_ready("acme/widgets") is False
        assert config.get_auto_open_pr("acme/widgets") is True
        assert config.get_session_command("acme/widgets") is None

    def test_settings_are_scoped_to_repo(self):
        config.set_pr_ready("acme/widgets", True)

        assert config.get_pr_ready("acme/widgets") is True
        assert config.get_pr_ready("acme/gadgets") is False

    def test_clearing_pr_ready_removes_key(self):
        config.set_pr_ready("acme/widgets", True)
        config.set_pr_ready("acme/widgets", False)

        assert "pr_ready" not in config.load_config()["repos"]["acme/widgets"]

    def test_session_command_roundtrip(self):
        config.set_session_command("acme/widgets", "claude --resume")
        assert config.get_session_command("acme/widgets") == "claude --resume"

        config.set_session_command("acme/widgets", None)
        assert config.get_session_command("acme/widgets") is None

    def test_auto_open_pr_disabled(self):
        write_config("repos:\n  acme/widgets:\n    auto_open_pr: false\n")
        assert config.get_auto_open_pr("acme/widgets") is False

    def test_malformed_repos_section_ignored(self):
        write_config("repos: [not, a, mapping]\n")

        assert config.get_pr_ready("acme/widgets") is False
        config.set_pr_ready("acme/widgets", True)
        assert config.get_pr_ready("acme/widgets") is True

    @pytest.mark.parametrize("getter,setter,key", [
        (config.get_verify_command, config.set_verify_command, "verify_command"),
        (config.get_editor_command, config.set_editor_command, "editor_command"),
    ])
    def test_worktree_commands(self, getter, setter, key):
        assert getter("acme/widgets") is None

        setter("acme/widgets", "make test")
        assert getter("acme/widgets") == "make test"
        assert getter("acme/gadgets") is None

        setter("acme/widgets", "")
        assert key not in config.load_config()["repos"]["acme/widgets"]

    def test_blank_verify_command_is_unset(self):
        write_config("repos:\n  acme/widgets:\n    verify_command: '   '\n")
        assert config.get_verify_command("acme/widgets") is None
