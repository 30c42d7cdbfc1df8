"""Tests for engine configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from crosscut.config import EngineConfig


class TestEngineConfig:
    """Test EngineConfig defaults and environment overrides."""

    def test_defaults(self) -> None:
        """Defaults match the follow-up rule and oracle timeouts."""
        config = EngineConfig()
        assert config.follow_up_ambiguity_threshold == 7
        assert config.follow_up_score_threshold == 2
        assert config.context_messages == 10
        assert config.safety_timeout_seconds == 30.0
        assert config.scoring_timeout_seconds == 60.0
        assert config.db_path == Path(".crosscut/sessions.db")

    def test_from_env_empty(self) -> None:
        """No variables means defaults."""
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_from_env_overrides(self) -> None:
        """CROSSCUT_* variables are parsed into fields."""
        config = EngineConfig.from_env(
            {
                "CROSSCUT_FOLLOW_UP_AMBIGUITY_THRESHOLD": "8",
                "CROSSCUT_SCORING_TIMEOUT_SECONDS": "12.5",
                "CROSSCUT_DB_PATH": "/tmp/x.db",
                "UNRELATED": "1",
            }
        )
        assert config.follow_up_ambiguity_threshold == 8
        assert config.scoring_timeout_seconds == 12.5
        assert config.db_path == Path("/tmp/x.db")

    def test_blank_variable_ignored(self) -> None:
        """Empty values fall back to the default."""
        config = EngineConfig.from_env({"CROSSCUT_CONTEXT_MESSAGES": ""})
        assert config.context_messages == 10

    def test_invalid_value_rejected(self) -> None:
        """Out-of-range values fail validation."""
        with pytest.raises(ValidationError):
            EngineConfig.from_env({"CROSSCUT_FOLLOW_UP_SCORE_THRESHOLD": "9"})

    def test_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without a mapping, os.environ is used."""
        monkeypatch.setenv("CROSSCUT_CONTEXT_MESSAGES", "4")
        assert EngineConfig.from_env().context_messages == 4
