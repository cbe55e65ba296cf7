"""Tests for runtime configuration."""

from unittest.mock import patch

import pytest

from numera.config import DEFAULT_MAX_STEPS, AgentConfig


class TestAgentConfig:
    """Tests for agent configuration."""

    def test_defaults(self):
        """Test the default step ceiling and limits."""
        config = AgentConfig()

        assert config.max_steps == DEFAULT_MAX_STEPS == 5
        assert config.tool_concurrency == 4
        assert config.max_message_tokens == 2000

    def test_from_env(self):
        """Test that NUMERA_* variables override the defaults."""
        env = {
            "NUMERA_MAX_STEPS": "3",
            "NUMERA_COMPLETION_TIMEOUT": "12.5",
            "NUMERA_TOOL_TIMEOUT": "2",
            "NUMERA_TOOL_CONCURRENCY": "8",
            "NUMERA_MAX_MESSAGE_TOKENS": "500",
        }
        with patch.dict("os.environ", env):
            config = AgentConfig.from_env()

        assert config == AgentConfig(
            max_steps=3,
            completion_timeout=12.5,
            tool_timeout=2.0,
            tool_concurrency=8,
            max_message_tokens=500,
        )

    @pytest.mark.parametrize(
        "overrides",
        [{"max_steps": 0}, {"tool_concurrency": 0}, {"tool_timeout": 0}, {"completion_timeout": -1}],
    )
    def test_invalid_values_rejected(self, overrides):
        """Test that nonsensical limits fail fast."""
        with pytest.raises(ValueError):
            AgentConfig(**overrides)
