"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass

DEFAULT_MAX_STEPS = 5


@dataclass(frozen=True)
class AgentConfig:
    """Configuration consumed by the step controller and tool executor."""

    max_steps: int = DEFAULT_MAX_STEPS
    completion_timeout: float = 60.0  # seconds, per completion-service call
    tool_timeout: float = 20.0  # seconds, per individual tool call
    tool_concurrency: int = 4
    max_message_tokens: int = 2000

    def __post_init__(self) -> None:
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {self.max_steps}")
        if self.tool_concurrency < 1:
            raise ValueError(f"tool_concurrency must be at least 1, got {self.tool_concurrency}")
        if self.completion_timeout <= 0 or self.tool_timeout <= 0:
            raise ValueError("Timeouts must be positive")

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Build configuration from NUMERA_* environment variables."""
        return cls(
            max_steps=int(os.getenv("NUMERA_MAX_STEPS", DEFAULT_MAX_STEPS)),
            completion_timeout=float(os.getenv("NUMERA_COMPLETION_TIMEOUT", "60")),
            tool_timeout=float(os.getenv("NUMERA_TOOL_TIMEOUT", "20")),
            tool_concurrency=int(os.getenv("NUMERA_TOOL_CONCURRENCY", "4")),
            max_message_tokens=int(os.getenv("NUMERA_MAX_MESSAGE_TOKENS", "2000")),
        )


_agent_config: AgentConfig | None = None


def get_agent_config() -> AgentConfig:
    """Get or create the process-wide agent configuration."""
    global _agent_config
    if _agent_config is None:
        _agent_config = AgentConfig.from_env()
    return _agent_config
