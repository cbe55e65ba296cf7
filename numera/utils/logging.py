"""Logging for the agent service.

Module loggers come from ``get_logger``. Code that works on behalf of a single
conversation logs through ``get_conversation_logger`` so that interleaved
lines from concurrent requests can be told apart.
"""

import logging
import os
import sys
from collections.abc import MutableMapping
from typing import Any

from pydantic import BaseModel


class LogConfig(BaseModel):
    """Logging configuration, read from LOG_LEVEL by default."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_env(cls) -> "LogConfig":
        return cls(level=os.getenv("LOG_LEVEL", "INFO"))


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger for the API process and the CLI."""
    config = config or LogConfig.from_env()

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    # Request-level chatter from the SDK and the server
    for name in ("anthropic", "httpx", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, otherwise LOG_LEVEL from the environment

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger


class ConversationLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the conversation id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['conversation_id']}] {msg}", kwargs


def get_conversation_logger(name: str, conversation_id: str) -> ConversationLoggerAdapter:
    """Get a module logger bound to one conversation."""
    return ConversationLoggerAdapter(get_logger(name), {"conversation_id": conversation_id})
