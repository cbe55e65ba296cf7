"""Shared fixtures for the test suite."""

from datetime import date
from unittest.mock import patch

import pytest
from pydantic import BaseModel, ConfigDict

from numera.config import AgentConfig
from scripted_completion import ScriptedCompletionService, ScriptedTurn
from numera.services.conversation import ConversationService
from numera.services.ledger import InMemoryLedgerService
from numera.tools.base import ToolDefinition
from numera.tools.registry import ToolsRegistry
from numera.utils.tokens import TokenCounter

TODAY = date(2026, 10, 18)


class LookupInput(BaseModel):
    """Input for the generic test tool."""

    model_config = ConfigDict(extra="forbid")

    key: str


def build_tool(name, handler=None, mutating=False) -> ToolDefinition:
    """Build a test tool taking a single ``key`` argument."""

    async def echo(params: LookupInput):
        return {"key": params.key}

    return ToolDefinition(
        name=name,
        description=f"Test tool {name}",
        input_schema_class=LookupInput,
        handler=handler or echo,
        mutating=mutating,
    )


@pytest.fixture
def make_tool():
    """Factory for single-argument test tools."""
    return build_tool


@pytest.fixture
def token_counter():
    """Token counter using the character estimate, so no encoding is downloaded."""
    with patch("numera.utils.tokens.tiktoken.encoding_for_model", side_effect=KeyError("offline")):
        return TokenCounter()


@pytest.fixture
def today():
    """Fixed date the demo ledger and tools are pinned to."""
    return TODAY


@pytest.fixture
def ledger(today):
    """Demo ledger pinned to a fixed date."""
    return InMemoryLedgerService(today=today)


@pytest.fixture
def make_service(token_counter):
    """Factory for conversation services backed by a scripted completion service."""

    def factory(
        turns: list[ScriptedTurn],
        tools: list[ToolDefinition] | ToolsRegistry | None = None,
        config: AgentConfig | None = None,
        repeat_last: bool = False,
    ) -> ConversationService:
        registry = tools if isinstance(tools, ToolsRegistry) else ToolsRegistry(tools).freeze()
        return ConversationService(
            ScriptedCompletionService(turns, repeat_last=repeat_last),
            registry,
            config=config or AgentConfig(),
            system_prompt="You are a test assistant.",
            token_counter=token_counter,
        )

    return factory
