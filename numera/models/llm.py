"""Completion-service data models (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel

from numera.models.messages import Message


class LLMToolDefinition(BaseModel):
    """Tool definition as advertised to the completion service."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class LLMUsage:
    """Token/resource usage information from the LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def cache_hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total_input = self.input_tokens + self.cache_read_input_tokens + self.cache_creation_input_tokens
        if total_input == 0:
            return 0.0
        return (self.cache_read_input_tokens / total_input) * 100

    def add(self, other: "LLMUsage") -> None:
        """Accumulate another usage record into this one."""
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_input_tokens += other.cache_creation_input_tokens
        self.cache_read_input_tokens += other.cache_read_input_tokens


@dataclass
class CompletionRequest:
    """Everything the completion service sees for one assistant turn."""

    system_prompt: str
    messages: list[Message]
    tools: list[LLMToolDefinition] = field(default_factory=list)


# Chunks streamed back by a completion service for one assistant turn.


@dataclass(frozen=True)
class TextChunk:
    """A piece of assistant text."""

    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolCallChunk:
    """A fully declared tool call."""

    id: str
    name: str
    arguments: dict[str, Any] | str
    type: Literal["tool_call"] = "tool_call"


@dataclass(frozen=True)
class FinishChunk:
    """End of the assistant turn."""

    stop_reason: str | None = None
    usage: LLMUsage | None = None
    type: Literal["finish"] = "finish"


CompletionChunk = TextChunk | ToolCallChunk | FinishChunk
