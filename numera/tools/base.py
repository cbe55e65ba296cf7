"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from numera.models.llm import LLMToolDefinition

ToolHandler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool available to the assistant.

    ``handler`` receives the validated ``input_schema_class`` instance. Tools
    that change financial records set ``mutating`` so clients are told to
    refresh; ``idempotent`` documents whether a repeat call is harmless. The
    runtime never retries either kind.
    """

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    mutating: bool = False
    idempotent: bool = False

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def to_llm_tool(self) -> LLMToolDefinition:
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=self.get_json_schema())
