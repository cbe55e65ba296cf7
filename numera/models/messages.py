"""Message and conversation data models."""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from numera.models.tools import ToolFailure, ToolOutcome, ToolSuccess

Role = Literal["user", "assistant", "tool"]


class TextPart(BaseModel):
    """Plain text content."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    """A tool invocation declared by the model.

    ``arguments`` is whatever the completion service produced. Well-behaved
    services return a JSON object; a raw string is kept as-is and rejected by
    the executor if it does not decode to an object.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    arguments: dict[str, Any] | str = Field(default_factory=dict)

    def arguments_dict(self) -> dict[str, Any]:
        """Arguments as a mapping, empty when they never decoded to one."""
        if isinstance(self.arguments, dict):
            return self.arguments
        try:
            decoded = json.loads(self.arguments)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}


class ToolResultPart(BaseModel):
    """The outcome of one tool call."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_result"] = "tool_result"
    call_id: str
    outcome: ToolOutcome

    @property
    def is_error(self) -> bool:
        return isinstance(self.outcome, ToolFailure)

    @property
    def output(self) -> Any:
        return self.outcome.output if isinstance(self.outcome, ToolSuccess) else None

    @property
    def error(self) -> ToolFailure | None:
        return self.outcome if isinstance(self.outcome, ToolFailure) else None

    def as_text(self) -> str:
        return self.outcome.as_text()


MessagePart = Annotated[TextPart | ToolCallPart | ToolResultPart, Field(discriminator="type")]


class Message(BaseModel):
    """One turn in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: tuple[MessagePart, ...]

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", content=(TextPart(text=text),))

    @classmethod
    def assistant(cls, text: str = "", tool_calls: list[ToolCallPart] | None = None) -> "Message":
        parts: list[TextPart | ToolCallPart] = [TextPart(text=text)] if text else []
        parts.extend(tool_calls or [])
        return cls(role="assistant", content=tuple(parts))

    @classmethod
    def tool_results(cls, results: list[ToolResultPart]) -> "Message":
        return cls(role="tool", content=tuple(results))

    @property
    def text(self) -> str:
        """Concatenated text parts."""
        return "".join(part.text for part in self.content if isinstance(part, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [part for part in self.content if isinstance(part, ToolCallPart)]

    @property
    def results(self) -> list[ToolResultPart]:
        return [part for part in self.content if isinstance(part, ToolResultPart)]
