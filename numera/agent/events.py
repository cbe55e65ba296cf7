"""Stream event vocabulary."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from numera.agent.state import TerminationReason
from numera.models.tools import ToolOutcome


class BaseEvent(BaseModel):
    """Fields shared by every event.

    ``sequence`` and ``conversation_id`` are stamped by the emitter.
    """

    conversation_id: str = ""
    sequence: int = 0


class TextDeltaEvent(BaseEvent):
    type: Literal["text_delta"] = "text_delta"
    step: int
    chunk: str


class ToolCallStartedEvent(BaseEvent):
    type: Literal["tool_call_started"] = "tool_call_started"
    step: int
    id: str
    name: str


class ToolCallFinishedEvent(BaseEvent):
    type: Literal["tool_call_finished"] = "tool_call_finished"
    step: int
    id: str
    name: str
    outcome: ToolOutcome


class DataChangedEvent(BaseEvent):
    """A mutating tool changed financial records; clients should refresh."""

    type: Literal["data_changed"] = "data_changed"
    step: int
    tool: str
    call_id: str


class StepFinishedEvent(BaseEvent):
    type: Literal["step_finished"] = "step_finished"
    index: int
    tool_calls: int = 0


class TerminatedEvent(BaseEvent):
    type: Literal["terminated"] = "terminated"
    reason: TerminationReason
    steps: int


class ErrorEvent(BaseEvent):
    type: Literal["error"] = "error"
    detail: str


StreamEvent = Annotated[
    TextDeltaEvent
    | ToolCallStartedEvent
    | ToolCallFinishedEvent
    | DataChangedEvent
    | StepFinishedEvent
    | TerminatedEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"terminated", "error"})
