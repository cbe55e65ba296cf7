"""Conversation state: the append-only message log and step record."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from cuid2 import cuid_wrapper

from numera.errors import ConversationStateError
from numera.models.llm import LLMUsage
from numera.models.messages import Message, ToolCallPart, ToolResultPart
from numera.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


class TerminationReason(StrEnum):
    """Why a conversation's step loop ended."""

    MAX_STEPS_REACHED = "max-steps-reached"
    NO_FURTHER_TOOL_CALLS = "no-further-tool-calls"
    UPSTREAM_ERROR = "upstream-error"
    CANCELLED = "cancelled"


@dataclass
class Step:
    """One model turn plus the tool calls it requested and their results."""

    index: int
    tool_calls: list[ToolCallPart] = field(default_factory=list)
    text_output: str = ""
    tool_results: list[ToolResultPart] = field(default_factory=list)
    usage: LLMUsage | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass
class Conversation:
    """The unit of work for one request."""

    id: str = field(default_factory=cuid)
    messages: list[Message] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)
    termination_reason: TerminationReason | None = None
    error: str | None = None

    @property
    def final_text(self) -> str:
        """Text of the last completed step."""
        return self.steps[-1].text_output if self.steps else ""

    @property
    def usage(self) -> LLMUsage:
        total = LLMUsage()
        for step in self.steps:
            if step.usage:
                total.add(step.usage)
        return total


class ConversationState:
    """Sole writer of a Conversation.

    Messages are only ever appended. A tool result must answer a tool call
    from an earlier assistant message that has not been answered yet, and a
    step is only recorded once every one of its calls has exactly one result.
    """

    def __init__(self, system_prompt: str, conversation: Conversation | None = None):
        self.system_prompt = system_prompt
        self.conversation = conversation or Conversation()
        self._declared_call_ids: set[str] = set()
        self._answered_call_ids: set[str] = set()
        # Call ids of the step in progress; None until its assistant turn is appended
        self._open_step_calls: list[str] | None = None
        self._open_step_answered = False

        existing = list(self.conversation.messages)
        self.conversation.messages.clear()
        for message in existing:
            self._append(message)

    @classmethod
    def seed(
        cls,
        system_prompt: str,
        history: Sequence[Message],
        user_message: str | Message,
    ) -> "ConversationState":
        """Create the state for a new request from prior history plus the new user message."""
        state = cls(system_prompt)
        for message in history:
            state._append(message)
        state._append(Message.user(user_message) if isinstance(user_message, str) else user_message)
        logger.debug(f"Seeded conversation {state.conversation.id} with {len(state.conversation.messages)} messages")
        return state

    @property
    def id(self) -> str:
        return self.conversation.id

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self.conversation.messages)

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self.conversation.steps)

    @property
    def terminated(self) -> bool:
        return self.conversation.termination_reason is not None

    def upstream_view(self) -> list[Message]:
        """The message log to send to the completion service, as a copy."""
        return list(self.conversation.messages)

    def pending_tool_call_ids(self) -> set[str]:
        return self._declared_call_ids - self._answered_call_ids

    def has_tool_call(self, call_id: str) -> bool:
        return call_id in self._declared_call_ids

    def append_assistant_turn(self, step_index: int, text: str, tool_calls: Sequence[ToolCallPart]) -> None:
        """Open step ``step_index`` with the model's text and tool calls.

        An empty turn opens the step without adding a message.
        """
        self._check_step_index(step_index)
        if self._open_step_calls is not None:
            raise ConversationStateError(f"Step {step_index} already has an assistant turn")

        if text or tool_calls:
            self._append(Message.assistant(text, list(tool_calls)))
        self._open_step_calls = [call.id for call in tool_calls]
        self._open_step_answered = False

    def append_tool_results(self, step_index: int, results: Sequence[ToolResultPart]) -> None:
        """Append every result of the open step in one tool message, in call-declaration order."""
        self._check_step_index(step_index)
        if self._open_step_calls is None:
            raise ConversationStateError(f"Step {step_index} has no assistant turn to answer")
        if self._open_step_answered:
            raise ConversationStateError(f"Step {step_index} results were already appended")

        result_ids = [result.call_id for result in results]
        if result_ids != self._open_step_calls:
            raise ConversationStateError(
                f"Step {step_index} results {result_ids} do not match its tool calls {self._open_step_calls}"
            )

        if results:
            self._append(Message.tool_results(list(results)))
        self._open_step_answered = True

    def record_step(self, step: Step) -> None:
        """Close the open step once all of its calls have results."""
        self._check_step_index(step.index)
        if self._open_step_calls is None:
            raise ConversationStateError(f"Step {step.index} has no assistant turn")
        if [call.id for call in step.tool_calls] != self._open_step_calls:
            raise ConversationStateError(f"Step {step.index} tool calls differ from its assistant turn")
        if step.tool_calls and not self._open_step_answered:
            raise ConversationStateError(f"Step {step.index} still has unanswered tool calls")

        self.conversation.steps.append(step)
        self._open_step_calls = None
        self._open_step_answered = False

    def complete_step(self, step: Step) -> None:
        """Append a finished step's messages and record it.

        The assistant message (text and tool calls) is appended first, then a
        single tool message holding the results in call-declaration order.
        Everything is checked before anything is appended, so a rejected step
        leaves the log untouched.
        """
        self._check_step_index(step.index)
        call_ids = [call.id for call in step.tool_calls]
        result_ids = [result.call_id for result in step.tool_results]
        if call_ids != result_ids:
            raise ConversationStateError(
                f"Step {step.index} results {result_ids} do not match its tool calls {call_ids}"
            )

        self.append_assistant_turn(step.index, step.text_output, step.tool_calls)
        if step.tool_calls:
            self.append_tool_results(step.index, step.tool_results)
        self.record_step(step)

    def terminate(self, reason: TerminationReason, error: str | None = None) -> None:
        """Set the termination reason. Allowed exactly once."""
        if self.terminated:
            raise ConversationStateError(
                f"Conversation {self.id} already terminated with {self.conversation.termination_reason}"
            )
        self.conversation.termination_reason = reason
        self.conversation.error = error

    def _check_step_index(self, step_index: int) -> None:
        if self.terminated:
            raise ConversationStateError("Conversation already terminated")
        if step_index != len(self.conversation.steps):
            raise ConversationStateError(f"Expected step {len(self.conversation.steps)}, got step {step_index}")

    def _append(self, message: Message) -> None:
        """Validate ``message`` against the log, then append it. Nothing changes on rejection."""
        if self.terminated:
            raise ConversationStateError("Conversation already terminated")
        if message.role != "assistant" and message.tool_calls:
            raise ConversationStateError(f"Tool calls are only allowed in assistant messages, got {message.role}")

        declared: set[str] = set()
        for call in message.tool_calls:
            if call.id in self._declared_call_ids or call.id in declared:
                raise ConversationStateError(f"Duplicate tool call id {call.id}")
            declared.add(call.id)

        answered: set[str] = set()
        for result in message.results:
            if message.role != "tool":
                raise ConversationStateError(f"Tool result {result.call_id} in a {message.role} message")
            if result.call_id not in self._declared_call_ids:
                raise ConversationStateError(f"Tool result references unknown call {result.call_id}")
            if result.call_id in self._answered_call_ids or result.call_id in answered:
                raise ConversationStateError(f"Tool call {result.call_id} already has a result")
            answered.add(result.call_id)

        self._declared_call_ids |= declared
        self._answered_call_ids |= answered
        self.conversation.messages.append(message)
