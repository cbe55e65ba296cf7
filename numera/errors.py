"""Error taxonomy for the agent runtime."""

from enum import StrEnum


class ToolErrorKind(StrEnum):
    """Recoverable, tool-level failure kinds.

    These never abort a conversation; they are fed back to the model as
    tool results so it can react.
    """

    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"


class NumeraError(Exception):
    """Base class for agent runtime errors."""


class UpstreamError(NumeraError):
    """The completion service failed. Fatal for the conversation."""


class ConversationStateError(NumeraError):
    """An append or termination would break the conversation log invariants."""


class ToolRegistrationError(NumeraError):
    """A tool could not be registered."""


class ConversationCancelled(NumeraError):
    """The caller cancelled the conversation."""
