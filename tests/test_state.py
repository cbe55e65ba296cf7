"""Tests for conversation state invariants."""

import pytest

from numera.agent.state import ConversationState, Step, TerminationReason
from numera.errors import ConversationStateError, ToolErrorKind
from numera.models.messages import Message, ToolCallPart, ToolResultPart
from numera.models.tools import ToolFailure, ToolSuccess


def call(call_id: str, name: str = "lookup") -> ToolCallPart:
    return ToolCallPart(id=call_id, name=name, arguments={"key": call_id})


def result(call_id: str) -> ToolResultPart:
    return ToolResultPart(call_id=call_id, outcome=ToolSuccess(output=call_id))


@pytest.fixture
def state():
    return ConversationState.seed("system", [], "How much did I earn?")


class TestSeeding:
    """Tests for building the initial message log."""

    def test_seed_appends_user_message(self, state):
        """Test that the new user message ends the seeded log."""
        assert [message.role for message in state.messages] == ["user"]
        assert state.messages[0].text == "How much did I earn?"
        assert state.steps == ()
        assert not state.terminated

    def test_seed_keeps_history_order(self):
        """Test that prior turns come before the new message."""
        history = [Message.user("Hi"), Message.assistant("Hello, how can I help?")]

        state = ConversationState.seed("system", history, "Revenue?")

        assert [message.text for message in state.messages] == ["Hi", "Hello, how can I help?", "Revenue?"]

    def test_each_conversation_gets_an_id(self):
        """Test that conversation ids are unique."""
        first = ConversationState.seed("system", [], "a")
        second = ConversationState.seed("system", [], "b")

        assert first.id
        assert first.id != second.id

    def test_upstream_view_is_a_copy(self, state):
        """Test that the completion service cannot mutate the log."""
        view = state.upstream_view()
        view.append(Message.user("injected"))

        assert len(state.messages) == 1


class TestCompleteStep:
    """Tests for recording steps."""

    def test_step_without_tool_calls(self, state):
        """Test that a text-only step appends a single assistant message."""
        state.complete_step(Step(index=0, text_output="You earned 3 600,00 €."))

        assert [message.role for message in state.messages] == ["user", "assistant"]
        assert state.messages[-1].text == "You earned 3 600,00 €."
        assert len(state.steps) == 1

    def test_step_with_tool_calls(self, state):
        """Test that calls and their results are appended in declaration order."""
        step = Step(index=0, tool_calls=[call("a"), call("b")], tool_results=[result("a"), result("b")])

        state.complete_step(step)

        assistant, tool = state.messages[1:]
        assert assistant.role == "assistant"
        assert [c.id for c in assistant.tool_calls] == ["a", "b"]
        assert tool.role == "tool"
        assert [r.call_id for r in tool.results] == ["a", "b"]
        assert state.pending_tool_call_ids() == set()

    def test_empty_step_appends_nothing(self, state):
        """Test that an empty assistant turn is recorded without a message."""
        state.complete_step(Step(index=0))

        assert len(state.messages) == 1
        assert len(state.steps) == 1

    def test_results_must_match_calls(self, state):
        """Test that every call needs exactly one result, in order."""
        with pytest.raises(ConversationStateError, match="do not match"):
            state.complete_step(Step(index=0, tool_calls=[call("a"), call("b")], tool_results=[result("a")]))

        with pytest.raises(ConversationStateError, match="do not match"):
            state.complete_step(
                Step(index=0, tool_calls=[call("a"), call("b")], tool_results=[result("b"), result("a")])
            )

        assert len(state.messages) == 1

    def test_step_index_must_be_next(self, state):
        """Test that steps are recorded in sequence."""
        with pytest.raises(ConversationStateError, match="Expected step 0"):
            state.complete_step(Step(index=1))

    def test_tool_call_ids_unique_across_steps(self, state):
        """Test that a call id cannot be declared twice in a conversation."""
        state.complete_step(Step(index=0, tool_calls=[call("a")], tool_results=[result("a")]))

        with pytest.raises(ConversationStateError, match="Duplicate tool call id"):
            state.complete_step(Step(index=1, tool_calls=[call("a")], tool_results=[result("a")]))

    def test_failed_tool_results_are_recorded(self, state):
        """Test that failure outcomes are kept in the log like any result."""
        failure = ToolResultPart(
            call_id="a",
            outcome=ToolFailure(kind=ToolErrorKind.INVALID_ARGUMENTS, message="Invalid arguments for tool lookup"),
        )

        state.complete_step(Step(index=0, tool_calls=[call("a")], tool_results=[failure]))

        assert state.messages[-1].results[0].is_error


class TestStepAppends:
    """Tests for building a step one append at a time."""

    def test_turn_results_then_record(self, state):
        """Test the append sequence for a step with tool calls."""
        calls = [call("a"), call("b")]

        state.append_assistant_turn(0, "Checking.", calls)
        assert state.pending_tool_call_ids() == {"a", "b"}

        state.append_tool_results(0, [result("a"), result("b")])
        state.record_step(Step(index=0, tool_calls=calls, text_output="Checking."))

        assert [message.role for message in state.messages] == ["user", "assistant", "tool"]
        assert state.pending_tool_call_ids() == set()
        assert len(state.steps) == 1

    def test_results_need_an_assistant_turn(self, state):
        """Test that results cannot be appended before their calls."""
        with pytest.raises(ConversationStateError, match="no assistant turn"):
            state.append_tool_results(0, [result("a")])

    def test_results_appended_once(self, state):
        """Test that a step's results form a single tool message."""
        state.append_assistant_turn(0, "", [call("a")])
        state.append_tool_results(0, [result("a")])

        with pytest.raises(ConversationStateError, match="already appended"):
            state.append_tool_results(0, [result("a")])

    def test_record_requires_all_results(self, state):
        """Test that a step with open calls cannot be recorded."""
        state.append_assistant_turn(0, "", [call("a")])

        with pytest.raises(ConversationStateError, match="unanswered tool calls"):
            state.record_step(Step(index=0, tool_calls=[call("a")]))

    def test_one_assistant_turn_per_step(self, state):
        """Test that a step cannot be opened twice."""
        state.append_assistant_turn(0, "First", [])

        with pytest.raises(ConversationStateError, match="already has an assistant turn"):
            state.append_assistant_turn(0, "Second", [])

    def test_rejected_turn_leaves_log_untouched(self, state):
        """Test that a turn repeating a call id appends nothing."""
        state.complete_step(Step(index=0, tool_calls=[call("a")], tool_results=[result("a")]))

        with pytest.raises(ConversationStateError, match="Duplicate tool call id a"):
            state.append_assistant_turn(1, "", [call("b"), call("a")])

        assert len(state.messages) == 3
        assert not state.has_tool_call("b")


class TestLogInvariants:
    """Tests for message log append rules."""

    def test_result_for_unknown_call_rejected(self):
        """Test that a result must answer a declared call."""
        with pytest.raises(ConversationStateError, match="unknown call"):
            ConversationState.seed("system", [Message.tool_results([result("ghost")])], "Hi")

    def test_duplicate_result_rejected(self):
        """Test that a call cannot be answered twice."""
        history = [
            Message.user("Hi"),
            Message.assistant(tool_calls=[call("a")]),
            Message.tool_results([result("a")]),
            Message.tool_results([result("a")]),
        ]

        with pytest.raises(ConversationStateError, match="already has a result"):
            ConversationState.seed("system", history, "Again")

    def test_tool_calls_only_in_assistant_messages(self):
        """Test that users cannot declare tool calls."""
        with pytest.raises(ConversationStateError, match="only allowed in assistant messages"):
            ConversationState.seed("system", [Message(role="user", content=(call("a"),))], "Hi")

    def test_results_only_in_tool_messages(self):
        """Test that results cannot be smuggled into other roles."""
        history = [Message.assistant(tool_calls=[call("a")]), Message(role="user", content=(result("a"),))]

        with pytest.raises(ConversationStateError, match="in a user message"):
            ConversationState.seed("system", history, "Hi")


class TestTermination:
    """Tests for the termination reason."""

    def test_terminate_once(self, state):
        """Test that the termination reason is set exactly once."""
        state.terminate(TerminationReason.NO_FURTHER_TOOL_CALLS)

        assert state.terminated
        assert state.conversation.termination_reason == TerminationReason.NO_FURTHER_TOOL_CALLS
        with pytest.raises(ConversationStateError, match="already terminated"):
            state.terminate(TerminationReason.MAX_STEPS_REACHED)

    def test_no_appends_after_termination(self, state):
        """Test that a terminated log is closed."""
        state.terminate(TerminationReason.UPSTREAM_ERROR, error="boom")

        assert state.conversation.error == "boom"
        with pytest.raises(ConversationStateError):
            state.complete_step(Step(index=0, text_output="late"))
