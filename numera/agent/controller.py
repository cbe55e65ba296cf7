"""Step controller: drives one conversation to termination."""

import asyncio
from contextlib import aclosing
from enum import StrEnum

from numera.agent.emitter import StreamEmitter
from numera.agent.events import (
    DataChangedEvent,
    ErrorEvent,
    StepFinishedEvent,
    StreamEvent,
    TerminatedEvent,
    TextDeltaEvent,
    ToolCallFinishedEvent,
    ToolCallStartedEvent,
)
from numera.agent.state import Conversation, ConversationState, Step, TerminationReason
from numera.config import AgentConfig
from numera.errors import ConversationCancelled, UpstreamError
from numera.models.llm import CompletionRequest, FinishChunk, LLMToolDefinition, TextChunk, ToolCallChunk
from numera.models.messages import ToolCallPart, ToolResultPart
from numera.models.tools import ToolSuccess
from numera.services.completion import CompletionService
from numera.tools.executor import ToolExecutor
from numera.utils.logging import get_conversation_logger


class ControllerPhase(StrEnum):
    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED = "model_responded"
    DISPATCHING_TOOLS = "dispatching_tools"
    TERMINATED = "terminated"


class StepController:
    """Runs the model/tool loop for exactly one conversation.

    Each step sends the full message log to the completion service, relays
    the streamed text, executes every declared tool call and appends the
    assistant turn and its results to the log together. Before each new step
    the loop stops when the previous step declared no tool calls or when
    ``max_steps`` steps have completed.

    Tool failures are results, not errors. A completion-service failure ends
    the conversation immediately with ``upstream-error``.
    """

    def __init__(
        self,
        state: ConversationState,
        completion_service: CompletionService,
        executor: ToolExecutor,
        config: AgentConfig,
        tools: list[LLMToolDefinition] | None = None,
        emitter: StreamEmitter | None = None,
        mutating_tools: frozenset[str] = frozenset(),
    ):
        """Initialize step controller.

        Args:
            state: Seeded conversation state, mutated only by this controller
            completion_service: Produces assistant turns
            executor: Runs tool calls for this conversation
            config: Step ceiling and timeouts
            tools: Tool definitions advertised to the completion service
            emitter: Optional observer for live events
            mutating_tools: Tool names whose success should emit data_changed
        """
        self.state = state
        self.completion_service = completion_service
        self.executor = executor
        self.config = config
        self.tools = tools or []
        self.emitter = emitter
        self.mutating_tools = mutating_tools
        self.phase = ControllerPhase.AWAITING_MODEL
        self._cancel_requested = False
        self.logger = get_conversation_logger(__name__, state.id)

    @property
    def conversation(self) -> Conversation:
        return self.state.conversation

    def cancel(self) -> None:
        """Request cancellation; honoured at the next suspension point."""
        self.logger.info("Cancellation requested")
        self._cancel_requested = True
        self.executor.cancel()

    async def run(self) -> Conversation:
        """Run steps until a termination condition holds."""
        self.logger.info(
            f"Starting conversation with {len(self.state.messages)} messages, "
            f"{len(self.tools)} tools, max_steps: {self.config.max_steps}"
        )
        try:
            while (reason := self._termination_reason()) is None:
                self._raise_if_cancelled()
                await self._run_step(len(self.state.steps))
        except ConversationCancelled:
            self._terminate(TerminationReason.CANCELLED)
        except asyncio.CancelledError:
            self.executor.cancel()
            self._terminate(TerminationReason.CANCELLED)
            raise
        except UpstreamError as e:
            self._fail(e)
        else:
            self._terminate(reason)

        return self.conversation

    def _termination_reason(self) -> TerminationReason | None:
        steps = self.state.steps
        if not steps:
            return None
        if not steps[-1].has_tool_calls:
            return TerminationReason.NO_FURTHER_TOOL_CALLS
        if len(steps) >= self.config.max_steps:
            return TerminationReason.MAX_STEPS_REACHED
        return None

    async def _run_step(self, index: int) -> None:
        self.logger.debug(f"Step {index + 1}/{self.config.max_steps}")
        step = await self._request_turn(index)
        self._raise_if_cancelled()

        self.phase = ControllerPhase.MODEL_RESPONDED
        if step.tool_calls:
            self.phase = ControllerPhase.DISPATCHING_TOOLS
            self.logger.info(f"Model requested {len(step.tool_calls)} tool calls in step {index}")
            step.tool_results = await self._dispatch_tools(index, step.tool_calls)
            self._raise_if_cancelled()

        self.state.complete_step(step)
        for result, call in zip(step.tool_results, step.tool_calls, strict=True):
            if call.name in self.mutating_tools and isinstance(result.outcome, ToolSuccess):
                self._emit(DataChangedEvent(step=index, tool=call.name, call_id=call.id))
        self._emit(StepFinishedEvent(index=index, tool_calls=len(step.tool_calls)))
        self.phase = ControllerPhase.AWAITING_MODEL

    async def _request_turn(self, index: int) -> Step:
        """Consume one streamed assistant turn from the completion service."""
        self.phase = ControllerPhase.AWAITING_MODEL
        request = CompletionRequest(
            system_prompt=self.state.system_prompt,
            messages=self.state.upstream_view(),
            tools=self.tools,
        )
        step = Step(index=index)
        text_chunks: list[str] = []

        try:
            async with asyncio.timeout(self.config.completion_timeout):
                async for chunk in self.completion_service.stream(request):
                    match chunk:
                        case TextChunk(text=text):
                            if text:
                                text_chunks.append(text)
                                self._emit(TextDeltaEvent(step=index, chunk=text))
                        case ToolCallChunk():
                            step.tool_calls.append(self._tool_call_from_chunk(chunk, step))
                        case FinishChunk(usage=usage):
                            step.usage = usage
        except TimeoutError as e:
            raise UpstreamError(f"Completion service timed out after {self.config.completion_timeout}s") from e
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Completion service failed: {e}") from e

        step.text_output = "".join(text_chunks)
        return step

    def _tool_call_from_chunk(self, chunk: ToolCallChunk, step: Step) -> ToolCallPart:
        if self.state.has_tool_call(chunk.id) or any(call.id == chunk.id for call in step.tool_calls):
            raise UpstreamError(f"Completion service reused tool call id {chunk.id}")
        return ToolCallPart(id=chunk.id, name=chunk.name, arguments=chunk.arguments)

    async def _dispatch_tools(self, index: int, calls: list[ToolCallPart]) -> list[ToolResultPart]:
        """Execute the step's calls concurrently; results keep declaration order."""
        for call in calls:
            self._emit(ToolCallStartedEvent(step=index, id=call.id, name=call.name))

        results: list[ToolResultPart] = []
        async with aclosing(self.executor.iter_outcomes(calls)) as outcomes:
            async for call, outcome in outcomes:
                if self._cancel_requested:
                    self.logger.info(f"Discarding result of {call.name} ({call.id}) after cancellation")
                    break
                results.append(ToolResultPart(call_id=call.id, outcome=outcome))
                self._emit(ToolCallFinishedEvent(step=index, id=call.id, name=call.name, outcome=outcome))
        self._raise_if_cancelled()
        return results

    def _raise_if_cancelled(self) -> None:
        if self._cancel_requested:
            raise ConversationCancelled(f"Conversation {self.state.id} cancelled")

    def _terminate(self, reason: TerminationReason) -> None:
        self.phase = ControllerPhase.TERMINATED
        self.state.terminate(reason)
        self.logger.info(f"Terminated: {reason} after {len(self.state.steps)} steps")
        self._emit(TerminatedEvent(reason=reason, steps=len(self.state.steps)))

    def _fail(self, error: UpstreamError) -> None:
        self.phase = ControllerPhase.TERMINATED
        self.state.terminate(TerminationReason.UPSTREAM_ERROR, error=str(error))
        self.logger.error(f"Failed upstream: {error}", exc_info=error)
        self._emit(ErrorEvent(detail=str(error)))

    def _emit(self, event: StreamEvent) -> None:
        if self.emitter is not None and not self.emitter.closed:
            self.emitter.emit(event)
