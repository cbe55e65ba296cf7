"""Tool execution: validation, invocation, and outcome capture."""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from numera.errors import ConversationCancelled, ToolErrorKind
from numera.models.messages import ToolCallPart
from numera.models.tools import ToolFailure, ToolOutcome, ToolSuccess
from numera.tools.base import ToolDefinition
from numera.tools.registry import ToolsRegistry
from numera.utils.logging import get_conversation_logger, get_logger

logger = get_logger(__name__)


class ToolExecutor:
    """Runs tool calls for a single conversation.

    Every call ends in a ToolOutcome; nothing raised by a tool escapes. A call
    id is invoked at most once: asking again returns the recorded outcome.
    Calls are never retried.

    Tool bodies run in their own tasks. If the awaiting coroutine is cancelled
    the body keeps running to completion so an external side effect is never
    cut in half; its outcome is simply not consumed. Once ``cancel`` has been
    called, calls that have not started their body yet are skipped.
    """

    def __init__(
        self,
        registry: ToolsRegistry,
        tool_timeout: float = 20.0,
        concurrency: int = 4,
        conversation_id: str | None = None,
    ):
        """Initialize tool executor.

        Args:
            registry: Registry to resolve tool names against
            tool_timeout: Seconds allowed for each individual tool call
            concurrency: Maximum number of tool bodies running at once
            conversation_id: Conversation the calls belong to, used in log lines
        """
        self.registry = registry
        self.tool_timeout = tool_timeout
        self._semaphore = asyncio.Semaphore(concurrency)
        self._outcomes: dict[str, ToolOutcome] = {}
        self._tasks: dict[str, asyncio.Task[ToolOutcome | None]] = {}
        self._cancelled = False
        self.logger = get_conversation_logger(__name__, conversation_id) if conversation_id else logger

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop starting new tool bodies. Bodies already running finish."""
        self._cancelled = True

    async def execute(self, call: ToolCallPart) -> ToolOutcome:
        """Execute one tool call and return its outcome.

        Raises:
            ConversationCancelled: If the executor was cancelled before the call started
        """
        if call.id in self._outcomes:
            self.logger.warning(f"Tool call {call.id} already executed, returning recorded outcome")
            return self._outcomes[call.id]

        task = self._tasks.get(call.id)
        if task is None:
            if self._cancelled:
                raise ConversationCancelled(f"Tool call {call.id} not started, executor cancelled")
            task = asyncio.ensure_future(self._run(call))
            self._tasks[call.id] = task

        # Shielded so that cancelling the caller does not interrupt the tool body.
        outcome = await asyncio.shield(task)
        if outcome is None:
            raise ConversationCancelled(f"Tool call {call.id} skipped, executor cancelled")
        return outcome

    async def iter_outcomes(self, calls: list[ToolCallPart]) -> AsyncIterator[tuple[ToolCallPart, ToolOutcome]]:
        """Run all calls concurrently and yield outcomes in declaration order.

        An outcome is released once it and every call declared before it have
        finished, so consumers observe a deterministic order regardless of
        which tool finishes first.
        """
        pending = [asyncio.ensure_future(self.execute(call)) for call in calls]
        try:
            for call, future in zip(calls, pending, strict=True):
                yield call, await future
        finally:
            for future in pending:
                if not future.done():
                    future.cancel()
                elif not future.cancelled():
                    # Mark skipped calls as retrieved; the consumer already stopped
                    future.exception()

    async def execute_all(self, calls: list[ToolCallPart]) -> list[ToolOutcome]:
        """Run all calls concurrently; outcomes are returned in declaration order."""
        return [outcome async for _, outcome in self.iter_outcomes(calls)]

    async def drain(self) -> None:
        """Wait for every tool body started by this executor to finish."""
        running = [task for task in self._tasks.values() if not task.done()]
        if running:
            await asyncio.gather(*running, return_exceptions=True)

    async def _run(self, call: ToolCallPart) -> ToolOutcome | None:
        tool = self.registry.get(call.name)
        if tool is None:
            self.logger.error(f"Unknown tool requested: {call.name}")
            outcome: ToolOutcome | None = ToolFailure(
                kind=ToolErrorKind.UNKNOWN_TOOL, message=f"Unknown tool {call.name}"
            )
        else:
            outcome = await self._invoke(tool, call)

        if outcome is not None:
            self._outcomes[call.id] = outcome
        return outcome

    async def _invoke(self, tool: ToolDefinition, call: ToolCallPart) -> ToolOutcome | None:
        arguments = self._decode_arguments(call)
        if isinstance(arguments, ToolFailure):
            return arguments

        try:
            parsed = tool.parse_input(arguments)
        except ValidationError as e:
            failure = ToolFailure(
                kind=ToolErrorKind.INVALID_ARGUMENTS,
                message=f"Invalid arguments for tool {tool.name}",
                details=[
                    {"loc": [str(loc) for loc in err["loc"]], "msg": err["msg"], "type": err["type"]}
                    for err in e.errors(include_url=False)
                ],
            )
            self.logger.warning(f"Tool {tool.name} rejected arguments for call {call.id}: {failure.details}")
            return failure

        self.logger.debug(f"Executing tool: {tool.name} ({call.id}) with input: {arguments}")
        async with self._semaphore:
            # Queued behind the concurrency limit while the caller cancelled
            if self._cancelled:
                self.logger.info(f"Skipping tool {tool.name} ({call.id}), executor cancelled")
                return None
            try:
                result = await asyncio.wait_for(tool.handler(parsed), timeout=self.tool_timeout)
            except TimeoutError:
                self.logger.error(f"Tool {tool.name} timed out after {self.tool_timeout}s")
                return ToolFailure(
                    kind=ToolErrorKind.TIMEOUT,
                    message=f"Tool {tool.name} did not finish within {self.tool_timeout} seconds",
                )
            except Exception as e:
                self.logger.error(f"Tool {tool.name} failed: {e}", exc_info=True)
                return ToolFailure(kind=ToolErrorKind.EXECUTION_FAILED, message=str(e) or type(e).__name__)

        try:
            output = to_jsonable_python(result)
        except PydanticSerializationError as e:
            self.logger.error(f"Tool {tool.name} returned unserializable output: {e}")
            return ToolFailure(kind=ToolErrorKind.EXECUTION_FAILED, message=f"Tool {tool.name} returned invalid output")

        self.logger.debug(f"Tool {tool.name} succeeded: {str(output)[:100]}...")
        return ToolSuccess(output=output)

    def _decode_arguments(self, call: ToolCallPart) -> dict[str, Any] | ToolFailure:
        """Accept a JSON object or a string holding one; anything else is invalid."""
        arguments: Any = call.arguments
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except ValueError as e:
                self.logger.warning(f"Malformed arguments for {call.name} ({call.id}): {e}")
                return ToolFailure(
                    kind=ToolErrorKind.INVALID_ARGUMENTS,
                    message=f"Arguments for tool {call.name} are not valid JSON",
                    details=[{"loc": [], "msg": str(e), "type": "json_invalid"}],
                )
        if not isinstance(arguments, dict):
            return ToolFailure(
                kind=ToolErrorKind.INVALID_ARGUMENTS,
                message=f"Arguments for tool {call.name} must be a JSON object",
                details=[{"loc": [], "msg": "Input should be an object", "type": "dict_type"}],
            )
        return arguments
