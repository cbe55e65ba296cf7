"""Conversation service: wires a step controller for each incoming request."""

import asyncio
from collections.abc import AsyncIterator, Sequence

from numera.agent.controller import StepController
from numera.agent.emitter import StreamEmitter
from numera.agent.events import ErrorEvent, StreamEvent
from numera.agent.prompt import SYSTEM_PROMPT
from numera.agent.state import Conversation, ConversationState
from numera.config import AgentConfig, get_agent_config
from numera.models.messages import Message
from numera.services.completion import CompletionService
from numera.services.llm import LLMService
from numera.tools.executor import ToolExecutor
from numera.tools.registry import ToolsRegistry, get_tools_registry
from numera.utils.logging import get_logger
from numera.utils.tokens import TokenCounter, get_token_counter

logger = get_logger(__name__)


class ConversationService:
    """Entry point for running conversations.

    Holds only shared, read-only collaborators. Every request gets its own
    conversation state, tool executor, controller and emitter.
    """

    def __init__(
        self,
        completion_service: CompletionService,
        tools_registry: ToolsRegistry,
        config: AgentConfig | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        token_counter: TokenCounter | None = None,
    ):
        self.completion_service = completion_service
        self.tools_registry = tools_registry
        self.config = config or get_agent_config()
        self.system_prompt = system_prompt
        self.token_counter = token_counter or get_token_counter()
        self.mutating_tools = frozenset(
            name for name in tools_registry.get_tool_names() if tools_registry.get(name).mutating
        )

    def validate_message(self, message: str) -> None:
        """Validate the new user message.

        Raises:
            ValueError: If the message is empty or exceeds the token limit
        """
        if not message.strip():
            raise ValueError("Message cannot be empty.")
        try:
            self.token_counter.validate(message, self.config.max_message_tokens)
        except ValueError as e:
            logger.warning(f"Rejected user message: {e}")
            raise ValueError(
                f"Your message is too long. Please keep messages under {self.config.max_message_tokens} tokens."
            ) from e

    def create_controller(
        self,
        history: Sequence[Message],
        user_message: str,
        emitter: StreamEmitter | None = None,
    ) -> StepController:
        """Seed a conversation and build the controller that will drive it."""
        state = ConversationState.seed(self.system_prompt, history, user_message)
        if emitter is not None:
            emitter.conversation_id = state.id

        executor = ToolExecutor(
            self.tools_registry,
            tool_timeout=self.config.tool_timeout,
            concurrency=self.config.tool_concurrency,
            conversation_id=state.id,
        )
        return StepController(
            state=state,
            completion_service=self.completion_service,
            executor=executor,
            config=self.config,
            tools=self.tools_registry.get_llm_tool_definitions(),
            emitter=emitter,
            mutating_tools=self.mutating_tools,
        )

    async def run(self, history: Sequence[Message], user_message: str) -> Conversation:
        """Run a conversation to termination without streaming.

        Raises:
            ValueError: If the user message is invalid
        """
        self.validate_message(user_message)
        controller = self.create_controller(history, user_message)
        conversation = await controller.run()

        usage = conversation.usage
        if usage.total_tokens:
            logger.info(
                f"Token usage - Input: {usage.input_tokens}, Output: {usage.output_tokens}, "
                f"Cache hit rate: {usage.cache_hit_rate:.1f}%"
            )
        return conversation

    def stream(self, history: Sequence[Message], user_message: str) -> AsyncIterator[StreamEvent]:
        """Start a conversation and return its live event stream.

        Validation happens eagerly so that callers can reject a request
        before they start sending a streamed response.

        Raises:
            ValueError: If the user message is invalid
        """
        self.validate_message(user_message)
        emitter = StreamEmitter()
        controller = self.create_controller(history, user_message, emitter)
        return self._stream(controller, emitter)

    async def _stream(self, controller: StepController, emitter: StreamEmitter) -> AsyncIterator[StreamEvent]:
        task = asyncio.create_task(controller.run())

        def close_stream(finished: asyncio.Task) -> None:
            if not finished.cancelled() and finished.exception() is not None and not emitter.closed:
                logger.error(
                    f"Conversation {controller.state.id} crashed",
                    exc_info=finished.exception(),
                )
                emitter.emit(ErrorEvent(detail="Internal error while processing the conversation"))
            emitter.close()

        task.add_done_callback(close_stream)
        try:
            async for event in emitter:
                yield event
        finally:
            if not task.done():
                logger.info(f"Stream for conversation {controller.state.id} closed early, cancelling")
                controller.cancel()
                task.cancel()


_conversation_service: ConversationService | None = None


def get_conversation_service() -> ConversationService:
    """Get or create the conversation service backed by Anthropic."""
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService(LLMService(), get_tools_registry())
    return _conversation_service
