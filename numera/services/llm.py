"""LLM service: the Anthropic-backed completion service."""

from collections.abc import AsyncIterator

from numera.clients.anthropic import (
    AnthropicClient,
    AnthropicMessage,
    AnthropicTool,
    CacheControl,
    ContentBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    get_anthropic_client,
)
from numera.models.llm import CompletionChunk, CompletionRequest, LLMToolDefinition
from numera.models.messages import Message, TextPart, ToolCallPart, ToolResultPart
from numera.utils.logging import get_logger

logger = get_logger(__name__)


class LLMService:
    """Completion service that maps the conversation log onto the Messages API."""

    def __init__(self, client: AnthropicClient | None = None):
        """Initialize LLM service.

        Args:
            client: Anthropic client (defaults to global instance)
        """
        self.client = client or get_anthropic_client()

    async def stream(self, request: CompletionRequest) -> AsyncIterator[CompletionChunk]:
        """Stream one assistant turn for ``request``."""
        anthropic_messages = to_anthropic_messages(request.messages)
        anthropic_tools = to_anthropic_tools(request.tools)

        logger.debug(f"Calling LLM with {len(anthropic_messages)} messages and {len(anthropic_tools)} tools")
        async for chunk in self.client.stream_message(
            messages=anthropic_messages,
            system_prompt=request.system_prompt,
            tools=anthropic_tools,
        ):
            yield chunk


def to_anthropic_messages(messages: list[Message]) -> list[AnthropicMessage]:
    """Convert the conversation log to Anthropic messages.

    Tool results travel in user messages, as the Messages API expects.
    """
    converted: list[AnthropicMessage] = []
    for message in messages:
        blocks: list[ContentBlock] = []
        for part in message.content:
            if isinstance(part, TextPart):
                if part.text:
                    blocks.append(TextBlock(text=part.text))
            elif isinstance(part, ToolCallPart):
                blocks.append(ToolUseBlock(id=part.id, name=part.name, input=part.arguments_dict()))
            elif isinstance(part, ToolResultPart):
                blocks.append(ToolResultBlock(tool_use_id=part.call_id, content=part.as_text(), is_error=part.is_error))

        if not blocks:
            continue
        role = "assistant" if message.role == "assistant" else "user"
        converted.append(AnthropicMessage(role=role, content=blocks))
    return converted


def to_anthropic_tools(tools: list[LLMToolDefinition]) -> list[AnthropicTool]:
    """Convert tool definitions, marking the last one for prompt caching."""
    anthropic_tools = []
    for i, tool in enumerate(tools):
        # Cache control on the last tool caches all tool definitions
        cache_control = CacheControl(type="ephemeral", ttl="5m") if i == len(tools) - 1 else None
        anthropic_tools.append(
            AnthropicTool(
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
                cache_control=cache_control,
            )
        )
    return anthropic_tools
