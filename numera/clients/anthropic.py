"""Anthropic API client with streaming, rate limiting and error handling."""

import asyncio
import json
import os
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Literal

from anthropic import APIConnectionError, APIError, APIStatusError, AsyncAnthropic
from anthropic.types import Message as AnthropicResponseMessage
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel, ConfigDict

from numera.models.llm import CompletionChunk, FinishChunk, LLMUsage, TextChunk, ToolCallChunk
from numera.utils.logging import get_logger
from numera.utils.tokens import TokenCounter, get_token_counter

logger = get_logger(__name__)


# Content block types, as sent to the Messages API
class TextBlock(BaseModel):
    """Text content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """Tool use content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]


class ToolResultBlock(BaseModel):
    """Tool result content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock


class CacheControl(BaseModel):
    """Cache control configuration for prompt caching."""

    type: Literal["ephemeral"] = "ephemeral"
    ttl: Literal["5m", "1h"] = "5m"


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]
    cache_control: CacheControl | None = None


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-sonnet-4-5"
    max_tokens: int = 1024
    temperature: float = 0.1
    max_retries: int = 3
    retry_delay: float = 1.0
    max_retry_after: float = 120.0

    @classmethod
    def from_env(cls) -> "AnthropicConfig":
        return cls(
            model=os.getenv("NUMERA_MODEL", cls.model),
            max_tokens=int(os.getenv("NUMERA_MAX_OUTPUT_TOKENS", cls.max_tokens)),
        )


class AnthropicRateLimiter:
    """Moving-window request and token rate limiter."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits within the rate limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_reset(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if not self.limiter.hit(self.token_limit, token_identifier, cost=max(estimated_tokens, 1)):
            await self._wait_for_reset(self.token_limit, token_identifier, "Token")

    async def _wait_for_reset(self, limit, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        wait_time = max(0.0, window_stats.reset_time - time.time())
        if wait_time > 0:
            logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class AnthropicClient:
    """Low-level Anthropic API client with rate limiting and error handling."""

    rate_limiter: AnthropicRateLimiter = AnthropicRateLimiter()

    def __init__(
        self,
        api_key: str | None = None,
        config: AnthropicConfig | None = None,
        token_counter: TokenCounter | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
            token_counter: Token estimator used for rate limiting
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key
        # Retries are handled here so that nothing is retried once output has streamed.
        self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        self.config = config or AnthropicConfig.from_env()
        self.token_counter = token_counter or get_token_counter()

    async def stream_message(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
        **kwargs,
    ) -> AsyncIterator[CompletionChunk]:
        """Stream one assistant turn from Claude.

        Text is yielded as it arrives. Tool calls are yielded once the message
        is complete, so their arguments are always whole JSON objects.

        Args:
            messages: Conversation history
            system_prompt: System prompt for Claude
            tools: Available tools for Claude
            **kwargs: Overrides for model, max_tokens and temperature
        """
        estimated_tokens = self.estimate_tokens(messages, system_prompt)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        await self.rate_limiter.check_rate_limit(estimated_tokens)

        request_params: dict[str, Any] = {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt,
            "messages": [msg.model_dump(exclude_none=True) for msg in messages],
        }
        if tools:
            request_params["tools"] = [tool.model_dump(exclude_none=True) for tool in tools]

        logger.debug(f"Streaming message with {len(messages)} messages, {len(tools) if tools else 0} tools")

        final_message: AnthropicResponseMessage | None = None
        for attempt in range(self.config.max_retries):
            streamed = False
            try:
                async with self.client.messages.stream(**request_params) as stream:
                    async for event in stream:
                        if event.type == "text" and event.text:
                            streamed = True
                            yield TextChunk(text=event.text)
                    final_message = await stream.get_final_message()
                break

            except APIError as e:
                delay = self._retry_delay(e, attempt)
                if streamed or delay is None:
                    raise
                logger.warning(f"Anthropic request failed ({e}), retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

        if final_message is None:
            raise RuntimeError(f"Failed to complete request after {self.config.max_retries} attempts")

        for block in final_message.content:
            if block.type == "tool_use":
                yield ToolCallChunk(id=block.id, name=block.name, arguments=block.input)

        logger.debug(f"Response received - Stop reason: {final_message.stop_reason}")
        yield FinishChunk(stop_reason=final_message.stop_reason, usage=self._convert_usage(final_message))

    def _retry_delay(self, error: APIError, attempt: int) -> float | None:
        """Seconds to wait before retrying, or None when the error is final."""
        if attempt >= self.config.max_retries - 1:
            return None

        if isinstance(error, APIStatusError):
            if error.status_code == 429:  # Rate limit exceeded
                retry_after = float(error.response.headers.get("retry-after", 60))
                return retry_after if retry_after < self.config.max_retry_after else None
            if error.status_code >= 500:
                return self.config.retry_delay * (2**attempt)
            return None

        if isinstance(error, APIConnectionError):
            return self.config.retry_delay * (2**attempt)

        return None

    @staticmethod
    def _convert_usage(message: AnthropicResponseMessage) -> LLMUsage:
        if not message.usage:
            return LLMUsage()
        return LLMUsage(
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            cache_creation_input_tokens=message.usage.cache_creation_input_tokens or 0,
            cache_read_input_tokens=message.usage.cache_read_input_tokens or 0,
        )

    def estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting.

        Args:
            messages: Conversation messages
            system_prompt: System prompt

        Returns:
            Estimated token count
        """
        text_content = [system_prompt]

        for message in messages:
            if isinstance(message.content, str):
                text_content.append(message.content)
                continue
            for block in message.content:
                if isinstance(block, TextBlock):
                    text_content.append(block.text)
                elif isinstance(block, ToolResultBlock):
                    text_content.append(block.content)
                elif isinstance(block, ToolUseBlock):
                    text_content.append(block.name + json.dumps(block.input))

        return self.token_counter.count("".join(text_content))


_anthropic_client: AnthropicClient | None = None


def get_anthropic_client() -> AnthropicClient:
    """Get or create Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = AnthropicClient()
    return _anthropic_client
