"""Completion service contract."""

from collections.abc import AsyncIterator
from typing import Protocol

from numera.models.llm import CompletionChunk, CompletionRequest


class CompletionService(Protocol):
    """Black box that produces the next assistant turn for a message log."""

    def stream(self, request: CompletionRequest) -> AsyncIterator[CompletionChunk]:
        """Stream one assistant turn.

        Yields text chunks as they are generated, one ToolCallChunk per
        declared tool call, and finally a FinishChunk. Raising at any point
        means the upstream call failed.
        """
        ...
