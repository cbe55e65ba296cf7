"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from numera.models.messages import Message


class ChatMessage(BaseModel):
    """One prior turn as sent by the client."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request model for the chat endpoints.

    ``messages`` holds the prior history followed by the new user message.
    """

    messages: list[ChatMessage] = Field(..., min_length=1)

    @field_validator("messages")
    @classmethod
    def validate_last_message(cls, v: list[ChatMessage]) -> list[ChatMessage]:
        """The last message must be the new user message."""
        if v[-1].role != "user":
            raise ValueError("The last message must come from the user")
        return v

    @property
    def user_message(self) -> str:
        return self.messages[-1].content

    def history(self) -> list[Message]:
        """Prior turns as conversation messages."""
        return [
            Message.user(msg.content) if msg.role == "user" else Message.assistant(msg.content)
            for msg in self.messages[:-1]
            if msg.content
        ]


class ChatResponse(BaseModel):
    """Response model for the non-streaming conversation endpoint."""

    response: str
    conversation_id: str
    termination_reason: str
    steps: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
