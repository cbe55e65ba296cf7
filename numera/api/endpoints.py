"""API endpoints for the CFO assistant."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from numera import __version__
from numera.agent.emitter import StreamEmitter
from numera.agent.state import TerminationReason
from numera.models.conversation import ChatRequest, ChatResponse, HealthResponse
from numera.services.conversation import ConversationService, get_conversation_service
from numera.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

NDJSON_MEDIA_TYPE = "application/x-ndjson"


@router.post("/chat", tags=["Conversation"], response_class=StreamingResponse)
async def stream_chat(
    request: ChatRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> StreamingResponse:
    """Run the assistant and stream its events as line-delimited JSON.

    The stream ends with a ``terminated`` event, or an ``error`` event when the
    model service failed.
    """
    logger.info(f"Chat request with {len(request.messages)} messages: {request.user_message[:50]}...")
    try:
        events = service.stream(request.history(), request.user_message)
    except ValueError as e:
        logger.warning(f"Message validation error: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    async def ndjson():
        async for event in events:
            yield StreamEmitter.serialize(event)

    return StreamingResponse(ndjson(), media_type=NDJSON_MEDIA_TYPE)


@router.post("/conversation", response_model=ChatResponse, tags=["Conversation"])
async def handle_conversation(
    request: ChatRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> ChatResponse:
    """Run the assistant to completion and return its final answer."""
    try:
        conversation = await service.run(request.history(), request.user_message)
    except ValueError as e:
        logger.warning(f"Message validation error: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    if conversation.termination_reason == TerminationReason.UPSTREAM_ERROR:
        raise HTTPException(status_code=502, detail=conversation.error or "Model service unavailable")

    logger.info(f"Generated response for conversation {conversation.id}: {conversation.final_text[:50]}...")
    return ChatResponse(
        response=conversation.final_text,
        conversation_id=conversation.id,
        termination_reason=conversation.termination_reason.value,
        steps=len(conversation.steps),
    )


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
