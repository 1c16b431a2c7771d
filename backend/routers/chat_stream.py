"""
Chat Streaming Router

Data chat over ingested reports, streamed with Server-Sent Events.
"""

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse
from typing import List
import logging

from config.timeout_settings import get_streaming_config
from schemas.chat import ChatRequest, ChatMessageSchema, ErrorEvent
from services.chat_service import ChatService, get_chat_service
from services.chat_stream_service import ChatStreamService, get_chat_stream_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat-stream"])


@router.post("/stream",
    response_class=EventSourceResponse,
    summary="Stream data chat responses",
    description="Streams chat-completion chunks as `data:` lines, ending with `data: [DONE]`"
)
async def chat_stream(
    request: ChatRequest,
    service: ChatStreamService = Depends(get_chat_stream_service),
) -> EventSourceResponse:
    """
    Data chat endpoint.

    Gateway rejections (429, 402, unavailable) happen before the stream opens
    and are returned as JSON errors. Failures after that are sent as an error
    event followed by [DONE].
    """
    deltas = await service.start(request)

    async def event_generator():
        """Generate SSE events"""
        try:
            async for chunk_json in service.stream(deltas, request):
                yield {"data": chunk_json}
        except Exception as e:
            logger.error(f"Error in chat stream: {str(e)}")
            yield {"data": ErrorEvent(error=str(e)).model_dump_json()}
        yield {"data": "[DONE]"}

    return EventSourceResponse(
        event_generator(),
        ping=get_streaming_config()["ping_interval"],
    )


@router.get("/messages", response_model=List[ChatMessageSchema])
async def list_messages(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Stored chat history, oldest first."""
    return await chat_service.get_messages(limit=limit, offset=offset)
