"""
Chat Router

POST /v1/chat sends a conversation through the provider router. With
``stream=true`` the response is Server-Sent Events, one ``data:`` line per
text delta, ending with ``data: [DONE]``. Streaming uses a single backend
and does not fall back.

Reference Documents:
- GUIDELINES p. 2149: Iterator protocol with yield for streaming
- Pattern: Pydantic request validation (Sinha pp. 193-195)
"""

import json
from typing import AsyncGenerator, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from vibe_router.api.deps import get_provider_router
from vibe_router.core.exceptions import VibeRouterException
from vibe_router.models.chat import ChatMessage, ChatRequestOptions, ProviderResponse
from vibe_router.observability.logging import get_logger
from vibe_router.providers.router import ProviderRouter

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["Chat"])


class ChatRequest(BaseModel):
    """Body of POST /v1/chat."""

    messages: list[ChatMessage] = Field(..., min_length=1)
    options: Optional[ChatRequestOptions] = None
    stream: bool = False


@router.post("/chat", response_model=None)
async def chat(
    request: ChatRequest,
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> Union[ProviderResponse, StreamingResponse]:
    """
    Send a chat request.

    Returns:
        ProviderResponse: Full response (non-streaming)
        StreamingResponse: SSE stream (streaming)
    """
    logger.debug(
        "chat request",
        messages=len(request.messages),
        model=request.options.model if request.options else None,
        stream=request.stream,
    )

    if request.stream:
        return StreamingResponse(
            _stream_sse_generator(provider_router, request),
            media_type="text/event-stream",
        )

    return await provider_router.chat(request.messages, request.options)


async def _stream_sse_generator(
    provider_router: ProviderRouter, request: ChatRequest
) -> AsyncGenerator[str, None]:
    try:
        async for delta in provider_router.stream_chat(request.messages, options=request.options):
            yield f"data: {json.dumps({'content': delta})}\n\n"
    except VibeRouterException as e:
        # Headers are already sent; report the failure in-band.
        code = str(getattr(e.error_code, "value", e.error_code))
        logger.error("stream failed", error_code=code, error=e.message)
        yield f"data: {json.dumps({'error': {'code': code, 'message': e.message}})}\n\n"

    yield "data: [DONE]\n\n"
