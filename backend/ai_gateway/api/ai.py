"""
AI Gateway - Chat API
=====================

Chat, summarize and model listing endpoints proxied to the model service.

Endpoints:
- POST /api/ai/chat       - Chat completion, JSON or SSE (stream=true)
- POST /api/ai/summarize  - Summarize a text
- GET  /api/ai/models     - Models installed on the model service
"""

import json
from contextlib import aclosing
from typing import Any

from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from ai_gateway.api.deps import Ollama, Relay
from ai_gateway.core.analysis.prompts import SUMMARIZE_PROMPT
from ai_gateway.core.config import settings
from ai_gateway.core.exceptions import InvalidRequestError, ModelServiceError
from ai_gateway.core.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    SummarizeRequest,
    SummarizeResponse,
)


router = APIRouter(prefix="/ai", tags=["AI"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Chat with a model",
    responses={
        200: {
            "description": "Answer with metrics, or an SSE stream when stream=true",
            "content": {"text/event-stream": {}},
        },
        400: {"model": ErrorResponse, "description": "Message missing"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def chat(data: ChatRequest, relay: Relay):
    """
    Send one user message to the model.

    With stream=true every generated fragment is relayed as an SSE `data:`
    message with running throughput metrics, followed by a final
    `{"done": true}` message (or `{"error": ...}` on failure).
    """
    if not data.message:
        raise InvalidRequestError("Message is required")

    model = data.model or settings.DEFAULT_MODEL

    if data.stream:
        async def event_stream():
            async with aclosing(relay.stream(data.message, model)) as payloads:
                async for payload in payloads:
                    yield {"data": json.dumps(payload)}

        return EventSourceResponse(event_stream(), sep="\n")

    result = await relay.complete(data.message, model)
    return ChatResponse.model_validate(result)


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    summary="Summarize text",
    responses={
        400: {"model": ErrorResponse, "description": "Text missing"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def summarize(data: SummarizeRequest, client: Ollama) -> SummarizeResponse:
    """Summarize a text concisely."""
    if not data.text:
        raise InvalidRequestError("Text is required")

    try:
        completion = await client.generate(
            data.model or settings.DEFAULT_MODEL,
            SUMMARIZE_PROMPT.format(text=data.text),
        )
    except ModelServiceError as e:
        raise ModelServiceError(e.details, error="Failed to summarize text") from e
    return SummarizeResponse(summary=completion.content, model=completion.model)


@router.get(
    "/models",
    summary="List available models",
    responses={500: {"model": ErrorResponse, "description": "Model service failure"}},
)
async def list_models(client: Ollama) -> dict[str, Any]:
    """Models installed on the model service, as reported by it."""
    return await client.list_models()
