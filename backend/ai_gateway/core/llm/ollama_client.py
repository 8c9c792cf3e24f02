"""
Ollama Model Service Client
===========================

Async client for the local model runner's HTTP API.
Handles:
- Non-streaming chat completions (/api/chat)
- Streaming chat completions as parsed NDJSON lines (/api/chat)
- Single prompt generation (/api/generate)
- Installed model listing (/api/tags)

Failures are raised as ModelServiceError. Nothing here retries.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import structlog

from ai_gateway.core.config import settings
from ai_gateway.core.exceptions import ModelServiceError

logger = structlog.get_logger()


# ==========================================================================
# Response Types
# ==========================================================================

@dataclass
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Completion:
    """A finished, non-streamed model answer."""
    content: str
    model: str
    eval_count: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamLine:
    """One parsed line of the upstream NDJSON stream."""
    content: str = ""
    done: bool = False
    eval_count: Optional[int] = None
    error: Optional[str] = None


def user_message(content: str) -> list[ChatMessage]:
    return [ChatMessage(role="user", content=content)]


# ==========================================================================
# Client
# ==========================================================================

class OllamaClient:
    """
    Client for the Ollama chat API.

    One instance is shared by the application; the underlying
    httpx.AsyncClient pools connections across requests.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        stream_start_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_HOST).rstrip("/")
        self.timeout = timeout or settings.MODEL_TIMEOUT
        self.stream_start_timeout = stream_start_timeout or settings.MODEL_STREAM_START_TIMEOUT
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ==================== Non-streaming ====================

    async def chat(
        self,
        model: str,
        messages: list[ChatMessage],
        timeout: Optional[float] = None,
    ) -> Completion:
        """Run one blocking chat completion."""
        data = await self._post_json(
            "/api/chat",
            {
                "model": model,
                "messages": [m.to_dict() for m in messages],
                "stream": False,
            },
            timeout=timeout,
        )
        message = data.get("message") or {}
        return Completion(
            content=message.get("content", ""),
            model=data.get("model", model),
            eval_count=data.get("eval_count"),
            raw=data,
        )

    async def generate(
        self,
        model: str,
        prompt: str,
        timeout: Optional[float] = None,
    ) -> Completion:
        """Run one blocking prompt completion."""
        data = await self._post_json(
            "/api/generate",
            {"model": model, "prompt": prompt, "stream": False},
            timeout=timeout,
        )
        return Completion(
            content=data.get("response", ""),
            model=data.get("model", model),
            eval_count=data.get("eval_count"),
            raw=data,
        )

    async def list_models(self) -> dict[str, Any]:
        """Return the upstream /api/tags payload unchanged."""
        try:
            response = await self._client.get("/api/tags")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_failed", error=str(e))
            raise ModelServiceError(
                _describe_http_error(e),
                error="Failed to fetch available models",
            ) from e

    # ==================== Streaming ====================

    async def stream_chat(
        self,
        model: str,
        messages: list[ChatMessage],
    ) -> AsyncIterator[StreamLine]:
        """
        Stream a chat completion line by line.

        Waiting for the response headers is bounded by stream_start_timeout;
        once the body starts flowing there is no read deadline. Lines that
        are not valid JSON, or lack a string message.content, are logged and
        skipped. Closing the iterator early (client disconnect) closes the
        upstream connection.
        """
        request = self._client.build_request(
            "POST",
            "/api/chat",
            json={
                "model": model,
                "messages": [m.to_dict() for m in messages],
                "stream": True,
            },
            timeout=httpx.Timeout(self.stream_start_timeout, read=None),
        )

        try:
            response = await asyncio.wait_for(
                self._client.send(request, stream=True),
                timeout=self.stream_start_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelServiceError(
                f"No response from model service within {self.stream_start_timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            logger.error("ollama_stream_connect_failed", error=str(e), model=model)
            raise ModelServiceError(_describe_http_error(e)) from e

        try:
            if response.is_error:
                await response.aread()
                raise ModelServiceError(_describe_status(response))

            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning("ollama_stream_line_skipped", error=str(e), line=line[:200])
                    continue
                if not isinstance(data, dict):
                    logger.warning("ollama_stream_line_skipped", error="not an object", line=line[:200])
                    continue

                message = data.get("message") or {}
                content = (message.get("content") or "") if isinstance(message, dict) else None
                if not isinstance(content, str):
                    logger.warning("ollama_stream_line_skipped", error="unexpected shape", line=line[:200])
                    continue
                eval_count = data.get("eval_count")
                error = data.get("error")

                yield StreamLine(
                    content=content,
                    done=bool(data.get("done")),
                    eval_count=eval_count if isinstance(eval_count, int) else None,
                    error=str(error) if error else None,
                )
        except httpx.HTTPError as e:
            logger.error("ollama_stream_failed", error=str(e), model=model)
            raise ModelServiceError(_describe_http_error(e)) from e
        finally:
            await response.aclose()

    # ==================== Internals ====================

    async def _post_json(
        self,
        path: str,
        payload: dict[str, Any],
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.post(
                path,
                json=payload,
                timeout=timeout or self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("ollama_request_failed", path=path, error=str(e))
            raise ModelServiceError(_describe_http_error(e)) from e

        if response.is_error:
            logger.warning("ollama_request_rejected", path=path, status_code=response.status_code)
            raise ModelServiceError(_describe_status(response))

        try:
            data = response.json()
        except ValueError as e:
            raise ModelServiceError("Model service returned invalid JSON") from e
        if not isinstance(data, dict):
            raise ModelServiceError("Model service returned an unexpected payload")
        if data.get("error"):
            raise ModelServiceError(str(data["error"]))
        return data


def _describe_status(response: httpx.Response) -> str:
    detail = ""
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = str(body.get("error") or "")
    except ValueError:
        detail = response.text[:200]
    message = f"Request failed with status code {response.status_code}"
    return f"{message}: {detail}" if detail else message


def _describe_http_error(error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.TimeoutException):
        return f"Request timed out ({type(error).__name__})"
    return str(error) or type(error).__name__
