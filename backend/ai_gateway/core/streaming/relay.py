"""
Chat Relay
==========

Turns a chat request into either one finished answer with metrics, or a
sequence of SSE payloads mirroring the upstream token stream.
"""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any, Optional

import structlog

from ai_gateway.core.config import settings
from ai_gateway.core.exceptions import ModelServiceError
from ai_gateway.core.llm import OllamaClient, user_message
from ai_gateway.core.streaming.metrics import (
    ChatStreamSession,
    format_duration,
    tokens_per_second,
)

logger = structlog.get_logger()


class ChatRelay:
    """
    Chat front for the model service.

    The clock is injectable so tests can control elapsed time.
    """

    def __init__(
        self,
        client: OllamaClient,
        clock: Callable[[], float] = time.perf_counter,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.clock = clock
        self.timeout = timeout or settings.MODEL_TIMEOUT

    async def complete(self, message: str, model: str) -> dict[str, Any]:
        """
        Run one blocking chat call.

        Raises ModelServiceError before anything is returned, so callers
        never see a partial body.
        """
        started_at = self.clock()
        completion = await self.client.chat(model, user_message(message), timeout=self.timeout)
        duration = self.clock() - started_at
        tokens = completion.eval_count or 0

        logger.info("chat_completed", model=completion.model, tokens=tokens, duration=round(duration, 2))
        return {
            "response": completion.content,
            "model": completion.model,
            "metrics": {
                "tokens": tokens,
                "duration": format_duration(duration),
                "tokensPerSecond": tokens_per_second(tokens, duration),
            },
        }

    async def stream(self, message: str, model: str) -> AsyncIterator[dict[str, Any]]:
        """
        Yield one payload per upstream fragment, then a done or error payload.

        The upstream connection is released when this generator finishes or
        is closed by a disconnecting client.
        """
        session = ChatStreamSession(started_at=self.clock())
        log = logger.bind(model=model)

        try:
            async with aclosing(self.client.stream_chat(model, user_message(message))) as lines:
                async for line in lines:
                    if line.error:
                        log.warning("chat_stream_upstream_error", error=line.error)
                        yield {"error": line.error}
                        return

                    if line.content:
                        metrics = session.add_fragment(line.content, self.clock())
                        yield {"chunk": line.content, "metrics": metrics.to_dict()}

                    if line.done:
                        yield self._done_payload(session, line.eval_count)
                        return
        except ModelServiceError as e:
            log.error("chat_stream_failed", error=e.message)
            yield {"error": e.details or e.error}
            return

        # Upstream closed without a done marker
        log.info("chat_stream_ended_without_done")
        yield self._done_payload(session, None)

    def _done_payload(self, session: ChatStreamSession, eval_count: Optional[int]) -> dict[str, Any]:
        metrics = session.final_metrics(self.clock(), eval_count)
        logger.info("chat_stream_completed", tokens=metrics["tokens"], duration=metrics["duration"])
        return {
            "done": True,
            "response": session.accumulated,
            "metrics": metrics,
        }
