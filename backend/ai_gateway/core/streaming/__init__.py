"""
Streaming
=========

SSE relay of model token streams with throughput metrics.
"""

from ai_gateway.core.streaming.metrics import ChatStreamSession, estimate_tokens
from ai_gateway.core.streaming.relay import ChatRelay

__all__ = ["ChatRelay", "ChatStreamSession", "estimate_tokens"]
