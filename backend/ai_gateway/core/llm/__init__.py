"""
Model Service Access
====================

Client for the Ollama-compatible model runner.
"""

from ai_gateway.core.llm.ollama_client import (
    ChatMessage,
    Completion,
    OllamaClient,
    StreamLine,
    user_message,
)

__all__ = [
    "ChatMessage",
    "Completion",
    "OllamaClient",
    "StreamLine",
    "user_message",
]
