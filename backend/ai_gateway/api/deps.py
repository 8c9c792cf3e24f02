"""
AI Gateway - API Dependencies
=============================

Shared dependencies for FastAPI endpoints.
"""

from typing import Annotated, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ai_gateway.core.analysis import CodebaseAnalysisPipeline, DependencyAnalyzer
from ai_gateway.core.database import SessionFactory, get_db, get_session_factory
from ai_gateway.core.github import GitHubClient
from ai_gateway.core.llm import OllamaClient
from ai_gateway.core.streaming import ChatRelay


# ==========================================================================
# Shared Clients
# ==========================================================================

_ollama_client: Optional[OllamaClient] = None
_github_client: Optional[GitHubClient] = None


def get_ollama_client() -> OllamaClient:
    """Get or create the model service client singleton."""
    global _ollama_client

    if _ollama_client is None:
        _ollama_client = OllamaClient()
    return _ollama_client


def get_github_client() -> GitHubClient:
    """Get or create the GitHub client singleton."""
    global _github_client

    if _github_client is None:
        _github_client = GitHubClient()
    return _github_client


async def close_clients() -> None:
    """Release pooled connections of the shared clients."""
    global _ollama_client, _github_client

    if _ollama_client is not None:
        await _ollama_client.close()
        _ollama_client = None
    if _github_client is not None:
        await _github_client.close()
        _github_client = None


# ==========================================================================
# Service Dependencies
# ==========================================================================

def get_chat_relay(
    client: Annotated[OllamaClient, Depends(get_ollama_client)],
) -> ChatRelay:
    return ChatRelay(client)


def get_analysis_pipeline(
    github: Annotated[GitHubClient, Depends(get_github_client)],
    llm: Annotated[OllamaClient, Depends(get_ollama_client)],
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
) -> CodebaseAnalysisPipeline:
    return CodebaseAnalysisPipeline(github, llm, session_factory)


def get_dependency_analyzer(
    llm: Annotated[OllamaClient, Depends(get_ollama_client)],
    github: Annotated[GitHubClient, Depends(get_github_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DependencyAnalyzer:
    return DependencyAnalyzer(llm, db, github)


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

# Use these in endpoint signatures for cleaner code
DbSession = Annotated[AsyncSession, Depends(get_db)]
Ollama = Annotated[OllamaClient, Depends(get_ollama_client)]
Relay = Annotated[ChatRelay, Depends(get_chat_relay)]
AnalysisPipeline = Annotated[CodebaseAnalysisPipeline, Depends(get_analysis_pipeline)]
Analyzer = Annotated[DependencyAnalyzer, Depends(get_dependency_analyzer)]
