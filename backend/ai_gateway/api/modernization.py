"""
AI Gateway - Modernization API
==============================

Code modernization and repository analysis endpoints.

Endpoints:
- POST /api/modernization/modernize                    - Modernization advice for a snippet
- POST /api/modernization/compare-patterns             - Compare an old and a new pattern
- POST /api/modernization/analyze-codebase             - Staged repository analysis (JSON or SSE)
- POST /api/modernization/analyze-dependencies         - Analyze a dependency map
- POST /api/modernization/analyze-dependencies-github  - Analyze a repository's manifests
"""

from contextlib import aclosing
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from ai_gateway.api.deps import AnalysisPipeline, Analyzer, Ollama
from ai_gateway.core.analysis import CodebaseAnalysisParams, ProgressEventType
from ai_gateway.core.analysis.prompts import COMPARE_PATTERNS_PROMPT, MODERNIZE_CODE_PROMPT
from ai_gateway.core.config import settings
from ai_gateway.core.exceptions import InvalidRequestError, ModelServiceError
from ai_gateway.core.github import parse_repo_url
from ai_gateway.core.llm import user_message
from ai_gateway.core.schemas import (
    AnalyzeCodebaseRequest,
    AnalyzeDependenciesGitHubRequest,
    AnalyzeDependenciesRequest,
    ComparePatternsRequest,
    ComparePatternsResponse,
    ErrorResponse,
    ModernizeRequest,
    ModernizeResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/modernization", tags=["Modernization"])


# ==========================================================================
# Snippet Advice
# ==========================================================================

@router.post(
    "/modernize",
    response_model=ModernizeResponse,
    summary="Modernize a code snippet",
    responses={
        400: {"model": ErrorResponse, "description": "Code or language missing"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def modernize_code(data: ModernizeRequest, client: Ollama) -> ModernizeResponse:
    """Explain deprecated patterns in a snippet and suggest a modern version."""
    if not data.code or not data.language:
        raise InvalidRequestError("Code and language are required")

    prompt = MODERNIZE_CODE_PROMPT.format(
        language=data.language,
        target=data.target_version or "modern version",
        code=data.code,
    )
    try:
        completion = await client.chat(
            settings.DEFAULT_MODEL,
            user_message(prompt),
            timeout=settings.MODERNIZE_TIMEOUT,
        )
    except ModelServiceError as e:
        raise ModelServiceError(e.details, error="Failed to analyze code") from e

    return ModernizeResponse(recommendations=completion.content, model=completion.model)


@router.post(
    "/compare-patterns",
    response_model=ComparePatternsResponse,
    summary="Compare code patterns",
    responses={
        400: {"model": ErrorResponse, "description": "Pattern or language missing"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def compare_patterns(data: ComparePatternsRequest, client: Ollama) -> ComparePatternsResponse:
    """Explain why the new pattern improves on the old one."""
    if not data.old_pattern or not data.new_pattern or not data.language:
        raise InvalidRequestError("Old pattern, new pattern, and language are required")

    prompt = COMPARE_PATTERNS_PROMPT.format(
        language=data.language,
        old_pattern=data.old_pattern,
        new_pattern=data.new_pattern,
    )
    try:
        completion = await client.chat(settings.DEFAULT_MODEL, user_message(prompt))
    except ModelServiceError as e:
        raise ModelServiceError(e.details, error="Failed to compare patterns") from e

    return ComparePatternsResponse(comparison=completion.content, model=completion.model)


# ==========================================================================
# Repository Analysis
# ==========================================================================

@router.post(
    "/analyze-codebase",
    summary="Analyze a GitHub repository",
    responses={
        200: {
            "description": "Analysis result, or named SSE events when stream=true",
            "content": {"text/event-stream": {}},
        },
        400: {"model": ErrorResponse, "description": "Missing or invalid repository URL"},
        404: {"model": ErrorResponse, "description": "Repository or files not found"},
        429: {"model": ErrorResponse, "description": "GitHub rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def analyze_codebase(data: AnalyzeCodebaseRequest, pipeline: AnalysisPipeline):
    """
    Run the staged analysis of a repository.

    stream=true emits `started`, `progress`, `result` or `error`, and a
    final `done` event. Otherwise the result payload is returned once the
    run is over, or the error with its status code.
    """
    params = CodebaseAnalysisParams.from_request(data)

    if data.stream:
        async def event_stream():
            async with aclosing(pipeline.run(params)) as events:
                async for event in events:
                    yield event.to_sse()

        return EventSourceResponse(event_stream(), sep="\n")

    result: dict[str, Any] | None = None
    async with aclosing(pipeline.run(params)) as events:
        async for event in events:
            if event.event == ProgressEventType.RESULT:
                result = event.result
            elif event.event == ProgressEventType.ERROR:
                return JSONResponse(
                    status_code=event.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content=ErrorResponse(
                        error=event.error or "Analysis failed",
                        details=event.message,
                    ).model_dump(exclude_none=True),
                )

    return result


@router.post(
    "/analyze-dependencies",
    summary="Analyze a dependency list",
    responses={
        400: {"model": ErrorResponse, "description": "Dependencies or language missing"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def analyze_dependencies(data: AnalyzeDependenciesRequest, analyzer: Analyzer) -> dict[str, Any]:
    """Upgrade advice for an explicit name -> version map."""
    if not data.dependencies or not data.language:
        raise InvalidRequestError("Dependencies and language are required")

    return await analyzer.analyze(data.dependencies, data.language, model=data.model)


@router.post(
    "/analyze-dependencies-github",
    summary="Analyze a repository's dependency manifests",
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid repository URL"},
        404: {"model": ErrorResponse, "description": "Repository or dependencies not found"},
        429: {"model": ErrorResponse, "description": "GitHub rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Model service failure"},
    },
)
async def analyze_dependencies_github(
    data: AnalyzeDependenciesGitHubRequest,
    analyzer: Analyzer,
) -> dict[str, Any]:
    """Collect dependencies from package.json, requirements.txt, pom.xml, *.csproj and go.mod."""
    repo = parse_repo_url(data.repo_url)
    logger.info("dependency_analysis_requested", repo=repo.full_name, path=data.path)

    return await analyzer.analyze_repository(
        repo,
        data.repo_url,
        branch=data.branch,
        path=data.path,
        model=data.model,
    )
