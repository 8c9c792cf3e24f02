"""
AI Gateway - Pydantic Schemas
=============================

Request and response schemas for API validation.
Request bodies use camelCase keys; persisted records keep their column names.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ai_gateway.core.models import AnalysisStatus


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CamelSchema(BaseSchema):
    """Schema whose JSON keys are camelCase."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )


# ==========================================================================
# Chat Schemas
# ==========================================================================

class ChatRequest(CamelSchema):
    """Chat request; stream=true switches the response to SSE."""

    message: Optional[str] = None
    model: Optional[str] = None
    stream: bool = False


class ChatMetrics(CamelSchema):
    tokens: int
    duration: str  # seconds, two decimals
    tokens_per_second: float


class ChatResponse(CamelSchema):
    response: str
    model: str
    metrics: ChatMetrics


class SummarizeRequest(CamelSchema):
    text: Optional[str] = None
    model: Optional[str] = None


class SummarizeResponse(CamelSchema):
    summary: str
    model: str


# ==========================================================================
# Modernization Schemas
# ==========================================================================

class ModernizeRequest(CamelSchema):
    code: Optional[str] = None
    language: Optional[str] = None
    target_version: Optional[str] = None


class ModernizeResponse(CamelSchema):
    recommendations: str
    model: str


class ComparePatternsRequest(CamelSchema):
    old_pattern: Optional[str] = None
    new_pattern: Optional[str] = None
    language: Optional[str] = None


class ComparePatternsResponse(CamelSchema):
    comparison: str
    model: str


class AnalyzeCodebaseRequest(CamelSchema):
    """Repository analysis parameters."""

    repo_url: Optional[str] = None
    branch: Optional[str] = None
    language: Optional[str] = None
    file_extensions: Optional[list[str]] = None
    exclude_paths: Optional[list[str]] = None
    max_files: Optional[int] = Field(None, ge=1, le=200)
    model: Optional[str] = None
    stream: bool = False


class AnalyzeDependenciesRequest(CamelSchema):
    dependencies: Optional[dict[str, str]] = None
    language: Optional[str] = None
    model: Optional[str] = None


class AnalyzeDependenciesGitHubRequest(CamelSchema):
    repo_url: Optional[str] = None
    branch: Optional[str] = None
    path: Optional[str] = None
    model: Optional[str] = None


# ==========================================================================
# Analysis History Schemas
# ==========================================================================

class AnalysisRunSummary(BaseSchema):
    """Analysis run as listed in history (no result payload)."""

    id: int
    repository_url: Optional[str] = None
    branch: Optional[str] = None
    analysis_type: str
    language: Optional[str] = None
    files_analyzed: Optional[int] = None
    status: AnalysisStatus
    modernization_score: Optional[int] = None
    overall_severity: Optional[str] = None
    query_parameters: Optional[dict[str, Any]] = None
    processed_files: list[str] = []
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class AnalysisRunDetail(AnalysisRunSummary):
    """Single analysis run including its result payload."""

    result_data: Optional[dict[str, Any]] = None


class AnalysisRunListResponse(BaseSchema):
    """Schema for paginated analysis history."""

    items: list[AnalysisRunSummary]
    total: int
    page: int
    page_size: int
    pages: int


# ==========================================================================
# Utility Schemas
# ==========================================================================

class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    details: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    service: str
    version: str
    environment: str
    timestamp: datetime
