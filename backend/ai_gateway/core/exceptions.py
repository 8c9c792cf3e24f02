"""
AI Gateway - Error Hierarchy
============================

Domain errors raised by the clients and pipelines. Each carries the HTTP
status and the `error`/`details` pair rendered by the API exception handler
or placed into an SSE `error` event.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(
        self,
        details: Optional[str] = None,
        *,
        error: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(details or self.error)

    @property
    def message(self) -> str:
        """Single human-readable line for logs and progress events."""
        if self.details:
            return f"{self.error}: {self.details}"
        return self.error


# ==========================================================================
# Client Input
# ==========================================================================

class InvalidRequestError(GatewayError):
    """Missing or malformed request input. No external call was made."""

    status_code = 400
    error = "Invalid request"

    def __init__(self, error: str, details: Optional[str] = None):
        super().__init__(details, error=error)


# ==========================================================================
# Model Service
# ==========================================================================

class ModelServiceError(GatewayError):
    """Network failure, timeout or non-2xx answer from the model service."""

    status_code = 500
    error = "Failed to communicate with AI service"


# ==========================================================================
# Repository Content Service
# ==========================================================================

class RepositoryError(GatewayError):
    """Base class for GitHub access failures."""

    status_code = 502
    error = "Failed to access repository"


class RepositoryNotFoundError(RepositoryError):
    """Repository, branch or path does not exist (HTTP 404)."""

    status_code = 404
    error = "Repository not found"


class RateLimitExceededError(RepositoryError):
    """GitHub API rate limit exhausted. Needs a configured access token."""

    status_code = 429
    error = "GitHub API rate limit exceeded"

    def __init__(self, details: Optional[str] = None):
        super().__init__(
            details
            or "Set GITHUB_TOKEN to a personal access token to raise the limit, then retry."
        )


# ==========================================================================
# No Data
# ==========================================================================

class NoFilesFoundError(GatewayError):
    """Nothing left to analyze after filtering or fetching."""

    status_code = 404
    error = "No files found"


class NoDependenciesFoundError(GatewayError):
    """No dependency manifest yielded any dependency."""

    status_code = 404
    error = "No dependencies found"
