"""
GitHub Content Client
=====================

Read-only access to repository trees and file contents through the GitHub
REST API. Rate limiting is reported to the caller, never waited out.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote, urlparse

import httpx
import structlog

from ai_gateway.core.config import settings
from ai_gateway.core.exceptions import (
    InvalidRequestError,
    RateLimitExceededError,
    RepositoryError,
    RepositoryNotFoundError,
)

logger = structlog.get_logger()


# ==========================================================================
# Types
# ==========================================================================

@dataclass(frozen=True)
class RepoRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class TreeEntry:
    path: str
    sha: str
    type: str  # blob | tree | commit
    size: Optional[int] = None

    @property
    def is_file(self) -> bool:
        return self.type == "blob"


# ==========================================================================
# URL Handling
# ==========================================================================

_SSH_PATTERN = re.compile(r"^git@github\.com:([^/]+)/(.+?)(?:\.git)?/?$")


def parse_repo_url(url: Optional[str]) -> RepoRef:
    """
    Parse a GitHub repository URL into owner and name.

    Accepts https://github.com/owner/repo(.git), github.com/owner/repo and
    git@github.com:owner/repo.git. Extra path segments (tree/main/...) are
    ignored.

    Raises:
        InvalidRequestError: If the URL is empty or not a GitHub repository URL.
    """
    if not url or not url.strip():
        raise InvalidRequestError("Repository URL is required")

    url = url.strip().rstrip("/")

    ssh_match = _SSH_PATTERN.match(url)
    if ssh_match:
        return RepoRef(owner=ssh_match.group(1), name=ssh_match.group(2))

    if "://" not in url:
        url = f"https://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidRequestError("Invalid repository URL", f"Unsupported URL scheme: {parsed.scheme}")

    host = parsed.netloc.lower()
    if host not in ("github.com", "www.github.com"):
        raise InvalidRequestError("Invalid repository URL", f"Not a GitHub URL: {url}")

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        raise InvalidRequestError(
            "Invalid repository URL",
            "GitHub URL must include owner and repository name",
        )

    name = parts[1]
    if name.endswith(".git"):
        name = name[:-4]
    return RepoRef(owner=parts[0], name=name)


# ==========================================================================
# Client
# ==========================================================================

class GitHubClient:
    """Client for the GitHub git data and contents APIs."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self.token = token if token is not None else settings.GITHUB_TOKEN

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": settings.SERVICE_NAME,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=timeout or settings.GITHUB_TIMEOUT,
            transport=transport,
        )

        logger.info("github_client_initialized", authenticated=bool(self.token), api_url=self.api_url)

    async def close(self) -> None:
        await self._client.aclose()

    async def list_tree(self, repo: RepoRef, branch: Optional[str] = None) -> list[TreeEntry]:
        """
        List every entry of the repository tree in one recursive call.

        Entries keep the order GitHub returns them in.
        """
        ref = quote(branch or "HEAD", safe="")
        data = await self._get_json(
            f"/repos/{repo.full_name}/git/trees/{ref}",
            params={"recursive": "1"},
        )
        if data.get("truncated"):
            logger.warning("github_tree_truncated", repo=repo.full_name)

        return [
            TreeEntry(
                path=item["path"],
                sha=item["sha"],
                type=item.get("type", "blob"),
                size=item.get("size"),
            )
            for item in data.get("tree", [])
            if "path" in item and "sha" in item
        ]

    async def get_blob(self, repo: RepoRef, sha: str) -> str:
        """Fetch a blob by sha and decode it as text."""
        data = await self._get_json(f"/repos/{repo.full_name}/git/blobs/{sha}")
        return _decode_content(data)

    # ==================== Internals ====================

    async def _get_json(self, path: str, params: Optional[dict] = None) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            logger.error("github_request_timeout", path=path)
            raise RepositoryError(f"GitHub request timed out: {path}") from e
        except httpx.HTTPError as e:
            logger.error("github_request_failed", path=path, error=str(e))
            raise RepositoryError(str(e) or type(e).__name__) from e

        if response.status_code == 404:
            raise RepositoryNotFoundError(f"GitHub returned 404 for {path}")
        if _is_rate_limited(response):
            logger.warning(
                "github_rate_limited",
                path=path,
                authenticated=bool(self.token),
                reset=response.headers.get("x-ratelimit-reset"),
            )
            raise RateLimitExceededError()
        if response.status_code in (401, 403):
            raise RepositoryError(
                "Access denied. The repository may be private or the token lacks permission.",
                status_code=response.status_code,
            )
        if response.is_error:
            raise RepositoryError(f"GitHub returned status {response.status_code} for {path}")

        try:
            data = response.json()
        except ValueError as e:
            raise RepositoryError("GitHub returned invalid JSON") from e
        if not isinstance(data, dict):
            raise RepositoryError(f"Unexpected GitHub payload for {path}")
        return data


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return (
        response.status_code == 403
        and response.headers.get("x-ratelimit-remaining") == "0"
    )


def _decode_content(data: dict[str, Any]) -> str:
    content = data.get("content") or ""
    if not isinstance(content, str):
        raise RepositoryError("Undecodable blob content")
    if data.get("encoding") == "base64":
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except binascii.Error as e:
            raise RepositoryError("Undecodable blob content") from e
    return content
