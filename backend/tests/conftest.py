"""
AI Gateway - Test Fixtures
==========================

Shared pytest fixtures for all tests.

The model service and GitHub are replaced by httpx.MockTransport stubs, so
the real clients (URL building, status mapping, stream parsing) run in every
test.
"""

import base64
import json
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

# Must be set before the application settings are first read
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ai_gateway.api.deps import get_github_client, get_ollama_client
from ai_gateway.api.main import app
from ai_gateway.core.database import Base, get_db, get_session_factory
from ai_gateway.core.github import GitHubClient
from ai_gateway.core.llm import OllamaClient


# ==========================================================================
# Test Database Setup
# ==========================================================================

# Use in-memory SQLite for tests (fast)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


# ==========================================================================
# Upstream Stubs
# ==========================================================================

class TrackedStream(httpx.AsyncByteStream):
    """Response body that records on its stub when it gets closed."""

    def __init__(self, stub: "ModelServiceStub", chunks: list[bytes]):
        self.stub = stub
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.stub.stream_closed = True


class ModelServiceStub:
    """
    Stand-in for the Ollama HTTP API.

    Non-streamed chat answers with `reply`; streamed chat sends
    `stream_lines` as NDJSON. A non-200 `status_code` fails every call.
    """

    def __init__(self):
        self.model = "llama3"
        self.reply = "hi there"
        self.eval_count: Optional[int] = 5
        self.stream_lines: list[Any] = []
        self.stream_closed = False
        self.status_code = 200
        self.requests: list[dict[str, Any]] = []

    @property
    def chat_calls(self) -> int:
        return sum(1 for r in self.requests if r["path"] == "/api/chat")

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        self.requests.append({"path": request.url.path, "body": body})

        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "model runner unavailable"})

        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": f"{self.model}:latest"}]})

        if request.url.path == "/api/generate":
            return httpx.Response(
                200,
                json={"model": body.get("model", self.model), "response": self.reply, "done": True},
            )

        if request.url.path == "/api/chat":
            if body.get("stream"):
                lines = [
                    line if isinstance(line, str) else json.dumps(line)
                    for line in self.stream_lines
                ]
                return httpx.Response(
                    200,
                    stream=TrackedStream(self, [f"{line}\n".encode() for line in lines]),
                    headers={"Content-Type": "application/x-ndjson"},
                )
            payload = {
                "model": body.get("model", self.model),
                "message": {"role": "assistant", "content": self.reply},
                "done": True,
            }
            if self.eval_count is not None:
                payload["eval_count"] = self.eval_count
            return httpx.Response(200, json=payload)

        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> OllamaClient:
        return OllamaClient(
            base_url="http://ollama.test",
            transport=httpx.MockTransport(self.handler),
        )


class GitHubStub:
    """
    Stand-in for the GitHub git data API serving a single repository.

    `files` maps path -> content in tree order. Paths listed in
    `failing_blobs` answer 500, those in `corrupt_blobs` carry content that
    is not valid base64, `rate_limited` makes every blob fetch hit the
    rate limit, and `missing` makes the repository 404.
    """

    def __init__(self, owner: str = "octo", name: str = "legacy-app"):
        self.owner = owner
        self.name = name
        self.files: dict[str, str] = {}
        self.sizes: dict[str, int] = {}
        self.failing_blobs: set[str] = set()
        self.corrupt_blobs: set[str] = set()
        self.rate_limited = False
        self.missing = False
        self.requests: list[str] = []

    @property
    def repo_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"

    @property
    def blob_requests(self) -> int:
        return sum(1 for path in self.requests if "/git/blobs/" in path)

    def _sha(self, path: str) -> str:
        return f"sha-{list(self.files).index(path)}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        prefix = f"/repos/{self.owner}/{self.name}"

        if self.missing or not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})

        if path.startswith(f"{prefix}/git/trees/"):
            tree = [
                {
                    "path": file_path,
                    "sha": self._sha(file_path),
                    "type": "blob",
                    "size": self.sizes.get(file_path, len(content)),
                }
                for file_path, content in self.files.items()
            ]
            return httpx.Response(200, json={"sha": "root", "tree": tree, "truncated": False})

        if path.startswith(f"{prefix}/git/blobs/"):
            if self.rate_limited:
                return httpx.Response(
                    403,
                    json={"message": "API rate limit exceeded"},
                    headers={"x-ratelimit-remaining": "0"},
                )
            sha = path.rsplit("/", 1)[-1]
            for file_path, content in self.files.items():
                if self._sha(file_path) == sha:
                    if file_path in self.failing_blobs:
                        return httpx.Response(500, json={"message": "Server Error"})
                    if file_path in self.corrupt_blobs:
                        return httpx.Response(
                            200,
                            json={"sha": sha, "encoding": "base64", "content": "!!!not-base64"},
                        )
                    return httpx.Response(
                        200,
                        json={
                            "sha": sha,
                            "encoding": "base64",
                            "content": base64.b64encode(content.encode()).decode(),
                        },
                    )

        return httpx.Response(404, json={"message": "Not Found"})

    def client(self) -> GitHubClient:
        return GitHubClient(
            api_url="https://api.github.test",
            token="",
            transport=httpx.MockTransport(self.handler),
        )


class FakeClock:
    """Returns the given instants in order, then keeps returning the last one."""

    def __init__(self, *instants: float):
        self.instants = list(instants)
        self.now = 0.0

    def __call__(self) -> float:
        if self.instants:
            self.now = self.instants.pop(0)
        return self.now


def parse_sse(body: str) -> list[tuple[Optional[str], str]]:
    """Split an SSE body into (event name, data) pairs."""
    messages = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        event = None
        data = []
        for line in block.split("\n"):
            if line.startswith("event:"):
                event = line[len("event:"):].strip()
            elif line.startswith("data:"):
                data.append(line[len("data:"):].strip())
        if data:
            messages.append((event, "\n".join(data)))
    return messages


# ==========================================================================
# Database Fixtures
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a clean database session for each test.

    Creates all tables before test, drops after.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Session factory handing out the test session without closing it."""
    @asynccontextmanager
    async def factory() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    return factory


# ==========================================================================
# Upstream Fixtures
# ==========================================================================

@pytest.fixture
def model_service() -> ModelServiceStub:
    return ModelServiceStub()


@pytest.fixture
def github() -> GitHubStub:
    return GitHubStub()


@pytest_asyncio.fixture
async def ollama_client(model_service: ModelServiceStub) -> AsyncGenerator[OllamaClient, None]:
    client = model_service.client()
    yield client
    await client.close()


@pytest_asyncio.fixture
async def github_client(github: GitHubStub) -> AsyncGenerator[GitHubClient, None]:
    client = github.client()
    yield client
    await client.close()


# ==========================================================================
# HTTP Client Fixture
# ==========================================================================

@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a module-level exit event bound to the first loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    session_factory,
    ollama_client: OllamaClient,
    github_client: GitHubClient,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database and upstream overrides.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_ollama_client] = lambda: ollama_client
    app.dependency_overrides[get_github_client] = lambda: github_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
