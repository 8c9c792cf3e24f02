"""
AI Gateway - Chat API Tests
===========================
"""

import json

from httpx import AsyncClient

from tests.conftest import ModelServiceStub, parse_sse


class TestChat:
    """POST /api/ai/chat"""

    async def test_missing_message(self, client: AsyncClient, model_service: ModelServiceStub):
        response = await client.post("/api/ai/chat", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
        assert model_service.requests == []

    async def test_blocking_chat(self, client: AsyncClient):
        response = await client.post("/api/ai/chat", json={"message": "hello"})

        assert response.status_code == 200
        data = response.json()
        assert data["response"] == "hi there"
        assert data["model"] == "llama3"
        assert data["metrics"]["tokens"] == 5
        assert set(data["metrics"]) == {"tokens", "duration", "tokensPerSecond"}

    async def test_model_is_forwarded(self, client: AsyncClient, model_service: ModelServiceStub):
        await client.post("/api/ai/chat", json={"message": "hello", "model": "mistral"})

        assert model_service.requests[-1]["body"]["model"] == "mistral"

    async def test_upstream_failure(self, client: AsyncClient, model_service: ModelServiceStub):
        model_service.status_code = 500

        response = await client.post("/api/ai/chat", json={"message": "hello"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to communicate with AI service"
        assert "500" in data["details"]

    async def test_streamed_chat(self, client: AsyncClient, model_service: ModelServiceStub):
        model_service.stream_lines = [
            {"message": {"content": "hi"}, "done": False},
            {"message": {"content": " there"}, "done": False},
            {"done": True, "eval_count": 4},
        ]

        response = await client.post("/api/ai/chat", json={"message": "hello", "stream": True})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        messages = [json.loads(data) for _, data in parse_sse(response.text)]
        assert [m.get("chunk") for m in messages[:-1]] == ["hi", " there"]
        assert all("metrics" in m for m in messages)
        assert messages[-1]["done"] is True
        assert messages[-1]["response"] == "hi there"
        assert messages[-1]["metrics"]["tokens"] == 4
        assert model_service.stream_closed is True

    async def test_streamed_chat_upstream_failure(self, client: AsyncClient, model_service: ModelServiceStub):
        model_service.status_code = 500

        response = await client.post("/api/ai/chat", json={"message": "hello", "stream": True})

        # Headers are already sent when the upstream fails
        assert response.status_code == 200
        messages = [json.loads(data) for _, data in parse_sse(response.text)]
        assert len(messages) == 1
        assert "error" in messages[0]


class TestSummarize:
    """POST /api/ai/summarize"""

    async def test_missing_text(self, client: AsyncClient):
        response = await client.post("/api/ai/summarize", json={"text": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Text is required"

    async def test_summarize(self, client: AsyncClient, model_service: ModelServiceStub):
        model_service.reply = "A short summary."

        response = await client.post("/api/ai/summarize", json={"text": "A very long text."})

        assert response.status_code == 200
        assert response.json() == {"summary": "A short summary.", "model": "llama3"}
        request = model_service.requests[-1]
        assert request["path"] == "/api/generate"
        assert "A very long text." in request["body"]["prompt"]

    async def test_summarize_failure(self, client: AsyncClient, model_service: ModelServiceStub):
        model_service.status_code = 502

        response = await client.post("/api/ai/summarize", json={"text": "text"})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to summarize text"


class TestModels:
    """GET /api/ai/models"""

    async def test_list_models(self, client: AsyncClient):
        response = await client.get("/api/ai/models")

        assert response.status_code == 200
        assert response.json() == {"models": [{"name": "llama3:latest"}]}

    async def test_list_models_failure(self, client: AsyncClient, model_service: ModelServiceStub):
        model_service.status_code = 500

        response = await client.get("/api/ai/models")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch available models"
