"""
AI Gateway - Analysis History Tests
===================================
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ai_gateway.core.analysis import AnalysisHistoryStore
from ai_gateway.core.models import AnalysisRun, AnalysisStatus, AnalysisType


# ==========================================================================
# Fixtures
# ==========================================================================

@pytest.fixture
async def recorded_runs(db_session: AsyncSession) -> list[AnalysisRun]:
    """Three codebase runs and two dependency runs, oldest first."""
    store = AnalysisHistoryStore(db_session)
    runs = []
    for i in range(3):
        run = await store.start(
            AnalysisType.CODEBASE,
            repository_url=f"https://github.com/octo/repo-{i}",
            branch="main",
            query_parameters={"repoUrl": f"https://github.com/octo/repo-{i}"},
        )
        run = await store.update(
            run.id,
            status=AnalysisStatus.COMPLETED,
            files_analyzed=i + 1,
            processed_files=[f"file_{n}.py" for n in range(i + 1)],
            modernization_score=50 + i,
            result_data={"success": True, "summary": f"Run {i}"},
        )
        runs.append(run)
    for language in ("javascript", "python"):
        run = await store.start(AnalysisType.DEPENDENCIES, language=language)
        runs.append(await store.update(run.id, status=AnalysisStatus.FAILED, error_message="boom"))
    return runs


# ==========================================================================
# Store
# ==========================================================================

class TestHistoryStore:
    """Status transitions of a recorded run."""

    async def test_new_run_is_in_progress(self, db_session: AsyncSession):
        run = await AnalysisHistoryStore(db_session).start(
            AnalysisType.CODEBASE,
            repository_url="https://github.com/octo/legacy-app",
        )

        assert run.id is not None
        assert run.status == AnalysisStatus.IN_PROGRESS
        assert run.completed_at is None
        assert run.processed_files == []
        assert run.created_at is not None

    async def test_completed_at_only_on_terminal_status(self, db_session: AsyncSession):
        store = AnalysisHistoryStore(db_session)
        run = await store.start(AnalysisType.CODEBASE)

        run = await store.update(run.id, files_analyzed=4)
        assert run.completed_at is None
        assert run.status == AnalysisStatus.IN_PROGRESS

        run = await store.update(run.id, status=AnalysisStatus.COMPLETED)
        assert run.completed_at is not None
        assert run.files_analyzed == 4

    async def test_update_unknown_run(self, db_session: AsyncSession):
        with pytest.raises(LookupError):
            await AnalysisHistoryStore(db_session).update(999, status=AnalysisStatus.FAILED)

    async def test_ids_are_unique(self, recorded_runs: list[AnalysisRun]):
        ids = [run.id for run in recorded_runs]
        assert len(set(ids)) == len(ids)


# ==========================================================================
# List
# ==========================================================================

class TestListHistory:
    """GET /api/modernization/history"""

    async def test_list_empty(self, client: AsyncClient):
        response = await client.get("/api/modernization/history")

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["total"] == 0
        assert data["pages"] == 1

    async def test_list_newest_first(self, client: AsyncClient, recorded_runs: list[AnalysisRun]):
        response = await client.get("/api/modernization/history")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 5
        assert [item["id"] for item in data["items"]] == [run.id for run in reversed(recorded_runs)]
        assert "result_data" not in data["items"][0]

    async def test_filter_by_type(self, client: AsyncClient, recorded_runs: list[AnalysisRun]):
        response = await client.get("/api/modernization/history?type=codebase")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert {item["analysis_type"] for item in data["items"]} == {"codebase"}

    async def test_pagination(self, client: AsyncClient, recorded_runs: list[AnalysisRun]):
        response = await client.get("/api/modernization/history?page=2&page_size=2")

        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 2
        assert data["total"] == 5
        assert data["page"] == 2
        assert data["page_size"] == 2
        assert data["pages"] == 3

    async def test_invalid_page(self, client: AsyncClient):
        response = await client.get("/api/modernization/history?page=0")

        assert response.status_code == 400


# ==========================================================================
# Get
# ==========================================================================

class TestGetHistory:
    """GET /api/modernization/history/{id}"""

    async def test_get_includes_result(self, client: AsyncClient, recorded_runs: list[AnalysisRun]):
        run = recorded_runs[2]

        response = await client.get(f"/api/modernization/history/{run.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == run.id
        assert data["status"] == "completed"
        assert data["repository_url"] == "https://github.com/octo/repo-2"
        assert data["files_analyzed"] == 3
        assert data["processed_files"] == ["file_0.py", "file_1.py", "file_2.py"]
        assert data["modernization_score"] == 52
        assert data["result_data"] == {"success": True, "summary": "Run 2"}
        assert data["completed_at"] is not None

    async def test_get_is_idempotent(self, client: AsyncClient, recorded_runs: list[AnalysisRun]):
        url = f"/api/modernization/history/{recorded_runs[0].id}"

        first = await client.get(url)
        second = await client.get(url)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()

    async def test_get_failed_run(self, client: AsyncClient, recorded_runs: list[AnalysisRun]):
        response = await client.get(f"/api/modernization/history/{recorded_runs[-1].id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["error_message"] == "boom"
        assert data["result_data"] is None

    async def test_not_found(self, client: AsyncClient):
        response = await client.get("/api/modernization/history/424242")

        assert response.status_code == 404
        assert response.json() == {"error": "Analysis not found"}
