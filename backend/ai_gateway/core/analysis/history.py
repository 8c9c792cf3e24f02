"""
Analysis History Store
======================

Persistence of AnalysisRun rows. A run is inserted once and then only
updated in place by the pipeline that created it.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ai_gateway.core.models import AnalysisRun, AnalysisStatus, AnalysisType

# Sentinel for "leave this column alone"
_UNSET: Any = object()


class AnalysisHistoryStore:
    """Queries and updates on the analysis_history table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def start(
        self,
        analysis_type: AnalysisType,
        repository_url: Optional[str] = None,
        branch: Optional[str] = None,
        language: Optional[str] = None,
        query_parameters: Optional[dict] = None,
    ) -> AnalysisRun:
        """Insert a new in_progress run."""
        run = AnalysisRun(
            analysis_type=analysis_type.value,
            repository_url=repository_url,
            branch=branch,
            language=language,
            query_parameters=query_parameters,
            status=AnalysisStatus.IN_PROGRESS,
            processed_files=[],
        )
        self.db.add(run)
        await self.db.commit()
        await self.db.refresh(run)
        return run

    async def update(
        self,
        run_id: int,
        *,
        status: Optional[AnalysisStatus] = None,
        files_analyzed: Optional[int] = None,
        processed_files: Optional[list[str]] = None,
        language: Optional[str] = None,
        modernization_score: Optional[int] = None,
        overall_severity: Optional[str] = None,
        result_data: Any = _UNSET,
        error_message: Optional[str] = None,
    ) -> AnalysisRun:
        """
        Apply a partial update. None means "unchanged".

        Moving to completed or failed stamps completed_at; completed_at is
        never set otherwise.
        """
        run = await self.db.get(AnalysisRun, run_id)
        if run is None:
            raise LookupError(f"Analysis run {run_id} does not exist")

        if files_analyzed is not None:
            run.files_analyzed = files_analyzed
        if processed_files is not None:
            run.processed_files = list(processed_files)
        if language is not None:
            run.language = language
        if modernization_score is not None:
            run.modernization_score = modernization_score
        if overall_severity is not None:
            run.overall_severity = overall_severity
        if result_data is not _UNSET:
            run.result_data = result_data
        if error_message is not None:
            run.error_message = error_message
        if status is not None:
            run.status = status
            if status.is_terminal:
                run.completed_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(run)
        return run

    async def get(self, run_id: int) -> Optional[AnalysisRun]:
        result = await self.db.execute(select(AnalysisRun).where(AnalysisRun.id == run_id))
        return result.scalar_one_or_none()

    async def list_runs(
        self,
        analysis_type: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AnalysisRun], int]:
        """Page of runs, newest first, with the total count for the filter."""
        query = select(AnalysisRun)
        if analysis_type:
            query = query.where(AnalysisRun.analysis_type == analysis_type)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(AnalysisRun.created_at.desc(), AnalysisRun.id.desc())
        query = query.offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
