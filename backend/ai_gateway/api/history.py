"""
AI Gateway - Analysis History API
=================================

Read-only access to recorded analysis runs.
"""

from math import ceil
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ai_gateway.api.deps import DbSession
from ai_gateway.core.analysis import AnalysisHistoryStore
from ai_gateway.core.schemas import (
    AnalysisRunDetail,
    AnalysisRunListResponse,
    AnalysisRunSummary,
)

router = APIRouter(prefix="/modernization/history", tags=["History"])


@router.get(
    "",
    response_model=AnalysisRunListResponse,
    summary="List analysis runs",
)
async def list_analyses(
    db: DbSession,
    analysis_type: Optional[str] = Query(
        None, alias="type", description="Filter by analysis type"
    ),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> AnalysisRunListResponse:
    """
    List analysis runs, newest first.
    """
    store = AnalysisHistoryStore(db)
    runs, total = await store.list_runs(
        analysis_type=analysis_type,
        offset=(page - 1) * page_size,
        limit=page_size,
    )

    # Calculate pages
    pages = ceil(total / page_size) if total > 0 else 1

    return AnalysisRunListResponse(
        items=[AnalysisRunSummary.model_validate(run) for run in runs],
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


@router.get(
    "/{analysis_id}",
    response_model=AnalysisRunDetail,
    summary="Get analysis run",
    responses={404: {"description": "Analysis not found"}},
)
async def get_analysis(analysis_id: int, db: DbSession) -> AnalysisRunDetail:
    """
    Get one analysis run with its full result payload.
    """
    run = await AnalysisHistoryStore(db).get(analysis_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Analysis not found",
        )
    return AnalysisRunDetail.model_validate(run)
