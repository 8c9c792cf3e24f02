"""
AI Gateway - Database Models
============================

SQLAlchemy models for persisted analysis runs.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ai_gateway.core.database import Base


# ==========================================================================
# Enums
# ==========================================================================

class AnalysisStatus(str, enum.Enum):
    """Lifecycle status of an analysis run."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.COMPLETED, AnalysisStatus.FAILED)


class AnalysisType(str, enum.Enum):
    """Kind of analysis a run performed."""
    CODEBASE = "codebase"
    DEPENDENCIES = "dependencies"
    DEPENDENCIES_GITHUB = "dependencies-github"


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ==========================================================================
# Models
# ==========================================================================

class AnalysisRun(Base, TimestampMixin):
    """
    One analysis invocation.

    Created in_progress when a pipeline starts and updated in place until it
    reaches completed or failed. completed_at is set exactly when the run
    reaches a terminal status.
    """

    __tablename__ = "analysis_history"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    repository_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        index=True,
    )
    branch: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    analysis_type: Mapped[str] = mapped_column(
        String(50),
        default=AnalysisType.CODEBASE.value,
        nullable=False,
        index=True,
    )
    language: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    # Progress
    status: Mapped[AnalysisStatus] = mapped_column(
        Enum(AnalysisStatus, values_callable=lambda e: [m.value for m in e]),
        default=AnalysisStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    files_analyzed: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    processed_files: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    # Results
    modernization_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )  # 0-100
    overall_severity: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    query_parameters: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )
    result_data: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AnalysisRun {self.id} {self.analysis_type} [{self.status.value}]>"
