"""
Analysis progress events.

Transport-only messages emitted while a pipeline runs. Each maps to one
named SSE event.
"""

import enum
from typing import Any, Optional

from pydantic import Field

from ai_gateway.core.schemas import CamelSchema


class AnalysisStage(str, enum.Enum):
    """Pipeline stages, in execution order. FAILED is reachable from any stage."""
    CREATED = "created"
    LISTING_FILES = "listing-files"
    SAMPLING_FILES = "sampling-files"
    PROMPTING_MODEL = "prompting-model"
    PARSING_RESULT = "parsing-result"
    COMPLETED = "completed"
    FAILED = "failed"


class ProgressEventType(str, enum.Enum):
    STARTED = "started"
    PROGRESS = "progress"
    RESULT = "result"
    DONE = "done"
    ERROR = "error"


class ProgressEvent(CamelSchema):
    """One step of pipeline progress as seen by the client."""

    event: ProgressEventType = Field(exclude=True)
    stage: AnalysisStage
    message: str
    progress: Optional[int] = Field(None, ge=0, le=100)
    current_file: Optional[str] = None
    processed_files: Optional[int] = None
    total_files: Optional[int] = None
    analysis_id: Optional[int] = None

    # result events
    result: Optional[dict[str, Any]] = None

    # error events
    error: Optional[str] = None
    status_code: Optional[int] = None

    def to_sse(self) -> dict[str, str]:
        """Payload for sse_starlette's EventSourceResponse."""
        return {
            "event": self.event.value,
            "data": self.model_dump_json(by_alias=True, exclude_none=True),
        }
