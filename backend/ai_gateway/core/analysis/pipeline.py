"""
Codebase Analysis Pipeline
==========================

Runs one repository analysis through its stages and reports progress:

    created → listing-files → sampling-files → prompting-model → parsing-result → completed

Any stage can end the run in failed. The pipeline is an async generator of
ProgressEvents; whatever happens, the last event it yields is `done`.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

import anyio
import structlog

from ai_gateway.core.analysis.events import AnalysisStage, ProgressEvent, ProgressEventType
from ai_gateway.core.analysis.files import (
    allowed_extensions,
    detect_language,
    normalize_language,
    select_files,
)
from ai_gateway.core.analysis.history import AnalysisHistoryStore
from ai_gateway.core.analysis.prompts import build_codebase_prompt
from ai_gateway.core.analysis.result_parser import (
    StructuredOutput,
    fallback_payload,
    parse_model_output,
    trusted_score,
    trusted_severity,
)
from ai_gateway.core.config import Settings, settings
from ai_gateway.core.database import SessionFactory
from ai_gateway.core.exceptions import (
    GatewayError,
    NoFilesFoundError,
    RateLimitExceededError,
    RepositoryError,
)
from ai_gateway.core.github import GitHubClient, RepoRef, TreeEntry, parse_repo_url
from ai_gateway.core.llm import OllamaClient, user_message
from ai_gateway.core.models import AnalysisStatus, AnalysisType
from ai_gateway.core.schemas import AnalyzeCodebaseRequest

logger = structlog.get_logger()


# ==========================================================================
# Parameters
# ==========================================================================

@dataclass
class CodebaseAnalysisParams:
    """Validated analysis request."""

    repo: RepoRef
    repo_url: str
    branch: Optional[str]
    language: Optional[str]
    extensions: set[str]
    exclude_paths: list[str]
    max_files: int
    model: str
    query_parameters: dict[str, Any]

    @classmethod
    def from_request(
        cls,
        request: AnalyzeCodebaseRequest,
        config: Settings = settings,
    ) -> "CodebaseAnalysisParams":
        """
        Validate a request. Raises InvalidRequestError before any I/O.
        """
        repo = parse_repo_url(request.repo_url)
        language = normalize_language(request.language)
        max_files = min(
            request.max_files or config.ANALYSIS_DEFAULT_MAX_FILES,
            config.ANALYSIS_MAX_FILES_LIMIT,
        )
        exclude_paths = list(config.ANALYSIS_EXCLUDE_PATHS)
        for path in request.exclude_paths or []:
            if path and path not in exclude_paths:
                exclude_paths.append(path)

        return cls(
            repo=repo,
            repo_url=request.repo_url.strip(),
            branch=request.branch or None,
            language=language,
            extensions=allowed_extensions(language, request.file_extensions),
            exclude_paths=exclude_paths,
            max_files=max_files,
            model=request.model or config.DEFAULT_MODEL,
            query_parameters=request.model_dump(
                by_alias=True,
                exclude_none=True,
                exclude={"stream"},
            ),
        )


@dataclass
class _RunState:
    params: CodebaseAnalysisParams
    run_id: Optional[int] = None
    stage: AnalysisStage = AnalysisStage.CREATED
    progress: int = 0
    files: list[TreeEntry] = field(default_factory=list)
    samples: list[tuple[str, str, str]] = field(default_factory=list)  # path, language, content
    model_response: str = ""
    model_name: str = ""
    finished: bool = False

    def event(self, event: ProgressEventType, message: str, progress: Optional[int] = None, **kwargs) -> ProgressEvent:
        if progress is not None:
            self.progress = max(self.progress, progress)
        return ProgressEvent(
            event=event,
            stage=self.stage,
            message=message,
            progress=self.progress,
            analysis_id=self.run_id,
            **kwargs,
        )

    @property
    def processed_files(self) -> list[str]:
        return [path for path, _, _ in self.samples]

    @property
    def languages(self) -> list[str]:
        return list(dict.fromkeys(language for _, language, _ in self.samples))


# ==========================================================================
# Pipeline
# ==========================================================================

class CodebaseAnalysisPipeline:
    """
    Staged analysis of a remote repository.

    Stages run sequentially. Every DB write uses its own short session from
    session_factory so the pipeline can outlive the request scope when it is
    streamed.
    """

    PROGRESS_STARTED = 0
    PROGRESS_LISTING = 5
    PROGRESS_LISTED = 15
    PROGRESS_SAMPLED = 55
    PROGRESS_PROMPTING = 60
    PROGRESS_PARSING = 90
    PROGRESS_COMPLETE = 100

    def __init__(
        self,
        github: GitHubClient,
        llm: OllamaClient,
        session_factory: SessionFactory,
        config: Settings = settings,
    ):
        self.github = github
        self.llm = llm
        self.session_factory = session_factory
        self.config = config

    async def run(self, params: CodebaseAnalysisParams) -> AsyncIterator[ProgressEvent]:
        """Execute all stages, yielding progress as it happens."""
        state = _RunState(params=params)
        log = logger.bind(repo=params.repo.full_name)

        try:
            async with self._store() as store:
                run = await store.start(
                    AnalysisType.CODEBASE,
                    repository_url=params.repo_url,
                    branch=params.branch,
                    language=params.language,
                    query_parameters=params.query_parameters,
                )
            state.run_id = run.id
            log = log.bind(analysis_id=run.id)
            log.info("analysis_started", max_files=params.max_files, model=params.model)

            yield state.event(
                ProgressEventType.STARTED,
                f"Starting analysis of {params.repo.full_name}",
                self.PROGRESS_STARTED,
            )

            async for event in self._list_files(state):
                yield event
            async for event in self._sample_files(state, log):
                yield event
            async for event in self._prompt_model(state, log):
                yield event
            async for event in self._parse_result(state, log):
                yield event

        except GatewayError as e:
            log.warning("analysis_failed", stage=state.stage.value, error=e.message)
            yield await self._fail(state, e)
        except Exception as e:
            log.exception("analysis_crashed", stage=state.stage.value)
            yield await self._fail(state, GatewayError(str(e) or type(e).__name__))
        finally:
            if not state.finished and state.run_id is not None:
                # Client went away mid-run; close the record before unwinding
                with anyio.CancelScope(shield=True):
                    await self._mark_failed(state.run_id, "Client disconnected", log)
                state.finished = True

        final_progress = self.PROGRESS_COMPLETE if state.stage == AnalysisStage.COMPLETED else state.progress
        yield state.event(
            ProgressEventType.DONE,
            "Analysis finished" if state.stage == AnalysisStage.COMPLETED else "Analysis failed",
            final_progress,
        )

    # ==================== Stages ====================

    async def _list_files(self, state: _RunState) -> AsyncIterator[ProgressEvent]:
        params = state.params
        state.stage = AnalysisStage.LISTING_FILES
        yield state.event(
            ProgressEventType.PROGRESS,
            "Listing repository files",
            self.PROGRESS_LISTING,
        )

        tree = await self.github.list_tree(params.repo, params.branch)
        selection = select_files(
            tree,
            extensions=params.extensions,
            exclude_paths=params.exclude_paths,
            max_file_size=self.config.ANALYSIS_MAX_FILE_SIZE,
            max_files=params.max_files,
        )
        if not selection.files:
            raise NoFilesFoundError(
                f"No files matching the filter criteria in {params.repo.full_name}"
            )

        state.files = selection.files
        yield state.event(
            ProgressEventType.PROGRESS,
            f"Found {len(selection.files)} files to analyze",
            self.PROGRESS_LISTED,
            total_files=len(selection.files),
        )

    async def _sample_files(self, state: _RunState, log) -> AsyncIterator[ProgressEvent]:
        params = state.params
        state.stage = AnalysisStage.SAMPLING_FILES
        to_fetch = state.files[: min(self.config.ANALYSIS_SAMPLE_FILES, params.max_files)]
        total = len(to_fetch)
        span = self.PROGRESS_SAMPLED - self.PROGRESS_LISTED

        for index, entry in enumerate(to_fetch):
            yield state.event(
                ProgressEventType.PROGRESS,
                f"Fetching {entry.path}",
                self.PROGRESS_LISTED + span * index // total,
                current_file=entry.path,
                processed_files=len(state.samples),
                total_files=total,
            )
            try:
                content = await self.github.get_blob(params.repo, entry.sha)
            except RateLimitExceededError:
                raise
            except RepositoryError as e:
                log.warning("analysis_file_skipped", path=entry.path, error=e.message)
                continue

            content = content[: self.config.ANALYSIS_FILE_CONTENT_LIMIT]
            state.samples.append((entry.path, detect_language(entry.path), content))

        if not state.samples:
            raise NoFilesFoundError("None of the selected files could be fetched")

        languages = state.languages
        async with self._store() as store:
            await store.update(
                state.run_id,
                files_analyzed=len(state.samples),
                processed_files=state.processed_files,
                language=params.language or (languages[0] if languages else None),
            )
        yield state.event(
            ProgressEventType.PROGRESS,
            f"Fetched {len(state.samples)} of {total} files",
            self.PROGRESS_SAMPLED,
            processed_files=len(state.samples),
            total_files=total,
        )

    async def _prompt_model(self, state: _RunState, log) -> AsyncIterator[ProgressEvent]:
        params = state.params
        state.stage = AnalysisStage.PROMPTING_MODEL

        samples_by_language: dict[str, list[tuple[str, str]]] = {}
        for path, language, content in state.samples:
            samples_by_language.setdefault(language, []).append((path, content))

        prompt = build_codebase_prompt(
            repository=params.repo.full_name,
            branch=params.branch or "default",
            samples_by_language=samples_by_language,
            per_file_chars=self.config.ANALYSIS_PROMPT_FILE_CHARS,
        )
        yield state.event(
            ProgressEventType.PROGRESS,
            f"Analyzing {len(state.samples)} files with {params.model}",
            self.PROGRESS_PROMPTING,
        )

        log.info("analysis_prompting_model", prompt_chars=len(prompt), model=params.model)
        completion = await self.llm.chat(
            params.model,
            user_message(prompt),
            timeout=self.config.ANALYSIS_MODEL_TIMEOUT,
        )
        state.model_response = completion.content
        state.model_name = completion.model

    async def _parse_result(self, state: _RunState, log) -> AsyncIterator[ProgressEvent]:
        params = state.params
        state.stage = AnalysisStage.PARSING_RESULT
        yield state.event(
            ProgressEventType.PROGRESS,
            "Parsing analysis results",
            self.PROGRESS_PARSING,
        )

        output = parse_model_output(state.model_response)
        score = severity = None
        if isinstance(output, StructuredOutput):
            score = trusted_score(output.data)
            severity = trusted_severity(output.data)
            payload = {**output.data, "success": True}
            payload["modernizationScore"] = score
            payload["overallSeverity"] = severity
        else:
            log.warning("analysis_result_unstructured", reason=output.reason)
            payload = fallback_payload(output)

        payload.update(
            analysisId=state.run_id,
            repository=params.repo_url,
            branch=params.branch,
            filesAnalyzed=len(state.samples),
            languages=state.languages,
            processedFiles=state.processed_files,
            model=state.model_name or params.model,
        )

        async with self._store() as store:
            await store.update(
                state.run_id,
                status=AnalysisStatus.COMPLETED,
                modernization_score=score,
                overall_severity=severity,
                result_data=payload,
            )
        state.finished = True
        state.stage = AnalysisStage.COMPLETED
        log.info("analysis_completed", files=len(state.samples), structured=output.success)

        yield state.event(
            ProgressEventType.RESULT,
            "Analysis complete",
            self.PROGRESS_COMPLETE,
            result=payload,
        )

    # ==================== Persistence ====================

    @asynccontextmanager
    async def _store(self) -> AsyncIterator[AnalysisHistoryStore]:
        async with self.session_factory() as session:
            yield AnalysisHistoryStore(session)

    async def _mark_failed(self, run_id: int, message: str, log) -> None:
        try:
            async with self._store() as store:
                await store.update(
                    run_id,
                    status=AnalysisStatus.FAILED,
                    error_message=message,
                )
        except Exception:
            log.exception("analysis_status_update_failed", analysis_id=run_id)

    async def _fail(self, state: _RunState, error: GatewayError) -> ProgressEvent:
        if state.run_id is not None and not state.finished:
            await self._mark_failed(state.run_id, error.message, logger)
        state.finished = True
        state.stage = AnalysisStage.FAILED
        return state.event(
            ProgressEventType.ERROR,
            error.details or error.error,
            error=error.error,
            status_code=error.status_code,
        )
