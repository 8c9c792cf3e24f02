"""
Dependency Analysis
===================

Upgrade advice for a set of dependencies, given directly or collected from
the manifests of a GitHub repository. One model call per analysis; every
invocation is recorded as an AnalysisRun.
"""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ai_gateway.core.analysis.history import AnalysisHistoryStore
from ai_gateway.core.analysis.prompts import build_dependency_prompt
from ai_gateway.core.analysis.result_parser import (
    StructuredOutput,
    fallback_payload,
    parse_model_output,
)
from ai_gateway.core.config import Settings, settings
from ai_gateway.core.dependencies import get_parser
from ai_gateway.core.exceptions import (
    GatewayError,
    NoDependenciesFoundError,
    RateLimitExceededError,
    RepositoryError,
)
from ai_gateway.core.github import GitHubClient, RepoRef
from ai_gateway.core.llm import OllamaClient, user_message
from ai_gateway.core.models import AnalysisStatus, AnalysisType

logger = structlog.get_logger()


@dataclass
class CollectedDependencies:
    dependencies: dict[str, str] = field(default_factory=dict)
    files: list[str] = field(default_factory=list)
    language: Optional[str] = None
    package_manager: Optional[str] = None


class DependencyAnalyzer:
    """Runs dependency upgrade analyses and records them."""

    def __init__(
        self,
        llm: OllamaClient,
        db: AsyncSession,
        github: Optional[GitHubClient] = None,
        config: Settings = settings,
    ):
        self.llm = llm
        self.github = github
        self.store = AnalysisHistoryStore(db)
        self.config = config

    async def analyze(
        self,
        dependencies: dict[str, str],
        language: str,
        model: Optional[str] = None,
    ) -> dict[str, Any]:
        """Analyze an explicit dependency map."""
        run = await self.store.start(
            AnalysisType.DEPENDENCIES,
            language=language,
            query_parameters={"dependencies": dependencies, "language": language},
        )
        return await self._run_model(run.id, dependencies, language, model, extra={})

    async def analyze_repository(
        self,
        repo: RepoRef,
        repo_url: str,
        branch: Optional[str] = None,
        path: Optional[str] = None,
        model: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Collect dependencies from a repository's manifests and analyze them.

        Raises NoDependenciesFoundError (run marked failed, no model call)
        when the manifests yield nothing.
        """
        if self.github is None:
            raise RuntimeError("GitHub client is required for repository analysis")

        run = await self.store.start(
            AnalysisType.DEPENDENCIES_GITHUB,
            repository_url=repo_url,
            branch=branch,
            query_parameters={k: v for k, v in {"repoUrl": repo_url, "branch": branch, "path": path}.items() if v},
        )
        log = logger.bind(analysis_id=run.id, repo=repo.full_name)

        try:
            collected = await self._collect(repo, branch, path, log)
            if not collected.dependencies:
                raise NoDependenciesFoundError(
                    f"No supported dependency manifests with entries found in {repo.full_name}"
                )
        except GatewayError as e:
            log.warning("dependency_analysis_failed", error=e.message)
            await self.store.update(run.id, status=AnalysisStatus.FAILED, error_message=e.message)
            raise
        except Exception as e:
            log.exception("dependency_analysis_crashed")
            await self.store.update(run.id, status=AnalysisStatus.FAILED, error_message=str(e) or type(e).__name__)
            raise

        await self.store.update(
            run.id,
            language=collected.language,
            files_analyzed=len(collected.files),
            processed_files=collected.files,
        )
        return await self._run_model(
            run.id,
            collected.dependencies,
            collected.language or "unknown",
            model,
            extra={
                "repository": repo_url,
                "branch": branch,
                "dependencyFiles": collected.files,
                "language": collected.language,
                "packageManager": collected.package_manager,
            },
        )

    # ==================== Internals ====================

    async def _collect(self, repo: RepoRef, branch: Optional[str], path: Optional[str], log) -> CollectedDependencies:
        prefix = (path or "").strip("/")
        tree = await self.github.list_tree(repo, branch)

        manifests = []
        for entry in tree:
            if not entry.is_file:
                continue
            if prefix and not (entry.path == prefix or entry.path.startswith(f"{prefix}/")):
                continue
            parts = PurePosixPath(entry.path).parts
            if any(p in self.config.ANALYSIS_EXCLUDE_PATHS for p in parts[:-1]):
                continue
            parser = get_parser(entry.path)
            if parser is not None:
                manifests.append((entry, parser))

        collected = CollectedDependencies()
        managers: Counter[tuple[str, str]] = Counter()
        for entry, parser in manifests:
            try:
                content = await self.github.get_blob(repo, entry.sha)
            except RateLimitExceededError:
                raise
            except RepositoryError as e:
                log.warning("dependency_manifest_skipped", path=entry.path, error=e.message)
                continue

            found = parser.parse(content)
            collected.files.append(entry.path)
            if found:
                collected.dependencies.update(found)
                managers[(parser.language, parser.package_manager)] += len(found)

        if managers:
            (collected.language, collected.package_manager), _ = managers.most_common(1)[0]
        log.info(
            "dependency_manifests_parsed",
            manifests=len(collected.files),
            dependencies=len(collected.dependencies),
        )
        return collected

    async def _run_model(
        self,
        run_id: int,
        dependencies: dict[str, str],
        language: str,
        model: Optional[str],
        extra: dict[str, Any],
    ) -> dict[str, Any]:
        model = model or self.config.DEFAULT_MODEL
        prompt = build_dependency_prompt(dependencies, language)

        try:
            completion = await self.llm.chat(
                model,
                user_message(prompt),
                timeout=self.config.ANALYSIS_MODEL_TIMEOUT,
            )
        except GatewayError as e:
            await self.store.update(run_id, status=AnalysisStatus.FAILED, error_message=e.message)
            raise

        output = parse_model_output(completion.content)
        if isinstance(output, StructuredOutput):
            payload = {**output.data, "success": True}
        else:
            payload = fallback_payload(output)
        payload.update({k: v for k, v in extra.items() if v is not None})
        payload.update(analysisId=run_id, model=completion.model)

        await self.store.update(run_id, status=AnalysisStatus.COMPLETED, result_data=payload)
        logger.info("dependency_analysis_completed", analysis_id=run_id, structured=output.success)
        return payload
