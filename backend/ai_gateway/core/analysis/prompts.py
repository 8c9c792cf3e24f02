"""Prompt templates for modernization and analysis requests."""

import json
from collections.abc import Mapping, Sequence


CODEBASE_ANALYSIS_PROMPT = """You are an expert software modernization consultant reviewing a legacy codebase.

## REPOSITORY
- Repository: {repository}
- Branch: {branch}
- Languages: {languages}
- Files sampled: {file_count}

## CODE SAMPLES
{samples}

## YOUR TASK
Identify deprecated patterns, security vulnerabilities, code quality issues and
the modernization work this codebase needs. Respond with ONLY a JSON object in
exactly this schema:

```json
{{
  "overallSeverity": "critical|high|medium|low",
  "modernizationScore": 0,
  "criticalIssues": [
    {{"type": "", "severity": "critical|high|medium|low", "file": "", "issue": "", "location": "", "impact": "", "recommendation": "", "codeExample": ""}}
  ],
  "deprecatedPatterns": [
    {{"pattern": "", "count": 0, "files": [], "description": "", "replacement": "", "migrationComplexity": "low|medium|high"}}
  ],
  "securityVulnerabilities": [
    {{"type": "", "severity": "critical|high|medium|low", "file": "", "line": "", "description": "", "cve": "", "fix": "", "codeExample": ""}}
  ],
  "codeQualityIssues": [
    {{"type": "", "severity": "critical|high|medium|low", "file": "", "issue": "", "recommendation": ""}}
  ],
  "modernizationRecommendations": [
    {{"priority": "high|medium|low", "category": "", "description": "", "estimatedEffort": "", "filesAffected": [], "steps": []}}
  ],
  "technicalDebt": {{
    "estimatedDays": 0,
    "priority": "high|medium|low",
    "risk": "high|medium|low",
    "breakdown": {{"security": "", "deprecated": "", "refactoring": ""}}
  }},
  "summary": ""
}}
```

## RULES
1. modernizationScore is 0-100 where 100 means fully modern.
2. Only report issues you can point to in the samples above.
3. Return ONLY the JSON object.
"""


DEPENDENCY_ANALYSIS_PROMPT = """You are an expert in {language} dependency management and upgrades.

Analyze these dependencies and their current versions:

```json
{dependencies}
```

Respond with ONLY a JSON object in exactly this schema:

```json
{{
  "analysis": {{"totalDependencies": 0, "outdatedCount": 0, "vulnerableCount": 0, "deprecatedCount": 0}},
  "dependencies": [
    {{"name": "", "currentVersion": "", "latestVersion": "", "status": "up-to-date|outdated|deprecated|vulnerable", "securityIssues": [], "breakingChanges": [], "upgradePath": "", "recommendation": "", "upgradeSteps": []}}
  ],
  "upgradePlan": {{
    "priorityOrder": [],
    "groupedUpgrades": {{"safe": [], "requiresTesting": [], "breaking": []}},
    "estimatedRisk": "low|medium|high",
    "testingRequired": []
  }},
  "summary": ""
}}
```
"""


MODERNIZE_CODE_PROMPT = """You are an expert code modernization assistant. Please provide recommendations to modernize the following {language} code.

Target: {target}
Current code:
```{language}
{code}
```

Provide:
1. A brief explanation of deprecated patterns in the code
2. Modern replacement recommendations
3. Example of modernized code

Be concise and practical."""


COMPARE_PATTERNS_PROMPT = """Compare these two code patterns in {language} and explain the benefits of the modern approach:

OLD PATTERN:
```{language}
{old_pattern}
```

NEW PATTERN:
```{language}
{new_pattern}
```

Provide a comparison highlighting:
1. What makes the old pattern outdated
2. Benefits of the new pattern
3. Potential issues the old pattern might have"""


SUMMARIZE_PROMPT = "Summarize the following text in a concise manner:\n\n{text}"


def format_samples(samples_by_language: Mapping[str, Sequence[tuple[str, str]]], per_file_chars: int) -> str:
    """Render (path, content) samples grouped under one heading per language."""
    sections = []
    for language, samples in samples_by_language.items():
        parts = [f"### {language} ({len(samples)} files)"]
        for path, content in samples:
            snippet = content[:per_file_chars]
            if len(content) > per_file_chars:
                snippet += "\n... (truncated)"
            parts.append(f"File: {path}\n```{language}\n{snippet}\n```")
        sections.append("\n\n".join(parts))
    return "\n\n".join(sections)


def build_codebase_prompt(
    repository: str,
    branch: str,
    samples_by_language: Mapping[str, Sequence[tuple[str, str]]],
    per_file_chars: int,
) -> str:
    file_count = sum(len(s) for s in samples_by_language.values())
    return CODEBASE_ANALYSIS_PROMPT.format(
        repository=repository,
        branch=branch,
        languages=", ".join(samples_by_language) or "unknown",
        file_count=file_count,
        samples=format_samples(samples_by_language, per_file_chars),
    )


def build_dependency_prompt(dependencies: Mapping[str, str], language: str) -> str:
    return DEPENDENCY_ANALYSIS_PROMPT.format(
        language=language,
        dependencies=json.dumps(dict(dependencies), indent=2, sort_keys=True),
    )
