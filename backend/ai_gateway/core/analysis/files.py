"""
File selection for codebase analysis.

Decides which tree entries are worth sending to the model and which
language each one is written in.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from ai_gateway.core.github import TreeEntry

LANGUAGE_EXTENSIONS: dict[str, list[str]] = {
    "python": [".py"],
    "javascript": [".js", ".jsx", ".mjs", ".cjs"],
    "typescript": [".ts", ".tsx"],
    "java": [".java"],
    "csharp": [".cs"],
    "vbnet": [".vb"],
    "go": [".go"],
    "ruby": [".rb"],
    "php": [".php"],
    "c": [".c", ".h"],
    "cpp": [".cpp", ".cc", ".cxx", ".hpp", ".hh"],
    "kotlin": [".kt", ".kts"],
    "scala": [".scala"],
    "swift": [".swift"],
    "rust": [".rs"],
    "cobol": [".cbl", ".cob", ".cpy"],
    "sql": [".sql"],
}

LANGUAGE_ALIASES = {
    "c#": "csharp",
    "cs": "csharp",
    "js": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "py": "python",
    "golang": "go",
    "c++": "cpp",
    "vb": "vbnet",
    "vb.net": "vbnet",
}

_EXTENSION_LANGUAGE = {
    ext: language
    for language, extensions in LANGUAGE_EXTENSIONS.items()
    for ext in extensions
}


def normalize_language(language: Optional[str]) -> Optional[str]:
    if not language or not language.strip():
        return None
    key = language.strip().lower()
    return LANGUAGE_ALIASES.get(key, key)


def detect_language(path: str) -> str:
    """Language of a file judged by its extension, "unknown" if unmapped."""
    return _EXTENSION_LANGUAGE.get(PurePosixPath(path).suffix.lower(), "unknown")


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def allowed_extensions(
    language: Optional[str] = None,
    file_extensions: Optional[Sequence[str]] = None,
) -> set[str]:
    """
    Extension allow-list for a request.

    Explicit extensions win, then the declared language's extensions, then
    every known source extension.
    """
    if file_extensions:
        return {_normalize_extension(ext) for ext in file_extensions if ext.strip()}

    language = normalize_language(language)
    if language and language in LANGUAGE_EXTENSIONS:
        return set(LANGUAGE_EXTENSIONS[language])

    return set(_EXTENSION_LANGUAGE)


def is_excluded(path: str, exclude_paths: Iterable[str]) -> bool:
    """True if any directory of path is excluded, or path sits under an excluded prefix."""
    parts = PurePosixPath(path).parts
    directories = set(parts[:-1])
    for excluded in exclude_paths:
        excluded = excluded.strip().strip("/")
        if not excluded:
            continue
        if "/" in excluded:
            if path == excluded or path.startswith(f"{excluded}/"):
                return True
        elif excluded in directories:
            return True
    return False


@dataclass
class FileSelection:
    files: list[TreeEntry]
    skipped_too_large: int = 0


def select_files(
    entries: Iterable[TreeEntry],
    extensions: set[str],
    exclude_paths: Iterable[str],
    max_file_size: int,
    max_files: int,
) -> FileSelection:
    """
    Filter a tree listing down to analyzable files, keeping listing order.

    Stops as soon as max_files files have been accepted.
    """
    exclude_paths = list(exclude_paths)
    selection = FileSelection(files=[])

    for entry in entries:
        if len(selection.files) >= max_files:
            break
        if not entry.is_file:
            continue
        if is_excluded(entry.path, exclude_paths):
            continue
        if PurePosixPath(entry.path).suffix.lower() not in extensions:
            continue
        if entry.size is not None and entry.size > max_file_size:
            selection.skipped_too_large += 1
            continue
        selection.files.append(entry)

    return selection
