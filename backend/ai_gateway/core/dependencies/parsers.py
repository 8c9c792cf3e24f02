"""
Dependency manifest parsers.

Each parser turns one manifest format into a name -> version mapping.
Parsers are picked by file name through get_parser().
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Optional

logger = logging.getLogger(__name__)

UNPINNED = "*"
UNSPECIFIED = "unspecified"


class DependencyParser(ABC):
    """Extract name -> version pairs from a manifest's text."""

    language: str = ""
    package_manager: str = ""

    @abstractmethod
    def matches(self, filename: str) -> bool:
        """Whether this parser handles the given base file name."""

    @abstractmethod
    def parse(self, content: str) -> dict[str, str]:
        """Return dependencies found in content. Invalid input yields {}."""


class PackageJsonParser(DependencyParser):
    language = "javascript"
    package_manager = "npm"

    def matches(self, filename: str) -> bool:
        return filename == "package.json"

    def parse(self, content: str) -> dict[str, str]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid package.json: {e}")
            return {}
        if not isinstance(data, dict):
            return {}

        deps: dict[str, str] = {}
        for section in ("dependencies", "devDependencies"):
            block = data.get(section) or {}
            if isinstance(block, dict):
                deps.update({str(k): str(v) for k, v in block.items()})
        return deps


class RequirementsTxtParser(DependencyParser):
    language = "python"
    package_manager = "pip"

    _LINE = re.compile(
        r"^(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)"
        r"(?:\[[^\]]*\])?"
        r"\s*(?P<specifier>(?:==|>=|<=|~=|!=|>|<|===)[^;#]*)?"
    )

    def matches(self, filename: str) -> bool:
        return filename == "requirements.txt" or (
            filename.startswith("requirements") and filename.endswith(".txt")
        )

    def parse(self, content: str) -> dict[str, str]:
        deps: dict[str, str] = {}
        for raw in content.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line or line.startswith("-") or "://" in line:
                continue
            match = self._LINE.match(line)
            if not match:
                continue
            specifier = (match.group("specifier") or "").strip()
            if specifier.startswith("=="):
                specifier = specifier[2:].strip()
            deps[match.group("name")] = specifier or UNPINNED
        return deps


class PomXmlParser(DependencyParser):
    """
    Maven pom.xml.

    ${...} versions are looked up in <properties>; unknown placeholders are
    reported as "unspecified".
    """

    language = "java"
    package_manager = "maven"

    _DEPENDENCY = re.compile(r"<dependency>(.*?)</dependency>", re.DOTALL)
    _PROPERTIES = re.compile(r"<properties>(.*?)</properties>", re.DOTALL)
    _PROPERTY = re.compile(r"<([A-Za-z0-9_.-]+)>\s*([^<]*?)\s*</\1>")
    _PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")

    def matches(self, filename: str) -> bool:
        return filename == "pom.xml"

    def parse(self, content: str) -> dict[str, str]:
        properties: dict[str, str] = {}
        props_block = self._PROPERTIES.search(content)
        if props_block:
            properties = dict(self._PROPERTY.findall(props_block.group(1)))

        deps: dict[str, str] = {}
        for block in self._DEPENDENCY.findall(content):
            group_id = _tag(block, "groupId")
            artifact_id = _tag(block, "artifactId")
            if not group_id or not artifact_id:
                continue
            version = _tag(block, "version")
            deps[f"{group_id}:{artifact_id}"] = self._resolve(version, properties)
        return deps

    def _resolve(self, version: Optional[str], properties: dict[str, str]) -> str:
        if not version:
            return UNSPECIFIED
        resolved = self._PLACEHOLDER.sub(lambda m: properties.get(m.group(1), m.group(0)), version)
        if self._PLACEHOLDER.search(resolved):
            return UNSPECIFIED
        return resolved.strip() or UNSPECIFIED


class CsprojParser(DependencyParser):
    language = "csharp"
    package_manager = "nuget"

    _SELF_CLOSING = re.compile(
        r'<PackageReference\s+Include="([^"]+)"\s+Version="([^"]+)"\s*/?>',
        re.IGNORECASE,
    )
    _NESTED = re.compile(
        r'<PackageReference\s+Include="([^"]+)"\s*>\s*<Version>([^<]+)</Version>',
        re.IGNORECASE,
    )

    def matches(self, filename: str) -> bool:
        return filename.endswith(".csproj")

    def parse(self, content: str) -> dict[str, str]:
        deps: dict[str, str] = {}
        for name, version in self._SELF_CLOSING.findall(content):
            deps[name] = version.strip()
        for name, version in self._NESTED.findall(content):
            deps[name] = version.strip()
        return deps


class GoModParser(DependencyParser):
    language = "go"
    package_manager = "go modules"

    _BLOCK = re.compile(r"^require\s*\((.*?)^\)", re.DOTALL | re.MULTILINE)
    _SINGLE = re.compile(r"^require[ \t]+(\S+)[ \t]+(\S+)", re.MULTILINE)
    _ENTRY = re.compile(r"^\s*(\S+)\s+(v\S+)")

    def matches(self, filename: str) -> bool:
        return filename == "go.mod"

    def parse(self, content: str) -> dict[str, str]:
        deps: dict[str, str] = {}
        for block in self._BLOCK.findall(content):
            for line in block.splitlines():
                line = line.split("//", 1)[0]
                match = self._ENTRY.match(line)
                if match:
                    deps[match.group(1)] = match.group(2)
        for name, version in self._SINGLE.findall(content):
            if name != "(":
                deps[name] = version
        return deps


def _tag(block: str, name: str) -> Optional[str]:
    match = re.search(rf"<{name}>\s*([^<]*?)\s*</{name}>", block)
    return match.group(1) if match else None


# ==========================================================================
# Registry
# ==========================================================================

PARSERS: list[DependencyParser] = [
    PackageJsonParser(),
    RequirementsTxtParser(),
    PomXmlParser(),
    CsprojParser(),
    GoModParser(),
]


def get_parser(path: str) -> Optional[DependencyParser]:
    """Parser for a manifest path, or None if the file is not a known manifest."""
    filename = PurePosixPath(path).name
    for parser in PARSERS:
        if parser.matches(filename):
            return parser
    return None
