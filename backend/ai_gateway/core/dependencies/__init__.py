"""
Dependency Manifests
====================

Format-specific parsers behind one name -> version interface.
"""

from ai_gateway.core.dependencies.parsers import (
    PARSERS,
    DependencyParser,
    get_parser,
)

__all__ = ["PARSERS", "DependencyParser", "get_parser"]
