"""
Analysis
========

Repository and dependency modernization analyses.

Components:
- CodebaseAnalysisPipeline: staged repository analysis with progress events
- DependencyAnalyzer: dependency upgrade analysis from a map or from manifests
- AnalysisHistoryStore: persistence of AnalysisRun records
"""

from ai_gateway.core.analysis.dependency_analysis import DependencyAnalyzer
from ai_gateway.core.analysis.events import AnalysisStage, ProgressEvent, ProgressEventType
from ai_gateway.core.analysis.history import AnalysisHistoryStore
from ai_gateway.core.analysis.pipeline import CodebaseAnalysisParams, CodebaseAnalysisPipeline

__all__ = [
    "AnalysisHistoryStore",
    "AnalysisStage",
    "CodebaseAnalysisParams",
    "CodebaseAnalysisPipeline",
    "DependencyAnalyzer",
    "ProgressEvent",
    "ProgressEventType",
]
