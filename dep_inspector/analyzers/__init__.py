"""External analyzer adapters."""

from dep_inspector.analyzers.base import AnalysisTarget, Analyzer
from dep_inspector.analyzers.capslock import CapabilityAnalyzer, CapabilityReport
from dep_inspector.analyzers.lint import LintAnalyzer

__all__ = [
    "AnalysisTarget",
    "Analyzer",
    "CapabilityAnalyzer",
    "CapabilityReport",
    "LintAnalyzer",
]
