"""
Analysis Package

  ContentAnalysisEngine   cache → AI → heuristic driver
  redact_pii              fixed-format PII redaction
  heuristics              the no-AI analysis functions
"""

from lumio.analysis.engine import (
    AIAnalyzer,
    BaseAnalyzer,
    ContentAnalysisEngine,
    HeuristicAnalyzer,
    coerce_analysis,
)
from lumio.analysis.pii import RedactionResult, redact_pii

__all__ = [
    "AIAnalyzer",
    "BaseAnalyzer",
    "ContentAnalysisEngine",
    "HeuristicAnalyzer",
    "RedactionResult",
    "coerce_analysis",
    "redact_pii",
]
