"""Threat log parsing, heuristic scoring and summarization"""

from .detector import detect, DIALECTS, DIALECT_LABELS
from .parsers import parse, parse_with_diagnostics
from .aggregator import summarize
from .models import NormalizedLogRecord, AnalysisSummary, SkipReason, ParseReport
from .pipeline import analyze_content, AnalysisResult

VERSION = "1.0.0"

__all__ = [
    'VERSION', 'detect', 'parse', 'parse_with_diagnostics', 'summarize',
    'analyze_content', 'AnalysisResult', 'NormalizedLogRecord', 'AnalysisSummary',
    'SkipReason', 'ParseReport', 'DIALECTS', 'DIALECT_LABELS',
]
