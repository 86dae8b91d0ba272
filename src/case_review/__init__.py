"""Support case review pipeline."""
from .aggregation import aggregate, aggregate_analyses
from .analyzers import (
    analyze_case,
    bucketise_case,
    validate_closure_tags,
    validate_jira_relevance,
    validate_kb_relevance,
)
from .context import build_context
from .orchestrator import run_batch, run_windowed
from .parser import parse_structured_response

__all__ = [
    "aggregate",
    "aggregate_analyses",
    "analyze_case",
    "bucketise_case",
    "build_context",
    "parse_structured_response",
    "run_batch",
    "run_windowed",
    "validate_closure_tags",
    "validate_jira_relevance",
    "validate_kb_relevance",
]
