# ABOUTME: Exposes trace-level analysis: aggregation, workflow reconstruction, span evaluation, and reports.
# ABOUTME: These entrypoints consume span records and never fetch spans themselves.

from spanlens.analysis.evaluation import SpanContent, SpanEvaluation, evaluate_span_content, extract_span_content
from spanlens.analysis.report import AnalysisConfig, SpanFindings, TraceReport, analyze_trace
from spanlens.analysis.summary import calculate_trace_llm_summary
from spanlens.analysis.workflow import (
    SEQUENCE_GAP_MS,
    AdjacencyStrategy,
    TemporalAdjacency,
    build_agent_workflow,
    classify_node_type,
)

__all__ = [
    "AdjacencyStrategy",
    "AnalysisConfig",
    "SEQUENCE_GAP_MS",
    "SpanContent",
    "SpanEvaluation",
    "SpanFindings",
    "TemporalAdjacency",
    "TraceReport",
    "analyze_trace",
    "build_agent_workflow",
    "calculate_trace_llm_summary",
    "classify_node_type",
    "evaluate_span_content",
    "extract_span_content",
]
