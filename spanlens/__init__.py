# ABOUTME: Exposes the span analysis engine: tag extraction, detectors, aggregation, workflow, and cost.
# ABOUTME: Everything here is a pure function of already-captured span records.

from spanlens.analysis import AnalysisConfig, TraceReport, analyze_trace, build_agent_workflow, calculate_trace_llm_summary
from spanlens.checks import run_quality_checks, run_security_checks
from spanlens.contracts import LLMSpanInfo, QualityCheck, SecurityCheck, Span, TraceLLMSummary
from spanlens.cost import PricingCatalog, calculate_llm_cost
from spanlens.extraction import extract_llm_span_info, is_llm_span

__all__ = [
    "AnalysisConfig",
    "LLMSpanInfo",
    "PricingCatalog",
    "QualityCheck",
    "SecurityCheck",
    "Span",
    "TraceLLMSummary",
    "TraceReport",
    "analyze_trace",
    "build_agent_workflow",
    "calculate_llm_cost",
    "calculate_trace_llm_summary",
    "extract_llm_span_info",
    "is_llm_span",
    "run_quality_checks",
    "run_security_checks",
]
