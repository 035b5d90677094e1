# ABOUTME: Folds a trace's spans into a TraceLLMSummary of token, model, tool, and finding counts.
# ABOUTME: The fold is commutative, so the summary does not depend on span order.

from __future__ import annotations

from typing import Any, Iterable, Mapping

from spanlens.contracts import LLMSpanInfo, Span, TraceLLMSummary, coerce_span
from spanlens.extraction import extract_llm_span_info


TOOL_OPERATION_TYPES = frozenset({"tool", "execute_tool"})
AGENT_OPERATION_TYPES = frozenset({"agent_handoff"})
QUALITY_ISSUE_SEVERITIES = frozenset({"warning", "fail"})


def is_tool_call(info: LLMSpanInfo) -> bool:
    return bool(info.tool_name) or (info.operation_type or "") in TOOL_OPERATION_TYPES


def is_agent_handoff(info: LLMSpanInfo) -> bool:
    return bool(info.agent_name) or (info.operation_type or "") in AGENT_OPERATION_TYPES


def calculate_trace_llm_summary(spans: Iterable[Span | Mapping[str, Any]]) -> TraceLLMSummary:
    summary = TraceLLMSummary()
    models: set[str] = set()
    providers: set[str] = set()

    for raw_span in spans:
        span = coerce_span(raw_span)
        info = extract_llm_span_info(span.tags)
        if not info.is_llm_span:
            continue

        summary.has_llm_spans = True
        summary.llm_span_count += 1
        summary.total_input_tokens += info.input_tokens or 0
        summary.total_output_tokens += info.output_tokens or 0

        if info.request_model:
            models.add(info.request_model)
        if info.response_model:
            models.add(info.response_model)
        if info.provider:
            providers.add(info.provider)

        if is_tool_call(info):
            summary.tool_call_count += 1
        if is_agent_handoff(info):
            summary.agent_handoff_count += 1

        summary.quality_issues += sum(
            1 for check in info.quality_checks or [] if check.severity in QUALITY_ISSUE_SEVERITIES
        )
        summary.security_issues += sum(1 for check in info.security_checks or [] if check.detected)

    summary.total_tokens = summary.total_input_tokens + summary.total_output_tokens
    summary.unique_models = sorted(models)
    summary.unique_providers = sorted(providers)
    return summary
