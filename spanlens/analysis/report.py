# ABOUTME: Produces a TraceReport for one trace: summary, cost, workflow graph, and per-span findings.
# ABOUTME: Combines findings embedded in span tags with findings computed from captured message content.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
from typing import Any, Iterable, Mapping

from spanlens.analysis.evaluation import evaluate_span_content
from spanlens.analysis.summary import calculate_trace_llm_summary
from spanlens.analysis.workflow import TemporalAdjacency, build_agent_workflow
from spanlens.checks.quality import QualityCheckConfig, QualityCheckSummary, get_quality_check_summary
from spanlens.checks.security import SecurityCheckConfig, SecurityCheckSummary, get_security_check_summary
from spanlens.contracts import QualityCheck, SecurityCheck, Span, TraceLLMSummary, coerce_span, drop_absent
from spanlens.cost.calculator import SpanCost, TraceCost, calculate_span_cost, calculate_trace_cost_from_spans
from spanlens.cost.pricing import PricingCatalog
from spanlens.extraction import extract_llm_span_info

logger = logging.getLogger(__name__)


@dataclass
class AnalysisConfig:
    quality: QualityCheckConfig = field(default_factory=QualityCheckConfig)
    security: SecurityCheckConfig = field(default_factory=SecurityCheckConfig)
    pricing: PricingCatalog = field(default_factory=PricingCatalog)
    adjacency: TemporalAdjacency = field(default_factory=TemporalAdjacency)
    content_checks: bool = True
    expected_topics: list[str] = field(default_factory=list)


@dataclass
class SpanFindings:
    span_key: str
    operation_name: str
    model: str | None
    cost: SpanCost
    embedded_quality_checks: list[QualityCheck] = field(default_factory=list)
    embedded_security_checks: list[SecurityCheck] = field(default_factory=list)
    quality_checks: list[QualityCheck] = field(default_factory=list)
    security_checks: list[SecurityCheck] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "span_key": self.span_key,
            "operation_name": self.operation_name,
            "model": self.model,
            "cost": self.cost.to_dict(),
            "embedded_quality_checks": [check.to_dict() for check in self.embedded_quality_checks],
            "embedded_security_checks": [check.to_dict() for check in self.embedded_security_checks],
            "quality_checks": [check.to_dict() for check in self.quality_checks],
            "security_checks": [check.to_dict() for check in self.security_checks],
        }


@dataclass
class TraceReport:
    trace_id: str | None
    span_count: int
    summary: TraceLLMSummary
    cost: TraceCost
    spans: list[SpanFindings] = field(default_factory=list)
    quality_summary: QualityCheckSummary | None = None
    security_summary: SecurityCheckSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_absent(
            {
                "trace_id": self.trace_id,
                "span_count": self.span_count,
                "summary": self.summary.to_dict(),
                "cost": self.cost.to_dict(),
                "spans": [span.to_dict() for span in self.spans],
                "quality_summary": asdict(self.quality_summary) if self.quality_summary else None,
                "security_summary": self.security_summary.to_dict() if self.security_summary else None,
            }
        )


def analyze_trace(
    spans: Iterable[Span | Mapping[str, Any]],
    *,
    config: AnalysisConfig | None = None,
    trace_id: str | None = None,
) -> TraceReport:
    active = config or AnalysisConfig()
    span_list = [coerce_span(span) for span in spans]
    resolved_trace_id = trace_id or next((span.trace_id for span in span_list if span.trace_id), None)

    summary = calculate_trace_llm_summary(span_list)
    infos = []
    findings: list[SpanFindings] = []
    all_quality: list[QualityCheck] = []
    all_security: list[SecurityCheck] = []
    for span in span_list:
        info = extract_llm_span_info(span.tags)
        if not info.is_llm_span:
            continue
        infos.append(info)
        entry = SpanFindings(
            span_key=span.span_key,
            operation_name=span.operation_name,
            model=info.request_model or info.response_model,
            cost=calculate_span_cost(info, active.pricing),
            embedded_quality_checks=list(info.quality_checks or []),
            embedded_security_checks=list(info.security_checks or []),
        )
        if active.content_checks:
            evaluation = evaluate_span_content(
                info,
                quality_config=active.quality,
                security_config=active.security,
                expected_topics=active.expected_topics,
            )
            entry.quality_checks = evaluation.quality_checks
            entry.security_checks = evaluation.security_checks
            all_quality.extend(evaluation.quality_checks)
            all_security.extend(evaluation.security_checks)
        logger.debug(
            "Span %s: %d quality checks, %d security checks",
            span.span_key,
            len(entry.quality_checks),
            len(entry.security_checks),
        )
        findings.append(entry)

    cost = calculate_trace_cost_from_spans(infos, active.pricing)
    summary.total_estimated_cost = cost.total_cost
    summary.cost_currency = cost.currency
    summary.workflow = build_agent_workflow(span_list, strategy=active.adjacency)

    logger.info(
        "Analyzed trace %s: %d spans, %d LLM spans, %d workflow edges",
        resolved_trace_id or "<unknown>",
        len(span_list),
        summary.llm_span_count,
        len(summary.workflow.edges),
    )
    return TraceReport(
        trace_id=resolved_trace_id,
        span_count=len(span_list),
        summary=summary,
        cost=cost,
        spans=findings,
        quality_summary=get_quality_check_summary(all_quality) if all_quality else None,
        security_summary=get_security_check_summary(all_security) if all_security else None,
    )
