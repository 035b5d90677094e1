# ABOUTME: Defines the span input record and every derived analysis record produced by spanlens.
# ABOUTME: Provides serialization helpers that omit absent fields for the JSON output boundary.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import json
from typing import Any, Literal, Mapping


QualityCheckType = Literal["hallucination", "toxicity", "sentiment", "relevance", "coherence", "custom"]
QualityCheckSeverity = Literal["pass", "warning", "fail"]
SecurityCheckType = Literal[
    "prompt_injection",
    "jailbreak_attempt",
    "pii_detected",
    "sensitive_data",
    "malicious_content",
    "custom",
]
SecuritySeverity = Literal["low", "medium", "high", "critical"]
CheckLocation = Literal["input", "output", "both"]
MessageRole = Literal["system", "user", "assistant", "tool", "function"]
AgentNodeType = Literal[
    "llm_call",
    "tool_invocation",
    "agent_handoff",
    "memory_read",
    "memory_write",
    "decision",
    "input",
    "output",
]

QUALITY_SEVERITIES = ("pass", "warning", "fail")
SECURITY_SEVERITIES = ("low", "medium", "high", "critical")


def utc_now_rfc3339() -> str:
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def drop_absent(value: Any) -> Any:
    """Recursively remove ``None`` values from dicts produced by ``asdict``."""

    if isinstance(value, dict):
        return {key: drop_absent(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [drop_absent(item) for item in value]
    return value


def coerce_tag_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, dict)):
        try:
            return json.dumps(value, sort_keys=True, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def coerce_tags(tags: Any) -> dict[str, str]:
    # Tags that are not a mapping carry no key/value pairs to keep.
    if not isinstance(tags, Mapping) or not tags:
        return {}
    coerced: dict[str, str] = {}
    for key, value in tags.items():
        text = coerce_tag_value(value)
        if text is None:
            continue
        coerced[str(key)] = text
    return coerced


@dataclass(frozen=True)
class Span:
    span_key: str
    operation_name: str
    start_time: float
    duration: float
    tags: Mapping[str, str] = field(default_factory=dict)
    parent_span_key: str | None = None
    is_error: bool = False
    trace_id: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Span:
        def pick(*names: str) -> Any:
            for name in names:
                value = payload.get(name)
                if value is not None:
                    return value
            return None

        parent = pick("parent_span_key", "parentSpanKey", "parent_id")
        trace_id = pick("trace_id", "traceKey", "traceId")
        return cls(
            span_key=str(pick("span_key", "spanKey", "span_id") or ""),
            operation_name=str(pick("operation_name", "operationName", "name") or ""),
            start_time=_as_float(pick("start_time", "startTime")),
            duration=_as_float(pick("duration", "durationMs", "duration_ms")),
            tags=coerce_tags(pick("tags", "attributes")),
            parent_span_key=str(parent) if parent not in (None, "") else None,
            is_error=bool(pick("is_error", "isError") or False),
            trace_id=str(trace_id) if trace_id is not None else None,
        )


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def coerce_span(span: Span | Mapping[str, Any]) -> Span:
    if isinstance(span, Span):
        return span
    return Span.from_dict(span)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str
    result: str | None = None


@dataclass
class LLMMessage:
    role: str
    content: str
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None


@dataclass
class QualityCheck:
    type: QualityCheckType
    name: str
    severity: QualityCheckSeverity
    score: float | None = None
    details: str | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_absent(asdict(self))


@dataclass
class SecurityCheck:
    type: SecurityCheckType
    name: str
    detected: bool
    severity: SecuritySeverity
    details: str | None = None
    location: CheckLocation | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_absent(asdict(self))


@dataclass
class LLMSpanInfo:
    is_llm_span: bool
    operation_type: str | None = None

    provider: str | None = None
    request_model: str | None = None
    response_model: str | None = None

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None

    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    max_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    seed: int | None = None

    response_id: str | None = None
    finish_reasons: list[str] | None = None

    input_messages: list[LLMMessage] | None = None
    output_messages: list[LLMMessage] | None = None
    system_instructions: str | None = None

    conversation_id: str | None = None
    output_type: str | None = None

    tool_name: str | None = None
    tool_type: str | None = None
    tool_description: str | None = None
    tool_call_id: str | None = None
    tool_arguments: str | None = None
    tool_result: str | None = None
    agent_name: str | None = None
    agent_id: str | None = None
    agent_description: str | None = None

    quality_checks: list[QualityCheck] | None = None
    security_checks: list[SecurityCheck] | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_absent(asdict(self))


@dataclass
class AgentWorkflowNode:
    id: str
    type: AgentNodeType
    label: str
    span_key: str | None = None
    duration_ms: float | None = None
    is_error: bool = False
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentWorkflowEdge:
    id: str
    source: str
    target: str
    label: str | None = None


@dataclass
class AgentWorkflow:
    nodes: list[AgentWorkflowNode] = field(default_factory=list)
    edges: list[AgentWorkflowEdge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return drop_absent(asdict(self))


@dataclass
class TraceLLMSummary:
    has_llm_spans: bool = False
    llm_span_count: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    unique_models: list[str] = field(default_factory=list)
    unique_providers: list[str] = field(default_factory=list)
    tool_call_count: int = 0
    agent_handoff_count: int = 0
    quality_issues: int = 0
    security_issues: int = 0
    total_estimated_cost: float | None = None
    cost_currency: str | None = None
    workflow: AgentWorkflow | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_absent(asdict(self))


@dataclass(frozen=True)
class ModelPricing:
    provider: str
    model: str
    input_token_price: float
    output_token_price: float
    currency: str = "USD"


@dataclass
class CostResult:
    cost: float
    currency: str
    pricing: ModelPricing | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
