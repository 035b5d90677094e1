# ABOUTME: Reconstructs an agent execution graph from a trace's spans.
# ABOUTME: Structural edges follow parent links; sequence edges come from a swappable adjacency strategy.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from spanlens.contracts import (
    AgentWorkflow,
    AgentWorkflowEdge,
    AgentWorkflowNode,
    LLMSpanInfo,
    Span,
    coerce_span,
    coerce_tags,
)
from spanlens.extraction import extract_llm_span_info
from spanlens.extraction.extractor import resolve_tag
from spanlens.extraction.keys import FIELD_KEYS


SEQUENCE_GAP_MS = 100.0
SEQUENCE_LABEL = "sequence"


class AdjacencyStrategy(Protocol):
    def should_link(self, current: Span, following: Span) -> bool:
        ...


@dataclass(frozen=True)
class TemporalAdjacency:
    """Links consecutive nodes when the idle gap between them is under ``max_gap_ms``."""

    max_gap_ms: float = SEQUENCE_GAP_MS

    def should_link(self, current: Span, following: Span) -> bool:
        gap = following.start_time - (current.start_time + current.duration)
        return gap < self.max_gap_ms


def classify_node_type(
    span: Span,
    info: LLMSpanInfo,
    *,
    tool_name: str | None = None,
    agent_name: str | None = None,
) -> str:
    op_name = span.operation_name.lower()
    if tool_name or "tool" in op_name:
        return "tool_invocation"
    if agent_name or "agent" in op_name:
        return "agent_handoff"
    if info.is_llm_span:
        return "llm_call"
    if "memory" in op_name and "read" in op_name:
        return "memory_read"
    if "memory" in op_name and "write" in op_name:
        return "memory_write"
    if "decision" in op_name or "route" in op_name:
        return "decision"
    if "input" in op_name or "user" in op_name:
        return "input"
    if "output" in op_name or "response" in op_name:
        return "output"
    return "llm_call"


def _select_nodes(spans: list[Span]) -> list[tuple[Span, AgentWorkflowNode]]:
    selected: list[tuple[Span, AgentWorkflowNode]] = []
    seen: set[str] = set()
    for span in spans:
        if span.span_key in seen:
            continue
        info = extract_llm_span_info(span.tags)
        tags = coerce_tags(span.tags)
        tool_name = info.tool_name or resolve_tag(tags, FIELD_KEYS["tool_name"])
        if not info.is_llm_span and not tool_name:
            continue
        agent_name = info.agent_name or resolve_tag(tags, FIELD_KEYS["agent_name"])
        seen.add(span.span_key)
        data = {
            "model": info.request_model,
            "tool_name": tool_name,
            "agent_name": agent_name,
            "tokens": info.total_tokens,
        }
        node = AgentWorkflowNode(
            id=span.span_key,
            type=classify_node_type(span, info, tool_name=tool_name, agent_name=agent_name),
            label=tool_name or agent_name or span.operation_name,
            span_key=span.span_key,
            duration_ms=span.duration,
            is_error=span.is_error,
            data={key: value for key, value in data.items() if value is not None},
        )
        selected.append((span, node))
    return selected


def build_agent_workflow(
    spans: Iterable[Span | Mapping[str, Any]],
    *,
    strategy: AdjacencyStrategy | None = None,
) -> AgentWorkflow:
    adjacency = strategy or TemporalAdjacency()
    ordered = sorted((coerce_span(span) for span in spans), key=lambda span: (span.start_time, span.span_key))
    selected = _select_nodes(ordered)
    node_ids = {node.id for _, node in selected}

    edges: list[AgentWorkflowEdge] = []
    linked: set[frozenset[str]] = set()
    for span, node in selected:
        parent = span.parent_span_key
        if parent and parent in node_ids and parent != node.id:
            edges.append(AgentWorkflowEdge(id=f"{parent}->{node.id}", source=parent, target=node.id))
            linked.add(frozenset((parent, node.id)))

    for (current_span, current), (next_span, following) in zip(selected, selected[1:]):
        if frozenset((current.id, following.id)) in linked:
            continue
        if adjacency.should_link(current_span, next_span):
            edges.append(
                AgentWorkflowEdge(
                    id=f"seq-{current.id}->{following.id}",
                    source=current.id,
                    target=following.id,
                    label=SEQUENCE_LABEL,
                )
            )

    return AgentWorkflow(nodes=[node for _, node in selected], edges=edges)
