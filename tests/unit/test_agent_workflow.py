# ABOUTME: Validates agent workflow reconstruction from parent links and temporal adjacency.
# ABOUTME: Covers node typing, the sequence-gap boundary, and swapping in a custom adjacency strategy.

from __future__ import annotations

from spanlens.analysis import TemporalAdjacency, build_agent_workflow
from spanlens.contracts import Span


def _llm_span(key: str, start: float, duration: float, parent: str | None = None) -> Span:
    return Span(
        span_key=key,
        operation_name="chat",
        start_time=start,
        duration=duration,
        tags={"gen_ai.request.model": "gpt-4o", "gen_ai.usage.input_tokens": "4", "gen_ai.usage.output_tokens": "2"},
        parent_span_key=parent,
    )


def test_parent_child_pair_yields_one_structural_edge() -> None:
    workflow = build_agent_workflow([_llm_span("a", 0.0, 50.0), _llm_span("b", 10.0, 20.0, parent="a")])

    assert [node.id for node in workflow.nodes] == ["a", "b"]
    assert len(workflow.edges) == 1
    edge = workflow.edges[0]
    assert (edge.id, edge.source, edge.target, edge.label) == ("a->b", "a", "b", None)


def test_spans_separated_by_the_gap_are_not_linked() -> None:
    far = build_agent_workflow([_llm_span("a", 0.0, 10.0), _llm_span("b", 200.0, 10.0)])
    boundary = build_agent_workflow([_llm_span("a", 0.0, 10.0), _llm_span("b", 110.0, 10.0)])

    assert far.edges == []
    assert boundary.edges == []


def test_close_consecutive_spans_get_a_sequence_edge() -> None:
    workflow = build_agent_workflow([_llm_span("b", 50.0, 10.0), _llm_span("a", 0.0, 10.0)])

    assert [node.id for node in workflow.nodes] == ["a", "b"]
    assert len(workflow.edges) == 1
    edge = workflow.edges[0]
    assert (edge.id, edge.source, edge.target, edge.label) == ("seq-a->b", "a", "b", "sequence")


def test_node_types_labels_and_data() -> None:
    workflow = build_agent_workflow(
        [
            _llm_span("llm", 0.0, 10.0),
            Span(
                span_key="tool",
                operation_name="execute_tool",
                start_time=500.0,
                duration=5.0,
                tags={"gen_ai.tool.name": "search"},
            ),
            Span(
                span_key="agent",
                operation_name="handoff",
                start_time=1000.0,
                duration=5.0,
                tags={"gen_ai.operation.name": "invoke_agent", "gen_ai.agent.name": "planner"},
                is_error=True,
            ),
            Span(span_key="http", operation_name="GET /", start_time=2000.0, duration=1.0, tags={"http.method": "GET"}),
        ]
    )

    nodes = {node.id: node for node in workflow.nodes}
    assert list(nodes) == ["llm", "tool", "agent"]
    assert nodes["llm"].type == "llm_call"
    assert nodes["llm"].label == "chat"
    assert nodes["llm"].data == {"model": "gpt-4o", "tokens": 6}
    assert nodes["tool"].type == "tool_invocation"
    assert nodes["tool"].label == "search"
    assert nodes["tool"].data == {"tool_name": "search"}
    assert nodes["agent"].type == "agent_handoff"
    assert nodes["agent"].label == "planner"
    assert nodes["agent"].is_error is True
    assert workflow.edges == []


def test_parent_outside_the_node_set_does_not_produce_an_edge() -> None:
    workflow = build_agent_workflow([_llm_span("child", 0.0, 10.0, parent="http-root")])

    assert len(workflow.nodes) == 1
    assert workflow.edges == []


def test_custom_adjacency_strategy_replaces_temporal_rule() -> None:
    class AlwaysLink:
        def should_link(self, current: Span, following: Span) -> bool:
            return True

    spans = [_llm_span("a", 0.0, 10.0), _llm_span("b", 5000.0, 10.0)]

    assert build_agent_workflow(spans, strategy=AlwaysLink()).edges[0].id == "seq-a->b"
    assert build_agent_workflow(spans, strategy=TemporalAdjacency(max_gap_ms=10_000.0)).edges[0].label == "sequence"
    assert build_agent_workflow(spans).edges == []
