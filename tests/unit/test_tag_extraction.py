# ABOUTME: Validates LLM span gating and typed field extraction from flat span tag bags.
# ABOUTME: Covers alias resolution, tolerant number parsing, message decoding, and embedded findings.

from __future__ import annotations

import json

from spanlens.extraction import extract_llm_span_info, is_llm_span, message_text, parse_messages, parse_number


def test_gpt4_turbo_tags_extract_tokens_and_total() -> None:
    info = extract_llm_span_info(
        {
            "gen_ai.request.model": "gpt-4-turbo",
            "gen_ai.usage.input_tokens": "1000",
            "gen_ai.usage.output_tokens": "500",
        }
    )

    assert info.is_llm_span is True
    assert info.request_model == "gpt-4-turbo"
    assert info.input_tokens == 1000
    assert info.output_tokens == 500
    assert info.total_tokens == 1500


def test_tags_without_indicator_keys_yield_only_the_flag() -> None:
    tags = {"http.method": "GET", "db.system": "postgres", "gen_ai.tool.name": "search"}

    assert is_llm_span(tags) is False
    assert extract_llm_span_info(tags).to_dict() == {"is_llm_span": False}
    assert extract_llm_span_info(None).to_dict() == {"is_llm_span": False}


def test_legacy_aliases_are_used_when_canonical_keys_are_absent() -> None:
    info = extract_llm_span_info(
        {
            "llm.model": "claude-3-haiku",
            "llm.provider": "anthropic",
            "llm.usage.prompt_tokens": "12",
            "llm.usage.completion_tokens": "8",
            "llm.temperature": "0.2",
        }
    )

    assert info.request_model == "claude-3-haiku"
    assert info.provider == "anthropic"
    assert info.total_tokens == 20
    assert info.temperature == 0.2


def test_canonical_key_wins_over_alias_and_empty_values_are_skipped() -> None:
    info = extract_llm_span_info(
        {
            "gen_ai.request.model": "",
            "llm.model": "gpt-4o",
            "ai.model": "gpt-3.5-turbo",
            "gen_ai.provider.name": "openai",
            "gen_ai.system": "azure",
        }
    )

    assert info.request_model == "gpt-4o"
    assert info.provider == "openai"


def test_unparseable_numbers_become_absent() -> None:
    info = extract_llm_span_info(
        {
            "gen_ai.operation.name": "chat",
            "gen_ai.usage.input_tokens": "lots",
            "gen_ai.request.temperature": "NaN",
            "gen_ai.request.top_p": "0.9abc",
        }
    )

    assert info.input_tokens is None
    assert info.total_tokens is None
    assert info.temperature is None
    assert info.top_p == 0.9
    assert parse_number("  42 tokens") == 42.0
    assert parse_number("inf") is None


def test_non_string_tag_values_are_coerced() -> None:
    info = extract_llm_span_info(
        {
            "gen_ai.request.model": "gpt-4o",
            "gen_ai.usage.input_tokens": 10,
            "gen_ai.usage.output_tokens": 5.0,
            "gen_ai.response.finish_reasons": ["stop", "length"],
            "llm.security.pii.detected": True,
        }
    )

    assert info.total_tokens == 15
    assert info.finish_reasons == ["stop", "length"]
    assert info.security_checks is not None
    assert info.security_checks[0].detected is True


def test_message_lists_decode_and_garbage_is_wrapped_as_user_message() -> None:
    raw = json.dumps(
        [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": [{"type": "text", "text": "Hi"}, {"type": "text", "text": "there"}]},
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [{"id": "c1", "function": {"name": "lookup", "arguments": {"q": "x"}}}],
            },
        ]
    )
    messages = parse_messages(raw)

    assert messages is not None
    assert [message.role for message in messages] == ["system", "user", "assistant"]
    assert messages[1].content == "Hi\nthere"
    assert messages[2].tool_calls is not None
    assert messages[2].tool_calls[0].name == "lookup"
    assert json.loads(messages[2].tool_calls[0].arguments) == {"q": "x"}

    garbage = parse_messages("not json at all")
    assert garbage is not None
    assert len(garbage) == 1
    assert garbage[0].role == "user"
    assert garbage[0].content == "not json at all"

    single = parse_messages(json.dumps({"role": "assistant", "content": "ok"}))
    assert single is not None and single[0].content == "ok"
    assert parse_messages("42") is None


def test_message_text_joins_content_for_selected_roles() -> None:
    messages = parse_messages(
        json.dumps(
            [
                {"role": "user", "content": "one"},
                {"role": "assistant", "content": "two"},
                {"role": "user", "content": "three"},
            ]
        )
    )

    assert message_text(messages, ("user",)) == "one\nthree"
    assert message_text(None, ("user",)) == ""


def test_embedded_quality_findings_merge_by_name_and_map_types() -> None:
    info = extract_llm_span_info(
        {
            "gen_ai.operation.name": "chat",
            "llm.quality.hallucination.score": "0.7",
            "llm.quality.hallucination.severity": "fail",
            "llm.quality.relevance.score": "0.5",
            "llm.quality.brand_voice.score": "0.9",
            "llm.quality.toxicity.severity": "catastrophic",
        }
    )

    checks = {check.name: check for check in info.quality_checks or []}
    assert list(checks) == ["brand_voice", "hallucination", "relevance", "toxicity"]
    assert checks["hallucination"].type == "hallucination"
    assert checks["hallucination"].score == 0.7
    assert checks["hallucination"].severity == "fail"
    assert checks["relevance"].severity == "warning"
    assert checks["brand_voice"].type == "custom"
    assert checks["brand_voice"].severity == "pass"
    assert checks["toxicity"].severity == "pass"


def test_embedded_security_findings_default_severity_from_detection() -> None:
    info = extract_llm_span_info(
        {
            "gen_ai.operation.name": "chat",
            "llm.security.prompt_injection.detected": "true",
            "llm.security.jailbreak.detected": "false",
            "llm.security.exfiltration.detected": "true",
            "llm.security.exfiltration.severity": "critical",
            "pii.detected": "1",
        }
    )

    checks = {check.name: check for check in info.security_checks or []}
    assert checks["prompt_injection"].type == "prompt_injection"
    assert checks["prompt_injection"].severity == "high"
    assert checks["jailbreak"].type == "jailbreak_attempt"
    assert checks["jailbreak"].detected is False
    assert checks["jailbreak"].severity == "low"
    assert checks["exfiltration"].type == "custom"
    assert checks["exfiltration"].severity == "critical"
    assert checks["pii_detected"].type == "pii_detected"
    assert checks["pii_detected"].detected is True


def test_extraction_is_deterministic() -> None:
    tags = {"gen_ai.request.model": "gpt-4o", "gen_ai.usage.input_tokens": "3", "llm.quality.coherence": "0.2"}

    assert extract_llm_span_info(tags) == extract_llm_span_info(tags)
