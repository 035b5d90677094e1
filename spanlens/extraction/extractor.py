# ABOUTME: Turns one span's flat tag bag into a typed LLMSpanInfo record.
# ABOUTME: Resolves fields through the ordered key table and never raises on malformed tag values.

from __future__ import annotations

import json
import math
import re
from typing import Any, Iterable, Mapping

from spanlens.checks.quality import QualityThresholds, severity_for_score
from spanlens.contracts import (
    QUALITY_SEVERITIES,
    SECURITY_SEVERITIES,
    LLMMessage,
    LLMSpanInfo,
    QualityCheck,
    SecurityCheck,
    ToolCall,
    coerce_tags,
)
from spanlens.extraction.keys import (
    FIELD_KEYS,
    FLOAT_FIELDS,
    INTEGER_FIELDS,
    LLM_INDICATOR_KEYS,
    QUALITY_TAG_PATTERNS,
    QUALITY_TYPE_MAP,
    SECURITY_TAG_PATTERNS,
    SECURITY_TYPE_MAP,
    STRING_FIELDS,
)


_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_TRUTHY = {"true", "1"}


def parse_number(value: str | None) -> float | None:
    if not value:
        return None
    match = _LEADING_NUMBER.match(value)
    if not match:
        return None
    try:
        number = float(match.group(0))
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _parse_int(value: str | None) -> int | None:
    number = parse_number(value)
    if number is None:
        return None
    return int(number)


def resolve_tag(tags: Mapping[str, str], keys: Iterable[str]) -> str | None:
    for key in keys:
        value = tags.get(key)
        if value:
            return value
    return None


def is_llm_span(tags: Mapping[str, Any] | None) -> bool:
    if not tags:
        return False
    return any(key in tags and tags[key] is not None for key in LLM_INDICATOR_KEYS)


def _message_content(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        parts: list[str] = []
        for part in raw:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict):
                text = part.get("content", part.get("text"))
                if isinstance(text, str):
                    parts.append(text)
        return "\n".join(parts)
    return json.dumps(raw, sort_keys=True, default=str)


def _parse_tool_call(raw: Any) -> ToolCall | None:
    if not isinstance(raw, dict):
        return None
    function = raw.get("function") if isinstance(raw.get("function"), dict) else {}
    arguments = function.get("arguments", raw.get("arguments"))
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments or {}, sort_keys=True, default=str)
    return ToolCall(
        id=str(raw.get("id") or ""),
        name=str(function.get("name") or raw.get("name") or ""),
        arguments=arguments,
        result=raw.get("result") if isinstance(raw.get("result"), str) else None,
    )


def _parse_message(raw: Any) -> LLMMessage | None:
    if isinstance(raw, str):
        return LLMMessage(role="user", content=raw)
    if not isinstance(raw, dict):
        return None
    content = raw.get("content")
    if content is None and "parts" in raw:
        content = raw.get("parts")
    tool_calls_raw = raw.get("tool_calls")
    tool_calls = None
    if isinstance(tool_calls_raw, list):
        tool_calls = [call for call in (_parse_tool_call(item) for item in tool_calls_raw) if call is not None]
    return LLMMessage(
        role=str(raw.get("role") or "user"),
        content=_message_content(content),
        name=raw.get("name") if isinstance(raw.get("name"), str) else None,
        tool_calls=tool_calls,
        tool_call_id=raw.get("tool_call_id") if isinstance(raw.get("tool_call_id"), str) else None,
    )


def parse_messages(value: str | None) -> list[LLMMessage] | None:
    if not value:
        return None
    try:
        decoded = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return [LLMMessage(role="user", content=value)]
    if isinstance(decoded, dict):
        decoded = [decoded]
    if not isinstance(decoded, list):
        return None
    messages = [message for message in (_parse_message(item) for item in decoded) if message is not None]
    return messages


def _parse_finish_reasons(value: str | None) -> list[str] | None:
    if not value:
        return None
    if value.lstrip().startswith("["):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return [str(reason) for reason in decoded]
    return [reason.strip() for reason in value.split(",") if reason.strip()]


def message_text(messages: list[LLMMessage] | None, roles: Iterable[str]) -> str:
    if not messages:
        return ""
    wanted = set(roles)
    return "\n".join(message.content for message in messages if message.role in wanted and message.content)


def _extract_quality_checks(tags: Mapping[str, str]) -> list[QualityCheck]:
    found: dict[str, dict[str, Any]] = {}
    for key, value in tags.items():
        for pattern, slot, fixed_name in QUALITY_TAG_PATTERNS:
            match = pattern.match(key)
            if not match:
                continue
            name = fixed_name or match.group(1)
            entry = found.setdefault(name, {})
            if slot == "severity":
                normalized = value.strip().lower()
                if normalized in QUALITY_SEVERITIES:
                    entry["severity"] = normalized
            else:
                score = parse_number(value)
                if score is not None:
                    entry["score"] = score

    thresholds = QualityThresholds()
    checks: list[QualityCheck] = []
    for name in sorted(found):
        entry = found[name]
        check_type = QUALITY_TYPE_MAP.get(name.lower(), "custom")
        score = entry.get("score")
        severity = entry.get("severity")
        if severity is None:
            severity = severity_for_score(check_type, score, thresholds) if score is not None else "pass"
        checks.append(QualityCheck(type=check_type, name=name, score=score, severity=severity))
    return checks


def _extract_security_checks(tags: Mapping[str, str]) -> list[SecurityCheck]:
    found: dict[str, dict[str, Any]] = {}
    for key, value in tags.items():
        for pattern, slot, fixed_name in SECURITY_TAG_PATTERNS:
            match = pattern.match(key)
            if not match:
                continue
            name = fixed_name or match.group(1)
            entry = found.setdefault(name, {})
            if slot == "severity":
                normalized = value.strip().lower()
                if normalized in SECURITY_SEVERITIES:
                    entry["severity"] = normalized
            else:
                entry["detected"] = value.strip().lower() in _TRUTHY

    checks: list[SecurityCheck] = []
    for name in sorted(found):
        entry = found[name]
        detected = bool(entry.get("detected", False))
        checks.append(
            SecurityCheck(
                type=SECURITY_TYPE_MAP.get(name.lower(), "custom"),
                name=name,
                detected=detected,
                severity=entry.get("severity") or ("high" if detected else "low"),
            )
        )
    return checks


def extract_llm_span_info(tags: Mapping[str, Any] | None) -> LLMSpanInfo:
    normalized = coerce_tags(tags)
    if not is_llm_span(normalized):
        return LLMSpanInfo(is_llm_span=False)

    values: dict[str, Any] = {}
    for field_name in STRING_FIELDS:
        values[field_name] = resolve_tag(normalized, FIELD_KEYS[field_name])
    for field_name in INTEGER_FIELDS:
        values[field_name] = _parse_int(resolve_tag(normalized, FIELD_KEYS[field_name]))
    for field_name in FLOAT_FIELDS:
        values[field_name] = parse_number(resolve_tag(normalized, FIELD_KEYS[field_name]))

    input_tokens = values["input_tokens"]
    output_tokens = values["output_tokens"]
    total_tokens = None
    if input_tokens is not None or output_tokens is not None:
        total_tokens = (input_tokens or 0) + (output_tokens or 0)

    return LLMSpanInfo(
        is_llm_span=True,
        total_tokens=total_tokens,
        finish_reasons=_parse_finish_reasons(resolve_tag(normalized, FIELD_KEYS["finish_reasons"])),
        input_messages=parse_messages(resolve_tag(normalized, FIELD_KEYS["input_messages"])),
        output_messages=parse_messages(resolve_tag(normalized, FIELD_KEYS["output_messages"])),
        quality_checks=_extract_quality_checks(normalized),
        security_checks=_extract_security_checks(normalized),
        **values,
    )
