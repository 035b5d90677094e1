# ABOUTME: Runs the quality and security engines over the message content captured on one LLM span.
# ABOUTME: Maps span messages onto detector contexts: last user turn, assistant output, tool results as context.

from __future__ import annotations

from dataclasses import dataclass, field

from spanlens.checks.quality import QualityCheckConfig, QualityCheckContext, run_quality_checks
from spanlens.checks.security import SecurityCheckConfig, SecurityCheckContext, run_security_checks
from spanlens.contracts import LLMSpanInfo, QualityCheck, SecurityCheck
from spanlens.extraction import message_text


@dataclass
class SpanContent:
    user_input: str | None = None
    user_history: str = ""
    llm_output: str = ""
    provided_context: list[str] = field(default_factory=list)
    system_instructions: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.user_input or self.llm_output)


@dataclass
class SpanEvaluation:
    quality_checks: list[QualityCheck] = field(default_factory=list)
    security_checks: list[SecurityCheck] = field(default_factory=list)


def extract_span_content(info: LLMSpanInfo) -> SpanContent:
    inputs = list(info.input_messages or [])
    outputs = list(info.output_messages or [])

    user_turns = [message.content for message in inputs if message.role == "user" and message.content]
    user_input = user_turns[-1] if user_turns else None

    llm_output = message_text(outputs, ("assistant",))
    if not llm_output:
        llm_output = "\n".join(message.content for message in outputs if message.content)

    provided_context = [
        message.content for message in inputs if message.role in ("tool", "function") and message.content
    ]
    for message in inputs:
        for call in message.tool_calls or []:
            if call.result:
                provided_context.append(call.result)
    if info.tool_result:
        provided_context.append(info.tool_result)

    system_instructions = info.system_instructions or message_text(inputs, ("system",)) or None
    return SpanContent(
        user_input=user_input,
        user_history="\n".join(user_turns),
        llm_output=llm_output,
        provided_context=provided_context,
        system_instructions=system_instructions,
    )


def evaluate_span_content(
    info: LLMSpanInfo,
    *,
    quality_config: QualityCheckConfig | None = None,
    security_config: SecurityCheckConfig | None = None,
    expected_topics: list[str] | None = None,
) -> SpanEvaluation:
    if not info.is_llm_span:
        return SpanEvaluation()
    content = extract_span_content(info)
    if content.is_empty:
        return SpanEvaluation()

    quality_context = QualityCheckContext(
        llm_output=content.llm_output,
        user_input=content.user_input,
        provided_context=content.provided_context,
        system_instructions=content.system_instructions,
        expected_topics=list(expected_topics or []),
    )
    # Injection attempts can sit in any earlier user turn, not just the last one.
    security_context = SecurityCheckContext(
        user_input=content.user_history or None,
        llm_output=content.llm_output,
        system_prompt=content.system_instructions,
    )
    return SpanEvaluation(
        quality_checks=run_quality_checks(quality_context, quality_config),
        security_checks=run_security_checks(security_context, security_config),
    )
