# ABOUTME: Holds OpenTelemetry GenAI tag keys and the ordered alias table used to resolve span fields.
# ABOUTME: Adding a legacy spelling for a field is a one-line edit to FIELD_KEYS.

from __future__ import annotations

import re


OPERATION_NAME = "gen_ai.operation.name"
PROVIDER_NAME = "gen_ai.provider.name"

REQUEST_MODEL = "gen_ai.request.model"
REQUEST_TEMPERATURE = "gen_ai.request.temperature"
REQUEST_TOP_P = "gen_ai.request.top_p"
REQUEST_TOP_K = "gen_ai.request.top_k"
REQUEST_MAX_TOKENS = "gen_ai.request.max_tokens"
REQUEST_FREQUENCY_PENALTY = "gen_ai.request.frequency_penalty"
REQUEST_PRESENCE_PENALTY = "gen_ai.request.presence_penalty"
REQUEST_SEED = "gen_ai.request.seed"

RESPONSE_MODEL = "gen_ai.response.model"
RESPONSE_ID = "gen_ai.response.id"
RESPONSE_FINISH_REASONS = "gen_ai.response.finish_reasons"

USAGE_INPUT_TOKENS = "gen_ai.usage.input_tokens"
USAGE_OUTPUT_TOKENS = "gen_ai.usage.output_tokens"

INPUT_MESSAGES = "gen_ai.input.messages"
OUTPUT_MESSAGES = "gen_ai.output.messages"
SYSTEM_INSTRUCTIONS = "gen_ai.system_instructions"

CONVERSATION_ID = "gen_ai.conversation.id"
OUTPUT_TYPE = "gen_ai.output.type"

TOOL_NAME = "gen_ai.tool.name"
TOOL_TYPE = "gen_ai.tool.type"
TOOL_DESCRIPTION = "gen_ai.tool.description"
TOOL_CALL_ID = "gen_ai.tool.call.id"
TOOL_CALL_ARGUMENTS = "gen_ai.tool.call.arguments"
TOOL_CALL_RESULT = "gen_ai.tool.call.result"

AGENT_NAME = "gen_ai.agent.name"
AGENT_ID = "gen_ai.agent.id"
AGENT_DESCRIPTION = "gen_ai.agent.description"

LLM_INDICATOR_KEYS: tuple[str, ...] = (
    OPERATION_NAME,
    REQUEST_MODEL,
    PROVIDER_NAME,
    USAGE_INPUT_TOKENS,
    "llm.model",
    "ai.model",
    "gen_ai.system",
)

# Canonical key first, then legacy spellings in priority order.
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "operation_type": (OPERATION_NAME,),
    "provider": (PROVIDER_NAME, "gen_ai.system", "llm.provider", "ai.provider"),
    "request_model": (REQUEST_MODEL, "llm.model", "ai.model", "model"),
    "response_model": (RESPONSE_MODEL,),
    "input_tokens": (USAGE_INPUT_TOKENS, "llm.usage.prompt_tokens", "ai.tokens.prompt", "tokens.input"),
    "output_tokens": (
        USAGE_OUTPUT_TOKENS,
        "llm.usage.completion_tokens",
        "ai.tokens.completion",
        "tokens.output",
    ),
    "temperature": (REQUEST_TEMPERATURE, "llm.temperature", "ai.temperature"),
    "top_p": (REQUEST_TOP_P, "llm.top_p", "ai.top_p"),
    "top_k": (REQUEST_TOP_K,),
    "max_tokens": (REQUEST_MAX_TOKENS, "llm.max_tokens", "ai.max_tokens"),
    "frequency_penalty": (REQUEST_FREQUENCY_PENALTY,),
    "presence_penalty": (REQUEST_PRESENCE_PENALTY,),
    "seed": (REQUEST_SEED,),
    "response_id": (RESPONSE_ID,),
    "finish_reasons": (RESPONSE_FINISH_REASONS,),
    "input_messages": (INPUT_MESSAGES,),
    "output_messages": (OUTPUT_MESSAGES,),
    "system_instructions": (SYSTEM_INSTRUCTIONS,),
    "conversation_id": (CONVERSATION_ID,),
    "output_type": (OUTPUT_TYPE,),
    "tool_name": (TOOL_NAME,),
    "tool_type": (TOOL_TYPE,),
    "tool_description": (TOOL_DESCRIPTION,),
    "tool_call_id": (TOOL_CALL_ID,),
    "tool_arguments": (TOOL_CALL_ARGUMENTS,),
    "tool_result": (TOOL_CALL_RESULT,),
    "agent_name": (AGENT_NAME,),
    "agent_id": (AGENT_ID,),
    "agent_description": (AGENT_DESCRIPTION,),
}

STRING_FIELDS: tuple[str, ...] = (
    "operation_type",
    "provider",
    "request_model",
    "response_model",
    "response_id",
    "system_instructions",
    "conversation_id",
    "output_type",
    "tool_name",
    "tool_type",
    "tool_description",
    "tool_call_id",
    "tool_arguments",
    "tool_result",
    "agent_name",
    "agent_id",
    "agent_description",
)
INTEGER_FIELDS: tuple[str, ...] = ("input_tokens", "output_tokens", "top_k", "max_tokens", "seed")
FLOAT_FIELDS: tuple[str, ...] = ("temperature", "top_p", "frequency_penalty", "presence_penalty")

# (pattern, slot, fixed check name)
QUALITY_TAG_PATTERNS: tuple[tuple[re.Pattern[str], str, str | None], ...] = (
    (re.compile(r"^llm\.quality\.(\w+)\.score$"), "score", None),
    (re.compile(r"^llm\.quality\.(\w+)\.severity$"), "severity", None),
    (re.compile(r"^llm\.quality\.(\w+)$"), "value", None),
    (re.compile(r"^quality_check\.(\w+)$"), "value", None),
)

SECURITY_TAG_PATTERNS: tuple[tuple[re.Pattern[str], str, str | None], ...] = (
    (re.compile(r"^llm\.security\.(\w+)\.detected$"), "detected", None),
    (re.compile(r"^llm\.security\.(\w+)\.severity$"), "severity", None),
    (re.compile(r"^llm\.security\.(\w+)$"), "value", None),
    (re.compile(r"^security_check\.(\w+)$"), "value", None),
    (re.compile(r"^prompt_injection\.detected$"), "detected", "prompt_injection"),
    (re.compile(r"^pii\.detected$"), "detected", "pii_detected"),
)

QUALITY_TYPE_MAP: dict[str, str] = {
    "hallucination": "hallucination",
    "toxicity": "toxicity",
    "sentiment": "sentiment",
    "relevance": "relevance",
    "coherence": "coherence",
}

SECURITY_TYPE_MAP: dict[str, str] = {
    "prompt_injection": "prompt_injection",
    "jailbreak": "jailbreak_attempt",
    "jailbreak_attempt": "jailbreak_attempt",
    "pii": "pii_detected",
    "pii_detected": "pii_detected",
    "sensitive_data": "sensitive_data",
    "malicious": "malicious_content",
    "malicious_content": "malicious_content",
}
