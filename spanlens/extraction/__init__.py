# ABOUTME: Exposes the tag extractor that gates and types LLM spans.
# ABOUTME: Keeps a stable import location for aggregation, workflow, and evaluation modules.

from spanlens.extraction.extractor import (
    extract_llm_span_info,
    is_llm_span,
    message_text,
    parse_messages,
    parse_number,
)

__all__ = [
    "extract_llm_span_info",
    "is_llm_span",
    "message_text",
    "parse_messages",
    "parse_number",
]
