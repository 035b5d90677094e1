# ABOUTME: Exposes the pricing catalog and cost calculator entrypoints.
# ABOUTME: Keeps cost estimation importable independently of the analysis engines.

from spanlens.cost.calculator import (
    Efficiency,
    SpanCost,
    TraceCost,
    calculate_efficiency,
    calculate_llm_cost,
    calculate_span_cost,
    calculate_trace_cost,
    calculate_trace_cost_from_spans,
    find_model_pricing,
    format_cost,
    format_tokens,
)
from spanlens.cost.pricing import DEFAULT_CATALOG, DEFAULT_MODEL_PRICING, PricingCatalog, normalize_model_name

__all__ = [
    "DEFAULT_CATALOG",
    "DEFAULT_MODEL_PRICING",
    "Efficiency",
    "PricingCatalog",
    "SpanCost",
    "TraceCost",
    "calculate_efficiency",
    "calculate_llm_cost",
    "calculate_span_cost",
    "calculate_trace_cost",
    "calculate_trace_cost_from_spans",
    "find_model_pricing",
    "format_cost",
    "format_tokens",
    "normalize_model_name",
]
