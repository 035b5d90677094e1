# ABOUTME: Estimates LLM call, span, and trace costs from token usage and a pricing catalog.
# ABOUTME: Unknown models cost zero per call; trace totals fall back to an average-rate estimate.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from spanlens.contracts import CostResult, LLMSpanInfo, ModelPricing, TraceLLMSummary
from spanlens.cost.pricing import (
    DEFAULT_CATALOG,
    ESTIMATED_INPUT_PRICE_USD_PER_MILLION,
    ESTIMATED_OUTPUT_PRICE_USD_PER_MILLION,
    PricingCatalog,
)


ESTIMATED_BUCKET = "estimated"


@dataclass
class SpanCostBreakdown:
    input_cost: float
    output_cost: float
    model: str


@dataclass
class SpanCost:
    cost: float
    currency: str
    breakdown: SpanCostBreakdown | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if self.breakdown is None:
            payload.pop("breakdown")
        return payload


@dataclass
class TraceCost:
    total_cost: float
    currency: str
    breakdown: dict[str, float] = field(default_factory=dict)
    estimated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Efficiency:
    tokens_per_second: float
    input_output_ratio: float
    cost_efficiency: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _token_cost(tokens: int | float, price_per_million: float) -> float:
    return (tokens / 1_000_000.0) * price_per_million


def find_model_pricing(
    model: str,
    provider: str | None = None,
    *,
    catalog: PricingCatalog = DEFAULT_CATALOG,
) -> ModelPricing | None:
    return catalog.find(model, provider)


def calculate_llm_cost(
    input_tokens: int,
    output_tokens: int,
    model: str,
    provider: str | None = None,
    *,
    catalog: PricingCatalog = DEFAULT_CATALOG,
) -> CostResult:
    pricing = catalog.find(model, provider)
    if pricing is None:
        return CostResult(cost=0.0, currency="USD", pricing=None)
    cost = _token_cost(input_tokens, pricing.input_token_price) + _token_cost(
        output_tokens, pricing.output_token_price
    )
    return CostResult(cost=cost, currency=pricing.currency, pricing=pricing)


def calculate_span_cost(info: LLMSpanInfo, catalog: PricingCatalog = DEFAULT_CATALOG) -> SpanCost:
    if not info.is_llm_span or not info.request_model:
        return SpanCost(cost=0.0, currency="USD")
    input_tokens = info.input_tokens or 0
    output_tokens = info.output_tokens or 0
    result = calculate_llm_cost(
        input_tokens,
        output_tokens,
        info.request_model,
        info.provider,
        catalog=catalog,
    )
    if result.pricing is None:
        return SpanCost(cost=0.0, currency="USD")
    return SpanCost(
        cost=result.cost,
        currency=result.currency,
        breakdown=SpanCostBreakdown(
            input_cost=_token_cost(input_tokens, result.pricing.input_token_price),
            output_cost=_token_cost(output_tokens, result.pricing.output_token_price),
            model=info.request_model,
        ),
    )


def _estimate(input_tokens: int, output_tokens: int) -> float:
    return _token_cost(input_tokens, ESTIMATED_INPUT_PRICE_USD_PER_MILLION) + _token_cost(
        output_tokens, ESTIMATED_OUTPUT_PRICE_USD_PER_MILLION
    )


def calculate_trace_cost(
    summary: TraceLLMSummary,
    primary_model: str | None = None,
    provider: str | None = None,
    *,
    catalog: PricingCatalog = DEFAULT_CATALOG,
) -> TraceCost:
    if primary_model:
        result = calculate_llm_cost(
            summary.total_input_tokens,
            summary.total_output_tokens,
            primary_model,
            provider,
            catalog=catalog,
        )
        if result.pricing is not None:
            return TraceCost(
                total_cost=result.cost,
                currency=result.currency,
                breakdown={primary_model: result.cost},
            )

    cost = _estimate(summary.total_input_tokens, summary.total_output_tokens)
    return TraceCost(total_cost=cost, currency="USD", breakdown={ESTIMATED_BUCKET: cost}, estimated=True)


def calculate_trace_cost_from_spans(
    infos: Iterable[LLMSpanInfo],
    catalog: PricingCatalog = DEFAULT_CATALOG,
) -> TraceCost:
    breakdown: dict[str, float] = {}
    currencies: set[str] = set()
    unpriced_input = 0
    unpriced_output = 0
    for info in infos:
        if not info.is_llm_span:
            continue
        span_cost = calculate_span_cost(info, catalog)
        if span_cost.breakdown is None:
            unpriced_input += info.input_tokens or 0
            unpriced_output += info.output_tokens or 0
            continue
        model = span_cost.breakdown.model
        breakdown[model] = breakdown.get(model, 0.0) + span_cost.cost
        currencies.add(span_cost.currency)

    estimated = bool(unpriced_input or unpriced_output) or not breakdown
    if estimated:
        breakdown[ESTIMATED_BUCKET] = breakdown.get(ESTIMATED_BUCKET, 0.0) + _estimate(unpriced_input, unpriced_output)
        currencies.add("USD")
    currency = currencies.pop() if len(currencies) == 1 else "USD"
    return TraceCost(
        total_cost=sum(breakdown.values()),
        currency=currency,
        breakdown=dict(sorted(breakdown.items())),
        estimated=estimated,
    )


def format_cost(cost: float, currency: str = "USD") -> str:
    if cost == 0:
        return "N/A"
    symbol = "$" if currency == "USD" else f"{currency} "
    if cost < 0.01:
        return f"{symbol}{cost:.6f}"
    if cost < 0.10:
        return f"{symbol}{cost:.4f}"
    if cost < 1:
        return f"{symbol}{cost:.3f}"
    return f"{symbol}{cost:.2f}"


def format_tokens(tokens: int) -> str:
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(tokens)


def calculate_efficiency(input_tokens: int, output_tokens: int, duration_ms: float) -> Efficiency:
    duration_sec = duration_ms / 1000.0
    total = input_tokens + output_tokens
    if output_tokens > input_tokens:
        label = "Output Heavy"
    elif output_tokens < input_tokens * 0.5:
        label = "Input Heavy"
    else:
        label = "Balanced"
    return Efficiency(
        tokens_per_second=total / duration_sec if duration_sec > 0 else 0.0,
        input_output_ratio=output_tokens / input_tokens if input_tokens > 0 else 0.0,
        cost_efficiency=label,
    )
