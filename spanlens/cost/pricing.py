# ABOUTME: Holds the default per-million-token model pricing table and the immutable PricingCatalog.
# ABOUTME: Custom entries are layered ahead of defaults by building a new catalog, never by mutating globals.

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Iterable, Mapping

from spanlens.contracts import ModelPricing


# More specific names precede their prefixes so substring lookup stays unambiguous.
DEFAULT_MODEL_PRICING: tuple[ModelPricing, ...] = (
    ModelPricing(provider="openai", model="gpt-4-turbo", input_token_price=10.0, output_token_price=30.0),
    ModelPricing(provider="openai", model="gpt-4o", input_token_price=5.0, output_token_price=15.0),
    ModelPricing(provider="openai", model="gpt-4", input_token_price=30.0, output_token_price=60.0),
    ModelPricing(provider="openai", model="gpt-3.5-turbo", input_token_price=0.5, output_token_price=1.5),
    ModelPricing(provider="anthropic", model="claude-3-opus", input_token_price=15.0, output_token_price=75.0),
    ModelPricing(provider="anthropic", model="claude-3-sonnet", input_token_price=3.0, output_token_price=15.0),
    ModelPricing(provider="anthropic", model="claude-3-haiku", input_token_price=0.25, output_token_price=1.25),
    ModelPricing(provider="anthropic", model="claude-3.5-sonnet", input_token_price=3.0, output_token_price=15.0),
    ModelPricing(
        provider="aws.bedrock",
        model="anthropic.claude-3-sonnet",
        input_token_price=3.0,
        output_token_price=15.0,
    ),
    ModelPricing(provider="cohere", model="command-r-plus", input_token_price=3.0, output_token_price=15.0),
    ModelPricing(provider="oci.genai", model="cohere.command-r-plus", input_token_price=3.0, output_token_price=15.0),
)

# Average rates used when a trace has no model that matches the catalog.
ESTIMATED_INPUT_PRICE_USD_PER_MILLION = 5.0
ESTIMATED_OUTPUT_PRICE_USD_PER_MILLION = 15.0


def pricing_from_mapping(payload: Mapping[str, Any]) -> ModelPricing:
    """Build a ModelPricing from a config mapping; raises ValueError on missing or non-numeric prices."""

    model = str(payload.get("model") or "").strip()
    if not model:
        raise ValueError("pricing entry requires a non-empty 'model'")
    try:
        input_price = float(payload["input_token_price"])
        output_price = float(payload["output_token_price"])
    except KeyError as exc:
        raise ValueError(f"pricing entry for {model!r} is missing {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise ValueError(f"pricing entry for {model!r} has a non-numeric price") from exc
    return ModelPricing(
        provider=str(payload.get("provider") or ""),
        model=model,
        input_token_price=input_price,
        output_token_price=output_price,
        currency=str(payload.get("currency") or "USD"),
    )


def normalize_model_name(model: str | None) -> str:
    return re.sub(r"[-_\s]+", "", str(model or "").lower())


def _names_overlap(normalized: str, catalog_model: str) -> bool:
    candidate = normalize_model_name(catalog_model)
    return bool(candidate) and (candidate in normalized or normalized in candidate)


@dataclass(frozen=True)
class PricingCatalog:
    custom: tuple[ModelPricing, ...] = ()
    defaults: tuple[ModelPricing, ...] = DEFAULT_MODEL_PRICING

    def entries(self) -> tuple[ModelPricing, ...]:
        return self.custom + self.defaults

    def with_custom_pricing(self, pricing: Iterable[ModelPricing]) -> PricingCatalog:
        return PricingCatalog(custom=tuple(pricing), defaults=self.defaults)

    def find(self, model: str, provider: str | None = None) -> ModelPricing | None:
        normalized = normalize_model_name(model)
        if not normalized:
            return None
        wanted_provider = (provider or "").lower()
        entries = self.entries()

        for pricing in entries:
            if normalize_model_name(pricing.model) != normalized:
                continue
            if not wanted_provider or pricing.provider.lower() == wanted_provider:
                return pricing
        for pricing in entries:
            if normalize_model_name(pricing.model) == normalized:
                return pricing

        candidates = [pricing for pricing in entries if _names_overlap(normalized, pricing.model)]
        if wanted_provider:
            for pricing in candidates:
                if pricing.provider.lower() == wanted_provider:
                    return pricing
        return candidates[0] if candidates else None


DEFAULT_CATALOG = PricingCatalog()
