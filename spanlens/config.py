# ABOUTME: Loads analysis configuration from YAML through OmegaConf into typed dataclasses.
# ABOUTME: Resolves ${oc.env:VAR} interpolations and reports bad keys or patterns as ConfigError.

from __future__ import annotations

from dataclasses import fields
import logging
from pathlib import Path
import re
from typing import Any, Mapping

from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException

from spanlens.analysis.report import AnalysisConfig
from spanlens.analysis.workflow import TemporalAdjacency
from spanlens.checks.patterns import SEVERITY_ORDER, PatternRule, compile_rule
from spanlens.checks.quality import QualityCheckConfig, QualityThresholds
from spanlens.checks.security import SecurityCheckConfig
from spanlens.cost.pricing import PricingCatalog, pricing_from_mapping

logger = logging.getLogger(__name__)

TOP_LEVEL_KEYS = frozenset({"quality", "security", "pricing", "workflow", "content_checks", "expected_topics"})


class ConfigError(ValueError):
    pass


def _require_mapping(value: Any, key: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{key} must be a mapping")
    return value


def _require_list(value: Any, key: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list")
    return value


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{key} must be true or false")


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number") from exc


def _apply_flags(target: Any, payload: Mapping[str, Any], section: str, allowed: set[str]) -> None:
    for key, value in payload.items():
        if key not in allowed:
            raise ConfigError(f"unknown key {section}.{key}")
        setattr(target, key, _as_bool(value, f"{section}.{key}"))


def _build_thresholds(payload: Mapping[str, Any]) -> QualityThresholds:
    thresholds = QualityThresholds()
    allowed = {item.name for item in fields(QualityThresholds)}
    for key, value in payload.items():
        if key not in allowed:
            raise ConfigError(f"unknown key quality.thresholds.{key}")
        number = _as_float(value, f"quality.thresholds.{key}")
        if not 0.0 <= number <= 1.0:
            raise ConfigError(f"quality.thresholds.{key} must be within [0, 1]")
        setattr(thresholds, key, number)
    return thresholds


def _build_quality(payload: Mapping[str, Any]) -> QualityCheckConfig:
    config = QualityCheckConfig()
    flags = {item.name for item in fields(QualityCheckConfig) if item.name.startswith("check_")}
    _apply_flags(config, {key: value for key, value in payload.items() if key != "thresholds"}, "quality", flags)
    config.thresholds = _build_thresholds(_require_mapping(payload.get("thresholds"), "quality.thresholds"))
    return config


def build_pattern_rule(payload: Mapping[str, Any], key: str) -> PatternRule:
    name = str(payload.get("name") or "").strip()
    pattern = payload.get("pattern")
    if not name:
        raise ConfigError(f"{key}.name is required")
    if not isinstance(pattern, str) or not pattern:
        raise ConfigError(f"{key}.pattern is required")
    severity = str(payload.get("severity") or "medium").lower()
    if severity not in SEVERITY_ORDER:
        raise ConfigError(f"{key}.severity must be one of {', '.join(SEVERITY_ORDER)}")
    try:
        return compile_rule(
            name,
            pattern,
            severity=severity,
            description=payload.get("description") or f"{name} detected",
            ignore_case=bool(payload.get("ignore_case", False)),
        )
    except re.error as exc:
        raise ConfigError(f"{key}.pattern is not a valid regular expression: {exc}") from exc


def _build_security(payload: Mapping[str, Any]) -> SecurityCheckConfig:
    config = SecurityCheckConfig()
    pattern_keys = ("custom_pii_patterns", "custom_sensitive_patterns")
    flags = {item.name for item in fields(SecurityCheckConfig) if item.name.startswith("check_")}
    _apply_flags(
        config,
        {key: value for key, value in payload.items() if key not in pattern_keys},
        "security",
        flags,
    )
    for pattern_key in pattern_keys:
        rules: list[PatternRule] = []
        for index, entry in enumerate(_require_list(payload.get(pattern_key), f"security.{pattern_key}")):
            entry_key = f"security.{pattern_key}[{index}]"
            rules.append(build_pattern_rule(_require_mapping(entry, entry_key), entry_key))
        setattr(config, pattern_key, rules)
    return config


def _build_pricing(entries: list[Any]) -> PricingCatalog:
    custom = []
    for index, entry in enumerate(entries):
        key = f"pricing[{index}]"
        try:
            custom.append(pricing_from_mapping(_require_mapping(entry, key)))
        except ValueError as exc:
            raise ConfigError(f"{key}: {exc}") from exc
    return PricingCatalog().with_custom_pricing(custom)


def _build_adjacency(payload: Mapping[str, Any]) -> TemporalAdjacency:
    for key in payload:
        if key != "sequence_gap_ms":
            raise ConfigError(f"unknown key workflow.{key}")
    if "sequence_gap_ms" not in payload:
        return TemporalAdjacency()
    gap = _as_float(payload["sequence_gap_ms"], "workflow.sequence_gap_ms")
    if gap < 0:
        raise ConfigError("workflow.sequence_gap_ms must be non-negative")
    return TemporalAdjacency(max_gap_ms=gap)


def config_from_mapping(payload: Mapping[str, Any] | None) -> AnalysisConfig:
    data = _require_mapping(payload, "config")
    for key in data:
        if key not in TOP_LEVEL_KEYS:
            raise ConfigError(f"unknown key {key}")
    topics = _require_list(data.get("expected_topics"), "expected_topics")
    return AnalysisConfig(
        quality=_build_quality(_require_mapping(data.get("quality"), "quality")),
        security=_build_security(_require_mapping(data.get("security"), "security")),
        pricing=_build_pricing(_require_list(data.get("pricing"), "pricing")),
        adjacency=_build_adjacency(_require_mapping(data.get("workflow"), "workflow")),
        content_checks=_as_bool(data.get("content_checks", True), "content_checks"),
        expected_topics=[str(topic) for topic in topics],
    )


def load_config(path: str | Path | None = None) -> AnalysisConfig:
    if path is None:
        return AnalysisConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")
    try:
        loaded = OmegaConf.load(config_path)
        OmegaConf.resolve(loaded)
    except OmegaConfBaseException as exc:
        raise ConfigError(f"failed to load {config_path}: {exc}") from exc
    if not isinstance(loaded, DictConfig):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")
    container = OmegaConf.to_container(loaded, resolve=True)
    config = config_from_mapping(container)
    logger.info(
        "Loaded config from %s (custom pricing entries: %d)",
        config_path,
        len(config.pricing.custom),
    )
    return config
