# ABOUTME: Implements the catalog-agnostic pattern runner shared by the quality and security engines.
# ABOUTME: Catalogs are data (PatternRule records); the runner matches, accumulates, clamps, and classifies.

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, Iterable, Sequence


SEVERITY_ORDER = {"low": 1, "medium": 2, "high": 3, "critical": 4}

MatchFilter = Callable[[str, str], bool]


@dataclass(frozen=True)
class PatternRule:
    """One catalog entry: a compiled regex plus the weight or severity it carries."""

    name: str
    pattern: re.Pattern[str]
    severity: str = "low"
    weight: float = 0.0
    category: str | None = None
    description: str | None = None


@dataclass
class RuleHit:
    rule: PatternRule
    matches: list[str]

    @property
    def count(self) -> int:
        return len(self.matches)


def compile_rule(
    name: str,
    pattern: str | re.Pattern[str],
    *,
    severity: str = "low",
    weight: float = 0.0,
    category: str | None = None,
    description: str | None = None,
    ignore_case: bool = False,
) -> PatternRule:
    if isinstance(pattern, re.Pattern):
        compiled = pattern
    else:
        compiled = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    return PatternRule(
        name=name,
        pattern=compiled,
        severity=severity,
        weight=weight,
        category=category,
        description=description,
    )


def find_matches(rule: PatternRule, text: str) -> list[str]:
    if not text:
        return []
    return [match.group(0) for match in rule.pattern.finditer(text)]


def run_catalog(
    rules: Iterable[PatternRule],
    text: str,
    *,
    match_filter: MatchFilter | None = None,
) -> list[RuleHit]:
    hits: list[RuleHit] = []
    for rule in rules:
        matches = find_matches(rule, text)
        if match_filter is not None:
            matches = [match for match in matches if match_filter(rule.name, match)]
        if matches:
            hits.append(RuleHit(rule=rule, matches=matches))
    return hits


def any_match(rules: Iterable[PatternRule], text: str) -> bool:
    if not text:
        return False
    return any(rule.pattern.search(text) for rule in rules)


def clamp_score(score: float) -> float:
    # Rounded so accumulated penalties like 1.0 - 0.2 - 0.2 land exactly on threshold values.
    return round(max(0.0, min(1.0, score)), 4)


def classify_risk(score: float, warning: float, fail: float) -> str:
    if score >= fail:
        return "fail"
    if score >= warning:
        return "warning"
    return "pass"


def classify_quality(score: float, warning: float, fail: float) -> str:
    if score <= fail:
        return "fail"
    if score <= warning:
        return "warning"
    return "pass"


def max_severity(severities: Sequence[str], default: str = "low") -> str:
    result = default
    for severity in severities:
        if SEVERITY_ORDER.get(severity, 0) > SEVERITY_ORDER.get(result, 0):
            result = severity
    return result
