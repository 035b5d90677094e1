# ABOUTME: Exposes the quality and security detectors plus the shared pattern runner.
# ABOUTME: Callers import engine entrypoints from here rather than from individual modules.

from spanlens.checks.patterns import PatternRule, RuleHit, compile_rule, run_catalog
from spanlens.checks.quality import (
    QualityCheckConfig,
    QualityCheckContext,
    QualityCheckSummary,
    QualityThresholds,
    analyze_sentiment,
    detect_hallucination,
    detect_toxicity,
    evaluate_coherence,
    get_quality_check_summary,
    run_quality_checks,
    score_relevance,
)
from spanlens.checks.security import (
    SecurityCheckConfig,
    SecurityCheckContext,
    SecurityCheckSummary,
    detect_jailbreak,
    detect_pii,
    detect_prompt_injection,
    detect_sensitive_data,
    get_security_check_summary,
    has_critical_security_issue,
    has_pii_type,
    has_security_issue,
    redact_pii,
    redact_sensitive_data,
    run_security_checks,
)

__all__ = [
    "PatternRule",
    "QualityCheckConfig",
    "QualityCheckContext",
    "QualityCheckSummary",
    "QualityThresholds",
    "RuleHit",
    "SecurityCheckConfig",
    "SecurityCheckContext",
    "SecurityCheckSummary",
    "analyze_sentiment",
    "compile_rule",
    "detect_hallucination",
    "detect_jailbreak",
    "detect_pii",
    "detect_prompt_injection",
    "detect_sensitive_data",
    "detect_toxicity",
    "evaluate_coherence",
    "get_quality_check_summary",
    "get_security_check_summary",
    "has_critical_security_issue",
    "has_pii_type",
    "has_security_issue",
    "redact_pii",
    "redact_sensitive_data",
    "run_catalog",
    "run_quality_checks",
    "run_security_checks",
    "score_relevance",
]
