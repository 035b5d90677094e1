# ABOUTME: Scans LLM inputs and outputs for prompt injection, jailbreaks, PII and leaked secrets.
# ABOUTME: Catalogs are ordered PatternRule tables; PII and secret matches pass per-type false-positive filters.

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Iterable, Literal, Sequence

from spanlens.checks.patterns import (
    SEVERITY_ORDER,
    MatchFilter,
    PatternRule,
    RuleHit,
    compile_rule,
    max_severity,
    run_catalog,
)
from spanlens.contracts import LLMMessage, SecurityCheck, utc_now_rfc3339


TextTarget = Literal["input", "output", "both"]


@dataclass
class SecurityCheckContext:
    user_input: str | None = None
    llm_output: str | None = None
    messages: list[LLMMessage] = field(default_factory=list)
    system_prompt: str | None = None


@dataclass
class SecurityCheckConfig:
    check_prompt_injection: bool = True
    check_jailbreak: bool = True
    check_pii: bool = True
    check_sensitive_data: bool = True
    custom_pii_patterns: list[PatternRule] = field(default_factory=list)
    custom_sensitive_patterns: list[PatternRule] = field(default_factory=list)


@dataclass
class SecurityCheckSummary:
    total_checks: int
    detected: int
    not_detected: int
    by_severity: dict[str, int]
    by_type: dict[str, dict[str, Any]]
    critical_issues: list[SecurityCheck]
    high_issues: list[SecurityCheck]
    overall_risk: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_checks": self.total_checks,
            "detected": self.detected,
            "not_detected": self.not_detected,
            "by_severity": dict(self.by_severity),
            "by_type": {key: dict(value) for key, value in self.by_type.items()},
            "critical_issues": [check.to_dict() for check in self.critical_issues],
            "high_issues": [check.to_dict() for check in self.high_issues],
            "overall_risk": self.overall_risk,
        }


def _rule(name: str, pattern: str, severity: str) -> PatternRule:
    return compile_rule(name, pattern, severity=severity, ignore_case=True)


PROMPT_INJECTION_RULES: tuple[PatternRule, ...] = (
    # instruction override
    _rule("ignore_instructions", r"ignore\s+(?:all\s+)?(?:previous|prior|above)\s+(?:instructions?|prompts?|rules?)", "high"),
    _rule("disregard_previous", r"disregard\s+(?:all\s+)?(?:previous|prior|above)", "high"),
    _rule("forget_everything", r"forget\s+(?:everything|all|your)\s+(?:previous|you\s+know)", "high"),
    _rule("new_instructions", r"new\s+instructions?:\s*", "high"),
    _rule("override_system", r"override\s+(?:system|previous|your)\s+(?:prompt|instructions?|rules?)", "critical"),
    # system prompt extraction
    _rule(
        "extract_prompt",
        r"(?:what\s+(?:are|is)|reveal|tell\s+me)\s+your\s+(?:system\s+)?(?:prompt|instructions?|rules?)",
        "medium",
    ),
    _rule("show_prompt", r"show\s+(?:me\s+)?your\s+(?:system\s+)?(?:prompt|instructions?)", "medium"),
    _rule("repeat_prompt", r"repeat\s+(?:your\s+)?(?:system\s+)?(?:prompt|instructions?)", "medium"),
    _rule("print_prompt", r"print\s+(?:your\s+)?(?:initial|system)\s+(?:prompt|instructions?)", "medium"),
    # role confusion
    _rule("role_override", r"you\s+are\s+now\s+(?:a|an|the)\b", "medium"),
    _rule("pretend_role", r"pretend\s+(?:you\s+are|to\s+be)\s+(?:a|an|the)\b", "medium"),
    _rule("act_as", r"act\s+as\s+(?:if\s+you\s+are\s+)?(?:a|an|the)\b", "low"),
    _rule("from_now_on", r"from\s+now\s+on,?\s+you\s+(?:are|will)", "medium"),
    # delimiter and special-token injection
    _rule("delimiter_injection", r"```[\s\S]*?(?:system|user|assistant)[\s\S]*?```", "high"),
    _rule("special_token_injection", r"<\|?(?:system|user|assistant|im_start|im_end)\|?>", "high"),
    _rule("llama_token_injection", r"\[INST\]|\[/INST\]|\[SYS\]|\[/SYS\]", "high"),
    # context manipulation
    _rule("end_marker_injection", r"end\s+of\s+(?:system\s+)?(?:prompt|message|instructions?)", "high"),
    _rule("separator_injection", r"---+\s*(?:new|user|actual)\s*(?:prompt|instructions?|query)", "high"),
    _rule("important_ignore", r"IMPORTANT:\s*ignore", "high"),
)

JAILBREAK_RULES: tuple[PatternRule, ...] = (
    _rule("dan_jailbreak", r"\bDAN\b.*?(?:do\s+anything\s+now|mode)", "critical"),
    _rule("developer_mode", r"developer\s+mode\s+(?:enabled|activated|on)", "critical"),
    _rule("jailbreak_explicit", r"jailbreak(?:ed)?\s+(?:mode|prompt)", "critical"),
    _rule(
        "remove_ethics",
        r"pretend\s+(?:there\s+are\s+)?no\s+(?:ethical|moral|safety)\s+(?:guidelines|rules|restrictions)",
        "critical",
    ),
    _rule("respond_without_safety", r"respond\s+without\s+(?:any\s+)?(?:moral|ethical|safety)", "critical"),
    _rule("hypothetical_bypass", r"hypothetical(?:ly)?\s+speaking,?\s+if\s+you\s+(?:had|could|were)", "medium"),
    _rule("base64_obfuscation", r"base64\s+(?:decode|encoded?):\s*", "medium"),
    _rule("rot13_obfuscation", r"rot13\s+this", "medium"),
    _rule("encoding_request", r"respond\s+in\s+(?:hex|binary|base64|morse)", "medium"),
    _rule("leet_speak", r"translate\s+to\s+(?:leet|l33t|1337)", "low"),
    _rule("opposite_day", r"opposite\s+day", "medium"),
    _rule("do_opposite", r"do\s+the\s+(?:exact\s+)?opposite", "medium"),
    _rule("invert_behavior", r"invert\s+(?:your\s+)?(?:responses?|behavior|output)", "medium"),
    _rule(
        "token_splitting",
        r"split\s+(?:this|your)\s+(?:response|answer)\s+into\s+(?:tokens|characters|parts)",
        "low",
    ),
    _rule("char_by_char", r"one\s+(?:letter|character|word)\s+(?:per|at\s+a)\s+(?:line|time)", "low"),
    _rule("fiction_framing", r"write\s+a\s+(?:story|fiction|scenario)\s+where\s+(?:you|an?\s+AI)", "low"),
    _rule(
        "fictional_world",
        r"in\s+this\s+(?:fictional|hypothetical|imaginary)\s+(?:world|scenario|universe)",
        "low",
    ),
    _rule("sudo_mode", r"sudo\s+(?:mode|enable|activate)", "high"),
    _rule("admin_mode", r"admin(?:istrator)?\s+(?:mode|access|override)", "high"),
    _rule("root_access", r"root\s+(?:access|mode|privileges)", "high"),
)

PII_RULES: tuple[PatternRule, ...] = (
    compile_rule(
        "email",
        r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
        severity="medium",
        description="Email address detected",
    ),
    compile_rule(
        "phone_us",
        r"(?:\+1[-.\s]?)?\(?[2-9]\d{2}\)?[-.\s]?\d{3}[-.\s]?\d{4}",
        severity="medium",
        description="US phone number detected",
    ),
    compile_rule(
        "phone_intl",
        r"\+[1-9]\d{1,14}",
        severity="medium",
        description="International phone number detected",
    ),
    compile_rule(
        "ssn",
        r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b",
        severity="critical",
        description="Social Security Number detected",
    ),
    compile_rule(
        "credit_card",
        r"\b(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14}|3[47][0-9]{13}|6(?:011|5[0-9]{2})[0-9]{12})\b",
        severity="critical",
        description="Credit card number detected",
    ),
    compile_rule(
        "credit_card_formatted",
        r"\b(?:\d{4}[-\s]?){3}\d{4}\b",
        severity="high",
        description="Formatted credit card number detected",
    ),
    compile_rule(
        "ip_address",
        r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b",
        severity="low",
        description="IP address detected",
    ),
    compile_rule(
        "dob",
        r"\b(?:0[1-9]|1[0-2])[/\-.](?:0[1-9]|[12]\d|3[01])[/\-.](?:19|20)\d{2}\b",
        severity="medium",
        description="Date of birth pattern detected",
    ),
    compile_rule(
        "passport",
        r"\b[A-Z]{1,2}\d{6,9}\b",
        severity="high",
        description="Possible passport number detected",
    ),
    compile_rule(
        "drivers_license",
        r"\b[A-Z]{1,2}\d{5,8}\b",
        severity="medium",
        description="Possible driver's license number detected",
    ),
    compile_rule(
        "bank_account",
        r"\b\d{8,17}\b",
        severity="medium",
        description="Possible bank account number detected",
    ),
    compile_rule(
        "iban",
        r"\b[A-Z]{2}\d{2}[A-Z0-9]{4}\d{7}(?:[A-Z0-9]?){0,16}\b",
        severity="high",
        description="IBAN detected",
    ),
    compile_rule(
        "mrn",
        r"\b(?:MRN|Medical\s*Record)[:\s#]*\d{6,10}\b",
        severity="high",
        description="Medical Record Number detected",
        ignore_case=True,
    ),
)

SENSITIVE_DATA_RULES: tuple[PatternRule, ...] = (
    compile_rule(
        "api_key",
        r"\b(?:sk|pk|api)[-_]?[a-zA-Z0-9]{20,}",
        severity="critical",
        description="API key detected",
    ),
    compile_rule(
        "bearer_token",
        r"\b(?:Bearer|token)\s+[a-zA-Z0-9._-]{20,}",
        severity="critical",
        description="Bearer token detected",
        ignore_case=True,
    ),
    compile_rule(
        "aws_access_key",
        r"\bAKIA[0-9A-Z]{16}\b",
        severity="critical",
        description="AWS Access Key detected",
    ),
    compile_rule(
        "aws_secret_key_candidate",
        r"\b[A-Za-z0-9/+=]{40}\b",
        severity="high",
        description="Possible AWS Secret Key",
    ),
    compile_rule(
        "private_key",
        r"-----BEGIN\s+(?:RSA|DSA|EC|OPENSSH)?\s*PRIVATE\s+KEY-----",
        severity="critical",
        description="Private key detected",
        ignore_case=True,
    ),
    compile_rule(
        "db_connection",
        r"(?:mongodb|mysql|postgres|postgresql|redis|mssql)://[^\s]+",
        severity="critical",
        description="Database connection string detected",
        ignore_case=True,
    ),
    compile_rule(
        "password_pattern",
        r"\b(?:password|passwd|pwd)\s*[:=]\s*[\"']?[^\s\"']{4,}",
        severity="critical",
        description="Password pattern detected",
        ignore_case=True,
    ),
    compile_rule(
        "jwt_token",
        r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*",
        severity="high",
        description="JWT token detected",
    ),
    compile_rule(
        "github_token",
        r"\b(?:ghp|gho|ghu|ghs|ghr)_[a-zA-Z0-9]{36,}\b",
        severity="critical",
        description="GitHub token detected",
    ),
    compile_rule(
        "slack_token",
        r"xox[baprs]-[0-9a-zA-Z-]+",
        severity="critical",
        description="Slack token detected",
    ),
    compile_rule(
        "generic_secret",
        r"\b(?:secret|key|apikey|api_key|auth)\s*[:=]\s*[\"']?[^\s\"']{8,}",
        severity="high",
        description="Generic secret pattern detected",
        ignore_case=True,
    ),
)

LICENSE_LOOKALIKE_PREFIXES = ("HTTP", "HTTPS", "HTML", "JSON", "XML", "API", "URL")
PASSPORT_COUNTRY_PREFIX = re.compile(r"^(?:US|UK|CA|AU|EU)[0-9]{6}$")
PASSPORT_REJECTED_PREFIXES = ("AB", "CD", "ID", "NO", "OK", "US")
_PLACEHOLDER_SECRET = re.compile(r"^[\"']?(?:true|false|null|undefined|none|empty)[\"']?$", re.IGNORECASE)


def _is_sequential(digits: str) -> bool:
    if len(digits) < 2:
        return False
    steps = {(int(b) - int(a)) % 10 for a, b in zip(digits, digits[1:])}
    return steps == {1} or steps == {9}


def pii_match_filter(rule_name: str, match: str) -> bool:
    """Return False for matches that are known false positives of the named PII rule."""

    if rule_name == "bank_account":
        digits = re.sub(r"\D", "", match)
        if len(digits) < 10:
            return False
        if set(digits) == {"0"}:
            return False
        if _is_sequential(digits):
            return False
    elif rule_name == "drivers_license":
        if match.upper().startswith(LICENSE_LOOKALIKE_PREFIXES):
            return False
    elif rule_name == "passport":
        if PASSPORT_COUNTRY_PREFIX.match(match):
            return True
        if match[:2] in PASSPORT_REJECTED_PREFIXES:
            return False
    return True


def sensitive_match_filter(rule_name: str, match: str) -> bool:
    """Return False for matches that are known false positives of the named secret rule."""

    if rule_name == "aws_secret_key_candidate":
        if len(match) != 40:
            return False
        if not (re.search(r"[a-z]", match) and re.search(r"[A-Z]", match) and re.search(r"[0-9]", match)):
            return False
    elif rule_name == "generic_secret":
        parts = re.split(r"[:=]", match, maxsplit=1)
        value = parts[1].strip() if len(parts) > 1 else ""
        if _PLACEHOLDER_SECRET.match(value):
            return False
    return True


def _context_texts(context: SecurityCheckContext, target: TextTarget) -> tuple[str, str]:
    """Return (input text, output text) including user- and assistant-role messages."""

    inputs: list[str] = []
    outputs: list[str] = []
    if target in ("input", "both") and context.user_input:
        inputs.append(context.user_input)
    if target in ("output", "both") and context.llm_output:
        outputs.append(context.llm_output)
    for message in context.messages or []:
        if not message.content:
            continue
        if target in ("input", "both") and message.role == "user":
            inputs.append(message.content)
        if target in ("output", "both") and message.role == "assistant":
            outputs.append(message.content)
    return "\n".join(inputs), "\n".join(outputs)


def _combined(input_text: str, output_text: str) -> str:
    return "\n".join(part for part in (input_text, output_text) if part)


def _location(input_hit: bool, output_hit: bool) -> str | None:
    if input_hit and output_hit:
        return "both"
    if input_hit:
        return "input"
    if output_hit:
        return "output"
    return None


def _detect_input_rules(
    rules: Sequence[PatternRule],
    context: SecurityCheckContext,
    *,
    check_type: str,
    name: str,
) -> SecurityCheck:
    input_text, _ = _context_texts(context, "input")
    hits = run_catalog(rules, input_text)
    detected = bool(hits)
    return SecurityCheck(
        type=check_type,
        name=name,
        detected=detected,
        severity=max_severity([hit.rule.severity for hit in hits]),
        details=f"Detected patterns: {', '.join(hit.rule.name for hit in hits)}" if detected else None,
        location="input",
        timestamp=utc_now_rfc3339(),
    )


def detect_prompt_injection(context: SecurityCheckContext) -> SecurityCheck:
    return _detect_input_rules(
        PROMPT_INJECTION_RULES,
        context,
        check_type="prompt_injection",
        name="Prompt Injection Detection",
    )


def detect_jailbreak(context: SecurityCheckContext) -> SecurityCheck:
    return _detect_input_rules(
        JAILBREAK_RULES,
        context,
        check_type="jailbreak_attempt",
        name="Jailbreak Attempt Detection",
    )


def _scan_both(
    rules: Sequence[PatternRule],
    context: SecurityCheckContext,
    match_filter: MatchFilter,
) -> tuple[list[RuleHit], str | None]:
    input_text, output_text = _context_texts(context, "both")
    hits = run_catalog(rules, _combined(input_text, output_text), match_filter=match_filter)
    input_hit = False
    output_hit = False
    for hit in hits:
        input_hit = input_hit or bool(run_catalog([hit.rule], input_text, match_filter=match_filter))
        output_hit = output_hit or bool(run_catalog([hit.rule], output_text, match_filter=match_filter))
    return hits, _location(input_hit, output_hit)


def detect_pii(
    context: SecurityCheckContext,
    custom_patterns: Iterable[PatternRule] | None = None,
) -> SecurityCheck:
    rules = [*PII_RULES, *(custom_patterns or [])]
    hits, location = _scan_both(rules, context, pii_match_filter)
    detected = bool(hits)
    return SecurityCheck(
        type="pii_detected",
        name="PII Detection",
        detected=detected,
        severity=max_severity([hit.rule.severity for hit in hits]),
        details=f"Found: {', '.join(f'{hit.rule.name} ({hit.count})' for hit in hits)}" if detected else None,
        location=location,
        timestamp=utc_now_rfc3339(),
    )


def detect_sensitive_data(
    context: SecurityCheckContext,
    custom_patterns: Iterable[PatternRule] | None = None,
) -> SecurityCheck:
    rules = [*SENSITIVE_DATA_RULES, *(custom_patterns or [])]
    hits, location = _scan_both(rules, context, sensitive_match_filter)
    detected = bool(hits)
    descriptions = [hit.rule.description or f"{hit.rule.name} detected" for hit in hits]
    return SecurityCheck(
        type="sensitive_data",
        name="Sensitive Data Detection",
        detected=detected,
        severity=max_severity([hit.rule.severity for hit in hits]),
        details="; ".join(descriptions) if detected else None,
        location=location,
        timestamp=utc_now_rfc3339(),
    )


def run_security_checks(
    context: SecurityCheckContext,
    config: SecurityCheckConfig | None = None,
) -> list[SecurityCheck]:
    active = config or SecurityCheckConfig()
    checks: list[SecurityCheck] = []
    if active.check_prompt_injection:
        checks.append(detect_prompt_injection(context))
    if active.check_jailbreak:
        checks.append(detect_jailbreak(context))
    if active.check_pii:
        checks.append(detect_pii(context, active.custom_pii_patterns))
    if active.check_sensitive_data:
        checks.append(detect_sensitive_data(context, active.custom_sensitive_patterns))
    return checks


def get_security_check_summary(checks: Sequence[SecurityCheck]) -> SecurityCheckSummary:
    by_severity = {severity: 0 for severity in SEVERITY_ORDER}
    by_type: dict[str, dict[str, Any]] = {
        check_type: {"detected": False, "severity": "low"}
        for check_type in (
            "prompt_injection",
            "jailbreak_attempt",
            "pii_detected",
            "sensitive_data",
            "malicious_content",
            "custom",
        )
    }
    critical: list[SecurityCheck] = []
    high: list[SecurityCheck] = []
    detected = 0
    for check in checks:
        if not check.detected:
            continue
        detected += 1
        by_severity[check.severity] = by_severity.get(check.severity, 0) + 1
        by_type[check.type] = {"detected": True, "severity": check.severity}
        if check.severity == "critical":
            critical.append(check)
        elif check.severity == "high":
            high.append(check)

    overall = max_severity([severity for severity, count in by_severity.items() if count > 0])
    return SecurityCheckSummary(
        total_checks=len(checks),
        detected=detected,
        not_detected=len(checks) - detected,
        by_severity=by_severity,
        by_type=by_type,
        critical_issues=critical,
        high_issues=high,
        overall_risk=overall,
    )


MAX_REDACTION_PASSES = 8


def _redact_pass(text: str, rules: Sequence[PatternRule], match_filter: MatchFilter) -> str:
    redacted = text
    for rule in rules:
        token = f"[{rule.name.upper()}_REDACTED]"

        def replace(match: re.Match[str], rule_name: str = rule.name, token: str = token) -> str:
            return token if match_filter(rule_name, match.group(0)) else match.group(0)

        redacted = rule.pattern.sub(replace, redacted)
    return redacted


def _redact(text: str, rules: Iterable[PatternRule], match_filter: MatchFilter) -> str:
    # A replacement token can open a word boundary that lets an earlier rule match,
    # so passes repeat until the text is stable.
    ordered = list(rules)
    redacted = text
    for _ in range(MAX_REDACTION_PASSES):
        following = _redact_pass(redacted, ordered, match_filter)
        if following == redacted:
            break
        redacted = following
    return redacted


def redact_pii(text: str, custom_patterns: Iterable[PatternRule] | None = None) -> str:
    if not text:
        return text
    return _redact(text, [*PII_RULES, *(custom_patterns or [])], pii_match_filter)


def redact_sensitive_data(text: str, custom_patterns: Iterable[PatternRule] | None = None) -> str:
    if not text:
        return text
    return _redact(text, [*SENSITIVE_DATA_RULES, *(custom_patterns or [])], sensitive_match_filter)


def has_pii_type(checks: Iterable[SecurityCheck], pii_type: str) -> bool:
    wanted = pii_type.lower()
    return any(
        check.type == "pii_detected" and check.detected and check.details and wanted in check.details.lower()
        for check in checks
    )


def has_critical_security_issue(checks: Iterable[SecurityCheck]) -> bool:
    return any(check.detected and check.severity == "critical" for check in checks)


def has_security_issue(checks: Iterable[SecurityCheck]) -> bool:
    return any(check.detected for check in checks)
