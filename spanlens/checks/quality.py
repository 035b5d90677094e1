# ABOUTME: Runs the five heuristic quality detectors (hallucination, relevance, toxicity, sentiment, coherence).
# ABOUTME: Each detector is deterministic, never raises, and classifies its score against configurable thresholds.

from __future__ import annotations

from dataclasses import dataclass, field
import re

from spanlens.checks.patterns import (
    PatternRule,
    any_match,
    clamp_score,
    classify_quality,
    classify_risk,
    compile_rule,
    find_matches,
    run_catalog,
)
from spanlens.contracts import QualityCheck, utc_now_rfc3339


@dataclass
class QualityThresholds:
    hallucination_warning: float = 0.3
    hallucination_fail: float = 0.6
    relevance_warning: float = 0.6
    relevance_fail: float = 0.3
    toxicity_warning: float = 0.3
    toxicity_fail: float = 0.6
    coherence_warning: float = 0.6
    coherence_fail: float = 0.3


@dataclass
class QualityCheckConfig:
    check_hallucination: bool = True
    check_relevance: bool = True
    check_toxicity: bool = True
    check_sentiment: bool = True
    check_coherence: bool = True
    thresholds: QualityThresholds = field(default_factory=QualityThresholds)


@dataclass
class QualityCheckContext:
    llm_output: str = ""
    user_input: str | None = None
    provided_context: list[str] = field(default_factory=list)
    system_instructions: str | None = None
    expected_topics: list[str] = field(default_factory=list)


@dataclass
class QualityCheckSummary:
    passed: int
    warnings: int
    failures: int
    average_score: float
    overall_status: str


def severity_for_score(check_type: str, score: float, thresholds: QualityThresholds) -> str:
    if check_type == "hallucination":
        return classify_risk(score, thresholds.hallucination_warning, thresholds.hallucination_fail)
    if check_type == "toxicity":
        return classify_risk(score, thresholds.toxicity_warning, thresholds.toxicity_fail)
    if check_type == "relevance":
        return classify_quality(score, thresholds.relevance_warning, thresholds.relevance_fail)
    if check_type == "coherence":
        return classify_quality(score, thresholds.coherence_warning, thresholds.coherence_fail)
    if check_type == "sentiment":
        return "pass"
    if score > 0.7:
        return "pass"
    if score > 0.3:
        return "warning"
    return "fail"


# ----------------------------------------------------------------------
# Catalogs
# ----------------------------------------------------------------------
FACTUAL_CLAIM_RULES: tuple[PatternRule, ...] = (
    compile_rule(
        "founding_date",
        r"(?:was|is|are|were)\s+(?:founded|established|created|started)\s+(?:in|on)\s+(\d{4})",
        ignore_case=True,
    ),
    compile_rule(
        "life_event_date",
        r"(?:born|died)\s+(?:in|on)\s+(?:\w+\s+\d{1,2},?\s+)?(\d{4})",
        ignore_case=True,
    ),
    compile_rule(
        "quantity",
        r"(?:is|are|was|were)\s+(?:approximately|about|roughly|around)?\s*(\d+(?:,\d{3})*(?:\.\d+)?)\s*(?:million|billion|trillion)?",
        ignore_case=True,
    ),
    compile_rule(
        "cited_source",
        r"(?:according to|based on)\s+(?:studies|research|data|statistics|reports)",
        ignore_case=True,
    ),
    compile_rule(
        "studies_show",
        r"(?:studies\s+(?:show|indicate|suggest|prove)|research\s+(?:shows|indicates|suggests|proves))",
        ignore_case=True,
    ),
    compile_rule("assertive_correction", r"(?:in fact|actually|contrary to|unlike)", ignore_case=True),
    compile_rule(
        "superlative",
        r"(?:the\s+(?:first|largest|smallest|oldest|newest|most|least))",
        ignore_case=True,
    ),
    compile_rule(
        "percentage",
        r"(?:\d+(?:\.\d+)?%\s+(?:of|increase|decrease|growth|reduction))",
        ignore_case=True,
    ),
)

HEDGING_RULES: tuple[PatternRule, ...] = (
    compile_rule(
        "personal_belief",
        r"(?:I\s+(?:think|believe|assume)|it\s+(?:seems|appears|looks\s+like))",
        ignore_case=True,
    ),
    compile_rule(
        "modal_uncertainty",
        r"\b(?:may|might|could|possibly|potentially|perhaps|probably)\b",
        ignore_case=True,
    ),
    compile_rule(
        "admitted_uncertainty",
        r"(?:I'm\s+not\s+(?:sure|certain)|I\s+don't\s+(?:know|have))",
        ignore_case=True,
    ),
    compile_rule(
        "grounded_on_context",
        r"(?:based\s+on\s+(?:my|the\s+provided)\s+(?:knowledge|information|context))",
        ignore_case=True,
    ),
    compile_rule(
        "seeks_correction",
        r"(?:if\s+I\s+understand\s+correctly|correct\s+me\s+if\s+I'm\s+wrong)",
        ignore_case=True,
    ),
)

CONFIDENT_RULES: tuple[PatternRule, ...] = (
    compile_rule(
        "certainty_adverb",
        r"\b(?:definitely|certainly|absolutely|undoubtedly|clearly|obviously)\b",
        ignore_case=True,
    ),
    compile_rule("absolutist", r"\b(?:always|never|every|none|all)\s+\w+", ignore_case=True),
)

# (assertion in user input, negation of it in output)
NEGATION_PAIRS: tuple[tuple[re.Pattern[str], re.Pattern[str]], ...] = (
    (re.compile(r"\bis\b", re.IGNORECASE), re.compile(r"\bis\s+not\b|\bisn't\b", re.IGNORECASE)),
    (re.compile(r"\bcan\b", re.IGNORECASE), re.compile(r"\bcan\s*not\b|\bcan't\b", re.IGNORECASE)),
    (re.compile(r"\bwill\b", re.IGNORECASE), re.compile(r"\bwill\s+not\b|\bwon't\b", re.IGNORECASE)),
    (re.compile(r"\bdoes\b", re.IGNORECASE), re.compile(r"\bdoes\s+not\b|\bdoesn't\b", re.IGNORECASE)),
)

# (question type, question pattern, answer pattern); first matching question type wins.
QUESTION_ANSWER_PATTERNS: tuple[tuple[str, re.Pattern[str], re.Pattern[str]], ...] = (
    (
        "what",
        re.compile(r"\bwhat\b", re.IGNORECASE),
        re.compile(r"(?:is|are|was|were|means|refers to|defined as)", re.IGNORECASE),
    ),
    (
        "who",
        re.compile(r"\bwho\b", re.IGNORECASE),
        re.compile(r"(?:\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b|person|individual|team|group)"),
    ),
    (
        "when",
        re.compile(r"\bwhen\b", re.IGNORECASE),
        re.compile(
            r"(?:\d{4}|\d{1,2}/\d{1,2}|january|february|march|april|may|june|july|august"
            r"|september|october|november|december)",
            re.IGNORECASE,
        ),
    ),
    (
        "where",
        re.compile(r"\bwhere\b", re.IGNORECASE),
        re.compile(r"(?:in|at|on|near|located|place|location|country|city|region)", re.IGNORECASE),
    ),
    (
        "why",
        re.compile(r"\bwhy\b", re.IGNORECASE),
        re.compile(r"(?:because|reason|due to|since|therefore|result|cause)", re.IGNORECASE),
    ),
    (
        "how",
        re.compile(r"\bhow\b", re.IGNORECASE),
        re.compile(r"(?:by|through|using|step|method|process|way|approach)", re.IGNORECASE),
    ),
    (
        "yes_no",
        re.compile(r"\b(?:is|are)\s+\w+\?", re.IGNORECASE),
        re.compile(r"(?:yes|no|true|false|correct|incorrect|is|are|isn't|aren't)", re.IGNORECASE),
    ),
    (
        "can",
        re.compile(r"\b(?:can|could)\s+\w+", re.IGNORECASE),
        re.compile(r"(?:yes|no|can|cannot|could|possible|impossible|able)", re.IGNORECASE),
    ),
)

OFF_TOPIC_RULES: tuple[PatternRule, ...] = (
    compile_rule("cannot_help", r"(?:I\s+can't\s+help\s+with\s+that)", ignore_case=True),
    compile_rule("not_able", r"(?:I'm\s+not\s+able\s+to)", ignore_case=True),
    compile_rule("outside_scope", r"(?:that's\s+outside\s+my)", ignore_case=True),
    compile_rule(
        "topic_switch",
        r"(?:let\s+me\s+tell\s+you\s+about\s+something\s+else)",
        ignore_case=True,
    ),
)

TOXICITY_RULES: tuple[PatternRule, ...] = (
    compile_rule(
        "mild_profanity",
        r"\b(?:damn|hell|crap)\b",
        weight=0.1,
        category="mild_profanity",
        ignore_case=True,
    ),
    compile_rule(
        "hate_speech",
        r"\b(?:hate|despise|loathe)\s+(?:all|every|those)\s+\w+",
        weight=0.4,
        category="hate_speech",
        ignore_case=True,
    ),
    compile_rule(
        "violent_threat",
        r"\b(?:kill|murder|destroy|eliminate)\s+(?:you|them|all)",
        weight=0.8,
        category="threat",
        ignore_case=True,
    ),
    compile_rule(
        "harm_intent",
        r"\b(?:I\s+will|going\s+to|want\s+to)\s+(?:hurt|harm|attack)",
        weight=0.7,
        category="threat",
        ignore_case=True,
    ),
    compile_rule(
        "discrimination",
        r"\b(?:should\s+not|shouldn't|don't\s+deserve)\s+(?:exist|live|be\s+allowed)",
        weight=0.6,
        category="discrimination",
        ignore_case=True,
    ),
    compile_rule(
        "harassment",
        r"\b(?:you\s+are|you're)\s+(?:stupid|dumb|idiot|worthless|useless)",
        weight=0.5,
        category="harassment",
        ignore_case=True,
    ),
    compile_rule(
        "self_harm",
        r"\b(?:how\s+to|ways\s+to)\s+(?:hurt|harm)\s+(?:yourself|myself)",
        weight=0.9,
        category="self_harm",
        ignore_case=True,
    ),
    compile_rule(
        "violence_encouragement",
        r"\b(?:you\s+should|they\s+deserve)\s+(?:to\s+be|to\s+get)\s+(?:hurt|beaten|attacked)",
        weight=0.8,
        category="violence",
        ignore_case=True,
    ),
)

REFUSAL_RULES: tuple[PatternRule, ...] = (
    compile_rule("refusal", r"(?:I\s+can't|I\s+won't|I'm\s+not\s+able|I\s+cannot)", ignore_case=True),
    compile_rule("policy_language", r"(?:inappropriate|harmful|offensive|against\s+my)", ignore_case=True),
)

POSITIVE_WORDS = frozenset(
    {
        "good", "great", "excellent", "amazing", "wonderful", "fantastic", "awesome",
        "love", "happy", "glad", "pleased", "delighted", "thank", "helpful", "useful",
        "perfect", "best", "enjoy", "beautiful", "success", "brilliant", "outstanding",
    }
)
NEGATIVE_WORDS = frozenset(
    {
        "bad", "terrible", "awful", "horrible", "poor", "worst", "hate", "angry",
        "sad", "disappointed", "frustrated", "annoyed", "upset", "fail", "wrong",
        "problem", "issue", "error", "broken", "useless", "stupid", "boring",
    }
)
NEGATION_MODIFIER = re.compile(
    r"\b(?:not|never|no|don't|doesn't|didn't|won't|wouldn't|can't|couldn't)\s+\w+",
    re.IGNORECASE,
)

TRANSITION_WORDS: tuple[str, ...] = (
    "however", "therefore", "furthermore", "additionally", "moreover",
    "consequently", "meanwhile", "nevertheless", "otherwise", "thus",
    "first", "second", "third", "finally", "next", "then", "lastly",
    "for example", "for instance", "in conclusion", "in summary",
)

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
        "from", "as", "into", "through", "during", "before", "after", "above",
        "below", "between", "under", "again", "further", "then", "once", "here",
        "there", "when", "where", "why", "how", "all", "each", "few", "more",
        "most", "other", "some", "such", "no", "nor", "not", "only", "own",
        "same", "so", "than", "too", "very", "just", "and", "but", "if", "or",
        "because", "until", "while", "although", "though", "this", "that",
        "these", "those", "what", "which", "who", "whom", "whose", "it", "its",
        "i", "me", "my", "we", "our", "you", "your", "he", "him", "his", "she",
        "her", "they", "them", "their",
    }
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_FRAGMENT = re.compile(r"\.\s+[a-z]")
_PAST_TENSE = re.compile(r"\b\w+ed\b")
_PRESENT_TENSE = re.compile(r"\b(?:is|are|am|have|has|do|does)\b", re.IGNORECASE)
_UPPERCASE = re.compile(r"[A-Z]")


# ----------------------------------------------------------------------
# Text utilities
# ----------------------------------------------------------------------
def extract_keywords(text: str) -> list[str]:
    return [word for word in re.split(r"\W+", text.lower()) if len(word) > 2 and word not in STOP_WORDS]


def get_ngrams(text: str, n: int) -> list[str]:
    words = text.split()
    return [" ".join(words[index : index + n]) for index in range(len(words) - n + 1)]


def levenshtein_distance(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / max_len


def _details(issues: list[str], fallback: str) -> str:
    return "; ".join(issues) if issues else fallback


# ----------------------------------------------------------------------
# Detectors
# ----------------------------------------------------------------------
def detect_hallucination(
    context: QualityCheckContext,
    thresholds: QualityThresholds | None = None,
) -> QualityCheck:
    limits = thresholds or QualityThresholds()
    output = context.llm_output or ""
    provided = [text for text in context.provided_context if text]
    # Claims repeated from the system instructions count as supported.
    grounding = [*provided, context.system_instructions] if context.system_instructions else provided
    lowered_context = [text.lower() for text in grounding]
    score = 0.0
    issues: list[str] = []

    claims = [match for hit in run_catalog(FACTUAL_CLAIM_RULES, output) for match in hit.matches]
    unsupported = [claim for claim in claims if not any(claim.lower() in text for text in lowered_context)]
    if claims and len(unsupported) / len(claims) > 0.5:
        score += 0.3
        issues.append(f"{len(unsupported)}/{len(claims)} factual claims not found in context")

    hedging_count = sum(hit.count for hit in run_catalog(HEDGING_RULES, output))
    if hedging_count > 2:
        score -= 0.1

    if context.user_input:
        for assertion, negation in NEGATION_PAIRS:
            if assertion.search(context.user_input) and negation.search(output):
                score += 0.15
                issues.append("Potential contradiction with user statement")
                break

    if not provided:
        for rule in CONFIDENT_RULES:
            if len(find_matches(rule, output)) > 2:
                score += 0.2
                issues.append("High-confidence language without supporting context")
                break

    if provided:
        context_length = len(" ".join(provided))
        if len(output) > context_length * 3 and context_length < 500:
            score += 0.15
            issues.append("Response significantly longer than provided context")

    score = clamp_score(score)
    return QualityCheck(
        type="hallucination",
        name="Hallucination Detection",
        score=score,
        severity=classify_risk(score, limits.hallucination_warning, limits.hallucination_fail),
        details=_details(issues, "No significant hallucination indicators detected"),
        timestamp=utc_now_rfc3339(),
    )


def score_relevance(
    context: QualityCheckContext,
    thresholds: QualityThresholds | None = None,
) -> QualityCheck:
    limits = thresholds or QualityThresholds()
    user_input = context.user_input or ""
    output = context.llm_output or ""
    if not user_input.strip():
        return QualityCheck(
            type="relevance",
            name="Relevance Score",
            score=1.0,
            severity="pass",
            details="No user input provided for relevance comparison",
            timestamp=utc_now_rfc3339(),
        )

    score = 0.0
    issues: list[str] = []

    user_keywords = extract_keywords(user_input)
    output_keywords = extract_keywords(output)
    overlap = [
        keyword
        for keyword in user_keywords
        if any(keyword in candidate or candidate in keyword for candidate in output_keywords)
    ]
    if user_keywords:
        score += len(overlap) / len(user_keywords) * 0.4

    topics = [topic for topic in context.expected_topics if topic]
    if topics:
        lowered_output = output.lower()
        found = [topic for topic in topics if topic.lower() in lowered_output]
        topic_score = len(found) / len(topics)
        score += topic_score * 0.3
        if topic_score < 0.5:
            issues.append(f"Only {len(found)}/{len(topics)} expected topics addressed")
    else:
        score += 0.15

    for _, question, answer in QUESTION_ANSWER_PATTERNS:
        if question.search(user_input):
            if answer.search(output):
                score += 0.2
            else:
                issues.append("Response may not directly address the question type")
            break

    if any_match(OFF_TOPIC_RULES, output):
        score -= 0.3
        issues.append("Response indicates off-topic or refusal")

    user_ngrams = get_ngrams(user_input.lower(), 2)
    output_ngrams = set(get_ngrams(output.lower(), 2))
    if user_ngrams:
        shared = [ngram for ngram in user_ngrams if ngram in output_ngrams]
        score += len(shared) / len(user_ngrams) * 0.1

    score = clamp_score(score)
    return QualityCheck(
        type="relevance",
        name="Relevance Score",
        score=score,
        severity=classify_quality(score, limits.relevance_warning, limits.relevance_fail),
        details=_details(issues, f"Good relevance ({round(score * 100)}% match)"),
        timestamp=utc_now_rfc3339(),
    )


def detect_toxicity(
    context: QualityCheckContext,
    thresholds: QualityThresholds | None = None,
) -> QualityCheck:
    limits = thresholds or QualityThresholds()
    output = context.llm_output or ""
    score = 0.0
    issues: list[str] = []
    categories: list[str] = []

    for hit in run_catalog(TOXICITY_RULES, output):
        score += hit.rule.weight * min(hit.count, 3) / 3
        if hit.rule.category and hit.rule.category not in categories:
            categories.append(hit.rule.category)

    if context.user_input and any_match(TOXICITY_RULES, context.user_input):
        if not any_match(REFUSAL_RULES, output):
            score += 0.2
            issues.append("Potentially harmful user request not declined")

    if len(output) > 20 and len(_UPPERCASE.findall(output)) / len(output) > 0.5:
        score += 0.1
        issues.append("Excessive capitalization detected")

    score = clamp_score(score)
    if categories:
        issues.append(f"Categories: {', '.join(categories)}")
    return QualityCheck(
        type="toxicity",
        name="Toxicity Detection",
        score=score,
        severity=classify_risk(score, limits.toxicity_warning, limits.toxicity_fail),
        details=_details(issues, "No toxic content detected"),
        timestamp=utc_now_rfc3339(),
    )


def analyze_sentiment(context: QualityCheckContext) -> QualityCheck:
    output = context.llm_output or ""
    words = re.split(r"\W+", output.lower())
    positive = sum(1 for word in words if word in POSITIVE_WORDS)
    negative = sum(1 for word in words if word in NEGATIVE_WORDS)

    score = 0.5
    sentiment = "neutral"
    if positive + negative > 0:
        score = positive / (positive + negative)
        if score > 0.6:
            sentiment = "positive"
        elif score < 0.4:
            sentiment = "negative"

    negations = len(NEGATION_MODIFIER.findall(output))
    negation_note = f", {negations} negations" if negations else ""
    return QualityCheck(
        type="sentiment",
        name="Sentiment Analysis",
        score=clamp_score(score),
        severity="pass",
        details=(
            f"{sentiment.capitalize()} sentiment "
            f"({positive} positive, {negative} negative words{negation_note})"
        ),
        timestamp=utc_now_rfc3339(),
    )


def evaluate_coherence(
    context: QualityCheckContext,
    thresholds: QualityThresholds | None = None,
) -> QualityCheck:
    limits = thresholds or QualityThresholds()
    output = context.llm_output or ""
    sentences = [sentence.strip() for sentence in _SENTENCE_SPLIT.split(output) if sentence.strip()]
    if not sentences:
        return QualityCheck(
            type="coherence",
            name="Coherence Evaluation",
            score=0.0,
            severity="fail",
            details="No coherent sentences detected",
            timestamp=utc_now_rfc3339(),
        )

    score = 1.0
    issues: list[str] = []
    count = len(sentences)

    short = [sentence for sentence in sentences if len(sentence.split()) < 3]
    if count > 2 and len(short) > count * 0.5:
        score -= 0.2
        issues.append("Many very short sentences")

    unique = {sentence.lower() for sentence in sentences}
    if count >= 3 and len(unique) < count * 0.8:
        score -= 0.2
        issues.append("Repetitive sentences detected")

    lowered = output.lower()
    if count > 3 and not any(word in lowered for word in TRANSITION_WORDS):
        score -= 0.1
        issues.append("Limited use of transition words")

    if len(_FRAGMENT.findall(output)) > 2:
        score -= 0.15
        issues.append("Possible sentence fragments")

    past = len(_PAST_TENSE.findall(output))
    present = len(_PRESENT_TENSE.findall(output))
    if past > 5 and present > 5 and min(past, present) / max(past, present) > 0.7:
        score -= 0.1
        issues.append("Inconsistent verb tense")

    average_words = sum(len(sentence.split()) for sentence in sentences) / count
    if average_words > 35:
        score -= 0.1
        issues.append("Very long sentences may reduce readability")

    score = clamp_score(score)
    return QualityCheck(
        type="coherence",
        name="Coherence Evaluation",
        score=score,
        severity=classify_quality(score, limits.coherence_warning, limits.coherence_fail),
        details=_details(issues, f"Good coherence ({count} sentences, avg {round(average_words)} words)"),
        timestamp=utc_now_rfc3339(),
    )


def run_quality_checks(
    context: QualityCheckContext,
    config: QualityCheckConfig | None = None,
) -> list[QualityCheck]:
    active = config or QualityCheckConfig()
    checks: list[QualityCheck] = []
    if active.check_hallucination:
        checks.append(detect_hallucination(context, active.thresholds))
    if active.check_relevance:
        checks.append(score_relevance(context, active.thresholds))
    if active.check_toxicity:
        checks.append(detect_toxicity(context, active.thresholds))
    if active.check_sentiment:
        checks.append(analyze_sentiment(context))
    if active.check_coherence:
        checks.append(evaluate_coherence(context, active.thresholds))
    return checks


def get_quality_check_summary(checks: list[QualityCheck]) -> QualityCheckSummary:
    passed = sum(1 for check in checks if check.severity == "pass")
    warnings = sum(1 for check in checks if check.severity == "warning")
    failures = sum(1 for check in checks if check.severity == "fail")
    scores = [check.score for check in checks if check.score is not None]
    overall = "fail" if failures else "warning" if warnings else "pass"
    return QualityCheckSummary(
        passed=passed,
        warnings=warnings,
        failures=failures,
        average_score=sum(scores) / len(scores) if scores else 0.0,
        overall_status=overall,
    )
