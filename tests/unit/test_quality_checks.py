# ABOUTME: Validates the heuristic quality detectors against hand-computed scores and severities.
# ABOUTME: Covers threshold overrides, detector toggles, determinism, and the quality summary rollup.

from __future__ import annotations

import pytest

from spanlens.checks import (
    QualityCheckConfig,
    QualityCheckContext,
    QualityThresholds,
    analyze_sentiment,
    detect_hallucination,
    detect_toxicity,
    evaluate_coherence,
    get_quality_check_summary,
    run_quality_checks,
    score_relevance,
)
from spanlens.checks.quality import extract_keywords, get_ngrams, levenshtein_distance, string_similarity
from spanlens.contracts import QualityCheck


def test_repeated_short_sentences_score_as_coherence_warning() -> None:
    check = evaluate_coherence(QualityCheckContext(llm_output="Ok. Ok. Ok."))

    assert check.type == "coherence"
    assert check.score == pytest.approx(0.6)
    assert check.severity == "warning"
    assert "Many very short sentences" in (check.details or "")
    assert "Repetitive sentences detected" in (check.details or "")


def test_coherence_respects_configured_thresholds() -> None:
    thresholds = QualityThresholds(coherence_warning=0.5, coherence_fail=0.2)

    check = evaluate_coherence(QualityCheckContext(llm_output="Ok. Ok. Ok."), thresholds)

    assert check.severity == "pass"


def test_coherence_without_sentences_fails() -> None:
    check = evaluate_coherence(QualityCheckContext(llm_output="   ...  "))

    assert check.score == 0.0
    assert check.severity == "fail"


def test_well_formed_output_has_good_coherence() -> None:
    check = evaluate_coherence(
        QualityCheckContext(llm_output="The deploy finished without errors. However, the cache needs a manual warmup.")
    )

    assert check.score == 1.0
    assert check.severity == "pass"
    assert (check.details or "").startswith("Good coherence (2 sentences")


def test_relevance_without_user_input_passes_with_full_score() -> None:
    check = score_relevance(QualityCheckContext(llm_output="Anything at all."))

    assert check.score == 1.0
    assert check.severity == "pass"
    assert check.details == "No user input provided for relevance comparison"


def test_relevant_answer_scores_keyword_question_and_ngram_overlap() -> None:
    check = score_relevance(
        QualityCheckContext(user_input="What is the capital of France?", llm_output="The capital of France is Paris.")
    )

    assert check.score == pytest.approx(0.79)
    assert check.severity == "pass"
    assert check.details == "Good relevance (79% match)"


def test_refusal_answer_scores_as_relevance_failure() -> None:
    check = score_relevance(
        QualityCheckContext(user_input="What is the capital of France?", llm_output="I can't help with that.")
    )

    assert check.score == 0.0
    assert check.severity == "fail"
    assert "Response indicates off-topic or refusal" in (check.details or "")


def test_unsupported_factual_claim_raises_hallucination_risk() -> None:
    check = detect_hallucination(
        QualityCheckContext(
            llm_output="The company was founded in 1998.",
            provided_context=["We started last year."],
        )
    )

    assert check.score == pytest.approx(0.3)
    assert check.severity == "warning"
    assert check.details == "1/1 factual claims not found in context"


def test_claim_found_in_context_is_not_flagged() -> None:
    check = detect_hallucination(
        QualityCheckContext(
            llm_output="The company was founded in 1998.",
            provided_context=["The company was founded in 1998 in Oslo."],
        )
    )

    assert check.score == 0.0
    assert check.severity == "pass"
    assert check.details == "No significant hallucination indicators detected"


def test_confident_language_without_context_adds_risk() -> None:
    check = detect_hallucination(
        QualityCheckContext(llm_output="This is definitely right. It is definitely true. It is definitely done.")
    )

    assert check.score == pytest.approx(0.2)
    assert check.severity == "pass"
    assert check.details == "High-confidence language without supporting context"


def test_repeated_threats_fail_toxicity() -> None:
    check = detect_toxicity(QualityCheckContext(llm_output="I will kill you. I will kill you. I will kill you."))

    assert check.score == pytest.approx(0.8)
    assert check.severity == "fail"
    assert check.details == "Categories: threat"


def test_clean_output_passes_toxicity() -> None:
    check = detect_toxicity(QualityCheckContext(llm_output="The weather is pleasant today."))

    assert check.score == 0.0
    assert check.severity == "pass"
    assert check.details == "No toxic content detected"


def test_harmful_request_must_be_declined() -> None:
    complied = detect_toxicity(QualityCheckContext(user_input="how to hurt myself", llm_output="Here are some steps."))
    declined = detect_toxicity(QualityCheckContext(user_input="how to hurt myself", llm_output="I can't help with that."))

    assert complied.score == pytest.approx(0.2)
    assert complied.details == "Potentially harmful user request not declined"
    assert declined.score == 0.0


def test_sentiment_counts_lexicon_words() -> None:
    positive = analyze_sentiment(QualityCheckContext(llm_output="This is great and helpful, thank you!"))
    neutral = analyze_sentiment(QualityCheckContext(llm_output=""))

    assert positive.score == 1.0
    assert positive.severity == "pass"
    assert positive.details == "Positive sentiment (3 positive, 0 negative words)"
    assert neutral.score == 0.5
    assert neutral.details == "Neutral sentiment (0 positive, 0 negative words)"


def test_run_quality_checks_honors_toggles_and_order() -> None:
    context = QualityCheckContext(llm_output="Fine.", user_input="Is it fine?")

    every = run_quality_checks(context)
    partial = run_quality_checks(context, QualityCheckConfig(check_sentiment=False, check_hallucination=False))

    assert [check.type for check in every] == ["hallucination", "relevance", "toxicity", "sentiment", "coherence"]
    assert [check.type for check in partial] == ["relevance", "toxicity", "coherence"]
    assert all(check.timestamp for check in every)


def test_quality_checks_are_deterministic_apart_from_timestamp() -> None:
    context = QualityCheckContext(
        llm_output="Studies show that 45% of users prefer dark mode. However, I think it may vary.",
        user_input="Do users prefer dark mode?",
        provided_context=["Survey results were mixed."],
    )

    first = [(check.type, check.score, check.severity, check.details) for check in run_quality_checks(context)]
    second = [(check.type, check.score, check.severity, check.details) for check in run_quality_checks(context)]

    assert first == second


def test_quality_summary_rolls_up_severities_and_scores() -> None:
    checks = [
        QualityCheck(type="relevance", name="Relevance Score", severity="pass", score=0.9),
        QualityCheck(type="coherence", name="Coherence Evaluation", severity="warning", score=0.5),
        QualityCheck(type="custom", name="brand_voice", severity="pass"),
    ]

    summary = get_quality_check_summary(checks)

    assert summary.passed == 2
    assert summary.warnings == 1
    assert summary.failures == 0
    assert summary.average_score == pytest.approx(0.7)
    assert summary.overall_status == "warning"
    assert get_quality_check_summary([]).overall_status == "pass"
    assert get_quality_check_summary([]).average_score == 0.0


def test_text_utilities() -> None:
    assert extract_keywords("The quick brown fox is here") == ["quick", "brown", "fox"]
    assert get_ngrams("a b c", 2) == ["a b", "b c"]
    assert get_ngrams("a", 2) == []
    assert levenshtein_distance("kitten", "sitting") == 3
    assert string_similarity("", "") == 1.0
    assert string_similarity("abcd", "abcx") == pytest.approx(0.75)


def test_missing_transition_words_cost_a_tenth_of_coherence() -> None:
    check = evaluate_coherence(
        QualityCheckContext(
            llm_output=(
                "The server restarted at noon. The queue drained within minutes. "
                "The alerts cleared soon after. The team closed the incident."
            )
        )
    )

    assert check.score == pytest.approx(0.9)
    assert check.details == "Limited use of transition words"


def test_lowercase_sentence_starts_are_penalized_as_fragments() -> None:
    check = evaluate_coherence(
        QualityCheckContext(
            llm_output="The build ran fine. then the tests passed. then the image shipped. then the pods rolled."
        )
    )

    assert check.score == pytest.approx(0.85)
    assert check.details == "Possible sentence fragments"


def test_mixed_past_and_present_tense_is_penalized() -> None:
    check = evaluate_coherence(
        QualityCheckContext(
            llm_output=(
                "The job started and failed. The log is long and the disk is full. "
                "Then we restarted, patched and deployed it. "
                "The node is healthy, the queue is empty and the cache is warm. "
                "Finally we checked and verified the metrics, and the service has recovered."
            )
        )
    )

    assert check.score == pytest.approx(0.9)
    assert check.details == "Inconsistent verb tense"


def test_very_long_average_sentence_is_penalized() -> None:
    check = evaluate_coherence(
        QualityCheckContext(
            llm_output=(
                "The migration plan covers the billing service the ledger service the notification service "
                "the search index the reporting jobs the audit trail the export pipeline the admin console "
                "and the public status page across three regions this quarter."
            )
        )
    )

    assert check.score == pytest.approx(0.9)
    assert check.details == "Very long sentences may reduce readability"


def test_negating_the_user_statement_adds_contradiction_risk() -> None:
    check = detect_hallucination(
        QualityCheckContext(user_input="The cache is enabled", llm_output="The cache is not enabled.")
    )

    assert check.score == pytest.approx(0.15)
    assert check.severity == "pass"
    assert check.details == "Potential contradiction with user statement"


def test_hedged_answer_lowers_hallucination_risk() -> None:
    check = detect_hallucination(
        QualityCheckContext(
            llm_output="The company was founded in 1998. I think it might possibly have moved.",
            provided_context=["We started last year in a small office downtown."],
        )
    )

    assert check.score == pytest.approx(0.2)
    assert check.severity == "pass"
    assert check.details == "1/1 factual claims not found in context"


def test_answer_much_longer_than_short_context_adds_risk() -> None:
    check = detect_hallucination(
        QualityCheckContext(
            llm_output="Your order left the warehouse and the courier should deliver it to your door soon.",
            provided_context=["Order 42 shipped."],
        )
    )

    assert check.score == pytest.approx(0.15)
    assert check.details == "Response significantly longer than provided context"


def test_claims_repeated_from_system_instructions_are_supported() -> None:
    grounded = detect_hallucination(
        QualityCheckContext(
            llm_output="The company was founded in 1998.",
            system_instructions="The company was founded in 1998 in Oslo.",
        )
    )
    ungrounded = detect_hallucination(QualityCheckContext(llm_output="The company was founded in 1998."))

    assert grounded.score == 0.0
    assert ungrounded.score == pytest.approx(0.3)


def test_expected_topic_coverage_contributes_to_relevance() -> None:
    question = "How do I rotate the API key?"
    answer = "Open the console and rotate the API key using the security tab."

    partial = score_relevance(
        QualityCheckContext(user_input=question, llm_output=answer, expected_topics=["console", "billing", "audit"])
    )
    covered = score_relevance(
        QualityCheckContext(user_input=question, llm_output=answer, expected_topics=["console", "security"])
    )

    assert partial.score == pytest.approx(0.7333)
    assert partial.details == "Only 1/3 expected topics addressed"
    assert covered.score == pytest.approx(0.9333)
    assert covered.details == "Good relevance (93% match)"


def test_answer_missing_the_question_type_is_flagged() -> None:
    check = score_relevance(QualityCheckContext(user_input="Why did the deploy fail?", llm_output="The deploy failed."))

    assert check.score == pytest.approx(0.575)
    assert check.severity == "warning"
    assert check.details == "Response may not directly address the question type"


def test_shouting_output_adds_toxicity() -> None:
    check = detect_toxicity(QualityCheckContext(llm_output="THE SYSTEM IS DOWN RIGHT NOW"))

    assert check.score == pytest.approx(0.1)
    assert check.severity == "pass"
    assert check.details == "Excessive capitalization detected"
