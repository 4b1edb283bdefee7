"""
Quality checks for a generated summary
"""
from typing import Tuple

from models.analysis import GeneratedSummary, SummaryData, SummaryValidation, LengthCheck

MIN_SUMMARY_CHARS = 50


def validate_summary(
    summary: GeneratedSummary,
    data: SummaryData,
    target_word_range: Tuple[int, int] = (75, 150),
    min_quality_score: float = 0.6
) -> SummaryValidation:
    """
    Score a summary from 1.0 down by weighted penalties

    Emotion prevalence summing above 100 is reported, never corrected.

    Args:
        summary: Generated (or fallback) summary
        data: The numbers the summary was written from
        target_word_range: Inclusive (min, max) word count
        min_quality_score: Score needed (with no issues) to be valid

    Returns:
        SummaryValidation
    """
    issues = []
    recommendations = []
    quality_score = 1.0

    min_words, max_words = target_word_range
    word_count = summary.word_count
    is_within_range = min_words <= word_count <= max_words

    if word_count < min_words:
        issues.append(f"Summary too short: {word_count} words (minimum {min_words})")
        recommendations.append("Expand summary with more specific insights")
        quality_score -= 0.2
    elif word_count > max_words:
        issues.append(f"Summary too long: {word_count} words (maximum {max_words})")
        recommendations.append("Condense summary to focus on key points")
        quality_score -= 0.1

    if len(summary.summary) < MIN_SUMMARY_CHARS:
        issues.append("Summary content appears too brief")
        quality_score -= 0.3

    if "%" not in summary.summary and data.total_comments > 0:
        issues.append("Summary lacks specific percentage data")
        recommendations.append("Include specific sentiment percentages")
        quality_score -= 0.1

    if not summary.emotions and data.total_comments > 5:
        issues.append("No emotions detected despite sufficient comment volume")
        recommendations.append("Improve emotion detection methodology")
        quality_score -= 0.15

    total_prevalence = sum(emotion.prevalence for emotion in summary.emotions)
    if total_prevalence > 100:
        issues.append("Emotion prevalence percentages exceed 100%")
        quality_score -= 0.2

    if not summary.key_insights:
        issues.append("No key insights generated")
        recommendations.append("Enhance insight generation logic")
        quality_score -= 0.1

    if not summary.recommendations and data.total_comments > 0:
        issues.append("No actionable recommendations provided")
        recommendations.append("Generate content creator recommendations")
        quality_score -= 0.1

    quality_score = max(0.0, min(1.0, quality_score))

    return SummaryValidation(
        is_valid=not issues and quality_score >= min_quality_score,
        issues=issues,
        quality_score=quality_score,
        recommendations=recommendations,
        length_check=LengthCheck(
            word_count=word_count,
            is_within_range=is_within_range,
            target_range=(min_words, max_words),
        ),
    )
