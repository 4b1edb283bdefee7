"""
Rule-based emotion, insight and recommendation generation for the summary
"""
import math
from collections import OrderedDict
from typing import List, Optional

from models.analysis import Sentiment, ThemeCluster, SummaryData, EmotionAnalysis

MAX_EMOTIONS = 3
MAX_INSIGHTS = 4
MAX_RECOMMENDATIONS = 3
MAX_EMOTION_COMMENTS = 3
COMMENTS_PER_THEME = 2  # Representative comments each theme contributes to its emotion

# Emotion lookup: sentiment -> [(emotion, trigger words)], first match wins
POSITIVE_EMOTIONS = [
    ("joy", ["love", "amazing", "great"]),
    ("excitement", ["excited", "wow", "incredible"]),
]
NEGATIVE_EMOTIONS = [
    ("anger", ["angry", "hate", "terrible"]),
    ("disappointment", ["sad", "disappointed", "upset"]),
    ("concern", ["confused", "worried", "concerned"]),
]
NEUTRAL_EMOTIONS = [
    ("curiosity", ["question", "wondering", "curious"]),
]

EMOTION_DESCRIPTIONS = {
    "joy": "Positive excitement and happiness",
    "excitement": "High energy and enthusiasm",
    "satisfaction": "Content and pleased with the content",
    "anger": "Strong negative reaction and frustration",
    "disappointment": "Unmet expectations and sadness",
    "concern": "Worry and apprehension about issues raised",
    "frustration": "Irritation with content or situation",
    "curiosity": "Interest and desire to learn more",
}
DEFAULT_EMOTION_DESCRIPTION = "Mixed emotional response"


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percent(fraction: float) -> int:
    """Fraction in [0, 1] as a whole percentage"""
    return int(round_half_up(fraction * 100))


def _match_emotion(keyword_text: str, table) -> Optional[str]:
    for emotion, triggers in table:
        if any(trigger in keyword_text for trigger in triggers):
            return emotion
    return None


def infer_emotion_from_theme(theme: ThemeCluster) -> Optional[str]:
    """
    Emotion name for a theme from its sentiment and keywords

    Positive themes default to satisfaction and negative ones to frustration;
    neutral themes only map to curiosity.
    """
    keyword_text = " ".join(theme.keywords).lower()

    if theme.sentiment == Sentiment.POSITIVE:
        return _match_emotion(keyword_text, POSITIVE_EMOTIONS) or "satisfaction"
    if theme.sentiment == Sentiment.NEGATIVE:
        return _match_emotion(keyword_text, NEGATIVE_EMOTIONS) or "frustration"
    return _match_emotion(keyword_text, NEUTRAL_EMOTIONS)


def get_emotion_description(emotion_name: str) -> str:
    return EMOTION_DESCRIPTIONS.get(emotion_name, DEFAULT_EMOTION_DESCRIPTION)


def analyze_emotions(data: SummaryData) -> List[EmotionAnalysis]:
    """
    Top 3 emotions by prevalence

    Prevalence is the summed frequency of the themes mapped to an emotion as
    a percentage of valid comments (one decimal). Values are not normalised,
    so together they can exceed 100.
    """
    emotion_counts = OrderedDict()
    for theme in data.themes:
        emotion = infer_emotion_from_theme(theme)
        if not emotion:
            continue
        entry = emotion_counts.setdefault(emotion, {"count": 0, "comments": []})
        entry["count"] += theme.frequency
        entry["comments"].extend(c.text for c in theme.representative_comments[:COMMENTS_PER_THEME])

    valid_comments = data.valid_comments
    emotions = []
    for name, entry in emotion_counts.items():
        prevalence = entry["count"] / valid_comments * 100 if valid_comments > 0 else 0.0
        emotions.append(EmotionAnalysis(
            name=name,
            prevalence=round_half_up(prevalence, 1),
            description=get_emotion_description(name),
            representative_comments=entry["comments"][:MAX_EMOTION_COMMENTS],
        ))

    emotions.sort(key=lambda e: e.prevalence, reverse=True)
    return emotions[:MAX_EMOTIONS]


def generate_key_insights(data: SummaryData) -> List[str]:
    insights = []

    positive = data.sentiment_breakdown.get("positive", 0.0)
    negative = data.sentiment_breakdown.get("negative", 0.0)
    neutral = data.sentiment_breakdown.get("neutral", 0.0)
    dominant = max(positive, negative, neutral)

    if dominant == positive and positive > 0.6:
        insights.append(f"Strong positive reception with {percent(positive)}% positive sentiment")
    elif dominant == negative and negative > 0.4:
        insights.append(f"Significant negative feedback requiring attention ({percent(negative)}% negative)")
    elif neutral > 0.5:
        insights.append(f"Mixed audience reaction with {percent(neutral)}% neutral responses")

    if data.themes and data.valid_comments > 0:
        top_theme = data.themes[0]
        theme_share = percent(top_theme.frequency / data.valid_comments)
        insights.append(f'"{top_theme.name}" is the dominant discussion topic ({theme_share}% of comments)')

    if data.keywords:
        top_keyword = data.keywords[0]
        insights.append(
            f'"{top_keyword.word}" appears {top_keyword.frequency} times, indicating strong audience focus'
        )

    if data.filtered_comments > data.total_comments * 0.2:
        insights.append(f"High spam/toxic content filtered ({data.filtered_comments} comments removed)")

    return insights[:MAX_INSIGHTS]


def generate_recommendations(data: SummaryData) -> List[str]:
    recommendations = []
    breakdown = data.sentiment_breakdown

    if breakdown.get("positive", 0.0) > 0.7:
        recommendations.append("Leverage this positive momentum by creating similar content")
    elif breakdown.get("negative", 0.0) > 0.4:
        recommendations.append("Address the concerns raised in negative feedback")
        recommendations.append("Consider clarifying or improving content based on criticism")

    if data.themes:
        top_theme = data.themes[0]
        if top_theme.sentiment == Sentiment.POSITIVE:
            recommendations.append(f'Expand on the "{top_theme.name}" topic that resonates well with your audience')
        elif top_theme.sentiment == Sentiment.NEGATIVE:
            recommendations.append(f'Address concerns about "{top_theme.name}" in future content')

    if data.valid_comments < 10:
        recommendations.append("Encourage more audience engagement through questions or calls-to-action")

    if data.filtered_comments > data.total_comments * 0.3:
        recommendations.append("Consider moderating comments more actively to improve discussion quality")

    return recommendations[:MAX_RECOMMENDATIONS]
