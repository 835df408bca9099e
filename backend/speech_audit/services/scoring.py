"""
Scoring heuristics for responses and insights.

All functions are pure: they work on plain values so the same formulas back
both the ORM models and the insight generator.
"""
import math
from typing import Iterable, List, Optional, Sequence

from .text_analysis import count_words, is_blank

HIGH_CONFIDENCE = 0.8  # Transcription confidence at or above this is "high"
LOW_CONFIDENCE = 0.5   # Below this a response is flagged for clarification
REVIEW_QUALITY_FLOOR = 40  # Quality below this sends a response to review

# Overall score weights: completion rate, mean quality, mean confidence
COMPLETION_WEIGHT = 0.4
QUALITY_WEIGHT = 0.4
CONFIDENCE_WEIGHT = 0.2


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_high_confidence(confidence: Optional[float]) -> bool:
    return confidence is not None and confidence >= HIGH_CONFIDENCE


def is_low_confidence(confidence: Optional[float]) -> bool:
    return confidence is not None and confidence < LOW_CONFIDENCE


def response_quality_score(
    text: Optional[str],
    confidence: Optional[float],
    expected_keywords: Optional[Sequence[str]] = None,
) -> int:
    """
    Score one answer on a 0-100 scale.

    Components:
    - 20 points for having any text
    - up to 40 points for transcription confidence
    - up to 20 points for length, peaking at 100 words (only 10-300 words count)
    - up to 20 points for expected keyword coverage, or a flat 10 when the
      question expects none
    """
    if is_blank(text):
        return 0

    score = 20.0
    score += (confidence or 0) * 40

    words = count_words(text)
    if 10 <= words <= 300:
        score += max(20 - abs(words - 100) * 0.1, 0)

    if expected_keywords:
        lowered = text.lower()
        matched = sum(1 for keyword in expected_keywords if keyword.lower() in lowered)
        score += matched / len(expected_keywords) * 20
    else:
        score += 10

    return max(0, min(_round_half_up(score), 100))


def needs_review(confidence: Optional[float], requires_clarification: bool, quality: int) -> bool:
    return is_low_confidence(confidence) or bool(requires_clarification) or quality < REVIEW_QUALITY_FLOOR


def mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """Average of the non-null values, None when there are none (SQL AVG semantics)."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0
    return round(part / whole * 100, 1)


def overall_score(
    completion_rate: float,
    quality_scores: List[int],
    confidences: List[Optional[float]],
) -> float:
    """Weighted blend of completion, answer quality and transcription confidence."""
    if not quality_scores:
        return 0
    quality = mean(quality_scores) or 0
    confidence = (mean(confidences) or 0) * 100
    blended = (
        completion_rate * COMPLETION_WEIGHT
        + quality * QUALITY_WEIGHT
        + confidence * CONFIDENCE_WEIGHT
    )
    return max(0.0, min(round(blended, 1), 100.0))


def confidence_level(score: Optional[float], risks: Optional[Sequence]) -> str:
    """Three-tier confidence in an insight from its score and risk count."""
    risk_count = len(risks or [])
    if score is not None and score >= 80 and risk_count == 0:
        return "high"
    if score is not None and score >= 60 and risk_count <= 2:
        return "medium"
    return "low"


def risk_level(score: Optional[float]) -> str:
    if score is None or score >= 80:
        return "low"
    if score < 40:
        return "high"
    return "medium"


RISK_COLORS = {"low": "green", "medium": "yellow", "high": "red"}
