"""
Lightweight text analysis over transcribed answers.

Keyword tallies over a stop-word list and word-list sentiment; nothing here
calls out to an NLP service.
"""
import re
from collections import Counter
from typing import Dict, Iterable, List

_WORD_SPLIT = re.compile(r"\W+")

# Stop words dropped before keyword extraction on a single response
KEYWORD_STOP_WORDS = frozenset(
    "the a an and or but in on at to for of with by".split()
)
# Theme extraction across a whole session also drops common verb forms
THEME_STOP_WORDS = KEYWORD_STOP_WORDS | frozenset("is are was were".split())

POSITIVE_WORDS = frozenset(
    "good great excellent satisfied happy pleased positive yes agree".split()
)
NEGATIVE_WORDS = frozenset(
    "bad terrible awful disappointed unhappy negative no disagree".split()
)

# Abbreviations expanded before a question is spoken
_SPEECH_REPLACEMENTS = [
    (re.compile(r"\bDr\."), "Doctor"),
    (re.compile(r"\bMr\."), "Mister"),
    (re.compile(r"\bMrs\."), "Misses"),
    (re.compile(r"\bMs\."), "Miss"),
    (re.compile(r"\betc\."), "etcetera"),
    (re.compile(r"\bi\.e\."), "that is"),
    (re.compile(r"\be\.g\."), "for example"),
]


def tokenize(text: str | None) -> List[str]:
    """Lower-cased words, punctuation removed."""
    if not text:
        return []
    return [w for w in _WORD_SPLIT.split(text.lower()) if w]


def is_blank(text: str | None) -> bool:
    return not text or not text.strip()


def count_words(text: str | None) -> int:
    if is_blank(text):
        return 0
    return len(text.split())


def _ranked_terms(words: Iterable[str], stop_words: frozenset, min_length: int, limit: int) -> List[tuple]:
    # Counter keeps first-seen order, so equal counts rank by first appearance
    counts = Counter(w for w in words if w not in stop_words and len(w) > min_length)
    return counts.most_common(limit)


def extract_keywords(text: str | None, limit: int = 10) -> List[str]:
    """Most frequent words longer than three characters."""
    if is_blank(text):
        return []
    return [word for word, _ in _ranked_terms(tokenize(text), KEYWORD_STOP_WORDS, 3, limit)]


def common_themes(texts: Iterable[str | None], limit: int = 10) -> List[Dict]:
    """Most frequent words longer than four characters across several answers."""
    combined = " ".join(t for t in texts if t)
    if is_blank(combined):
        return []
    return [
        {"theme": word, "frequency": count}
        for word, count in _ranked_terms(tokenize(combined), THEME_STOP_WORDS, 4, limit)
    ]


def sentiment(text: str | None) -> str:
    """positive / negative / neutral by distinct sentiment words present."""
    if is_blank(text):
        return "neutral"
    words = set(tokenize(text))
    positive = len(words & POSITIVE_WORDS)
    negative = len(words & NEGATIVE_WORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def optimize_for_speech(text: str | None) -> str | None:
    """Rewrite question text so a TTS voice reads it naturally."""
    if is_blank(text):
        return text
    optimized = text
    for pattern, replacement in _SPEECH_REPLACEMENTS:
        optimized = pattern.sub(replacement, optimized)
    # Pause after each question
    optimized = optimized.replace("?", "? ... ").strip()
    if not optimized.endswith((".", "?", "!")):
        optimized += "."
    return optimized


def truncate(text: str, length: int, omission: str = "...") -> str:
    if len(text) <= length:
        return text
    return text[: max(length - len(omission), 0)] + omission
