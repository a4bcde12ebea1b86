"""Answer quality classification: did the visitor actually get an answer?"""

from typing import Sequence

# Case-insensitive substring markers of a non-answer
LOW_QUALITY_MARKERS = (
    "don't have specific information",
    "don't have enough information",
    "don't have that information",
    "don't have information",
    "do not have information",
    "dont have",
    "contact support",
    "contact our support",
    "not sure",
    "don't know",
    "do not know",
    "unable to answer",
)


def _normalize(text: str) -> str:
    return (text or "").lower().replace("’", "'").replace("‘", "'")


def is_low_quality(answer_text: str, matched_entries: Sequence) -> bool:
    """
    True when nothing matched, or the answer reads like "I don't know".

    Pure function of its inputs.
    """
    if not matched_entries:
        return True

    normalized = _normalize(answer_text)
    return any(marker in normalized for marker in LOW_QUALITY_MARKERS)
