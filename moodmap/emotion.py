"""
Emotion categories and the mood score classifier.

Scores are normalized floats in [0, 1]. Classification uses half-open
intervals with the lower bound closed, so boundary values belong to the
upper bucket.
"""

import math
from enum import Enum


class Emotion(str, Enum):
    """Discrete emotion category."""

    HAPPY = "happy"
    SURPRISED = "surprised"
    NEUTRAL = "neutral"
    SAD = "sad"
    ANGRY = "angry"
    # Only reachable through explicit assignment, never via classify()
    DISGUSTED = "disgusted"
    FEARFUL = "fearful"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def emoji(self) -> str:
        return _EMOJI[self]

    @property
    def is_positive(self) -> bool:
        return self in (Emotion.HAPPY, Emotion.SURPRISED)

    @property
    def is_negative(self) -> bool:
        return self in (Emotion.SAD, Emotion.ANGRY, Emotion.FEARFUL, Emotion.DISGUSTED)

    @classmethod
    def from_score(cls, score: float) -> "Emotion":
        return classify(score)


_EMOJI = {
    Emotion.HAPPY: "😊",
    Emotion.SURPRISED: "😲",
    Emotion.NEUTRAL: "😐",
    Emotion.SAD: "😢",
    Emotion.ANGRY: "😡",
    Emotion.DISGUSTED: "🤢",
    Emotion.FEARFUL: "😨",
}

# (lower bound, upper bound, inclusive upper, emotion), checked in order.
# Surprised sits above neutral on purpose; do not reorder by valence.
_SCORE_BANDS = (
    (0.8, 1.0, True, Emotion.HAPPY),
    (0.6, 0.8, False, Emotion.SURPRISED),
    (0.4, 0.6, False, Emotion.NEUTRAL),
    (0.2, 0.4, False, Emotion.SAD),
    (0.0, 0.2, False, Emotion.ANGRY),
)


def classify(score: float) -> Emotion:
    """
    Map a mood score to an emotion.

    Total over floats: NaN, infinities and anything outside [0, 1]
    classify as neutral.

    Args:
        score: Normalized mood score

    Returns:
        The emotion for the band containing the score
    """
    if math.isnan(score):
        return Emotion.NEUTRAL

    for low, high, inclusive, emotion in _SCORE_BANDS:
        if low <= score < high or (inclusive and score == high):
            return emotion

    return Emotion.NEUTRAL
