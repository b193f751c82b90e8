from __future__ import annotations

from enum import Enum


class Confidence(str, Enum):
    VERY_HIGH = "very_high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very_low"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


CONFIDENCE_BANDS = (
    (0.95, Confidence.VERY_HIGH),
    (0.85, Confidence.HIGH),
    (0.75, Confidence.MEDIUM),
    (0.65, Confidence.LOW),
)


def classify_confidence(score: float) -> Confidence:
    """Map a similarity score to a display band; grouping never consults it."""
    for floor, band in CONFIDENCE_BANDS:
        if score >= floor:
            return band
    return Confidence.VERY_LOW


__all__ = ["CONFIDENCE_BANDS", "Confidence", "classify_confidence"]
