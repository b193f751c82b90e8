"""String, phonetic and structural similarity metrics for contact fields.

Every metric is a total function over strings: empty input yields 0.0 unless
both sides are equal, and no metric raises for malformed values. The
``SimilarityEngine`` value bundles the metrics with an optional semantic
capability used only for company names; build one per caller rather than
sharing a global instance.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Mapping, Optional

import jellyfish

from .normalization import digits_only, normalize_text_key, split_email

logger = logging.getLogger(__name__)

SemanticSimilarity = Callable[[str, str], float]

PHONETIC_CODE_LENGTH = 4
SWAPPED_NAME_DISCOUNT = 0.9
DIRECT_PHONETIC_BONUS = 0.10
SWAPPED_PHONETIC_BONUS = 0.08
EMAIL_LOCAL_WEIGHT = 0.7
EMAIL_DOMAIN_BONUS = 0.3

_NON_ALPHA_RE = re.compile(r"[^a-z]+")


def edit_similarity(a: str, b: str) -> float:
    s1 = (a or "").lower()
    s2 = (b or "").lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    distance = jellyfish.levenshtein_distance(s1, s2)
    return 1.0 - distance / max(len(s1), len(s2))


def name_similarity(a: str, b: str) -> float:
    """Prefix-weighted similarity; never lower than :func:`edit_similarity`."""
    s1 = (a or "").lower()
    s2 = (b or "").lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return max(jellyfish.jaro_winkler_similarity(s1, s2), edit_similarity(s1, s2))


def phonetic_code(value: str) -> str:
    letters = _NON_ALPHA_RE.sub("", normalize_text_key(value))
    if not letters:
        return ""
    return jellyfish.soundex(letters)[:PHONETIC_CODE_LENGTH].upper()


def phonetic_equality(a: str, b: str) -> float:
    return 1.0 if phonetic_code(a) == phonetic_code(b) else 0.0


def phone_similarity(a: str, b: str) -> float:
    d1 = digits_only(a)
    d2 = digits_only(b)
    if d1 == d2:
        return 1.0
    if not d1 or not d2:
        return 0.0
    if d1.endswith(d2) or d2.endswith(d1):
        return min(len(d1), len(d2)) / max(len(d1), len(d2))
    return edit_similarity(d1, d2)


def email_similarity(a: str, b: str) -> float:
    e1 = (a or "").strip().lower()
    e2 = (b or "").strip().lower()
    if e1 == e2:
        return 1.0
    if not e1 or not e2:
        return 0.0
    local1, domain1 = split_email(e1)
    local2, domain2 = split_email(e2)
    if not domain1 or not domain2:
        return 0.0
    bonus = EMAIL_DOMAIN_BONUS if domain1 == domain2 else 0.0
    return min(1.0, name_similarity(local1, local2) * EMAIL_LOCAL_WEIGHT + bonus)


def combined_name_similarity(first1: str, last1: str, first2: str, last2: str) -> float:
    direct = (name_similarity(first1, first2) + name_similarity(last1, last2)) / 2
    swapped = (name_similarity(first1, last2) + name_similarity(last1, first2)) / 2
    score = max(direct, swapped * SWAPPED_NAME_DISCOUNT)

    f1, l1, f2, l2 = (phonetic_code(value) for value in (first1, last1, first2, last2))
    if f1 == f2 and l1 == l2:
        score += DIRECT_PHONETIC_BONUS
    elif f1 == l2 and l1 == f2:
        score += SWAPPED_PHONETIC_BONUS
    return min(1.0, score)


class SimilarityEngine:
    def __init__(self, semantic: Optional[SemanticSimilarity] = None):
        self.semantic = semantic

    edit_similarity = staticmethod(edit_similarity)
    name_similarity = staticmethod(name_similarity)
    phonetic_equality = staticmethod(phonetic_equality)
    phone_similarity = staticmethod(phone_similarity)
    email_similarity = staticmethod(email_similarity)
    combined_name_similarity = staticmethod(combined_name_similarity)

    @property
    def has_semantic(self) -> bool:
        return self.semantic is not None

    def company_similarity(self, a: str, b: str) -> float:
        c1 = (a or "").strip()
        c2 = (b or "").strip()
        if not c1 or not c2:
            return 0.0
        if c1.lower() == c2.lower():
            return 1.0
        score = name_similarity(c1, c2)
        if self.semantic is not None:
            try:
                score = max(score, float(self.semantic(c1, c2)))
            except Exception:
                logger.warning("Semantic company similarity failed for %r / %r", c1, c2, exc_info=True)
        return min(1.0, score)


@dataclass(frozen=True)
class SimilarityWeights:
    name: float
    email: float
    phone: float
    company: float

    def score(self, name: float, email: float, phone: float, company: float) -> float:
        total = (
            name * self.name
            + email * self.email
            + phone * self.phone
            + company * self.company
        )
        return min(1.0, total)

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "SimilarityWeights":
        if not overrides:
            return self
        unknown = set(overrides) - {"name", "email", "phone", "company"}
        if unknown:
            raise ValueError(f"unknown similarity weight(s): {', '.join(sorted(unknown))}")
        values = {key: float(value) for key, value in overrides.items()}
        for key, value in values.items():
            if value < 0:
                raise ValueError(f"similarity weight {key!r} must be non-negative, got {value}")
        return replace(self, **values)


WEIGHT_PROFILES: Dict[str, SimilarityWeights] = {
    "default": SimilarityWeights(name=0.35, email=0.30, phone=0.25, company=0.10),
    "name_heavy": SimilarityWeights(name=0.50, email=0.25, phone=0.20, company=0.05),
    "email_heavy": SimilarityWeights(name=0.25, email=0.45, phone=0.20, company=0.10),
}


def resolve_weights(
    profile: str = "default", overrides: Optional[Mapping[str, Any]] = None
) -> SimilarityWeights:
    try:
        base = WEIGHT_PROFILES[profile]
    except KeyError:
        expected = ", ".join(sorted(WEIGHT_PROFILES))
        raise ValueError(f"unknown weights profile {profile!r}; expected one of {expected}") from None
    return base.with_overrides(overrides)


__all__ = [
    "SemanticSimilarity",
    "SimilarityEngine",
    "SimilarityWeights",
    "WEIGHT_PROFILES",
    "resolve_weights",
    "combined_name_similarity",
    "edit_similarity",
    "email_similarity",
    "name_similarity",
    "phone_similarity",
    "phonetic_code",
    "phonetic_equality",
]
