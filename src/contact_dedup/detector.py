"""Duplicate detection over a snapshot of contact records.

Detection normalizes every record once, builds the candidate index, then walks
the records in input order. Each ungrouped record is compared only against the
positions it collides with in the index; every match joins its working group,
and the group is stamped with the match type and score of the first matching
candidate (candidates are visited in ascending input position, so the result
is deterministic for a given input order and configuration).

The input records are never mutated. Progress is advisory and cancellation is
checked once per record.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set

from .candidate_index import CandidateIndex
from .config_loader import DedupeConfig
from .models import ContactRecord, DuplicateGroup, MatchType
from .normalization import NormalizedView, normalize_record
from .similarity import (
    SimilarityEngine,
    SimilarityWeights,
    WEIGHT_PROFILES,
    combined_name_similarity,
    email_similarity,
    name_similarity,
    phone_similarity,
    resolve_weights,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

MIN_LENGTH_RATIO = 0.7
SUFFIX_PHONE_CONFIDENCE = 0.95
PARTIAL_NAME_SCORE = 0.5


@dataclass(frozen=True)
class PairMatch:
    match_type: MatchType
    name_score: float
    phone_confidence: float = 1.0


class DetectionStatus(str, Enum):
    COMPLETE = "complete"
    CANCELLED = "cancelled"


@dataclass
class DetectionResult:
    groups: List[DuplicateGroup] = field(default_factory=list)
    status: DetectionStatus = DetectionStatus.COMPLETE
    processed: int = 0
    total: int = 0

    @property
    def cancelled(self) -> bool:
        return self.status is DetectionStatus.CANCELLED


class QueueProgress:
    """Progress callback that hands events to a bounded queue without blocking.

    Events that do not fit are dropped; the consumer only ever sees a subset of
    the stream, which is acceptable for advisory progress.
    """

    def __init__(self, maxsize: int = 64):
        self.queue: "queue.Queue[tuple[int, str]]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def __call__(self, processed: int, label: str) -> None:
        try:
            self.queue.put_nowait((processed, label))
        except queue.Full:
            self.dropped += 1

    def drain(self) -> List[tuple]:
        events = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events


def _exact_name_score(a: NormalizedView, b: NormalizedView) -> float:
    if a.first_name == b.first_name and a.last_name == b.last_name:
        return 1.0
    return PARTIAL_NAME_SCORE


def _length_ratio(a: str, b: str) -> float:
    longer = max(len(a), len(b))
    if not longer:
        return 1.0
    return min(len(a), len(b)) / longer


def _best_pairwise(values_a: Sequence[str], values_b: Sequence[str], metric) -> float:
    best = 0.0
    for left in values_a:
        for right in values_b:
            best = max(best, metric(left, right))
            if best >= 1.0:
                return best
    return best


def find_incomplete(records: Sequence[ContactRecord]) -> List[ContactRecord]:
    """Records that carry a name but neither an email nor a phone."""
    return [record for record in records if record.is_incomplete]


class DuplicateDetector:
    def __init__(
        self,
        config: Optional[DedupeConfig] = None,
        engine: Optional[SimilarityEngine] = None,
    ):
        self.config = config or DedupeConfig()
        self.engine = engine or SimilarityEngine()
        self.weights: SimilarityWeights = resolve_weights(
            self.config.weights_profile, self.config.weights
        )

    @property
    def threshold(self) -> float:
        return self.config.name_similarity_threshold

    def classify(self, a: NormalizedView, b: NormalizedView) -> Optional[PairMatch]:
        if a.emails & b.emails:
            return PairMatch(MatchType.SAME_EMAIL, _exact_name_score(a, b))

        if a.phones & b.phones:
            return PairMatch(MatchType.SAME_PHONE, _exact_name_score(a, b))
        if a.phone_suffixes & b.phone_suffixes:
            return PairMatch(
                MatchType.SAME_PHONE,
                _exact_name_score(a, b),
                phone_confidence=SUFFIX_PHONE_CONFIDENCE,
            )

        if not (a.has_full_name and b.has_full_name):
            return None
        if a.first_name == b.first_name and a.last_name == b.last_name:
            return PairMatch(MatchType.SIMILAR, 1.0)

        if _length_ratio(a.first_name, b.first_name) < MIN_LENGTH_RATIO:
            return None
        if _length_ratio(a.last_name, b.last_name) < MIN_LENGTH_RATIO:
            return None

        first_score = name_similarity(a.first_name, b.first_name)
        if first_score < self.threshold:
            return None
        last_score = name_similarity(a.last_name, b.last_name)
        if last_score < self.threshold:
            return None
        return PairMatch(MatchType.SIMILAR, (first_score + last_score) / 2)

    def compare(self, a: ContactRecord, b: ContactRecord) -> Optional[PairMatch]:
        return self.classify(normalize_record(a), normalize_record(b))

    def weighted_score(self, a: ContactRecord, b: ContactRecord) -> float:
        name = combined_name_similarity(a.first_name, a.last_name, b.first_name, b.last_name)
        email = _best_pairwise(a.emails, b.emails, email_similarity)
        phone = _best_pairwise(a.phones, b.phones, phone_similarity)
        company = self.engine.company_similarity(a.company, b.company)
        return self.weights.score(name, email, phone, company)

    def _build_group(
        self,
        records: Sequence[ContactRecord],
        members: List[int],
        partner: int,
        match: PairMatch,
    ) -> DuplicateGroup:
        anchor = records[members[0]]
        other = records[partner]
        scores: Dict[str, float] = {}
        if anchor.company.strip() and other.company.strip():
            scores["company"] = self.engine.company_similarity(anchor.company, other.company)
        scores["weighted"] = self.weighted_score(anchor, other)
        if match.match_type is MatchType.SAME_PHONE:
            scores["phone"] = match.phone_confidence
        return DuplicateGroup(
            records=[records[position] for position in members],
            match_type=match.match_type,
            name_similarity=match.name_score,
            additional_scores=scores,
        )

    @staticmethod
    def _report(progress: Optional[ProgressCallback], processed: int, label: str) -> None:
        if progress is None:
            return
        try:
            progress(processed, label)
        except Exception:
            logger.warning("Progress callback failed at record %d", processed, exc_info=True)

    def detect(
        self,
        records: Sequence[ContactRecord],
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DetectionResult:
        snapshot = list(records)
        total = len(snapshot)
        views = [normalize_record(record) for record in snapshot]
        index = CandidateIndex.build(views)
        interval = self.config.progress_interval

        grouped: Set[int] = set()
        groups: List[DuplicateGroup] = []
        comparisons = 0
        status = DetectionStatus.COMPLETE
        processed = 0

        for position, record in enumerate(snapshot):
            if cancel_event is not None and cancel_event.is_set():
                status = DetectionStatus.CANCELLED
                logger.warning("Duplicate detection cancelled after %d of %d records", processed, total)
                break
            processed = position + 1
            if processed % interval == 0:
                self._report(progress, processed, record.display_name)

            if position in grouped:
                continue
            view = views[position]
            if not view.has_identifying_data:
                continue

            members = [position]
            first_match: Optional[PairMatch] = None
            partner = position
            for candidate in index.candidates(position, view):
                if candidate in grouped:
                    continue
                comparisons += 1
                match = self.classify(view, views[candidate])
                if match is None:
                    continue
                members.append(candidate)
                if first_match is None:
                    first_match = match
                    partner = candidate

            if first_match is not None:
                groups.append(self._build_group(snapshot, members, partner, first_match))
                grouped.update(members)

        groups.sort(key=lambda group: group.similarity_score, reverse=True)
        logger.info(
            "Detected %d duplicate group(s) across %d record(s) with %d comparison(s)",
            len(groups),
            processed,
            comparisons,
        )
        return DetectionResult(groups=groups, status=status, processed=processed, total=total)

    def find_duplicate_groups(
        self,
        records: Sequence[ContactRecord],
        progress: Optional[ProgressCallback] = None,
    ) -> List[DuplicateGroup]:
        return self.detect(records, progress=progress).groups


__all__ = [
    "DetectionResult",
    "DetectionStatus",
    "DuplicateDetector",
    "PairMatch",
    "ProgressCallback",
    "QueueProgress",
    "SimilarityWeights",
    "WEIGHT_PROFILES",
    "find_incomplete",
]
