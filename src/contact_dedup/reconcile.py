from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional

from .candidate_index import CandidateIndex
from .common import ensure_contact_record
from .detector import DuplicateDetector
from .merge import MergeEngine
from .models import ContactRecord, MergeConflict
from .normalization import NormalizedView, normalize_record

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    imported: int = 0
    merged: int = 0
    skipped: int = 0
    records: List[ContactRecord] = field(default_factory=list)
    conflicts: List[MergeConflict] = field(default_factory=list)


def _find_match(
    view: NormalizedView,
    views: List[NormalizedView],
    index: CandidateIndex,
    detector: DuplicateDetector,
) -> Optional[int]:
    for position in index.candidates(-1, view):
        if detector.classify(views[position], view) is not None:
            return position
    return None


def reconcile_import(
    incoming: Iterable[Any],
    existing: Iterable[ContactRecord],
    detector: Optional[DuplicateDetector] = None,
    engine: Optional[MergeEngine] = None,
    require_email: bool = False,
    now: Optional[datetime] = None,
) -> ImportResult:
    """Fold incoming records into an existing collection.

    An incoming record that matches an existing one is merged into it with the
    existing record as primary; anything else is appended. Records appended
    earlier in the same call are candidates for later incoming records.
    """
    detector = detector or DuplicateDetector()
    engine = engine or MergeEngine()
    result = ImportResult(records=list(existing))
    views = [normalize_record(record) for record in result.records]
    index = CandidateIndex.build(views)

    for item in incoming:
        record = ensure_contact_record(item)
        if require_email and not record.emails:
            result.skipped += 1
            continue
        view = normalize_record(record)
        position = _find_match(view, views, index, detector)
        if position is None:
            position = len(result.records)
            result.records.append(record)
            views.append(view)
            index.add(position, view)
            result.imported += 1
            continue

        target = result.records[position]
        merge_result = engine.merge([target, record], target.record_id, now=now)
        result.records[position] = merge_result.record
        views[position] = normalize_record(merge_result.record)
        index.add(position, views[position])
        result.conflicts.extend(merge_result.conflicts)
        result.merged += 1

    logger.info(
        "Import finished: %d new, %d merged, %d skipped",
        result.imported,
        result.merged,
        result.skipped,
    )
    return result


__all__ = ["ImportResult", "reconcile_import"]
