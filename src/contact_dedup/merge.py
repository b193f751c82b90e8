"""Union merge of a duplicate group into a single record.

List-valued fields are unioned; scalar fields are promoted when the merged
record lacks a value and otherwise recorded as a :class:`MergeConflict`. The
conflicts are rendered into one history block appended to the merged notes,
so every input value either survives in a field or is written down with its
provenance.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .models import (
    ContactRecord,
    DuplicateGroup,
    MatchType,
    MergeConflict,
    MergeResult,
    PartialDate,
)
from .normalization import LIST_FIELD_KEYS, unique_by

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
GroupLike = Union[DuplicateGroup, Sequence[ContactRecord]]
PrimaryPolicy = Callable[[DuplicateGroup], str]

SCALAR_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("first_name", "First name"),
    ("middle_name", "Middle name"),
    ("last_name", "Last name"),
    ("nickname", "Nickname"),
    ("company", "Company"),
    ("title", "Job title"),
    ("department", "Department"),
)
EXTERNAL_ID_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("device_id", "Device ID"),
    ("google_id", "Google ID"),
    ("linkedin_id", "LinkedIn ID"),
)
FIELD_LABELS = dict(
    SCALAR_FIELDS + EXTERNAL_ID_FIELDS + (("birthday", "Birthday"), ("notes", "Notes"))
)

HISTORY_HEADER = "=== MERGE HISTORY ({timestamp}) ==="
SOURCE_HEADER = "--- Merged from {source} contact (ID: {identifier}...) ---"
ALTERNATE_NAME_SEPARATOR = ", "


class MergeError(ValueError):
    """Raised when a merge request violates the merge contract."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _differs(left: str, right: str) -> bool:
    return left.strip().lower() != right.strip().lower()


def _records_of(group: GroupLike) -> List[ContactRecord]:
    if isinstance(group, DuplicateGroup):
        return list(group.records)
    return list(group)


def _split_alternates(nickname: str) -> List[str]:
    return [part.strip() for part in nickname.split(",") if part.strip()]


def _format_birthday(value: Optional[PartialDate]) -> str:
    return value.format() if value else ""


def first_record_primary(group: DuplicateGroup) -> str:
    return group.primary.record_id


class MergeEngine:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or _utcnow

    def merge(
        self,
        group: GroupLike,
        primary_id: str,
        now: Optional[datetime] = None,
    ) -> MergeResult:
        records = _records_of(group)
        if not records:
            raise MergeError("cannot merge an empty group")
        primary = next((record for record in records if record.record_id == primary_id), None)
        if primary is None:
            raise MergeError(f"primary record {primary_id!r} is not a member of the group")

        merged = primary.copy()
        conflicts: List[MergeConflict] = []
        alternates: List[str] = []
        merged_ids: List[str] = []

        for secondary in records:
            if secondary.record_id == primary_id:
                continue
            merged_ids.append(secondary.record_id)
            self._merge_lists(merged, secondary)
            self._merge_names(merged, secondary, alternates)
            conflicts.extend(self._merge_scalars(merged, secondary))
            self._merge_media_and_ids(merged, secondary, conflicts)

        if not merged_ids:
            return MergeResult(record=merged)

        self._apply_alternates(merged, alternates)

        timestamp = now or self.clock()
        history = ""
        if conflicts:
            history = render_history(conflicts, records, timestamp)
            merged.notes = f"{merged.notes}\n\n{history}" if merged.notes else history
            logger.info(
                "Merged %d record(s) into %s with %d conflict(s)",
                len(merged_ids),
                merged.display_name,
                len(conflicts),
            )
        merged.updated_at = timestamp
        return MergeResult(record=merged, conflicts=conflicts, history=history, merged_ids=merged_ids)

    @staticmethod
    def _merge_lists(merged: ContactRecord, secondary: ContactRecord) -> None:
        for name, key in LIST_FIELD_KEYS.items():
            combined = list(getattr(merged, name)) + list(getattr(secondary, name))
            setattr(merged, name, unique_by(combined, key))

    @staticmethod
    def _merge_names(merged: ContactRecord, secondary: ContactRecord, alternates: List[str]) -> None:
        other_name = f"{secondary.first_name} {secondary.last_name}".strip()
        current_name = f"{merged.first_name} {merged.last_name}".strip()
        if other_name and current_name and _differs(other_name, current_name):
            alternates.append(other_name)
        if secondary.nickname and merged.nickname and _differs(secondary.nickname, merged.nickname):
            alternates.append(secondary.nickname)

    @staticmethod
    def _conflict(field: str, value: str, secondary: ContactRecord) -> MergeConflict:
        return MergeConflict(
            field=field,
            value=value,
            source_id=secondary.record_id,
            source=secondary.source,
            external_id=secondary.external_id,
        )

    def _merge_scalars(self, merged: ContactRecord, secondary: ContactRecord) -> List[MergeConflict]:
        conflicts: List[MergeConflict] = []
        for name, _label in SCALAR_FIELDS:
            incoming = getattr(secondary, name)
            if not incoming:
                continue
            current = getattr(merged, name)
            if not current:
                setattr(merged, name, incoming)
            elif _differs(current, incoming):
                conflicts.append(self._conflict(name, incoming, secondary))

        if secondary.birthday is not None:
            if merged.birthday is None:
                merged.birthday = secondary.birthday
            elif merged.birthday != secondary.birthday:
                conflicts.append(
                    self._conflict("birthday", _format_birthday(secondary.birthday), secondary)
                )

        if secondary.notes:
            if not merged.notes:
                merged.notes = secondary.notes
            elif merged.notes != secondary.notes:
                conflicts.append(self._conflict("notes", secondary.notes, secondary))
        return conflicts

    def _merge_media_and_ids(
        self, merged: ContactRecord, secondary: ContactRecord, conflicts: List[MergeConflict]
    ) -> None:
        if merged.photo is None and secondary.photo is not None:
            merged.photo = secondary.photo
        for name, _label in EXTERNAL_ID_FIELDS:
            incoming = getattr(secondary, name)
            if not incoming:
                continue
            current = getattr(merged, name)
            if not current:
                setattr(merged, name, incoming)
            elif current != incoming:
                conflicts.append(self._conflict(name, incoming, secondary))

    @staticmethod
    def _apply_alternates(merged: ContactRecord, alternates: List[str]) -> None:
        existing = _split_alternates(merged.nickname)
        seen: Set[str] = {value.lower() for value in existing}
        seen.add(f"{merged.first_name} {merged.last_name}".strip().lower())
        additions: List[str] = []
        for name in alternates:
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            additions.append(name)
        if not additions:
            return
        if merged.nickname:
            merged.nickname = ALTERNATE_NAME_SEPARATOR.join([merged.nickname] + additions)
        else:
            merged.nickname = ALTERNATE_NAME_SEPARATOR.join(additions)

    def merge_groups(
        self,
        groups: Iterable[DuplicateGroup],
        match_type: Union[MatchType, Iterable[MatchType], None] = None,
        choose_primary: Optional[PrimaryPolicy] = None,
        now: Optional[datetime] = None,
    ) -> List[MergeResult]:
        """Merge groups one at a time, refusing any group that reuses a consumed record."""
        if isinstance(match_type, MatchType):
            allowed: Optional[Set[MatchType]] = {match_type}
        elif match_type is None:
            allowed = None
        else:
            allowed = set(match_type)
        policy = choose_primary or first_record_primary

        consumed: Set[str] = set()
        results: List[MergeResult] = []
        for group in groups:
            if allowed is not None and group.match_type not in allowed:
                continue
            ids = set(group.record_ids)
            overlap = ids & consumed
            if overlap:
                logger.warning(
                    "Skipping group %s: record(s) %s already merged in this run",
                    ", ".join(group.record_ids),
                    ", ".join(sorted(overlap)),
                )
                continue
            results.append(self.merge(group, policy(group), now=now))
            consumed.update(ids)
        return results


def render_history(
    conflicts: Sequence[MergeConflict], records: Sequence[ContactRecord], timestamp: datetime
) -> str:
    """Render conflicts as the human readable block appended to merged notes."""
    by_source: "dict[str, List[MergeConflict]]" = {}
    for conflict in conflicts:
        by_source.setdefault(conflict.source_id, []).append(conflict)
    lookup = {record.record_id: record for record in records}

    lines = [HISTORY_HEADER.format(timestamp=timestamp.isoformat(timespec="seconds"))]
    for source_id, entries in by_source.items():
        record = lookup.get(source_id)
        identifier = (record.external_id if record else None) or source_id
        source = entries[0].source.value
        lines.append(SOURCE_HEADER.format(source=source, identifier=identifier[:8]))
        for entry in entries:
            lines.append(f"{FIELD_LABELS.get(entry.field, entry.field)}: {entry.value}")
    return "\n".join(lines)


def merge_groups(
    groups: Iterable[DuplicateGroup],
    match_type: Union[MatchType, Iterable[MatchType], None] = None,
    choose_primary: Optional[PrimaryPolicy] = None,
    engine: Optional[MergeEngine] = None,
) -> List[MergeResult]:
    return (engine or MergeEngine()).merge_groups(
        groups, match_type=match_type, choose_primary=choose_primary
    )


__all__ = [
    "MergeEngine",
    "MergeError",
    "first_record_primary",
    "merge_groups",
    "render_history",
]
