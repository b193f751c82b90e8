from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

import pandas as pd

from .models import ContactRecord, DuplicateGroup, MergeResult

logger = logging.getLogger(__name__)

LIST_COLUMNS = ("emails", "phones", "addresses", "urls")
JSON_COLUMNS = ("social_profiles", "messaging", "relationships", "dates", "birthday")

RECORD_COLUMNS = [
    "record_id",
    "first_name",
    "middle_name",
    "last_name",
    "nickname",
    "company",
    "title",
    "department",
    "emails",
    "phones",
    "addresses",
    "urls",
    "social_profiles",
    "messaging",
    "relationships",
    "birthday",
    "dates",
    "notes",
    "photo",
    "source",
    "device_id",
    "google_id",
    "linkedin_id",
    "created_at",
    "updated_at",
]
GROUP_COLUMNS = [
    "group_id",
    "match_type",
    "match_label",
    "similarity_score",
    "confidence",
    "name_similarity",
    "company_similarity",
    "weighted_score",
    "is_primary",
    "record_id",
    "display_name",
    "emails",
    "phones",
    "external_key",
]
CONFLICT_COLUMNS = ["merged_record_id", "field", "value", "source_id", "source", "external_id"]


def record_row(record: ContactRecord) -> Dict[str, Any]:
    row = record.to_dict()
    for column in LIST_COLUMNS:
        row[column] = "|".join(row[column])
    for column in JSON_COLUMNS:
        value = row[column]
        row[column] = json.dumps(value, ensure_ascii=False) if value else ""
    return row


def records_to_frame(records: Iterable[ContactRecord]) -> pd.DataFrame:
    rows = [record_row(record) for record in records]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def groups_to_frame(groups: Sequence[DuplicateGroup]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for group_id, group in enumerate(groups, start=1):
        scores = group.additional_scores
        for position, record in enumerate(group.records):
            rows.append(
                {
                    "group_id": group_id,
                    "match_type": group.match_type.value,
                    "match_label": group.match_type.label,
                    "similarity_score": round(group.similarity_score, 4),
                    "confidence": group.confidence.label,
                    "name_similarity": round(group.name_similarity, 4),
                    "company_similarity": round(scores["company"], 4) if "company" in scores else "",
                    "weighted_score": round(scores["weighted"], 4) if "weighted" in scores else "",
                    "is_primary": position == 0,
                    "record_id": record.record_id,
                    "display_name": record.display_name,
                    "emails": "|".join(record.emails),
                    "phones": "|".join(record.phones),
                    "external_key": record.external_key or "",
                }
            )
    return pd.DataFrame(rows, columns=GROUP_COLUMNS)


def conflicts_to_frame(results: Iterable[MergeResult]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for result in results:
        for conflict in result.conflicts:
            row = conflict.to_dict()
            row["merged_record_id"] = result.record.record_id
            rows.append(row)
    return pd.DataFrame(rows, columns=CONFLICT_COLUMNS)


def write_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(str(target), index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    logger.info("Saved: %s", target)
    return target


__all__ = [
    "conflicts_to_frame",
    "groups_to_frame",
    "record_row",
    "records_to_frame",
    "write_csv",
]
