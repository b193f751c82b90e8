from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from .models import ContactRecord, SourceKind
from .normalization import (
    cell_text,
    dedupe_record_lists,
    read_csv_with_optional_header,
    source_exists,
)

logger = logging.getLogger(__name__)

LINKEDIN_HEADER_COLUMNS = ("First Name", "Last Name")


def _decode_birthday(value: str) -> Any:
    """Birthday cells hold a JSON object or a plain ``YYYY-MM-DD`` / ``--MM-DD`` string."""
    value = (value or "").strip()
    if not value.startswith("{"):
        return value or None
    return json.loads(value)


def load_contacts_csv(path: Optional[str]) -> List[ContactRecord]:
    """Load records written by :func:`contact_dedup.reports.records_to_frame`."""
    if not source_exists(path, "Contacts"):
        return []
    df = read_csv_with_optional_header(path)
    records: List[ContactRecord] = []
    for idx, row in df.iterrows():
        payload: Dict[str, Any] = {key: cell_text(row, key) for key in df.columns}
        try:
            payload["birthday"] = _decode_birthday(payload.get("birthday", ""))
            record = ContactRecord.from_mapping(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping contacts row %s in %s: %s", idx, path, exc)
            continue
        records.append(dedupe_record_lists(record))
    logger.info("Loaded %d contact(s) from %s", len(records), path)
    return records


def _linkedin_notes(position: str, url: str) -> str:
    lines = []
    if position:
        lines.append(f"Position: {position}")
    if url:
        lines.append(f"LinkedIn: {url}")
    return "\n".join(lines)


def load_linkedin_csv(path: Optional[str]) -> List[ContactRecord]:
    if not source_exists(path, "LinkedIn"):
        return []
    df = read_csv_with_optional_header(path, required_columns=LINKEDIN_HEADER_COLUMNS)
    records: List[ContactRecord] = []
    skipped = 0
    for _, row in df.iterrows():
        first_name = cell_text(row, "First Name")
        last_name = cell_text(row, "Last Name")
        if not first_name and not last_name:
            skipped += 1
            continue
        email = cell_text(row, "Email Address")
        position = cell_text(row, "Position")
        url = cell_text(row, "URL")
        record = ContactRecord(
            first_name=first_name,
            last_name=last_name,
            company=cell_text(row, "Company"),
            title=position,
            emails=[email] if email else [],
            urls=[url] if url else [],
            notes=_linkedin_notes(position, url),
            source=SourceKind.LINKEDIN,
            linkedin_id=url or f"{first_name}.{last_name}".lower(),
        )
        records.append(dedupe_record_lists(record))
    if skipped:
        logger.info("Skipped %d LinkedIn row(s) without a name in %s", skipped, path)
    logger.info("Loaded %d LinkedIn connection(s) from %s", len(records), path)
    return records


__all__ = ["load_contacts_csv", "load_linkedin_csv"]
