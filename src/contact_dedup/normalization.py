from __future__ import annotations

import logging
import os
import re
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass, field
from io import StringIO
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

import pandas as pd

from .models import ContactRecord, LabeledDate, Relationship

logger = logging.getLogger(__name__)

PHONE_SUFFIX_LENGTH = 7
NAME_PREFIX_LENGTH = 3

_NON_DIGIT_RE = re.compile(r"\D")

T = TypeVar("T")


def _norm(text: Optional[str]) -> str:
    s = (text or "").strip()
    if not s:
        return ""
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", s).lower()


def normalize_text_key(value: str) -> str:
    return _norm(value)


def normalize_name(value: str) -> str:
    return (value or "").strip().lower()


def digits_only(value: str) -> str:
    return _NON_DIGIT_RE.sub("", value or "")


def phone_suffix(digits: str) -> str:
    if len(digits) < PHONE_SUFFIX_LENGTH:
        return ""
    return digits[-PHONE_SUFFIX_LENGTH:]


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def split_email(email: str) -> Tuple[str, str]:
    """Return ``(local, domain)`` for an address with exactly one ``@``."""
    local, sep, domain = (email or "").partition("@")
    if not sep or "@" in domain:
        return "", ""
    return local, domain


def name_prefix_key(first: str, last: str) -> str:
    if not first or not last:
        return ""
    return f"{first[:NAME_PREFIX_LENGTH]}{last[:NAME_PREFIX_LENGTH]}"


@dataclass(frozen=True)
class NormalizedView:
    first_name: str = ""
    last_name: str = ""
    phones: FrozenSet[str] = field(default_factory=frozenset)
    phone_suffixes: FrozenSet[str] = field(default_factory=frozenset)
    emails: FrozenSet[str] = field(default_factory=frozenset)
    company: str = ""

    @property
    def has_full_name(self) -> bool:
        return bool(self.first_name and self.last_name)

    @property
    def has_identifying_data(self) -> bool:
        return bool(self.emails or self.phones or self.has_full_name)

    @property
    def email_local_parts(self) -> List[str]:
        return sorted({split_email(email)[0] for email in self.emails} - {""})

    @property
    def name_key(self) -> str:
        return name_prefix_key(self.first_name, self.last_name)


def normalize_record(record: ContactRecord) -> NormalizedView:
    """Build the comparison view of a record without touching the record."""
    phones = set()
    suffixes = set()
    for phone in record.phones:
        digits = digits_only(phone)
        if not digits:
            continue
        phones.add(digits)
        suffix = phone_suffix(digits)
        if suffix:
            suffixes.add(suffix)
    emails = {normalize_email(email) for email in record.emails} - {""}
    return NormalizedView(
        first_name=normalize_name(record.first_name),
        last_name=normalize_name(record.last_name),
        phones=frozenset(phones),
        phone_suffixes=frozenset(suffixes),
        emails=frozenset(emails),
        company=normalize_name(record.company),
    )


# Comparison keys for list-valued fields; two values with the same key are
# the same value for de-duplication and merge purposes.
def email_key(value: str) -> str:
    return normalize_email(value)


def phone_key(value: str) -> str:
    return digits_only(value)


def address_key(value: str) -> str:
    return value


def url_key(value: str) -> str:
    return (value or "").strip().lower()


def service_key(value: Any) -> str:
    return f"{value.service.lower()}:{value.username.lower()}"


def relationship_key(value: Relationship) -> str:
    return f"{value.label.lower()}:{value.name.lower()}"


def labeled_date_key(value: LabeledDate) -> Tuple[str, Optional[int], Optional[int], Optional[int]]:
    return (value.label.lower(), value.date.year, value.date.month, value.date.day)


LIST_FIELD_KEYS: Dict[str, Callable[[Any], Any]] = {
    "emails": email_key,
    "phones": phone_key,
    "addresses": address_key,
    "urls": url_key,
    "social_profiles": service_key,
    "messaging": service_key,
    "relationships": relationship_key,
    "dates": labeled_date_key,
}


def unique_by(values: Iterable[T], key: Callable[[T], Any]) -> List[T]:
    seen: "OrderedDict[Any, T]" = OrderedDict()
    for value in values:
        k = key(value)
        if k not in seen:
            seen[k] = value
    return list(seen.values())


def dedupe_record_lists(record: ContactRecord) -> ContactRecord:
    """Return a copy whose list fields hold no normalized duplicates."""
    changes = {
        name: unique_by(getattr(record, name), key) for name, key in LIST_FIELD_KEYS.items()
    }
    dropped = sum(len(getattr(record, name)) - len(values) for name, values in changes.items())
    if dropped:
        logger.debug("Dropped %d duplicate list value(s) for %s", dropped, record.display_name)
    return record.copy(**changes)


HEADER_SCAN_LIMIT = 100


def find_header_line(lines: Sequence[str], required_columns: Sequence[str]) -> Optional[int]:
    """Index of the first line naming every required column, case-insensitively."""
    wanted = [column.lower() for column in required_columns]
    for index, line in enumerate(lines[:HEADER_SCAN_LIMIT]):
        lowered = line.lower()
        if all(column in lowered for column in wanted):
            return index
    return None


def read_csv_with_optional_header(
    path: Optional[str], required_columns: Sequence[str] = ()
) -> pd.DataFrame:
    """Read an export as strings, skipping any preamble above the header row.

    Exports such as LinkedIn's put free-text notes above the real header, so
    when ``required_columns`` is given the frame starts at the first line that
    names all of them. A file without such a line yields an empty frame.
    """
    if not path:
        return pd.DataFrame()
    with open(path, "r", encoding="utf-8-sig", errors="replace") as handle:
        text = handle.read()
    if not text.strip():
        return pd.DataFrame()
    if required_columns:
        lines = text.split("\n")
        start = find_header_line([line.rstrip("\r") for line in lines], required_columns)
        if start is None:
            logger.warning("No header naming %s in %s", ", ".join(required_columns), path)
            return pd.DataFrame()
        if start:
            logger.debug("Skipped %d preamble line(s) in %s", start, path)
            text = "\n".join(lines[start:])
    return pd.read_csv(StringIO(text), dtype=str, keep_default_na=False)


def cell_text(row: Mapping[str, Any], key: str) -> str:
    """Stripped text of one CSV cell; absent and NaN cells read as ``""``."""
    value = row.get(key)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def source_exists(path: Optional[str], label: str) -> bool:
    if not path:
        return False
    if not os.path.isfile(path):
        logger.warning("%s export not found: %s", label, path)
        return False
    return True


__all__ = [
    "LIST_FIELD_KEYS",
    "NAME_PREFIX_LENGTH",
    "NormalizedView",
    "PHONE_SUFFIX_LENGTH",
    "cell_text",
    "dedupe_record_lists",
    "digits_only",
    "email_key",
    "find_header_line",
    "name_prefix_key",
    "normalize_email",
    "normalize_name",
    "normalize_record",
    "normalize_text_key",
    "phone_key",
    "phone_suffix",
    "read_csv_with_optional_header",
    "source_exists",
    "split_email",
    "unique_by",
]
