from __future__ import annotations

import base64
import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .confidence import Confidence, classify_confidence


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_record_id() -> str:
    return uuid.uuid4().hex


def _clean(value: Any) -> str:
    return str(value or "").strip()


def _split_multi(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split("|") if part.strip()]
    return [_clean(part) for part in value if _clean(part)]


def _optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return _utcnow()
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SourceKind(str, Enum):
    DEVICE = "device"
    GOOGLE = "google"
    LINKEDIN = "linkedin"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: Any) -> "SourceKind":
        if isinstance(value, SourceKind):
            return value
        try:
            return cls(_clean(value).lower() or cls.MANUAL.value)
        except ValueError:
            return cls.MANUAL


@dataclass(frozen=True)
class PartialDate:
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    @staticmethod
    def from_mapping(payload: Any) -> Optional["PartialDate"]:
        if payload is None or payload == "":
            return None
        if isinstance(payload, PartialDate):
            return payload
        if isinstance(payload, str):
            return PartialDate.parse(payload)
        return PartialDate(
            year=_optional_int(payload.get("year")),
            month=_optional_int(payload.get("month")),
            day=_optional_int(payload.get("day")),
        )

    @staticmethod
    def parse(text: str) -> Optional["PartialDate"]:
        """Parse ``YYYY-MM-DD`` or the year-less ``--MM-DD`` form.

        Free-text values such as ``"May 5"`` yield ``None``.
        """
        text = (text or "").strip()
        if not text:
            return None
        year: Optional[int] = None
        if text.startswith("--"):
            rest = text[2:]
        else:
            year_text, _, rest = text.partition("-")
            if not year_text.isdigit():
                return None
            year = int(year_text)
        month_text, _, day_text = rest.partition("-")
        return PartialDate(
            year=year,
            month=int(month_text) if month_text.isdigit() else None,
            day=int(day_text) if day_text.isdigit() else None,
        )

    def format(self) -> str:
        month = f"{self.month:02d}" if self.month else "--"
        day = f"{self.day:02d}" if self.day else "--"
        if self.year is None:
            return f"--{month}-{day}"
        return f"{self.year:04d}-{month}-{day}"

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {"year": self.year, "month": self.month, "day": self.day}


@dataclass(frozen=True)
class LabeledDate:
    label: str
    date: PartialDate

    @staticmethod
    def from_mapping(payload: Dict[str, Any]) -> "LabeledDate":
        return LabeledDate(
            label=_clean(payload.get("label")),
            date=PartialDate.from_mapping(payload.get("date")) or PartialDate(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "date": self.date.to_dict()}


@dataclass(frozen=True)
class SocialProfile:
    service: str
    username: str
    url: str = ""

    @staticmethod
    def from_mapping(payload: Dict[str, Any]) -> "SocialProfile":
        return SocialProfile(
            service=_clean(payload.get("service")),
            username=_clean(payload.get("username")),
            url=_clean(payload.get("url")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"service": self.service, "username": self.username, "url": self.url}


@dataclass(frozen=True)
class MessagingAddress:
    service: str
    username: str

    @staticmethod
    def from_mapping(payload: Dict[str, Any]) -> "MessagingAddress":
        return MessagingAddress(
            service=_clean(payload.get("service")),
            username=_clean(payload.get("username")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"service": self.service, "username": self.username}


@dataclass(frozen=True)
class Relationship:
    name: str
    label: str = ""

    @staticmethod
    def from_mapping(payload: Dict[str, Any]) -> "Relationship":
        return Relationship(name=_clean(payload.get("name")), label=_clean(payload.get("label")))

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "label": self.label}


@dataclass
class ContactRecord:
    record_id: str = field(default_factory=_new_record_id)
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    nickname: str = ""
    company: str = ""
    title: str = ""
    department: str = ""
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    addresses: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    social_profiles: List[SocialProfile] = field(default_factory=list)
    messaging: List[MessagingAddress] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    birthday: Optional[PartialDate] = None
    dates: List[LabeledDate] = field(default_factory=list)
    notes: str = ""
    photo: Optional[bytes] = None
    source: SourceKind = SourceKind.MANUAL
    device_id: Optional[str] = None
    google_id: Optional[str] = None
    linkedin_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.company

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        if self.emails:
            return self.emails[0]
        if self.phones:
            return self.phones[0]
        return "No Name"

    @property
    def has_contact_info(self) -> bool:
        return bool(self.emails or self.phones)

    @property
    def has_name(self) -> bool:
        return bool(self.first_name or self.last_name or self.company)

    @property
    def is_incomplete(self) -> bool:
        return self.has_name and not self.has_contact_info

    @property
    def external_id(self) -> Optional[str]:
        return self.device_id or self.google_id or self.linkedin_id

    @property
    def external_key(self) -> Optional[str]:
        for kind, value in (
            (SourceKind.DEVICE, self.device_id),
            (SourceKind.GOOGLE, self.google_id),
            (SourceKind.LINKEDIN, self.linkedin_id),
        ):
            if value:
                return f"{kind.value}:{value}"
        return None

    @staticmethod
    def _ensure_list(values: Any, kind: Any) -> List[Any]:
        if isinstance(values, str):
            values = json.loads(values) if values.strip() else []
        return [value if isinstance(value, kind) else kind.from_mapping(value) for value in values or []]

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "ContactRecord":
        photo = payload.get("photo")
        if isinstance(photo, str):
            photo = base64.b64decode(photo) if photo else None
        record = cls(
            first_name=_clean(payload.get("first_name")),
            middle_name=_clean(payload.get("middle_name")),
            last_name=_clean(payload.get("last_name")),
            nickname=_clean(payload.get("nickname")),
            company=_clean(payload.get("company")),
            title=_clean(payload.get("title")),
            department=_clean(payload.get("department")),
            emails=_split_multi(payload.get("emails")),
            phones=_split_multi(payload.get("phones")),
            addresses=_split_multi(payload.get("addresses")),
            urls=_split_multi(payload.get("urls")),
            social_profiles=cls._ensure_list(payload.get("social_profiles"), SocialProfile),
            messaging=cls._ensure_list(payload.get("messaging"), MessagingAddress),
            relationships=cls._ensure_list(payload.get("relationships"), Relationship),
            birthday=PartialDate.from_mapping(payload.get("birthday")),
            dates=cls._ensure_list(payload.get("dates"), LabeledDate),
            notes=str(payload.get("notes", "") or ""),
            photo=photo or None,
            source=SourceKind.parse(payload.get("source")),
            device_id=_clean(payload.get("device_id")) or None,
            google_id=_clean(payload.get("google_id")) or None,
            linkedin_id=_clean(payload.get("linkedin_id")) or None,
            created_at=_parse_datetime(payload.get("created_at")),
            updated_at=_parse_datetime(payload.get("updated_at")),
        )
        record_id = _clean(payload.get("record_id"))
        if record_id:
            record.record_id = record_id
        return record

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "first_name": self.first_name,
            "middle_name": self.middle_name,
            "last_name": self.last_name,
            "nickname": self.nickname,
            "company": self.company,
            "title": self.title,
            "department": self.department,
            "emails": list(self.emails),
            "phones": list(self.phones),
            "addresses": list(self.addresses),
            "urls": list(self.urls),
            "social_profiles": [profile.to_dict() for profile in self.social_profiles],
            "messaging": [address.to_dict() for address in self.messaging],
            "relationships": [relation.to_dict() for relation in self.relationships],
            "birthday": self.birthday.to_dict() if self.birthday else None,
            "dates": [entry.to_dict() for entry in self.dates],
            "notes": self.notes,
            "photo": base64.b64encode(self.photo).decode("ascii") if self.photo else "",
            "source": self.source.value,
            "device_id": self.device_id or "",
            "google_id": self.google_id or "",
            "linkedin_id": self.linkedin_id or "",
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def copy(self, **changes: Any) -> "ContactRecord":
        """Return a copy whose list fields are independent of this record."""
        clone = replace(
            self,
            emails=list(self.emails),
            phones=list(self.phones),
            addresses=list(self.addresses),
            urls=list(self.urls),
            social_profiles=list(self.social_profiles),
            messaging=list(self.messaging),
            relationships=list(self.relationships),
            dates=list(self.dates),
        )
        return replace(clone, **changes) if changes else clone


class MatchType(str, Enum):
    SAME_EMAIL = "same_email"
    SAME_PHONE = "same_phone"
    SIMILAR = "similar"

    @property
    def label(self) -> str:
        return {
            MatchType.SAME_EMAIL: "Same Email",
            MatchType.SAME_PHONE: "Same Phone",
            MatchType.SIMILAR: "Similar",
        }[self]

    @property
    def is_exact(self) -> bool:
        return self is not MatchType.SIMILAR


@dataclass(frozen=True)
class DuplicateGroup:
    records: List[ContactRecord]
    match_type: MatchType
    name_similarity: float
    additional_scores: Dict[str, float] = field(default_factory=dict)

    @property
    def primary(self) -> ContactRecord:
        return self.records[0]

    @property
    def record_ids(self) -> List[str]:
        return [record.record_id for record in self.records]

    @property
    def similarity_score(self) -> float:
        if self.match_type.is_exact:
            return 1.0
        return self.name_similarity

    @property
    def confidence(self) -> Confidence:
        return classify_confidence(self.similarity_score)


@dataclass(frozen=True)
class MergeConflict:
    field: str
    value: str
    source_id: str
    source: SourceKind = SourceKind.MANUAL
    external_id: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        return {
            "field": self.field,
            "value": self.value,
            "source_id": self.source_id,
            "source": self.source.value,
            "external_id": self.external_id or "",
        }


@dataclass
class MergeResult:
    record: ContactRecord
    conflicts: List[MergeConflict] = field(default_factory=list)
    history: str = ""
    merged_ids: List[str] = field(default_factory=list)


__all__ = [
    "ContactRecord",
    "DuplicateGroup",
    "LabeledDate",
    "MatchType",
    "MergeConflict",
    "MergeResult",
    "MessagingAddress",
    "PartialDate",
    "Relationship",
    "SocialProfile",
    "SourceKind",
]
