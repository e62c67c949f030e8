"""
Shared types for chapel calendar documents.

Documents come out of the document store as plain dicts (``_id``, ``_type``
and the document's fields). These dataclasses give the availability engine
typed, validated views of them and convert back to document form for writes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.constants import (
    DAY_RULE_DOC_TYPE,
    DAY_RULE_ID_PREFIX,
    EXCEPTION_ITEM_TYPE,
    EXCEPTIONS_FIELD,
    HOUR_RULE_DOC_TYPE,
    MANUAL_BLOCK_DOC_TYPE,
    RESERVATION_DOC_TYPE,
    TENANT_DOC_TYPE,
    TENANT_REF_FIELD,
)
from utils.datetime_utils import format_instant, parse_instant


def tenant_reference(tenant_id: str) -> Dict[str, str]:
    """Reference value pointing a document at its chapel."""
    return {"_ref": tenant_id, "_type": "reference"}


def referenced_tenant_id(doc: Dict[str, Any]) -> Optional[str]:
    """Chapel id a document references, or None."""
    ref = doc.get(TENANT_REF_FIELD)
    if isinstance(ref, dict):
        return ref.get("_ref")
    if isinstance(ref, str):
        return ref
    return None


def parse_hour(value: Any, default: int = 0) -> int:
    """
    Parse a stored hour value.

    Hours are stored as strings ("9") by older documents and as integers by
    newer ones; missing or empty values read as ``default``.
    """
    if value is None or value == "":
        return default
    return int(str(value).strip())


def day_rule_id(tenant_id: str) -> str:
    """Fixed singleton id of a chapel's day rule document."""
    return f"{DAY_RULE_ID_PREFIX}{tenant_id}"


@dataclass(frozen=True)
class TimeException:
    """A carve-out of [start_hour, end_hour) local hours on one local date."""
    date: str  # Format: "YYYY-MM-DD"
    start_hour: int
    end_hour: int

    @property
    def date_key(self) -> str:
        """Date used for matching (stored values may carry a time suffix)."""
        return self.date[:10]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeException":
        return cls(
            date=str(data.get("date") or ""),
            start_hour=parse_hour(data.get("startHour")),
            end_hour=parse_hour(data.get("endHour")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_type": EXCEPTION_ITEM_TYPE,
            "date": self.date,
            "startHour": str(self.start_hour),
            "endHour": str(self.end_hour),
        }


def _parse_exceptions(doc: Dict[str, Any]) -> List[TimeException]:
    return [TimeException.from_dict(ex) for ex in (doc.get(EXCEPTIONS_FIELD) or [])]


@dataclass
class Tenant:
    """A chapel: owns every other document by reference."""
    id: str
    name: str
    timezone: Optional[str] = None
    slug: Optional[str] = None
    password: Optional[str] = None
    nickname: Optional[str] = None
    city: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Tenant":
        slug = doc.get("slug")
        if isinstance(slug, dict):
            slug = slug.get("current")
        return cls(
            id=doc["_id"],
            name=doc.get("name") or "",
            timezone=doc.get("timezone"),
            slug=slug,
            password=doc.get("password"),
            nickname=doc.get("nickname"),
            city=doc.get("city"),
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "_id": self.id,
            "_type": TENANT_DOC_TYPE,
            "name": self.name,
            "timezone": self.timezone,
            "slug": {"_type": "slug", "current": self.slug},
        }
        for key in ("password", "nickname", "city"):
            value = getattr(self, key)
            if value is not None:
                doc[key] = value
        return doc


@dataclass
class Reservation:
    """A booked [start, end) span held by one person."""
    id: str
    tenant_id: Optional[str]
    name: str
    phone: str
    start: datetime
    end: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Reservation":
        return cls(
            id=doc["_id"],
            tenant_id=referenced_tenant_id(doc),
            name=doc.get("name") or "",
            phone=doc.get("phone") or "",
            start=parse_instant(doc["start"]),
            end=parse_instant(doc["end"]),
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "_type": RESERVATION_DOC_TYPE,
            "name": self.name,
            "phone": self.phone,
            "start": format_instant(self.start),
            "end": format_instant(self.end),
        }
        if self.id:
            doc["_id"] = self.id
        if self.tenant_id:
            doc[TENANT_REF_FIELD] = tenant_reference(self.tenant_id)
        return doc


@dataclass
class ManualBlock:
    """An admin-drawn blackout over [start, end)."""
    id: str
    tenant_id: Optional[str]
    start: datetime
    end: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ManualBlock":
        return cls(
            id=doc["_id"],
            tenant_id=referenced_tenant_id(doc),
            start=parse_instant(doc["start"]),
            end=parse_instant(doc["end"]),
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "_type": MANUAL_BLOCK_DOC_TYPE,
            "start": format_instant(self.start),
            "end": format_instant(self.end),
        }
        if self.id:
            doc["_id"] = self.id
        if self.tenant_id:
            doc[TENANT_REF_FIELD] = tenant_reference(self.tenant_id)
        return doc

    def matches(self, start: datetime, end: datetime) -> bool:
        """Exact bounds match."""
        return self.start == start and self.end == end


@dataclass
class HourRule:
    """Every day, block local hours [start_hour, end_hour)."""
    id: str
    tenant_id: Optional[str]
    start_hour: int
    end_hour: int
    exceptions: List[TimeException] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "HourRule":
        return cls(
            id=doc["_id"],
            tenant_id=referenced_tenant_id(doc),
            start_hour=parse_hour(doc.get("startHour")),
            end_hour=parse_hour(doc.get("endHour")),
            exceptions=_parse_exceptions(doc),
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "_type": HOUR_RULE_DOC_TYPE,
            "startHour": str(self.start_hour),
            "endHour": str(self.end_hour),
            EXCEPTIONS_FIELD: [ex.to_dict() for ex in self.exceptions],
        }
        if self.id:
            doc["_id"] = self.id
        if self.tenant_id:
            doc[TENANT_REF_FIELD] = tenant_reference(self.tenant_id)
        return doc


@dataclass
class DayRule:
    """On the listed weekdays, block the whole local day."""
    id: str
    tenant_id: Optional[str]
    days_of_week: List[str] = field(default_factory=list)
    exceptions: List[TimeException] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "DayRule":
        return cls(
            id=doc["_id"],
            tenant_id=referenced_tenant_id(doc),
            days_of_week=list(doc.get("daysOfWeek") or []),
            exceptions=_parse_exceptions(doc),
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "_id": self.id,
            "_type": DAY_RULE_DOC_TYPE,
            "daysOfWeek": list(self.days_of_week),
            EXCEPTIONS_FIELD: [ex.to_dict() for ex in self.exceptions],
        }
        if self.tenant_id:
            doc[TENANT_REF_FIELD] = tenant_reference(self.tenant_id)
        return doc


@dataclass
class CalendarSnapshot:
    """Everything the availability engine needs to know about one chapel."""
    tenant: Tenant
    reservations: List[Reservation] = field(default_factory=list)
    manual_blocks: List[ManualBlock] = field(default_factory=list)
    hour_rules: List[HourRule] = field(default_factory=list)
    day_rule: Optional[DayRule] = None
