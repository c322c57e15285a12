from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Any
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

class SourceName(str, Enum):
    FEDERAL = "federal"
    STATE = "state"

class BillStage(str, Enum):
    INTRODUCED = "introduced"
    COMMITTEE = "committee"
    PASSED_CHAMBER = "passed-chamber"
    PASSED_BOTH = "passed-both"
    ENACTED = "enacted"
    VETOED = "vetoed"
    FAILED = "failed"

class Chamber(str, Enum):
    HOUSE = "house"
    SENATE = "senate"
    UNKNOWN = "unknown"

def _coerce_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None

class Sponsor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str = "Unknown Sponsor"
    party: str = "Unknown"
    chamber: Chamber = Chamber.UNKNOWN

class Bill(BaseModel):
    """Unified bill record produced by a source adapter.

    The public identifier is derived from the provenance tag and the
    provider-native id, so two providers reusing a native id never collide.
    Instances are immutable; a fresher fetch produces a new Bill.
    """
    model_config = ConfigDict(frozen=True)

    source: SourceName
    native_id: str
    bill_number: str = ""
    title: str
    summary: str = ""
    sponsor: Sponsor = Field(default_factory=Sponsor)
    status: BillStage = BillStage.INTRODUCED
    status_detail: str = ""
    subjects: Tuple[str, ...] = ()
    introduced_date: Optional[date] = None
    last_action_date: Optional[date] = None
    url: Optional[str] = None

    @computed_field
    @property
    def id(self) -> str:
        return f"{self.source.value}:{self.native_id}"

    @field_validator("subjects", mode="before")
    @classmethod
    def normalize_subjects(cls, v):
        if not v:
            return ()
        cleaned = {str(s).strip() for s in v if s and str(s).strip()}
        return tuple(sorted(cleaned))

    @field_validator("introduced_date", "last_action_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _coerce_date(v)

    def matches_topic(self, topic: str) -> bool:
        needle = topic.lower()
        return any(needle in subject.lower() for subject in self.subjects)
