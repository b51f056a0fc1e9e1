"""Pydantic schemas for Family Connect.

This module defines the family state document (members, events, tasks and
scheduled reminder records) and the request/response bodies of the API.
IMPORTANT: scheduled_time and created_at are datetime objects, NOT strings.
"""

import re
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

from carriers import PHONE_DIGITS, gateway_for, normalize_phone, supported_carriers

ItemType = Literal["event", "task"]

_DATE_ONLY = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_item_datetime(value: Union[str, datetime]) -> datetime:
    """Parse the date stored on an event or task.

    Handles both formats the calendar stores:
    - Date only: "2024-01-10" -> midnight of that day, naive (local time)
    - ISO date-time: "2024-01-10T18:00:00", "2024-01-10T18:00:00Z",
      "2024-01-10T18:00:00+02:00"

    Naive results are kept naive; callers decide how to localise them.

    Raises:
        ValueError: value is not a recognised date or date-time
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    value = value.strip()
    if _DATE_ONLY.match(value):
        return datetime.strptime(value, '%Y-%m-%d')
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def to_utc(dt: datetime) -> datetime:
    """Make a datetime timezone-aware in UTC. Naive values are local time."""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone(timezone.utc)


class ReminderConfig(BaseModel):
    """Reminder settings embedded in an event or task."""

    enabled: bool = False
    times: List[str] = Field(default_factory=list, description="Offset labels, e.g. '1 day before'")
    member_ids: List[str] = Field(default_factory=list, description="Members to text")

    @property
    def is_active(self) -> bool:
        # A partially filled configuration counts as disabled
        return bool(self.enabled and self.times and self.member_ids)


def active_config(config: Optional[ReminderConfig]) -> Optional[ReminderConfig]:
    """Return the configuration if it is active, else None."""
    if config is not None and config.is_active:
        return config
    return None


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberCreate(BaseModel):
    """Schema for adding a family member.

    A phone and a carrier must be given together. The phone is stored as
    its 10 digits, the carrier lower-cased.
    """

    name: str = Field(..., min_length=1, max_length=100, examples=["Mom"])
    phone: Optional[str] = Field(None, examples=["555-123-4567"])
    carrier: Optional[str] = Field(None, examples=["verizon"])

    @field_validator('name')
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please enter a name")
        return value

    @field_validator('phone')
    @classmethod
    def clean_phone(cls, value: Optional[str]) -> Optional[str]:
        digits = normalize_phone(value or '')
        if not digits:
            return None
        if len(digits) != PHONE_DIGITS:
            raise ValueError(f"Please enter a valid {PHONE_DIGITS}-digit phone number")
        return digits

    @field_validator('carrier')
    @classmethod
    def clean_carrier(cls, value: Optional[str]) -> Optional[str]:
        value = (value or '').strip().lower()
        if not value:
            return None
        if gateway_for(value) is None:
            raise ValueError(
                "Invalid carrier. Supported carriers: " + ", ".join(supported_carriers())
            )
        return value

    @model_validator(mode='after')
    def phone_and_carrier_together(self):
        if self.phone and not self.carrier:
            raise ValueError("Please select a carrier when adding a phone number")
        if self.carrier and not self.phone:
            raise ValueError("Please enter a phone number for the selected carrier")
        return self


class Member(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    carrier: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def can_receive_sms(self) -> bool:
        return bool(self.phone and self.carrier)


# ---------------------------------------------------------------------------
# Events and tasks
# ---------------------------------------------------------------------------

def _check_date(value: str) -> str:
    parse_item_datetime(value)
    return value.strip()


ItemDate = Annotated[str, AfterValidator(_check_date)]


class EventCreate(BaseModel):
    """Schema for creating an event.

    date is either "YYYY-MM-DD" (all day) or an ISO date-time.
    """

    title: str = Field(..., min_length=1, max_length=200, examples=["Soccer practice"])
    date: ItemDate = Field(..., examples=["2024-01-10T18:00:00Z", "2024-01-10"])
    description: Optional[str] = None
    reminders: Optional[ReminderConfig] = None


class EventUpdate(BaseModel):
    """Schema for updating an event. Only provided fields are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    date: Optional[ItemDate] = None
    description: Optional[str] = None
    reminders: Optional[ReminderConfig] = None


class Event(BaseModel):
    id: str
    title: str
    date: str
    description: Optional[str] = None
    reminders: Optional[ReminderConfig] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def when(self) -> Optional[str]:
        return self.date


class TaskCreate(BaseModel):
    """Schema for creating a task. due_date is optional."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Take out the trash"])
    assignee: Optional[str] = Field(None, description="Member name")
    due_date: Optional[ItemDate] = Field(None, examples=["2024-01-10T18:00:00Z"])
    description: Optional[str] = None
    reminders: Optional[ReminderConfig] = None


class TaskUpdate(BaseModel):
    """Schema for updating a task. Only provided fields are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    assignee: Optional[str] = None
    due_date: Optional[ItemDate] = None
    description: Optional[str] = None
    reminders: Optional[ReminderConfig] = None


class Task(BaseModel):
    id: str
    title: str
    assignee: Optional[str] = None
    due_date: Optional[str] = None
    description: Optional[str] = None
    reminders: Optional[ReminderConfig] = None
    completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def when(self) -> Optional[str]:
        return self.due_date


# ---------------------------------------------------------------------------
# Reminder records and the family document
# ---------------------------------------------------------------------------

class ReminderRecord(BaseModel):
    """A scheduled SMS reminder derived from an item's reminder offsets.

    item_id is a weak reference: deleting the item leaves the record in
    place until the dispatcher finds it orphaned.
    """

    id: str
    item_type: ItemType
    item_id: str
    scheduled_time: datetime
    sent: bool = False
    member_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class FamilyState(BaseModel):
    """The whole family document. Saved wholesale on every mutation."""

    family_id: str
    events: List[Event] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    members: List[Member] = Field(default_factory=list)
    scheduled_reminders: List[ReminderRecord] = Field(default_factory=list)
    last_updated: Optional[datetime] = None

    def find_item(self, item_type: str, item_id: str) -> Optional[Union[Event, Task]]:
        items = self.events if item_type == "event" else self.tasks
        return next((item for item in items if item.id == item_id), None)

    def find_member(self, member_id: str) -> Optional[Member]:
        return next((m for m in self.members if m.id == member_id), None)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class FamilyCreated(BaseModel):
    family_id: str


class SendNowRequest(BaseModel):
    member_ids: List[str] = Field(default_factory=list, description="Members to text right now")


class SendNowResult(BaseModel):
    """Aggregated outcome of a manual send."""

    success_count: int = 0
    fail_count: int = 0
    errors: List[str] = Field(default_factory=list)
    summary: str = ""


class RelayCheckResult(BaseModel):
    """Outcome of a relay connection test."""

    success: bool
    message: str
    status_code: Optional[int] = None
    hint: Optional[str] = None


class ScanResult(BaseModel):
    """Outcome of one dispatcher scan."""

    sent: int = 0
    orphaned: int = 0
    undeliverable: int = 0
    failed: int = 0
