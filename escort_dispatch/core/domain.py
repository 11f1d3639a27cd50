# escort_dispatch/core/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional, Union


# ============================================================================
# ENUMS
# ============================================================================

class Channel(str, Enum):
    SMS = "SMS"
    EMAIL = "Email"
    BOTH = "Both"

    def expand(self) -> list["Channel"]:
        """Individual channels this one stands for"""
        if self is Channel.BOTH:
            return [Channel.SMS, Channel.EMAIL]
        return [self]


class AssignmentStatus(str, Enum):
    ASSIGNED = "Assigned"
    CONFIRMED = "Confirmed"
    EN_ROUTE = "En Route"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No Show"


TERMINAL_ASSIGNMENT_STATUSES = frozenset({
    AssignmentStatus.COMPLETED.value,
    AssignmentStatus.CANCELLED.value,
    AssignmentStatus.NO_SHOW.value,
})

# Statuses eligible for a first notification
ACTIVE_ASSIGNMENT_STATUSES = frozenset({
    AssignmentStatus.ASSIGNED.value,
    AssignmentStatus.CONFIRMED.value,
    AssignmentStatus.EN_ROUTE.value,
    AssignmentStatus.IN_PROGRESS.value,
})


class RequestStatus(str, Enum):
    NEW = "New"
    PENDING = "Pending"
    ASSIGNED = "Assigned"
    UNASSIGNED = "Unassigned"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class RiderStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    VACATION = "Vacation"
    TRAINING = "Training"
    SUSPENDED = "Suspended"

    @classmethod
    def parse(cls, value: Any) -> Optional["RiderStatus"]:
        """None for a blank or unrecognised cell"""
        try:
            return cls(clean_str(value))
        except ValueError:
            return None


class NotificationState(str, Enum):
    BOTH_SENT = "both_sent"
    SMS_SENT = "sms_sent"
    EMAIL_SENT = "email_sent"
    NOTIFIED = "notified"
    PENDING = "pending"
    NO_RIDER = "no_rider"


class ErrorCode(str, Enum):
    NOT_FOUND = "NotFound"
    MISSING_RIDER = "MissingRider"
    RIDER_NOT_FOUND = "RiderNotFound"
    AMBIGUOUS_RIDER = "AmbiguousRider"
    NO_CONTACT_INFO = "NoContactInfo"
    INVALID_PHONE = "InvalidPhone"
    INVALID_EMAIL = "InvalidEmail"
    TRANSPORT_FAILURE = "TransportFailure"
    UNEXPECTED = "Unexpected"


# ============================================================================
# ERRORS
# ============================================================================

class DispatchError(Exception):
    """A dispatch-level failure; always converted to a failed result."""

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class ConfigurationError(Exception):
    """Unrecoverable setup problem (missing collection, missing column, bad settings)."""
    pass


# ============================================================================
# STATUS UNION
# ============================================================================

@dataclass(frozen=True)
class StatusUnset:
    """No status recorded yet; the only state status repair may write over."""

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class StatusSet:
    value: str


Status = Union[StatusUnset, StatusSet]


def parse_status(raw: Any) -> Status:
    text = clean_str(raw)
    if not text:
        return StatusUnset()
    return StatusSet(text)


# ============================================================================
# RESULTS
# ============================================================================

@dataclass
class ChannelResult:
    channel: Channel
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None


@dataclass
class DispatchResult:
    assignment_id: str
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    sms: Optional[ChannelResult] = None
    email: Optional[ChannelResult] = None

    @classmethod
    def failure(cls, assignment_id: str, code: ErrorCode, message: str) -> "DispatchResult":
        return cls(assignment_id=assignment_id, success=False, message=message, error_code=code)


@dataclass
class BatchResult:
    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    message: str = ""
    total: int = 0


# ============================================================================
# RECORD VIEWS
# ============================================================================

@dataclass
class ContactInfo:
    name: str
    phone: str = ""
    carrier: str = ""
    email: str = ""
    status: Optional[RiderStatus] = None

    @property
    def has_contact(self) -> bool:
        return bool(self.phone or self.email)


@dataclass
class AssignmentRecord:
    """Read-only view of one Assignments row"""
    row_index: int
    id: str
    request_id: str = ""
    rider_name: str = ""
    status: Status = field(default_factory=StatusUnset)
    event_date: Any = None
    start_time: Any = None
    end_time: Any = None
    start_location: str = ""
    end_location: str = ""
    secondary_end_location: str = ""
    notes: str = ""
    notified_at: Any = None
    sms_sent_at: Any = None
    email_sent_at: Any = None

    @property
    def has_rider(self) -> bool:
        return bool(self.rider_name)

    @property
    def status_value(self) -> str:
        return self.status.value if isinstance(self.status, StatusSet) else ""

    @property
    def is_terminal(self) -> bool:
        return self.status_value in TERMINAL_ASSIGNMENT_STATUSES

    @property
    def has_any_timestamp(self) -> bool:
        return any(
            is_timestamp_set(v)
            for v in (self.notified_at, self.sms_sent_at, self.email_sent_at)
        )


@dataclass
class RequestRecord:
    """Read-only view of one Requests row"""
    row_index: int
    id: str
    status: str = ""
    event_date: Any = None
    start_time: Any = None
    end_time: Any = None
    start_location: str = ""
    end_location: str = ""
    secondary_end_location: str = ""
    notes: str = ""
    courtesy: str = ""
    riders_needed: Any = None
    riders_assigned: str = ""


# ============================================================================
# VALUE HELPERS
# ============================================================================

_DATETIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
)


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_timestamp_set(value: Any) -> bool:
    """A notification stamp counts as set when the cell holds anything non-blank."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def as_datetime(value: Any) -> Optional[datetime]:
    """Best-effort conversion of a cell value to a datetime"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in _DATETIME_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def as_date(value: Any) -> Optional[date]:
    dt = as_datetime(value)
    return dt.date() if dt is not None else None
