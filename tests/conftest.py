# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from datetime import date, datetime, time
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from escort_dispatch.config import Settings
from escort_dispatch.core import columns
from escort_dispatch.core.columns import AssignmentCols, RequestCols, RiderCols
from escort_dispatch.core.engine import NotificationEngine
from escort_dispatch.infra.record_store import Collection, InMemoryRecordStore


NOW = datetime(2026, 3, 10, 9, 30, 15, 123456)
TODAY = NOW.date()


# ============================================================================
# FAKES
# ============================================================================

class FakeClock:
    """Wall clock returning a settable datetime"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTimer:
    """Monotonic/epoch-seconds clock that only moves when told to"""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeSleep:
    """Records pauses instead of sleeping"""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class RecordingGateway:
    """Messaging gateway that records sends; addresses in ``fail_for`` raise"""

    name = "recording"

    def __init__(self, fail_for: set[str] | None = None, error: Exception | None = None):
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for = fail_for or set()
        self.error = error or ConnectionError("relay unavailable")

    async def send(self, address: str, subject: str, body: str) -> None:
        if address in self.fail_for or "*" in self.fail_for:
            raise self.error
        self.sent.append((address, subject, body))

    @property
    def addresses(self) -> list[str]:
        return [s[0] for s in self.sent]


# ============================================================================
# ROW BUILDERS
# ============================================================================

def _row(headers: list[str], values: dict) -> list:
    return [values.get(h, "") for h in headers]


def request_row(**kw) -> list:
    values = {
        RequestCols.ID: kw.get("id", ""),
        RequestCols.EVENT_DATE: kw.get("event_date", ""),
        RequestCols.START_TIME: kw.get("start_time", ""),
        RequestCols.START_LOCATION: kw.get("start_location", ""),
        RequestCols.END_LOCATION: kw.get("end_location", ""),
        RequestCols.RIDERS_NEEDED: kw.get("riders_needed", ""),
        RequestCols.STATUS: kw.get("status", ""),
        RequestCols.NOTES: kw.get("notes", ""),
        RequestCols.RIDERS_ASSIGNED: kw.get("riders_assigned", ""),
        RequestCols.COURTESY: kw.get("courtesy", ""),
    }
    return _row(RequestCols.ALL, values)


def rider_row(
    name: str, phone: str = "", carrier: str = "", email: str = "", rider_id: str = "", status: str = "Active"
) -> list:
    values = {
        RiderCols.ID: rider_id,
        RiderCols.NAME: name,
        RiderCols.PHONE: phone,
        RiderCols.CARRIER: carrier,
        RiderCols.EMAIL: email,
        RiderCols.STATUS: status,
    }
    return _row(RiderCols.ALL, values)


def assignment_row(**kw) -> list:
    values = {
        AssignmentCols.ID: kw.get("id", ""),
        AssignmentCols.REQUEST_ID: kw.get("request_id", ""),
        AssignmentCols.EVENT_DATE: kw.get("event_date", ""),
        AssignmentCols.START_TIME: kw.get("start_time", ""),
        AssignmentCols.START_LOCATION: kw.get("start_location", ""),
        AssignmentCols.END_LOCATION: kw.get("end_location", ""),
        AssignmentCols.RIDER_NAME: kw.get("rider", ""),
        AssignmentCols.STATUS: kw.get("status", ""),
        AssignmentCols.NOTIFIED: kw.get("notified", ""),
        AssignmentCols.SMS_SENT: kw.get("sms_sent", ""),
        AssignmentCols.EMAIL_SENT: kw.get("email_sent", ""),
        AssignmentCols.NOTES: kw.get("notes", ""),
    }
    return _row(AssignmentCols.ALL, values)


def build_store(requests=(), riders=(), assignments=()) -> InMemoryRecordStore:
    return InMemoryRecordStore({
        columns.REQUESTS: Collection(columns.REQUESTS, list(RequestCols.ALL), [list(r) for r in requests]),
        columns.RIDERS: Collection(columns.RIDERS, list(RiderCols.ALL), [list(r) for r in riders]),
        columns.ASSIGNMENTS: Collection(columns.ASSIGNMENTS, list(AssignmentCols.ALL), [list(r) for r in assignments]),
    })


DEFAULT_RIDERS = [
    rider_row("Jane Doe", "504-555-1234", "Verizon", "jane@example.com", "R-001"),
    rider_row("John Smith", "(225) 555-9876", "AT&T", "john@example.com", "R-002"),
    rider_row("No Contact", rider_id="R-003"),
    rider_row("Short Phone", "555-1234", "Verizon", "", "R-004"),
    rider_row("Sam Lee", "5045550001", "Sprint", "sam1@example.com", "R-005"),
    rider_row("Sam Lee", "5045550002", "Sprint", "sam2@example.com", "R-006"),
    rider_row("Email Only", "", "", "emailonly@example.com", "R-007"),
    rider_row("Mystery Carrier", "5045550003", "Pigeon Wireless", "", "R-008"),
]

DEFAULT_REQUESTS = [
    request_row(
        id="B-02-01", event_date=date(2026, 3, 10), start_time=time(9, 0),
        start_location="Station 1", end_location="Courthouse", status="Assigned",
        notes="Bring vests", courtesy="Yes", riders_needed=2,
        riders_assigned="Jane Doe, John Smith",
    ),
    request_row(
        id="C-03-26", event_date=date(2026, 3, 12), status="Completed",
        courtesy="No", riders_needed=1, riders_assigned="Sam Lee",
    ),
    request_row(id="A-01-26", event_date=date(2026, 1, 5), status="Cancelled"),
]

DEFAULT_ASSIGNMENTS = [
    assignment_row(
        id="A-0001", request_id="B-02-01", event_date=date(2026, 3, 10), start_time=time(9, 0),
        start_location="Station 1", end_location="Courthouse", rider="Jane Doe", status="Assigned",
    ),
    assignment_row(
        id="A-0002", request_id="B-02-01", event_date=date(2026, 3, 10),
        end_location="Courthouse", rider="John Smith", status="Assigned",
    ),
    assignment_row(id="A-0003", request_id="C-03-26", event_date=date(2026, 3, 12), rider="Sam Lee", status="Assigned"),
    assignment_row(id="A-0004", request_id="C-03-26", event_date=date(2026, 3, 12), rider="No Contact", status="Confirmed"),
    assignment_row(id="A-0005", request_id="A-01-26", event_date=date(2026, 1, 5), rider="Short Phone", status="Completed"),
    assignment_row(id="A-0006", request_id="B-02-01", event_date=date(2026, 3, 10), rider="", status="Assigned"),
    assignment_row(
        id="A-0007", request_id="B-02-02", event_date=date(2026, 3, 11), end_location="Courthouse",
        rider="Jane Doe", status="Assigned",
        notified=datetime(2026, 3, 9, 8, 0), sms_sent=datetime(2026, 3, 9, 8, 0),
    ),
    assignment_row(id="A-0008", request_id="B-02-03", event_date=date(2026, 3, 10), rider="Email Only", status="Confirmed"),
]


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    return Settings(_env_file=None, app_env="dev", messaging_backend="disabled", admin_token=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def store():
    return build_store(DEFAULT_REQUESTS, DEFAULT_RIDERS, DEFAULT_ASSIGNMENTS)


@pytest.fixture
def make_store():
    """Factory for stores with custom rows"""
    return build_store


@pytest.fixture
def rows():
    """Row builders for custom stores"""
    class Rows:
        request = staticmethod(request_row)
        rider = staticmethod(rider_row)
        assignment = staticmethod(assignment_row)
    return Rows


@pytest.fixture
def engine(store, gateway, settings, clock, timer, fake_sleep):
    return NotificationEngine(
        store=store,
        gateway=gateway,
        settings=settings,
        clock=clock,
        sleep=fake_sleep,
        cache_clock=timer,
        edit_clock=timer,
    )


@pytest.fixture
def cell():
    """Read one Assignments/Requests cell straight from the store: cell(store, collection, id, header)"""
    def _cell(store, collection: str, record_id: str, header: str):
        snapshot = store.get_collection(collection)
        col_idx = snapshot.headers.index(header)
        for row in snapshot.rows:
            # ID is the first column in every collection
            if row[0] == record_id:
                return row[col_idx]
        raise KeyError(record_id)
    return _cell


@pytest.fixture(autouse=True)
def reset_metrics():
    from escort_dispatch.infra.metrics import get_metrics_collector

    get_metrics_collector().reset()
    yield
