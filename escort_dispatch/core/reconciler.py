# escort_dispatch/core/reconciler.py
"""
Request -> assignment reconciliation.

Two independent operations:
- field propagation: copy edited request fields onto every assignment of
  that request (exact, case-sensitive request id match)
- status repair: fill in blank assignment statuses from the parent
  request; rows that already carry a status are never written

Each row is written in its own try block; one bad row is logged and the
rest still get updated.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional

from escort_dispatch.core import columns
from escort_dispatch.core.columns import AssignmentCols, RequestCols
from escort_dispatch.core.data_service import DataService
from escort_dispatch.core.domain import (
    AssignmentStatus,
    RequestStatus,
    StatusSet,
    as_date,
    clean_str,
)
from escort_dispatch.infra.activity_log import ActivityLog
from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

COMPLETED_NO_RIDER = "Completed (No Rider)"
PENDING_ASSIGNMENT = "Pending Assignment"


# Request fields duplicated onto assignments. Each accepts camelCase,
# snake_case or the column header as the change key.
_PROPAGATED = [
    ("eventDate", "event_date", AssignmentCols.EVENT_DATE),
    ("startTime", "start_time", AssignmentCols.START_TIME),
    ("endTime", "end_time", AssignmentCols.END_TIME),
    ("startLocation", "start_location", AssignmentCols.START_LOCATION),
    ("endLocation", "end_location", AssignmentCols.END_LOCATION),
    ("secondaryEndLocation", "secondary_end_location", AssignmentCols.SECONDARY_END_LOCATION),
    ("notes", "notes", AssignmentCols.NOTES),
]

FIELD_TO_COLUMN: dict[str, str] = {}
for _camel, _snake, _header in _PROPAGATED:
    FIELD_TO_COLUMN[_camel] = _header
    FIELD_TO_COLUMN[_snake] = _header
    FIELD_TO_COLUMN[_header] = _header


@dataclass
class PropagationResult:
    request_id: str
    updated_rows: int = 0
    updated_cells: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class RepairResult:
    examined: int = 0
    repaired: int = 0
    errors: list[str] = field(default_factory=list)
    changes: list[dict[str, str]] = field(default_factory=list)


def resolve_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Map a change-set onto Assignments columns; unknown keys are dropped."""
    resolved = {}
    for key, value in changes.items():
        header = FIELD_TO_COLUMN.get(key)
        if header is None:
            logger.debug(f"Change key '{key}' is not propagated to assignments")
            continue
        resolved[header] = value
    return resolved


def infer_assignment_status(
    request_status: str,
    has_rider: bool,
    event_date: Any,
    today: date,
) -> str:
    if request_status == RequestStatus.COMPLETED.value:
        return AssignmentStatus.COMPLETED.value if has_rider else COMPLETED_NO_RIDER

    if request_status == RequestStatus.CANCELLED.value:
        return AssignmentStatus.CANCELLED.value

    if request_status == RequestStatus.ASSIGNED.value:
        if not has_rider:
            return PENDING_ASSIGNMENT
        event_day = as_date(event_date)
        if event_day is not None and event_day < today:
            return AssignmentStatus.COMPLETED.value
        return AssignmentStatus.ASSIGNED.value

    return request_status


_RIDER_SPLIT = re.compile(r"[\n,]")


def count_assigned_riders(riders_assigned: Any) -> int:
    """Names in a comma/newline separated list, ignoring blanks and 'TBD'."""
    text = clean_str(riders_assigned)
    if not text:
        return 0
    return sum(
        1 for name in _RIDER_SPLIT.split(text)
        if name.strip() and name.strip().lower() != "tbd"
    )


def _parse_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    match = re.match(r"\s*(-?\d+)", clean_str(value))
    return int(match.group(1)) if match else 0


def derive_request_status(riders_needed: Any, riders_assigned: Any) -> str:
    assigned = count_assigned_riders(riders_assigned)
    if assigned == 0 or assigned < _parse_count(riders_needed):
        return RequestStatus.UNASSIGNED.value
    return RequestStatus.ASSIGNED.value


class StatusReconciler:

    def __init__(
        self,
        data: DataService,
        activity_log: ActivityLog,
        clock: Callable[[], datetime] = datetime.now,
        today: Callable[[], date] = date.today,
    ):
        self.data = data
        self.activity_log = activity_log
        self._clock = clock
        self._today = today

    def propagate_request_fields(self, request_id: str, changes: Mapping[str, Any]) -> PropagationResult:
        result = PropagationResult(request_id=request_id)
        updates = resolve_changes(changes)
        if not updates:
            return result

        acc = self.data.accessor(columns.ASSIGNMENTS)
        try:
            for row_index, row in acc:
                if clean_str(acc.get(row, AssignmentCols.REQUEST_ID)) != request_id:
                    continue
                assignment_id = clean_str(acc.get(row, AssignmentCols.ID))
                try:
                    for header, value in updates.items():
                        if acc.set(row_index, header, value):
                            result.updated_cells += 1
                    result.updated_rows += 1
                except Exception as exc:
                    result.errors.append(f"{assignment_id or row_index}: {exc}")
                    self.activity_log.log_error(
                        f"Error updating assignment {assignment_id} for request {request_id}", exc
                    )
        finally:
            self.data.invalidate(columns.ASSIGNMENTS)

        if result.updated_rows:
            self.activity_log.log_activity(
                f"Propagated request {request_id} changes to {result.updated_rows} assignments",
                ", ".join(updates.keys()),
            )
        return result

    def repair_statuses(self) -> RepairResult:
        result = RepairResult()
        today = self._today()
        requests_by_id = {r.id.lower(): r for r in self.data.requests() if r.id}

        acc = self.data.accessor(columns.ASSIGNMENTS)
        try:
            for assignment in self.data.assignments():
                if isinstance(assignment.status, StatusSet):
                    continue
                result.examined += 1

                parent = requests_by_id.get(assignment.request_id.lower())
                if parent is None or not parent.status:
                    continue

                new_status = infer_assignment_status(
                    parent.status, assignment.has_rider, assignment.event_date, today
                )
                try:
                    acc.set(assignment.row_index, AssignmentCols.STATUS, new_status)
                except Exception as exc:
                    result.errors.append(f"{assignment.id}: {exc}")
                    self.activity_log.log_error(
                        f"Error repairing status for assignment {assignment.id}", exc
                    )
                    continue

                result.repaired += 1
                result.changes.append({"assignment_id": assignment.id, "status": new_status})
        finally:
            self.data.invalidate(columns.ASSIGNMENTS)

        self.activity_log.log_activity(
            f"Assignment status repair: {result.repaired} of {result.examined} blank statuses set"
        )
        return result

    def update_request_status_from_riders(self, request_id: str) -> Optional[str]:
        request = self.data.find_request(request_id)
        if request is None:
            self.activity_log.log_error(
                f"update_request_status_from_riders: Request ID {request_id} not found"
            )
            return None

        new_status = derive_request_status(request.riders_needed, request.riders_assigned)

        acc = self.data.accessor(columns.REQUESTS)
        try:
            acc.set(request.row_index, RequestCols.STATUS, new_status)
            acc.set(request.row_index, RequestCols.LAST_UPDATED, self._clock().replace(microsecond=0))
        finally:
            self.data.invalidate(columns.REQUESTS)

        self.activity_log.log_activity(
            f"Status set for request {request.id} to {new_status} after rider check."
        )
        return new_status
