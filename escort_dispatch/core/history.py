# escort_dispatch/core/history.py
"""
Notification state, stats, history and report.

Everything here is a pure reduction over ``AssignmentRecord`` lists;
nothing writes to the store.
"""
from __future__ import annotations

from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from escort_dispatch.core.domain import (
    AssignmentRecord,
    AssignmentStatus,
    NotificationState,
    as_date,
    as_datetime,
    is_timestamp_set,
)

# Statuses counted as "awaiting notification" in stats
_STATS_ASSIGNED_STATUSES = frozenset({
    AssignmentStatus.ASSIGNED.value,
    AssignmentStatus.CONFIRMED.value,
    AssignmentStatus.IN_PROGRESS.value,
})

REPORT_REQUEST_LIMIT = 10


def classify(assignment: AssignmentRecord) -> NotificationState:
    """Precedence: both_sent > sms_sent > email_sent > notified > pending > no_rider."""
    sms = is_timestamp_set(assignment.sms_sent_at)
    email = is_timestamp_set(assignment.email_sent_at)

    if sms and email:
        return NotificationState.BOTH_SENT
    if sms:
        return NotificationState.SMS_SENT
    if email:
        return NotificationState.EMAIL_SENT
    if is_timestamp_set(assignment.notified_at):
        return NotificationState.NOTIFIED
    if assignment.has_rider and assignment.status_value == AssignmentStatus.ASSIGNED.value:
        return NotificationState.PENDING
    return NotificationState.NO_RIDER


@dataclass
class NotificationStats:
    total_assignments: int = 0
    pending_notifications: int = 0
    unnotified_assigned: int = 0
    sms_today: int = 0
    email_today: int = 0
    by_state: dict[str, int] = field(default_factory=dict)


def get_stats(assignments: Iterable[AssignmentRecord], today: date) -> NotificationStats:
    stats = NotificationStats()
    states: Counter[str] = Counter()

    for a in assignments:
        states[classify(a).value] += 1

        if a.has_rider:
            stats.total_assignments += 1

        awaiting = a.has_rider and a.status_value in _STATS_ASSIGNED_STATUSES
        if awaiting and not is_timestamp_set(a.notified_at):
            stats.unnotified_assigned += 1
        if awaiting and not a.has_any_timestamp:
            stats.pending_notifications += 1

        if as_date(a.sms_sent_at) == today:
            stats.sms_today += 1
        if as_date(a.email_sent_at) == today:
            stats.email_today += 1

    stats.by_state = {state.value: states.get(state.value, 0) for state in NotificationState}
    return stats


@dataclass
class HistoryEntry:
    id: str
    timestamp: datetime
    type: str
    recipient: str
    request_id: str
    status: str = "Success"
    message_preview: str = ""


def get_history(assignments: Iterable[AssignmentRecord]) -> list[HistoryEntry]:
    """One entry per channel stamp, newest first. Unparseable stamps are skipped."""
    entries = []
    for a in assignments:
        sms_at = as_datetime(a.sms_sent_at)
        if sms_at is not None:
            entries.append(HistoryEntry(
                id=f"{a.id}_sms",
                timestamp=sms_at,
                type="SMS",
                recipient=a.rider_name,
                request_id=a.request_id,
                message_preview="Assignment notification sent via SMS",
            ))
        email_at = as_datetime(a.email_sent_at)
        if email_at is not None:
            entries.append(HistoryEntry(
                id=f"{a.id}_email",
                timestamp=email_at,
                type="Email",
                recipient=a.rider_name,
                request_id=a.request_id,
                message_preview="Assignment notification sent via email",
            ))

    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries


@dataclass
class RiderMarks:
    rider: str
    sms: bool
    email: bool
    notified: bool

    @property
    def marks(self) -> str:
        parts = []
        if self.sms:
            parts.append("📱")
        if self.email:
            parts.append("📧")
        if self.notified:
            parts.append("✅")
        return " ".join(parts) or "❌"


@dataclass
class NotificationReport:
    generated_at: datetime
    total: int = 0
    notified: int = 0
    sms: int = 0
    email: int = 0
    by_request: "OrderedDict[str, list[RiderMarks]]" = field(default_factory=OrderedDict)
    more_requests: int = 0
    text: str = ""


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def build_report(
    assignments: Iterable[AssignmentRecord],
    now: datetime,
    limit: int = REPORT_REQUEST_LIMIT,
) -> Optional[NotificationReport]:
    """Report over rows with status Assigned; None if there are none."""
    assigned = [a for a in assignments if a.status_value == AssignmentStatus.ASSIGNED.value]
    if not assigned:
        return None

    report = NotificationReport(generated_at=now, total=len(assigned))
    grouped: "OrderedDict[str, list[RiderMarks]]" = OrderedDict()

    for a in assigned:
        notified = is_timestamp_set(a.notified_at)
        sms = is_timestamp_set(a.sms_sent_at)
        email = is_timestamp_set(a.email_sent_at)
        report.notified += notified
        report.sms += sms
        report.email += email
        grouped.setdefault(a.request_id, []).append(
            RiderMarks(rider=a.rider_name, sms=sms, email=email, notified=notified)
        )

    for request_id in list(grouped)[:limit]:
        report.by_request[request_id] = grouped[request_id]
    report.more_requests = max(0, len(grouped) - limit)
    report.text = _render_report(report)
    return report


def _render_report(report: NotificationReport) -> str:
    lines = [
        "📊 NOTIFICATION REPORT",
        f"Generated: {report.generated_at.strftime('%m/%d/%Y %I:%M %p')}",
        "",
        "📈 SUMMARY:",
        f"Total Assignments: {report.total}",
        f"Notified: {report.notified} ({_percent(report.notified, report.total)}%)",
        f"SMS Sent: {report.sms} ({_percent(report.sms, report.total)}%)",
        f"Email Sent: {report.email} ({_percent(report.email, report.total)}%)",
        "",
        f"📋 BY REQUEST (first {REPORT_REQUEST_LIMIT}):",
    ]
    for request_id, riders in report.by_request.items():
        lines.append(f"{request_id}: {len(riders)} rider(s)")
        for r in riders:
            lines.append(f"  {r.rider}: {r.marks}")
    if report.more_requests:
        lines.append(f"... and {report.more_requests} more requests")
    return "\n".join(lines) + "\n"
