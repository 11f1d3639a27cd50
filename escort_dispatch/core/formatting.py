# escort_dispatch/core/formatting.py
"""Notification message text."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Optional

from escort_dispatch.core.domain import AssignmentRecord, RequestRecord, clean_str

HEADER = "🏍️ ESCORT ASSIGNMENT NOTIFICATION"
COURTESY_BANNER = "⭐ **COURTESY** ⭐"
DEFAULT_SIGNATURE = "-- Rider Integration and Deployment Engine"


def format_date(value: Any) -> str:
    """MM/DD/YYYY for dates; anything else is shown as-is."""
    if isinstance(value, (date, datetime)):
        return value.strftime("%m/%d/%Y")
    return clean_str(value)


def format_time(value: Any) -> str:
    """h:mm AM/PM for times; anything else is shown as-is."""
    if isinstance(value, (datetime, time)):
        hour12 = value.hour % 12 or 12
        suffix = "AM" if value.hour < 12 else "PM"
        return f"{hour12}:{value.minute:02d} {suffix}"
    return clean_str(value)


def format_notification_message(
    assignment: AssignmentRecord,
    request: Optional[RequestRecord] = None,
    signature: str = DEFAULT_SIGNATURE,
) -> str:
    lines = [f"{HEADER}\n\n"]
    lines.append(f"Assignment: {assignment.id}\n")
    if assignment.request_id:
        lines.append(f"Request: {assignment.request_id}\n")
    lines.append(f"Rider: {assignment.rider_name}\n\n")

    date_text = format_date(assignment.event_date)
    if date_text:
        lines.append(f"📅 Date: {date_text}\n")
    time_text = format_time(assignment.start_time)
    if time_text:
        lines.append(f"🕐 Time: {time_text}\n")
    if assignment.start_location:
        lines.append(f"📍 Start: {assignment.start_location}\n")
    if assignment.end_location:
        lines.append(f"🏁 End: {assignment.end_location}\n")

    if request is not None:
        if request.courtesy == "Yes":
            lines.append(f"\n{COURTESY_BANNER}\n")
        if request.notes:
            lines.append(f"\n📝 Notes: {request.notes}\n")

    lines.append(f"\n{signature}")
    return "".join(lines)


def email_subject(assignment: AssignmentRecord) -> str:
    return f"Assignment {assignment.id} - {assignment.request_id}"
