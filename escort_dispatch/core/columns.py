# escort_dispatch/core/columns.py
"""
Logical collection and column names.

Physical column order is never assumed: every read and write goes through
``RecordAccessor``, which resolves these header names against the header
row of the collection it wraps.
"""
from __future__ import annotations


# ============================================================================
# COLLECTIONS
# ============================================================================

REQUESTS = "Requests"
RIDERS = "Riders"
ASSIGNMENTS = "Assignments"
LOG = "Log"


# ============================================================================
# REQUESTS
# ============================================================================

class RequestCols:
    ID = "Request ID"
    DATE = "Date"
    REQUESTER_NAME = "Requester Name"
    REQUESTER_CONTACT = "Requester Contact"
    REQUEST_TYPE = "Request Type"
    EVENT_DATE = "Event Date"
    START_TIME = "Start Time"
    END_TIME = "End Time"
    START_LOCATION = "Start Location"
    END_LOCATION = "End Location"
    SECONDARY_END_LOCATION = "Secondary End Location"
    RIDERS_NEEDED = "Riders Needed"
    SPECIAL_REQUIREMENTS = "Special Requirements"
    STATUS = "Status"
    NOTES = "Notes"
    RIDERS_ASSIGNED = "Riders Assigned"
    COURTESY = "Courtesy"
    LAST_UPDATED = "Last Updated"

    ALL = [
        ID, DATE, REQUESTER_NAME, REQUESTER_CONTACT, REQUEST_TYPE, EVENT_DATE,
        START_TIME, END_TIME, START_LOCATION, END_LOCATION,
        SECONDARY_END_LOCATION, RIDERS_NEEDED, SPECIAL_REQUIREMENTS, STATUS,
        NOTES, RIDERS_ASSIGNED, COURTESY, LAST_UPDATED,
    ]


# ============================================================================
# RIDERS
# ============================================================================

class RiderCols:
    ID = "Rider ID"
    NAME = "Full Name"
    PHONE = "Phone Number"
    CARRIER = "Carrier"
    EMAIL = "Email"
    SMS_GATEWAY_EMAIL = "SMS Gateway Email"
    STATUS = "Status"
    CERTIFICATION = "Certification"
    TOTAL_ASSIGNMENTS = "Total Assignments"
    LAST_ASSIGNMENT_DATE = "Last Assignment Date"

    ALL = [
        ID, NAME, PHONE, CARRIER, EMAIL, SMS_GATEWAY_EMAIL, STATUS,
        CERTIFICATION, TOTAL_ASSIGNMENTS, LAST_ASSIGNMENT_DATE,
    ]


# ============================================================================
# ASSIGNMENTS
# ============================================================================

class AssignmentCols:
    ID = "Assignment ID"
    REQUEST_ID = "Request ID"
    EVENT_DATE = "Event Date"
    START_TIME = "Start Time"
    END_TIME = "End Time"
    START_LOCATION = "Start Location"
    END_LOCATION = "End Location"
    SECONDARY_END_LOCATION = "Secondary End Location"
    RIDER_NAME = "Rider Name"
    JP_NUMBER = "JP Number"
    STATUS = "Status"
    CREATED_DATE = "Created Date"
    NOTIFIED = "Notified"
    SMS_SENT = "SMS Sent"
    EMAIL_SENT = "Email Sent"
    COMPLETED_DATE = "Completed Date"
    CALENDAR_EVENT_ID = "Calendar Event ID"
    NOTES = "Notes"

    ALL = [
        ID, REQUEST_ID, EVENT_DATE, START_TIME, END_TIME, START_LOCATION,
        END_LOCATION, SECONDARY_END_LOCATION, RIDER_NAME, JP_NUMBER, STATUS,
        CREATED_DATE, NOTIFIED, SMS_SENT, EMAIL_SENT, COMPLETED_DATE,
        CALENDAR_EVENT_ID, NOTES,
    ]


# ============================================================================
# LOG
# ============================================================================

class LogCols:
    TIMESTAMP = "Timestamp"
    TYPE = "Type"
    MESSAGE = "Message"
    DETAILS = "Details"

    ALL = [TIMESTAMP, TYPE, MESSAGE, DETAILS]
