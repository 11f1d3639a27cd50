# escort_dispatch/core/data_service.py
"""
Cache-backed reads of the Requests, Riders and Assignments collections.

One ``DataService`` belongs to one invocation together with its ``TTLCache``.
Writes go through the accessor returned by ``accessor()``; callers invalidate
the collection they wrote so later reads in the same invocation see fresh data.
"""
from __future__ import annotations

from typing import Any, Optional

from escort_dispatch.core import columns
from escort_dispatch.core.columns import AssignmentCols, RequestCols
from escort_dispatch.core.domain import (
    AssignmentRecord,
    RequestRecord,
    clean_str,
    parse_status,
)
from escort_dispatch.infra.logging_config import get_logger
from escort_dispatch.infra.record_store import RecordAccessor, RecordStore
from escort_dispatch.infra.ttl_cache import TTLCache

logger = get_logger(__name__)


class DataService:

    def __init__(self, store: RecordStore, cache: TTLCache):
        self.store = store
        self.cache = cache

    def accessor(self, name: str) -> RecordAccessor:
        collection = self.cache.get(name)
        if collection is None:
            collection = self.store.get_collection(name)
            self.cache.set(name, collection)
            logger.debug(f"Loaded {name}: {len(collection.rows)} rows")
        return RecordAccessor(self.store, collection)

    def invalidate(self, name: str | None = None) -> None:
        self.cache.clear(name)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def assignments(self) -> list[AssignmentRecord]:
        acc = self.accessor(columns.ASSIGNMENTS)
        return [
            _assignment_from_row(acc, row_index, row)
            for row_index, row in acc
            if clean_str(acc.get(row, AssignmentCols.ID))
        ]

    def find_assignment(self, assignment_id: str) -> Optional[AssignmentRecord]:
        acc = self.accessor(columns.ASSIGNMENTS)
        wanted = clean_str(assignment_id)
        for row_index, row in acc:
            if clean_str(acc.get(row, AssignmentCols.ID)) == wanted:
                return _assignment_from_row(acc, row_index, row)
        return None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def requests(self) -> list[RequestRecord]:
        acc = self.accessor(columns.REQUESTS)
        return [_request_from_row(acc, row_index, row) for row_index, row in acc]

    def find_request(self, request_id: str) -> Optional[RequestRecord]:
        """Trimmed, case-insensitive id match"""
        wanted = clean_str(request_id).lower()
        if not wanted:
            return None
        acc = self.accessor(columns.REQUESTS)
        for row_index, row in acc:
            if clean_str(acc.get(row, RequestCols.ID)).lower() == wanted:
                return _request_from_row(acc, row_index, row)
        return None

    # ------------------------------------------------------------------
    # Riders
    # ------------------------------------------------------------------

    def riders(self) -> RecordAccessor:
        return self.accessor(columns.RIDERS)


def _assignment_from_row(acc: RecordAccessor, row_index: int, row: list[Any]) -> AssignmentRecord:
    get = acc.get
    return AssignmentRecord(
        row_index=row_index,
        id=clean_str(get(row, AssignmentCols.ID)),
        request_id=clean_str(get(row, AssignmentCols.REQUEST_ID)),
        rider_name=clean_str(get(row, AssignmentCols.RIDER_NAME)),
        status=parse_status(get(row, AssignmentCols.STATUS)),
        event_date=get(row, AssignmentCols.EVENT_DATE),
        start_time=get(row, AssignmentCols.START_TIME),
        end_time=get(row, AssignmentCols.END_TIME),
        start_location=clean_str(get(row, AssignmentCols.START_LOCATION)),
        end_location=clean_str(get(row, AssignmentCols.END_LOCATION)),
        secondary_end_location=clean_str(get(row, AssignmentCols.SECONDARY_END_LOCATION)),
        notes=clean_str(get(row, AssignmentCols.NOTES)),
        notified_at=get(row, AssignmentCols.NOTIFIED),
        sms_sent_at=get(row, AssignmentCols.SMS_SENT),
        email_sent_at=get(row, AssignmentCols.EMAIL_SENT),
    )


def _request_from_row(acc: RecordAccessor, row_index: int, row: list[Any]) -> RequestRecord:
    get = acc.get
    return RequestRecord(
        row_index=row_index,
        id=clean_str(get(row, RequestCols.ID)),
        status=clean_str(get(row, RequestCols.STATUS)),
        event_date=get(row, RequestCols.EVENT_DATE),
        start_time=get(row, RequestCols.START_TIME),
        end_time=get(row, RequestCols.END_TIME),
        start_location=clean_str(get(row, RequestCols.START_LOCATION)),
        end_location=clean_str(get(row, RequestCols.END_LOCATION)),
        secondary_end_location=clean_str(get(row, RequestCols.SECONDARY_END_LOCATION)),
        notes=clean_str(get(row, RequestCols.NOTES)),
        courtesy=clean_str(get(row, RequestCols.COURTESY)),
        riders_needed=get(row, RequestCols.RIDERS_NEEDED),
        riders_assigned=clean_str(get(row, RequestCols.RIDERS_ASSIGNED)),
    )
