# escort_dispatch/core/triggers.py
"""
Entry points for external triggers.

- ``EditDebouncer``: drop edit events that arrive within the window of the
  previous accepted one (last-event time kept in a ``PropertyStore``)
- ``RefreshGuard``: one refresh at a time; a caller that cannot get the lock
  within the timeout skips its refresh instead of queueing
- ``RequestEditHandler``: what happens when a Requests row is edited
"""
from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

from escort_dispatch.core import columns
from escort_dispatch.core.columns import RequestCols
from escort_dispatch.core.data_service import DataService
from escort_dispatch.core.domain import clean_str
from escort_dispatch.core.identifiers import (
    generate_request_id,
    is_valid_request_id,
    normalize_request_id,
)
from escort_dispatch.core.reconciler import PropagationResult, StatusReconciler
from escort_dispatch.infra.activity_log import ActivityLog
from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

LAST_EDIT_KEY = "lastEditTime"

# Change keys that affect the rider count and therefore the request status
RIDER_COUNT_FIELDS = frozenset({
    "ridersNeeded", "riders_needed", RequestCols.RIDERS_NEEDED,
    "ridersAssigned", "riders_assigned", RequestCols.RIDERS_ASSIGNED,
})


# ============================================================================
# PROPERTY STORE
# ============================================================================

class PropertyStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...


class InMemoryPropertyStore:
    """Process-wide key/value properties; survives across invocations, not restarts."""

    def __init__(self):
        self._values: dict[str, str] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value


# ============================================================================
# DEBOUNCE
# ============================================================================

class EditDebouncer:

    def __init__(
        self,
        properties: PropertyStore,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
        key: str = LAST_EDIT_KEY,
    ):
        self.properties = properties
        self.window_seconds = window_seconds
        self._clock = clock
        self._key = key

    def should_process(self) -> bool:
        now = self._clock()
        last = self.properties.get(self._key)
        if last is not None:
            try:
                if now - float(last) < self.window_seconds:
                    logger.debug("Edit debounced")
                    return False
            except ValueError:
                logger.warning(f"Ignoring unreadable {self._key} property: {last!r}")
        self.properties.set(self._key, repr(now))
        return True


# ============================================================================
# REFRESH LOCK
# ============================================================================

RefreshFunc = Callable[[], Union[Awaitable[Any], Any]]


class RefreshGuard:

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def run(self, refresh: RefreshFunc) -> bool:
        """Run ``refresh`` under the lock. False if skipped on timeout or if it raised."""
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Refresh skipped: lock not acquired within {self.timeout_seconds}s"
            )
            return False

        try:
            outcome = refresh()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.error("Error during guarded refresh", exc_info=True)
            return False
        finally:
            self._lock.release()
        return True


# ============================================================================
# REQUEST EDITS
# ============================================================================

@dataclass
class EditOutcome:
    processed: bool
    request_id: Optional[str] = None
    generated_id: bool = False
    propagation: Optional[PropagationResult] = None
    new_status: Optional[str] = None
    notes: list[str] = field(default_factory=list)


class RequestEditHandler:

    def __init__(
        self,
        data: DataService,
        reconciler: StatusReconciler,
        activity_log: ActivityLog,
        debouncer: EditDebouncer,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.data = data
        self.reconciler = reconciler
        self.activity_log = activity_log
        self.debouncer = debouncer
        self._clock = clock

    def handle(self, row_index: int, changes: Mapping[str, Any]) -> EditOutcome:
        """An edit to the Requests row at ``row_index`` (0-based, data rows only)."""
        acc = self.data.accessor(columns.REQUESTS)
        if not 0 <= row_index < len(acc):
            logger.warning(f"Request edit for unknown row {row_index}")
            return EditOutcome(processed=False, notes=[f"row {row_index} not found"])

        if not self.debouncer.should_process():
            return EditOutcome(processed=False, notes=["debounced"])

        outcome = EditOutcome(processed=True)
        request_id, generated = self._ensure_request_id(row_index)
        outcome.request_id = request_id
        outcome.generated_id = generated

        if changes:
            outcome.propagation = self.reconciler.propagate_request_fields(request_id, changes)

        if generated or RIDER_COUNT_FIELDS.intersection(changes):
            outcome.new_status = self.reconciler.update_request_status_from_riders(request_id)

        self.data.invalidate(columns.REQUESTS)
        return outcome

    def _ensure_request_id(self, row_index: int) -> tuple[str, bool]:
        acc = self.data.accessor(columns.REQUESTS)
        row = acc.collection.rows[row_index]
        current = acc.get(row, RequestCols.ID)

        if is_valid_request_id(current):
            return current, False

        existing = [clean_str(acc.get(r, RequestCols.ID)) for i, r in acc if i != row_index]
        new_id = normalize_request_id(current)
        # A normalized id may collide with another row; ids must stay unique
        if new_id is None or new_id in existing:
            new_id = generate_request_id(existing, self._clock())

        acc.set(row_index, RequestCols.ID, new_id)
        self.data.invalidate(columns.REQUESTS)
        self.activity_log.log_activity(
            f"Generated new Request ID: {new_id} for row {row_index}",
            f"previous value: {clean_str(current)!r}" if clean_str(current) else "",
        )
        return new_id, True
