# escort_dispatch/core/bulk.py
"""
Bulk notification processing.

A selector picks the targets, each target gets one dispatcher call per
requested channel (``Both`` means SMS then Email as two independent calls),
and a ``FixedWindowPacer`` pauses between groups of targets. One target's
failure, or exception, is tallied and the batch moves on.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Literal, Optional, Protocol

from escort_dispatch.core.data_service import DataService
from escort_dispatch.core.dispatcher import NotificationDispatcher
from escort_dispatch.core.domain import (
    ACTIVE_ASSIGNMENT_STATUSES,
    AssignmentRecord,
    BatchResult,
    Channel,
    ConfigurationError,
    DispatchResult,
    ErrorCode,
    as_date,
)
from escort_dispatch.infra.activity_log import ActivityLog
from escort_dispatch.infra.logging_config import get_logger
from escort_dispatch.infra.metrics import DispatchMetrics
from escort_dispatch.infra.rate_limiter import FixedWindowPacer
from escort_dispatch.infra.record_store import CollectionNotFoundError

logger = get_logger(__name__)


# ============================================================================
# SELECTORS
# ============================================================================

class TargetSelector(Protocol):
    @property
    def description(self) -> str: ...

    def select(self, assignments: list[AssignmentRecord], today: date) -> list[AssignmentRecord]: ...


@dataclass
class ExplicitSelector:
    """Caller-supplied ids, in the caller's order. Unknown ids are kept and fail as NotFound."""
    ids: list[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        return "selected assignments"

    def select(self, assignments: list[AssignmentRecord], today: date) -> list[AssignmentRecord]:
        by_id = {a.id: a for a in assignments}
        return [
            by_id.get(str(i).strip()) or AssignmentRecord(row_index=-1, id=str(i).strip())
            for i in self.ids
        ]


@dataclass
class DateRangeSelector:
    window: Literal["today", "week"] = "today"

    def __post_init__(self):
        if self.window not in ("today", "week"):
            raise ValueError(f"Unknown date range: {self.window}")

    @property
    def description(self) -> str:
        return "today assignments" if self.window == "today" else "this week assignments"

    def select(self, assignments: list[AssignmentRecord], today: date) -> list[AssignmentRecord]:
        end = today if self.window == "today" else today + timedelta(days=7)
        selected = []
        for a in assignments:
            if not a.has_rider or a.is_terminal:
                continue
            event_day = as_date(a.event_date)
            if event_day is not None and today <= event_day <= end:
                selected.append(a)
        return selected


@dataclass
class StatusSelector:
    status: Literal["pending", "assigned"] = "pending"

    def __post_init__(self):
        if self.status not in ("pending", "assigned"):
            raise ValueError(f"Unknown status filter: {self.status}")

    @property
    def description(self) -> str:
        return f"{self.status} assignments"

    def select(self, assignments: list[AssignmentRecord], today: date) -> list[AssignmentRecord]:
        if self.status == "pending":
            return [
                a for a in assignments
                if a.has_rider
                and a.status_value in ACTIVE_ASSIGNMENT_STATUSES
                and not a.has_any_timestamp
            ]
        return [a for a in assignments if a.has_rider and not a.is_terminal]


def build_selector(
    assignment_ids: Optional[list[str]] = None,
    date_range: Optional[str] = None,
    status: Optional[str] = None,
) -> TargetSelector:
    """Exactly one targeting policy must be given; ValueError otherwise."""
    given = [v is not None for v in (assignment_ids, date_range, status)]
    if sum(given) != 1:
        raise ValueError("Exactly one of assignment_ids, date_range or status is required")

    if assignment_ids is not None:
        return ExplicitSelector(list(assignment_ids))
    if date_range is not None:
        return DateRangeSelector(date_range)
    return StatusSelector(status)


def selector_for_filter(name: str) -> TargetSelector:
    """Dashboard filter names: today, week, pending, assigned."""
    if name in ("today", "week"):
        return DateRangeSelector(name)
    return StatusSelector(name)


# ============================================================================
# PROCESSOR
# ============================================================================

class BulkNotificationProcessor:

    def __init__(
        self,
        data: DataService,
        dispatcher: NotificationDispatcher,
        activity_log: ActivityLog,
        pacer: FixedWindowPacer,
        error_cap: int = 10,
        today: Callable[[], date] = date.today,
    ):
        self.data = data
        self.dispatcher = dispatcher
        self.activity_log = activity_log
        self.pacer = pacer
        self.error_cap = error_cap
        self._today = today

    async def run(self, selector: TargetSelector, channel: Channel | str) -> BatchResult:
        channel = Channel(channel)

        targets = selector.select(self.data.assignments(), self._today())
        if not targets:
            logger.info(f"Bulk {channel.value}: no targets for {selector.description}")
            return BatchResult(message=f"No assignments found for {selector.description}")

        logger.info(
            f"Processing {len(targets)} bulk notifications: {channel.value} for {selector.description}"
        )
        result = BatchResult(total=len(targets))

        with DispatchMetrics.track_bulk_batch():
            for index, assignment in enumerate(targets):
                await self._process_item(assignment, channel, result)
                await self.pacer.after_item(index)

        result.message = (
            f"Processed {len(targets)} notifications: "
            f"{result.successful} successful, {result.failed} failed."
        )
        self.activity_log.log_activity(
            f"Bulk {channel.value} for {selector.description}: "
            f"{result.successful} successful, {result.failed} failed"
        )

        DispatchMetrics.bulk_batch_completed(channel.value)
        return result

    async def _process_item(self, assignment: AssignmentRecord, channel: Channel, result: BatchResult) -> None:
        """All requested channels for one target; failures are tallied, never raised."""
        try:
            for single in channel.expand():
                outcome = await self._dispatch_one(assignment, single)
                if outcome.success:
                    result.successful += 1
                else:
                    result.failed += 1
                    self._add_error(
                        result,
                        f"{single.value} to {_rider_label(assignment)} "
                        f"({assignment.request_id}): {outcome.message}",
                    )
        except (CollectionNotFoundError, ConfigurationError):
            raise
        except Exception as exc:
            logger.error(
                f"Bulk item failed: {type(exc).__name__}",
                extra={"assignment_id": assignment.id},
                exc_info=True,
            )
            result.failed += 1
            self._add_error(
                result, f"{_rider_label(assignment)} ({assignment.request_id}): {exc}"
            )

    async def _dispatch_one(self, assignment: AssignmentRecord, channel: Channel) -> DispatchResult:
        try:
            return await self.dispatcher.dispatch(assignment.id, channel)
        except (CollectionNotFoundError, ConfigurationError):
            raise
        except Exception as exc:
            logger.error(
                f"Dispatch raised during bulk run: {type(exc).__name__}",
                extra={"assignment_id": assignment.id, "channel": channel.value},
                exc_info=True,
            )
            return DispatchResult.failure(assignment.id, ErrorCode.UNEXPECTED, str(exc))

    def _add_error(self, result: BatchResult, error: str) -> None:
        if len(result.errors) < self.error_cap:
            result.errors.append(error)


def _rider_label(assignment: AssignmentRecord) -> str:
    return assignment.rider_name or assignment.id
