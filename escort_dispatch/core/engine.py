# escort_dispatch/core/engine.py
"""
Caller-facing engine.

Every public call builds a fresh ``InvocationContext`` (cache, data service,
resolver, log sink, dispatcher, reconciler), so nothing read in one call is
visible to the next. Dispatch-level problems come back inside results;
configuration errors are logged with their stack trace and re-raised as
``EngineError`` with an operator-facing message.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Iterator, Mapping, Optional

from escort_dispatch.config import Settings
from escort_dispatch.core import columns
from escort_dispatch.core.bulk import BulkNotificationProcessor, TargetSelector, selector_for_filter
from escort_dispatch.core.contacts import ContactResolver
from escort_dispatch.core.data_service import DataService
from escort_dispatch.core.dispatcher import NotificationDispatcher
from escort_dispatch.core.domain import BatchResult, Channel, ConfigurationError, DispatchResult
from escort_dispatch.core.history import (
    HistoryEntry,
    NotificationReport,
    NotificationStats,
    build_report,
    get_history,
    get_stats,
)
from escort_dispatch.core.reconciler import PropagationResult, RepairResult, StatusReconciler
from escort_dispatch.core.triggers import (
    EditDebouncer,
    EditOutcome,
    InMemoryPropertyStore,
    PropertyStore,
    RefreshGuard,
    RequestEditHandler,
)
from escort_dispatch.infra.activity_log import ActivityLog
from escort_dispatch.infra.logging_config import get_logger
from escort_dispatch.infra.messaging import MessagingGateway
from escort_dispatch.infra.rate_limiter import FixedWindowPacer
from escort_dispatch.infra.record_store import CollectionNotFoundError, RecordStore
from escort_dispatch.infra.ttl_cache import TTLCache

logger = get_logger(__name__)

OPERATOR_ERROR_MESSAGE = "The notification engine is misconfigured. Check the activity log for details."


class EngineError(Exception):
    """Configuration failure surfaced to the operator."""

    def __init__(self, detail: str = OPERATOR_ERROR_MESSAGE):
        self.detail = detail
        super().__init__(detail)


@dataclass
class InvocationContext:
    cache: TTLCache
    data: DataService
    contacts: ContactResolver
    activity_log: ActivityLog
    dispatcher: NotificationDispatcher
    reconciler: StatusReconciler


@dataclass
class DashboardSnapshot:
    filter: str
    assignment_ids: list[str]
    stats: NotificationStats
    refreshed_at: datetime


class NotificationEngine:

    def __init__(
        self,
        store: RecordStore,
        gateway: MessagingGateway,
        settings: Settings,
        properties: Optional[PropertyStore] = None,
        clock: Callable[[], datetime] = datetime.now,
        today: Optional[Callable[[], date]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cache_clock: Callable[[], float] = time.monotonic,
        edit_clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self.properties = properties or InMemoryPropertyStore()
        self._clock = clock
        self._today = today or (lambda: self._clock().date())
        self._sleep = sleep
        self._cache_clock = cache_clock
        self._edit_clock = edit_clock
        self.refresh_guard = RefreshGuard(settings.refresh_lock_timeout_seconds)
        self.dashboard: Optional[DashboardSnapshot] = None

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def new_context(self) -> InvocationContext:
        cache = TTLCache(self.settings.cache_ttl_seconds, clock=self._cache_clock)
        data = DataService(self.store, cache)
        contacts = ContactResolver(data)
        activity_log = ActivityLog(self.store, clock=self._clock)
        dispatcher = NotificationDispatcher(
            data, contacts, self.gateway, activity_log, self.settings, clock=self._clock
        )
        reconciler = StatusReconciler(data, activity_log, clock=self._clock, today=self._today)
        return InvocationContext(cache, data, contacts, activity_log, dispatcher, reconciler)

    @contextmanager
    def _configuration_errors(self, operation: str, ctx: InvocationContext) -> Iterator[None]:
        try:
            yield
        except (CollectionNotFoundError, ConfigurationError) as exc:
            ctx.activity_log.log_error(f"Configuration error during {operation}", exc)
            raise EngineError() from exc

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def dispatch(self, assignment_id: str, channel: Channel | str) -> DispatchResult:
        ctx = self.new_context()
        with self._configuration_errors("dispatch", ctx):
            return await ctx.dispatcher.dispatch(assignment_id, channel)

    async def run(self, selector: TargetSelector, channel: Channel | str) -> BatchResult:
        ctx = self.new_context()
        pacer = FixedWindowPacer(
            self.settings.bulk_batch_size, self.settings.bulk_pause_seconds, sleep=self._sleep
        )
        processor = BulkNotificationProcessor(
            ctx.data,
            ctx.dispatcher,
            ctx.activity_log,
            pacer,
            error_cap=self.settings.bulk_error_cap,
            today=self._today,
        )
        with self._configuration_errors("bulk notification", ctx):
            return await processor.run(selector, channel)

    def get_stats(self) -> NotificationStats:
        ctx = self.new_context()
        with self._configuration_errors("stats", ctx):
            return get_stats(ctx.data.assignments(), self._today())

    def get_history(self) -> list[HistoryEntry]:
        ctx = self.new_context()
        with self._configuration_errors("history", ctx):
            return get_history(ctx.data.assignments())

    def get_report(self) -> Optional[NotificationReport]:
        ctx = self.new_context()
        with self._configuration_errors("report", ctx):
            return build_report(ctx.data.assignments(), self._clock())

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def repair_statuses(self) -> RepairResult:
        ctx = self.new_context()
        with self._configuration_errors("status repair", ctx):
            return ctx.reconciler.repair_statuses()

    def propagate_request_fields(self, request_id: str, changes: Mapping[str, Any]) -> PropagationResult:
        ctx = self.new_context()
        with self._configuration_errors("field propagation", ctx):
            return ctx.reconciler.propagate_request_fields(request_id, changes)

    def update_request_status_from_riders(self, request_id: str) -> Optional[str]:
        ctx = self.new_context()
        with self._configuration_errors("request status update", ctx):
            return ctx.reconciler.update_request_status_from_riders(request_id)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def handle_request_edit(
        self,
        changes: Mapping[str, Any],
        request_id: Optional[str] = None,
        row_index: Optional[int] = None,
    ) -> EditOutcome:
        """Edit trigger for a Requests row, addressed by id or by row."""
        ctx = self.new_context()
        debouncer = EditDebouncer(
            self.properties, self.settings.edit_debounce_seconds, clock=self._edit_clock
        )
        handler = RequestEditHandler(
            ctx.data, ctx.reconciler, ctx.activity_log, debouncer, clock=self._clock
        )
        with self._configuration_errors("request edit", ctx):
            if row_index is None:
                request = ctx.data.find_request(request_id or "")
                if request is None:
                    return EditOutcome(processed=False, notes=[f"request {request_id} not found"])
                row_index = request.row_index
            return handler.handle(row_index, changes)

    async def refresh_dashboard(self, filter_name: str) -> bool:
        """Recompute the dashboard for a filter; False if another refresh held the lock."""
        selector = selector_for_filter(filter_name)

        def refresh() -> None:
            ctx = self.new_context()
            with self._configuration_errors("dashboard refresh", ctx):
                assignments = ctx.data.assignments()
                targets = selector.select(assignments, self._today())
                self.dashboard = DashboardSnapshot(
                    filter=filter_name,
                    assignment_ids=[a.id for a in targets],
                    stats=get_stats(assignments, self._today()),
                    refreshed_at=self._clock().replace(microsecond=0),
                )

        return await self.refresh_guard.run(refresh)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def check_collections(self) -> list[str]:
        """Names of required collections missing from the store."""
        required = (columns.REQUESTS, columns.RIDERS, columns.ASSIGNMENTS)
        return [name for name in required if not self.store.has_collection(name)]
