# escort_dispatch/transport/http_app.py
"""
HTTP surface for the notification engine.

Public:    /health
Protected: everything else (Bearer admin token, see security.py)

The engine is created once in the lifespan (or injected by ``create_app``)
and lives in ``app.state.engine``; each request still gets its own
per-invocation context inside the engine.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from escort_dispatch.config import Settings, settings as default_settings
from escort_dispatch.core import columns
from escort_dispatch.core.bulk import build_selector
from escort_dispatch.core.columns import AssignmentCols, RequestCols, RiderCols
from escort_dispatch.core.domain import ChannelResult, DispatchResult
from escort_dispatch.core.engine import EngineError, NotificationEngine
from escort_dispatch.infra.logging_config import get_logger, setup_logging
from escort_dispatch.infra.messaging import get_messaging_gateway
from escort_dispatch.infra.metrics import get_metrics_collector
from escort_dispatch.infra.record_store import InMemoryRecordStore
from escort_dispatch.transport.schemas import (
    BatchOut,
    BulkNotifyIn,
    ChannelResultOut,
    DashboardRefreshIn,
    DispatchOut,
    HistoryEntryOut,
    NotifyIn,
    PropagateIn,
    RequestEditIn,
)
from escort_dispatch.transport.security import require_admin_auth

# Initialize logging first
setup_logging(
    level=default_settings.log_level,
    use_json=default_settings.log_json or default_settings.is_production,
)

logger = get_logger(__name__)


# ============================================================================
# ENGINE CONSTRUCTION
# ============================================================================

def build_record_store(settings: Settings) -> InMemoryRecordStore:
    """Snapshot-backed store, or an empty one with the standard collections."""
    if settings.data_snapshot_path:
        return InMemoryRecordStore.from_json_file(Path(settings.data_snapshot_path))

    store = InMemoryRecordStore()
    store.create_collection(columns.REQUESTS, RequestCols.ALL)
    store.create_collection(columns.RIDERS, RiderCols.ALL)
    store.create_collection(columns.ASSIGNMENTS, AssignmentCols.ALL)
    return store


def build_engine(settings: Settings) -> NotificationEngine:
    return NotificationEngine(
        store=build_record_store(settings),
        gateway=get_messaging_gateway(settings),
        settings=settings,
    )


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_engine(request: Request) -> NotificationEngine:
    """Get engine from app state"""
    return request.app.state.engine


def _channel_out(result: ChannelResult | None) -> ChannelResultOut | None:
    if result is None:
        return None
    return ChannelResultOut(
        channel=result.channel.value,
        success=result.success,
        message=result.message,
        error_code=result.error_code.value if result.error_code else None,
    )


def _dispatch_out(result: DispatchResult) -> DispatchOut:
    return DispatchOut(
        assignment_id=result.assignment_id,
        success=result.success,
        message=result.message,
        error_code=result.error_code.value if result.error_code else None,
        sms=_channel_out(result.sms),
        email=_channel_out(result.email),
    )


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(
    engine: NotificationEngine | None = None,
    settings: Settings = default_settings,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Application lifecycle: startup and shutdown"""
        if settings.is_production:
            missing = settings.validate_required_for_production()
            if missing:
                logger.critical(f"Missing required production settings: {missing}")
                raise RuntimeError(f"Missing production config: {missing}")

        if fastapi_app.state.engine is None:
            fastapi_app.state.engine = build_engine(settings)

        missing_collections = fastapi_app.state.engine.check_collections()
        if missing_collections:
            logger.warning(f"Record store is missing collections: {missing_collections}")

        logger.info(
            f"Notification engine ready: env={settings.app_env}, "
            f"messaging={fastapi_app.state.engine.gateway.name}"
        )
        yield
        logger.info("Shutting down")

    app = FastAPI(
        title="Escort Dispatch",
        description="Assignment notification dispatch and status reconciliation",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )
    app.state.engine = engine
    app.state.settings = settings

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(f"Server error: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        return JSONResponse(status_code=500, content={"error": exc.detail})

    # ========================================================================
    # PUBLIC ENDPOINTS
    # ========================================================================

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    admin = [Depends(require_admin_auth)]

    @app.post("/assignments/{assignment_id}/notify", response_model=DispatchOut, dependencies=admin)
    async def notify_assignment(
        assignment_id: str,
        payload: NotifyIn,
        engine: NotificationEngine = Depends(get_engine),
    ):
        result = await engine.dispatch(assignment_id, payload.channel)
        return _dispatch_out(result)

    @app.post("/notifications/bulk", response_model=BatchOut, dependencies=admin)
    async def notify_bulk(payload: BulkNotifyIn, engine: NotificationEngine = Depends(get_engine)):
        try:
            selector = build_selector(
                assignment_ids=payload.assignment_ids,
                date_range=payload.date_range,
                status=payload.status,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        result = await engine.run(selector, payload.channel)
        return BatchOut(**asdict(result))

    @app.get("/notifications/stats", dependencies=admin)
    def notification_stats(engine: NotificationEngine = Depends(get_engine)):
        return asdict(engine.get_stats())

    @app.get("/notifications/history", response_model=list[HistoryEntryOut], dependencies=admin)
    def notification_history(engine: NotificationEngine = Depends(get_engine)):
        return [
            HistoryEntryOut(**{**asdict(entry), "timestamp": entry.timestamp.isoformat()})
            for entry in engine.get_history()
        ]

    @app.get("/notifications/report", dependencies=admin)
    def notification_report(engine: NotificationEngine = Depends(get_engine)):
        report = engine.get_report()
        if report is None:
            return {"report": None, "message": "No assigned riders found for report"}
        return {
            "report": {
                "generated_at": report.generated_at.isoformat(),
                "total": report.total,
                "notified": report.notified,
                "sms": report.sms,
                "email": report.email,
                "by_request": {
                    request_id: [{"rider": r.rider, "marks": r.marks} for r in riders]
                    for request_id, riders in report.by_request.items()
                },
                "more_requests": report.more_requests,
            },
            "text": report.text,
        }

    # ========================================================================
    # RECONCILIATION
    # ========================================================================

    @app.post("/requests/{request_id}/propagate", dependencies=admin)
    def propagate_request(
        request_id: str,
        payload: PropagateIn,
        engine: NotificationEngine = Depends(get_engine),
    ):
        return asdict(engine.propagate_request_fields(request_id, payload.changes))

    @app.post("/requests/{request_id}/edit", dependencies=admin)
    def edit_request(
        request_id: str,
        payload: RequestEditIn,
        engine: NotificationEngine = Depends(get_engine),
    ):
        outcome = engine.handle_request_edit(payload.changes, request_id=request_id)
        return asdict(outcome)

    @app.post("/requests/rows/{row_index}/edit", dependencies=admin)
    def edit_request_row(
        row_index: int,
        payload: RequestEditIn,
        engine: NotificationEngine = Depends(get_engine),
    ):
        outcome = engine.handle_request_edit(payload.changes, row_index=row_index)
        return asdict(outcome)

    @app.post("/requests/{request_id}/refresh-status", dependencies=admin)
    def refresh_request_status(request_id: str, engine: NotificationEngine = Depends(get_engine)):
        new_status = engine.update_request_status_from_riders(request_id)
        if new_status is None:
            raise HTTPException(status_code=404, detail=f"Request {request_id} not found")
        return {"request_id": request_id, "status": new_status}

    @app.post("/maintenance/repair-statuses", dependencies=admin)
    def repair_statuses(engine: NotificationEngine = Depends(get_engine)):
        return asdict(engine.repair_statuses())

    # ========================================================================
    # DASHBOARD
    # ========================================================================

    @app.post("/dashboard/refresh", dependencies=admin)
    async def refresh_dashboard(payload: DashboardRefreshIn, engine: NotificationEngine = Depends(get_engine)):
        refreshed = await engine.refresh_dashboard(payload.filter)
        return {"refreshed": refreshed}

    @app.get("/dashboard", dependencies=admin)
    def dashboard(engine: NotificationEngine = Depends(get_engine)):
        if engine.dashboard is None:
            raise HTTPException(status_code=404, detail="Dashboard not refreshed yet")
        snapshot = asdict(engine.dashboard)
        snapshot["refreshed_at"] = engine.dashboard.refreshed_at.isoformat()
        return snapshot

    # ========================================================================
    # METRICS
    # ========================================================================

    @app.get("/metrics", dependencies=admin)
    def metrics():
        return get_metrics_collector().get_metrics()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "escort_dispatch.transport.http_app:app",
        host="0.0.0.0",
        port=8099,
        reload=not default_settings.is_production,
        log_level=default_settings.log_level.lower(),
        access_log=not default_settings.is_production,
        server_header=False,
        date_header=False,
    )
