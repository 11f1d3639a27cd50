# escort_dispatch/infra/activity_log.py
"""
Append-only activity/error log.

Every entry goes to the Python logger and to the ``Log`` collection as
``[Timestamp, Type, Message, Details]``. Writing to the collection can fail
(missing store, broken row), and the failure path logs again; the
``_writing`` flag stops that second call from re-entering the store.
"""
from __future__ import annotations

import traceback
from datetime import datetime
from typing import Callable

from escort_dispatch.core.columns import LOG, LogCols
from escort_dispatch.infra.logging_config import get_logger
from escort_dispatch.infra.record_store import RecordStore

logger = get_logger(__name__)


class ActivityLog:

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self._clock = clock
        self._writing = False

    def log_activity(self, message: str, details: str = "") -> None:
        logger.info(f"{message}{' - ' + details if details else ''}")
        self._append("INFO", message, details)

    def log_error(self, message: str, error: BaseException | None = None) -> None:
        details = ""
        if error is not None:
            details = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ).strip()
            logger.error(
                f"{message}: {type(error).__name__}: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )
        else:
            logger.error(message)
        self._append("ERROR", message, details)

    def _append(self, entry_type: str, message: str, details: str) -> None:
        if self._writing:
            logger.debug("Activity log re-entered; store write skipped")
            return

        self._writing = True
        try:
            if not self.store.has_collection(LOG):
                self.store.create_collection(LOG, LogCols.ALL)
            timestamp = self._clock().replace(microsecond=0)
            self.store.append_row(LOG, [timestamp, entry_type, message, details])
        except Exception as exc:
            # Nested log_error call hits the guard above
            self.log_error("Failed to write activity log entry", exc)
        finally:
            self._writing = False
