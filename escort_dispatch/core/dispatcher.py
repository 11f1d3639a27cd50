# escort_dispatch/core/dispatcher.py
"""
Single-assignment notification dispatch.

``dispatch()`` never raises for dispatch-level problems: lookups, validation
and transport failures all come back as a failed ``DispatchResult``. Only
configuration errors (missing collection, ``ConfigurationError``) escape,
for the engine to report.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable

from escort_dispatch.config import Settings
from escort_dispatch.core import columns
from escort_dispatch.core.columns import AssignmentCols
from escort_dispatch.core.contacts import ContactResolver
from escort_dispatch.core.data_service import DataService
from escort_dispatch.core.domain import (
    AssignmentRecord,
    Channel,
    ChannelResult,
    ConfigurationError,
    ContactInfo,
    DispatchError,
    DispatchResult,
    ErrorCode,
)
from escort_dispatch.core.formatting import email_subject, format_notification_message
from escort_dispatch.core.sms import is_valid_email, sms_address
from escort_dispatch.infra.activity_log import ActivityLog
from escort_dispatch.infra.logging_config import LogContext, get_logger, mask_email
from escort_dispatch.infra.messaging import MessagingGateway
from escort_dispatch.infra.metrics import DispatchMetrics
from escort_dispatch.infra.record_store import CollectionNotFoundError

logger = get_logger(__name__)

_STAMP_COLUMNS = {
    Channel.SMS: AssignmentCols.SMS_SENT,
    Channel.EMAIL: AssignmentCols.EMAIL_SENT,
}

REQUIRED_STAMP_COLUMNS = (AssignmentCols.SMS_SENT, AssignmentCols.EMAIL_SENT, AssignmentCols.NOTIFIED)


class NotificationDispatcher:

    def __init__(
        self,
        data: DataService,
        contacts: ContactResolver,
        gateway: MessagingGateway,
        activity_log: ActivityLog,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.data = data
        self.contacts = contacts
        self.gateway = gateway
        self.activity_log = activity_log
        self.settings = settings
        self._clock = clock

    async def dispatch(self, assignment_id: str, channel: Channel | str) -> DispatchResult:
        channel = Channel(channel)
        try:
            return await self._dispatch(assignment_id, channel)
        except DispatchError as exc:
            logger.info(
                f"Dispatch rejected: {exc.code.value}",
                extra={"assignment_id": assignment_id, "channel": channel.value},
            )
            DispatchMetrics.notification_failed(channel.value, exc.code.value)
            return DispatchResult.failure(assignment_id, exc.code, exc.message)
        except (CollectionNotFoundError, ConfigurationError):
            raise
        except Exception as exc:
            self.activity_log.log_error(
                f"Error sending notification for assignment {assignment_id} ({channel.value})",
                exc,
            )
            DispatchMetrics.notification_failed(channel.value, ErrorCode.UNEXPECTED.value)
            return DispatchResult.failure(assignment_id, ErrorCode.UNEXPECTED, f"Error: {exc}")

    async def _dispatch(self, assignment_id: str, channel: Channel) -> DispatchResult:
        self._require_stamp_columns()

        assignment = self.data.find_assignment(assignment_id)
        if assignment is None:
            raise DispatchError(ErrorCode.NOT_FOUND, f"Assignment {assignment_id} not found")

        if not assignment.has_rider:
            raise DispatchError(ErrorCode.MISSING_RIDER, "No rider name found for assignment")

        contact = self.contacts.resolve(assignment.rider_name)
        if not contact.has_contact:
            raise DispatchError(
                ErrorCode.NO_CONTACT_INFO,
                f"No contact information found for rider {assignment.rider_name}",
            )

        log = LogContext(
            logger,
            assignment_id=assignment.id,
            request_id=assignment.request_id,
            rider=assignment.rider_name,
        )

        request = self.data.find_request(assignment.request_id) if assignment.request_id else None
        body = format_notification_message(
            assignment, request, signature=self.settings.message_signature
        )

        results: dict[Channel, ChannelResult] = {}
        for single in channel.expand():
            results[single] = await self._send(single, assignment, contact, body)
            outcome = "sent" if results[single].success else "failed"
            log.info(f"{single.value} {outcome}", extra={"channel": single.value})

        self._stamp(assignment, results)

        return _aggregate(assignment.id, channel, results)

    async def _send(
        self,
        channel: Channel,
        assignment: AssignmentRecord,
        contact: ContactInfo,
        body: str,
    ) -> ChannelResult:
        try:
            if channel is Channel.SMS:
                address = sms_address(
                    contact.phone,
                    contact.carrier,
                    self.settings.carrier_sms_domains,
                    self.settings.default_sms_domain,
                )
                subject = self.settings.sms_subject
            else:
                if not is_valid_email(contact.email):
                    raise DispatchError(ErrorCode.INVALID_EMAIL, "Invalid email address")
                address = contact.email
                subject = email_subject(assignment)
        except DispatchError as exc:
            DispatchMetrics.notification_failed(channel.value, exc.code.value)
            return ChannelResult(channel, False, exc.message, exc.code)

        try:
            await self.gateway.send(address, subject, body)
        except Exception as exc:
            logger.warning(
                f"{channel.value} transport failure to {mask_email(address)}: {type(exc).__name__}",
                extra={"assignment_id": assignment.id, "channel": channel.value},
            )
            DispatchMetrics.notification_failed(channel.value, ErrorCode.TRANSPORT_FAILURE.value)
            return ChannelResult(channel, False, str(exc) or type(exc).__name__, ErrorCode.TRANSPORT_FAILURE)

        DispatchMetrics.notification_sent(channel.value)
        return ChannelResult(channel, True, f"{channel.value} sent")

    def _require_stamp_columns(self) -> None:
        collection = self.data.accessor(columns.ASSIGNMENTS).collection
        missing = [h for h in REQUIRED_STAMP_COLUMNS if collection.column_index_of(h) is None]
        if missing:
            raise ConfigurationError(
                f"{columns.ASSIGNMENTS} is missing notification columns: {', '.join(missing)}"
            )

    def _stamp(self, assignment: AssignmentRecord, results: dict[Channel, ChannelResult]) -> None:
        """Stamp successful channels and notifiedAt with one shared instant."""
        succeeded = [ch for ch, r in results.items() if r.success]
        if not succeeded:
            return

        now = self._clock().replace(microsecond=0)
        try:
            acc = self.data.accessor(columns.ASSIGNMENTS)
            for ch in succeeded:
                acc.set(assignment.row_index, _STAMP_COLUMNS[ch], now)
            acc.set(assignment.row_index, AssignmentCols.NOTIFIED, now)
        except Exception as exc:
            self.activity_log.log_error(
                f"Error updating notification stamps for assignment {assignment.id}", exc
            )
        finally:
            self.data.invalidate(columns.ASSIGNMENTS)


def _aggregate(assignment_id: str, channel: Channel, results: dict[Channel, ChannelResult]) -> DispatchResult:
    sms = results.get(Channel.SMS)
    email = results.get(Channel.EMAIL)
    success = all(r.success for r in results.values())
    error_code = next((r.error_code for r in results.values() if not r.success), None)

    if channel is Channel.BOTH:
        message = (
            f"SMS: {'Sent' if sms.success else 'Failed'}, "
            f"Email: {'Sent' if email.success else 'Failed'}"
        )
    else:
        only = results[channel]
        message = (
            f"{channel.value} sent successfully" if only.success
            else f"{channel.value} failed: {only.message}"
        )

    return DispatchResult(
        assignment_id=assignment_id,
        success=success,
        message=message,
        error_code=error_code,
        sms=sms,
        email=email,
    )
