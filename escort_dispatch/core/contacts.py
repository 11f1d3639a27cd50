# escort_dispatch/core/contacts.py
from __future__ import annotations

from escort_dispatch.core.columns import RiderCols
from escort_dispatch.core.data_service import DataService
from escort_dispatch.core.domain import ContactInfo, DispatchError, ErrorCode, RiderStatus, clean_str
from escort_dispatch.infra.logging_config import get_logger, mask_phone

logger = get_logger(__name__)


class ContactResolver:
    """
    Rider name -> contact details.

    Exact match on the trimmed ``Full Name`` cell; no case folding, no fuzzy
    matching. A miss raises ``RiderNotFound``; more than one row with the
    same name raises ``AmbiguousRider`` instead of picking the first.
    """

    def __init__(self, data: DataService):
        self.data = data

    def resolve(self, rider_name: str) -> ContactInfo:
        wanted = clean_str(rider_name)
        riders = self.data.riders()

        matches = [
            row for _, row in riders
            if clean_str(riders.get(row, RiderCols.NAME)) == wanted
        ]

        if not matches:
            raise DispatchError(
                ErrorCode.RIDER_NOT_FOUND,
                f"Rider {wanted} not found in riders database",
            )
        if len(matches) > 1:
            raise DispatchError(
                ErrorCode.AMBIGUOUS_RIDER,
                f"Rider name {wanted} matches {len(matches)} riders",
            )

        row = matches[0]
        contact = ContactInfo(
            name=wanted,
            phone=clean_str(riders.get(row, RiderCols.PHONE)),
            carrier=clean_str(riders.get(row, RiderCols.CARRIER)),
            email=clean_str(riders.get(row, RiderCols.EMAIL)),
            status=RiderStatus.parse(riders.get(row, RiderCols.STATUS)),
        )
        logger.debug(f"Resolved rider {wanted}: phone={mask_phone(contact.phone)}", extra={"rider": wanted})
        if contact.status is not RiderStatus.ACTIVE:
            # Inactive riders are still notified
            logger.warning(
                f"Rider {wanted} is not active (status={contact.status.value if contact.status else 'unset'})",
                extra={"rider": wanted},
            )
        return contact
