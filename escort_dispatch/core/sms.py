# escort_dispatch/core/sms.py
"""Email-to-SMS relay addressing."""
from __future__ import annotations

import re
from typing import Any, Mapping

from escort_dispatch.core.domain import DispatchError, ErrorCode, clean_str

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Any) -> str:
    """Digits only: '504-555-1234' -> '5045551234'"""
    return _NON_DIGITS.sub("", clean_str(raw))


def carrier_domain(carrier: Any, table: Mapping[str, str], default_domain: str) -> str:
    key = clean_str(carrier).lower()
    return table.get(key) or default_domain


def sms_address(
    phone: Any,
    carrier: Any,
    table: Mapping[str, str],
    default_domain: str,
) -> str:
    digits = normalize_phone(phone)
    if len(digits) != 10:
        raise DispatchError(ErrorCode.INVALID_PHONE, "Invalid phone number format")
    return f"{digits}@{carrier_domain(carrier, table, default_domain)}"


def is_valid_email(address: Any) -> bool:
    return "@" in clean_str(address)
