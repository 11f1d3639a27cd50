# escort_dispatch/core/identifiers.py
"""
Request and assignment identifiers.

Request ids look like ``A-01-24``: month letter (A=January .. L=December),
two-digit sequence within that letter, two-digit year.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Iterable, Optional

from escort_dispatch.core.domain import clean_str

MONTH_LETTERS = "ABCDEFGHIJKL"

_REQUEST_ID = re.compile(r"^([A-L])-(\d+)-(\d{2})$", re.IGNORECASE)
_CANONICAL_REQUEST_ID = re.compile(r"^[A-L]-\d{2}-\d{2}$")
_ASSIGNMENT_ID = re.compile(r"^ASG-(\d+)$", re.IGNORECASE)


def is_valid_request_id(raw: Any) -> bool:
    return isinstance(raw, str) and bool(_CANONICAL_REQUEST_ID.match(raw))


def normalize_request_id(raw: Any) -> Optional[str]:
    """'b-2-24 ' -> 'B-02-24'; None when the value is not a request id."""
    match = _REQUEST_ID.match(clean_str(raw))
    if not match:
        return None
    letter, seq, year = match.groups()
    return f"{letter.upper()}-{int(seq):02d}-{year}"


def generate_request_id(existing_ids: Iterable[Any], now: datetime) -> str:
    letter = MONTH_LETTERS[now.month - 1]
    year = now.strftime("%y")

    highest = 0
    for raw in existing_ids:
        if not isinstance(raw, str) or not raw.startswith(f"{letter}-"):
            continue
        match = _REQUEST_ID.match(raw)
        if match:
            highest = max(highest, int(match.group(2)))

    return f"{letter}-{highest + 1:02d}-{year}"


def generate_assignment_id(existing_ids: Iterable[Any]) -> str:
    highest = 0
    for raw in existing_ids:
        match = _ASSIGNMENT_ID.match(clean_str(raw))
        if match:
            highest = max(highest, int(match.group(1)))
    return f"ASG-{highest + 1:04d}"
