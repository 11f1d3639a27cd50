# tests/test_domain.py
"""Tests for domain types, message formatting, SMS addressing, identifiers and contacts"""
import logging

import pytest
from datetime import date, datetime, time

from escort_dispatch.config import DEFAULT_CARRIER_SMS_DOMAINS
from escort_dispatch.core.domain import (
    AssignmentRecord,
    Channel,
    DispatchError,
    ErrorCode,
    RequestRecord,
    StatusSet,
    StatusUnset,
    as_date,
    as_datetime,
    is_timestamp_set,
    parse_status,
)


class TestDomainHelpers:
    def test_parse_status_blank_is_unset(self):
        assert parse_status("") == StatusUnset()
        assert parse_status("   ") == StatusUnset()
        assert parse_status(None) == StatusUnset()
        assert not parse_status("")

    def test_parse_status_trims(self):
        assert parse_status("  Assigned ") == StatusSet("Assigned")

    def test_channel_expand(self):
        assert Channel.BOTH.expand() == [Channel.SMS, Channel.EMAIL]
        assert Channel.SMS.expand() == [Channel.SMS]
        assert Channel("Email") is Channel.EMAIL

    def test_is_timestamp_set(self):
        assert is_timestamp_set(datetime(2026, 3, 10)) is True
        assert is_timestamp_set("") is False
        assert is_timestamp_set("  ") is False
        assert is_timestamp_set(None) is False

    def test_as_date_accepts_common_forms(self):
        assert as_date(date(2026, 3, 10)) == date(2026, 3, 10)
        assert as_date(datetime(2026, 3, 10, 18, 0)) == date(2026, 3, 10)
        assert as_date("2026-03-10") == date(2026, 3, 10)
        assert as_date("03/10/2026") == date(2026, 3, 10)
        assert as_date("soon") is None
        assert as_datetime("") is None

    def test_assignment_terminal_and_timestamps(self):
        a = AssignmentRecord(row_index=0, id="A-1", status=StatusSet("No Show"))
        assert a.is_terminal is True
        assert a.has_any_timestamp is False

        b = AssignmentRecord(row_index=1, id="A-2", notified_at=datetime(2026, 3, 10))
        assert b.is_terminal is False
        assert b.has_any_timestamp is True


class TestFormatting:
    def _assignment(self, **kw):
        values = dict(
            row_index=0, id="A-0001", request_id="B-02-01", rider_name="Jane Doe",
            event_date=date(2026, 3, 10), start_time=time(9, 0),
            start_location="Station 1", end_location="Courthouse",
        )
        values.update(kw)
        return AssignmentRecord(**values)

    def test_full_message(self):
        from escort_dispatch.core.formatting import format_notification_message

        request = RequestRecord(row_index=0, id="B-02-01", courtesy="Yes", notes="Bring vests")
        body = format_notification_message(self._assignment(), request)

        assert body == (
            "🏍️ ESCORT ASSIGNMENT NOTIFICATION\n\n"
            "Assignment: A-0001\n"
            "Request: B-02-01\n"
            "Rider: Jane Doe\n\n"
            "📅 Date: 03/10/2026\n"
            "🕐 Time: 9:00 AM\n"
            "📍 Start: Station 1\n"
            "🏁 End: Courthouse\n"
            "\n⭐ **COURTESY** ⭐\n"
            "\n📝 Notes: Bring vests\n"
            "\n-- Rider Integration and Deployment Engine"
        )

    def test_minimal_message_skips_absent_lines(self):
        from escort_dispatch.core.formatting import format_notification_message

        body = format_notification_message(
            self._assignment(request_id="", event_date=None, start_time=None, start_location="", end_location="")
        )

        assert "Request:" not in body
        assert "📅" not in body
        assert "COURTESY" not in body
        assert body.endswith("Rider: Jane Doe\n\n\n-- Rider Integration and Deployment Engine")

    def test_courtesy_requires_exact_yes(self):
        from escort_dispatch.core.formatting import format_notification_message

        request = RequestRecord(row_index=0, id="B-02-01", courtesy="No", notes="")
        body = format_notification_message(self._assignment(), request)

        assert "COURTESY" not in body
        assert "Notes" not in body

    def test_format_time(self):
        from escort_dispatch.core.formatting import format_time

        assert format_time(time(13, 5)) == "1:05 PM"
        assert format_time(time(0, 15)) == "12:15 AM"
        assert format_time(time(12, 0)) == "12:00 PM"
        assert format_time("9:00 AM") == "9:00 AM"
        assert format_time(None) == ""

    def test_format_date(self):
        from escort_dispatch.core.formatting import format_date

        assert format_date(date(2026, 1, 5)) == "01/05/2026"
        assert format_date("Jan 5") == "Jan 5"

    def test_email_subject(self):
        from escort_dispatch.core.formatting import email_subject

        assert email_subject(self._assignment()) == "Assignment A-0001 - B-02-01"


class TestSmsAddressing:
    def test_verizon_address(self):
        from escort_dispatch.core.sms import sms_address

        assert sms_address("504-555-1234", "Verizon", DEFAULT_CARRIER_SMS_DOMAINS, "vtext.com") == "5045551234@vtext.com"

    def test_carrier_lookup_is_case_insensitive(self):
        from escort_dispatch.core.sms import sms_address

        assert sms_address("(225) 555-9876", "AT&T", DEFAULT_CARRIER_SMS_DOMAINS, "vtext.com") == "2255559876@txt.att.net"

    def test_unknown_or_blank_carrier_uses_default(self):
        from escort_dispatch.core.sms import sms_address

        assert sms_address("5045550003", "Pigeon Wireless", DEFAULT_CARRIER_SMS_DOMAINS, "vtext.com").endswith("@vtext.com")
        assert sms_address("5045550003", "", DEFAULT_CARRIER_SMS_DOMAINS, "default.example").endswith("@default.example")

    @pytest.mark.parametrize("phone", ["555-1234", "1-504-555-1234", "", None])
    def test_invalid_phone(self, phone):
        from escort_dispatch.core.sms import sms_address

        with pytest.raises(DispatchError) as exc_info:
            sms_address(phone, "Verizon", DEFAULT_CARRIER_SMS_DOMAINS, "vtext.com")
        assert exc_info.value.code == ErrorCode.INVALID_PHONE
        assert exc_info.value.message == "Invalid phone number format"

    def test_is_valid_email(self):
        from escort_dispatch.core.sms import is_valid_email

        assert is_valid_email("jane@example.com")
        assert not is_valid_email("jane.example.com")
        assert not is_valid_email("")


class TestIdentifiers:
    def test_generate_request_id_continues_sequence(self):
        from escort_dispatch.core.identifiers import generate_request_id

        existing = ["B-01-26", "B-07-25", "A-09-26", 42, None, ""]
        assert generate_request_id(existing, datetime(2026, 2, 3)) == "B-08-26"

    def test_generate_first_request_id_of_month(self):
        from escort_dispatch.core.identifiers import generate_request_id

        assert generate_request_id([], datetime(2026, 12, 1)) == "L-01-26"

    def test_normalize_request_id(self):
        from escort_dispatch.core.identifiers import normalize_request_id

        assert normalize_request_id(" b-2-24 ") == "B-02-24"
        assert normalize_request_id("X-01-24") is None
        assert normalize_request_id(None) is None

    def test_is_valid_request_id(self):
        from escort_dispatch.core.identifiers import is_valid_request_id

        assert is_valid_request_id("B-02-01")
        assert not is_valid_request_id("b-02-01")
        assert not is_valid_request_id("B-2-01")
        assert not is_valid_request_id(None)

    def test_generate_assignment_id(self):
        from escort_dispatch.core.identifiers import generate_assignment_id

        assert generate_assignment_id(["ASG-0009", "ASG-0010", "junk"]) == "ASG-0011"
        assert generate_assignment_id([]) == "ASG-0001"


class TestContactResolver:
    def _resolver(self, store, timer):
        from escort_dispatch.core.contacts import ContactResolver
        from escort_dispatch.core.data_service import DataService
        from escort_dispatch.infra.ttl_cache import TTLCache

        return ContactResolver(DataService(store, TTLCache(clock=timer)))

    def test_resolve_exact_name(self, store, timer):
        contact = self._resolver(store, timer).resolve("Jane Doe")

        assert contact.phone == "504-555-1234"
        assert contact.carrier == "Verizon"
        assert contact.email == "jane@example.com"

    def test_resolve_trims_input(self, store, timer):
        assert self._resolver(store, timer).resolve("  Jane Doe ").name == "Jane Doe"

    def test_name_match_is_case_sensitive(self, store, timer):
        with pytest.raises(DispatchError) as exc_info:
            self._resolver(store, timer).resolve("jane doe")
        assert exc_info.value.code == ErrorCode.RIDER_NOT_FOUND
        assert exc_info.value.message == "Rider jane doe not found in riders database"

    def test_duplicate_names_are_ambiguous(self, store, timer):
        with pytest.raises(DispatchError) as exc_info:
            self._resolver(store, timer).resolve("Sam Lee")
        assert exc_info.value.code == ErrorCode.AMBIGUOUS_RIDER

    def test_missing_contact_fields_are_blank(self, store, timer):
        contact = self._resolver(store, timer).resolve("No Contact")

        assert contact.phone == ""
        assert contact.email == ""
        assert contact.has_contact is False

    def test_resolved_contact_carries_rider_status(self, store, timer):
        from escort_dispatch.core.domain import RiderStatus

        assert self._resolver(store, timer).resolve("Jane Doe").status is RiderStatus.ACTIVE

    def test_inactive_rider_resolves_with_warning(self, make_store, rows, timer, caplog):
        from escort_dispatch.core.domain import RiderStatus

        store = make_store(riders=[rows.rider("Pat Kim", "5045550009", "Verizon", status="Vacation")])

        with caplog.at_level(logging.WARNING, logger="escort_dispatch.core.contacts"):
            contact = self._resolver(store, timer).resolve("Pat Kim")

        assert contact.status is RiderStatus.VACATION
        assert "Rider Pat Kim is not active (status=Vacation)" in caplog.text

    def test_unrecognised_rider_status_is_unset(self):
        from escort_dispatch.core.domain import RiderStatus

        assert RiderStatus.parse(" Active ") is RiderStatus.ACTIVE
        assert RiderStatus.parse("On Leave") is None
        assert RiderStatus.parse(None) is None
