# tests/test_history.py
"""Tests for notification state, stats, history and the text report"""
import pytest
from datetime import date, datetime

from escort_dispatch.core.domain import AssignmentRecord, NotificationState, StatusSet

TODAY = date(2026, 3, 10)


def _record(**kw):
    values = dict(row_index=0, id="A-1", request_id="B-01-26", rider_name="Jane Doe", status=StatusSet("Assigned"))
    values.update(kw)
    return AssignmentRecord(**values)


class TestClassify:
    @pytest.mark.parametrize("kw,expected", [
        (dict(sms_sent_at=datetime(2026, 3, 9), email_sent_at=datetime(2026, 3, 9)), NotificationState.BOTH_SENT),
        (dict(sms_sent_at=datetime(2026, 3, 9)), NotificationState.SMS_SENT),
        (dict(email_sent_at="03/09/2026 08:00"), NotificationState.EMAIL_SENT),
        (dict(notified_at=datetime(2026, 3, 9)), NotificationState.NOTIFIED),
        (dict(), NotificationState.PENDING),
        (dict(rider_name=""), NotificationState.NO_RIDER),
        (dict(status=StatusSet("Confirmed")), NotificationState.NO_RIDER),
    ])
    def test_precedence(self, kw, expected):
        from escort_dispatch.core.history import classify

        assert classify(_record(**kw)) == expected

    def test_any_non_blank_stamp_counts(self):
        from escort_dispatch.core.history import classify

        assert classify(_record(sms_sent_at="sent")) == NotificationState.SMS_SENT
        assert classify(_record(sms_sent_at="   ")) == NotificationState.PENDING


class TestStats:
    def test_default_dataset(self, engine):
        stats = engine.get_stats()

        assert stats.total_assignments == 7
        assert stats.pending_notifications == 5
        assert stats.unnotified_assigned == 5
        assert stats.sms_today == 0
        assert stats.email_today == 0
        assert stats.by_state == {
            "both_sent": 0,
            "sms_sent": 1,
            "email_sent": 0,
            "notified": 0,
            "pending": 3,
            "no_rider": 4,
        }

    @pytest.mark.asyncio
    async def test_reflects_todays_sends(self, engine):
        await engine.dispatch("A-0001", "Both")

        stats = engine.get_stats()

        assert stats.sms_today == 1
        assert stats.email_today == 1
        assert stats.pending_notifications == 4
        assert stats.by_state["both_sent"] == 1

    def test_notified_without_channel_stamp_is_not_pending(self):
        from escort_dispatch.core.history import get_stats

        stats = get_stats([_record(notified_at=datetime(2026, 3, 10, 8, 0))], TODAY)

        assert stats.pending_notifications == 0
        assert stats.unnotified_assigned == 0

    def test_channel_stamp_without_notified_still_unnotified(self):
        from escort_dispatch.core.history import get_stats

        stats = get_stats([_record(sms_sent_at=datetime(2026, 3, 10, 8, 0))], TODAY)

        assert stats.pending_notifications == 0
        assert stats.unnotified_assigned == 1
        assert stats.sms_today == 1


class TestHistory:
    def test_default_dataset(self, engine):
        history = engine.get_history()

        assert len(history) == 1
        entry = history[0]
        assert entry.id == "A-0007_sms"
        assert entry.type == "SMS"
        assert entry.recipient == "Jane Doe"
        assert entry.request_id == "B-02-02"
        assert entry.timestamp == datetime(2026, 3, 9, 8, 0)
        assert entry.status == "Success"

    @pytest.mark.asyncio
    async def test_newest_first(self, engine):
        await engine.dispatch("A-0002", "Email")

        history = engine.get_history()

        assert [e.id for e in history] == ["A-0002_email", "A-0007_sms"]
        assert history[0].message_preview == "Assignment notification sent via email"

    def test_unparseable_stamps_are_skipped(self):
        from escort_dispatch.core.history import get_history

        history = get_history([
            _record(id="A-1", sms_sent_at="yesterday"),
            _record(id="A-2", email_sent_at="03/08/2026 14:00"),
        ])

        assert [e.id for e in history] == ["A-2_email"]
        assert history[0].timestamp == datetime(2026, 3, 8, 14, 0)


class TestReport:
    def test_default_dataset(self, engine):
        report = engine.get_report()

        assert report.total == 5
        assert report.notified == 1
        assert report.sms == 1
        assert report.email == 0
        assert list(report.by_request) == ["B-02-01", "C-03-26", "B-02-02"]
        assert [r.marks for r in report.by_request["B-02-02"]] == ["📱 ✅"]
        assert [r.marks for r in report.by_request["B-02-01"]] == ["❌", "❌", "❌"]
        assert report.more_requests == 0

    def test_text(self, engine):
        text = engine.get_report().text

        assert text.startswith("📊 NOTIFICATION REPORT\n")
        assert "Generated: 03/10/2026 09:30 AM" in text
        assert "Total Assignments: 5" in text
        assert "Notified: 1 (20%)" in text
        assert "SMS Sent: 1 (20%)" in text
        assert "Email Sent: 0 (0%)" in text
        assert "B-02-02: 1 rider(s)" in text
        assert "  Jane Doe: 📱 ✅" in text

    def test_none_without_assigned_rows(self, make_store, rows, settings, gateway, clock, timer):
        from escort_dispatch.core.engine import NotificationEngine

        store = make_store(assignments=[rows.assignment(id="A-1", rider="Jane Doe", status="Completed")])
        engine = NotificationEngine(store, gateway, settings, clock=clock, cache_clock=timer)

        assert engine.get_report() is None

    def test_limits_request_groups(self):
        from escort_dispatch.core.history import build_report

        records = [_record(id=f"A-{i}", request_id=f"B-{i:02d}-26") for i in range(1, 13)]

        report = build_report(records, datetime(2026, 3, 10, 15, 5))

        assert len(report.by_request) == 10
        assert report.more_requests == 2
        assert "... and 2 more requests" in report.text
        assert "Generated: 03/10/2026 03:05 PM" in report.text
