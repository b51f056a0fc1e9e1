"""Tests for background_worker: due selection, delivery and send-now."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

import background_worker
from background_worker import (
    ReminderDispatcher,
    compose_message,
    resolve_recipients,
    select_due,
    worker_loop,
)
from conftest import FAMILY_ID, FakeRelay, make_member, make_record
from schemas import ScanResult

DUE = datetime(2024, 1, 9, 18, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestSelectDue:
    def test_boundary(self):
        record = make_record(scheduled_time=DUE)
        assert select_due([record], DUE) == [record]
        assert select_due([record], DUE + timedelta(minutes=5)) == [record]
        assert select_due([record], DUE - timedelta(seconds=1)) == []

    def test_sent_records_are_skipped(self):
        assert select_due([make_record(sent=True)], DUE + timedelta(days=1)) == []


class TestComposeMessage:
    def test_short_title_unchanged(self):
        assert compose_message("Dentist") == "Dentist"

    def test_exactly_140_unchanged(self):
        title = "x" * 140
        assert compose_message(title) == title

    def test_long_title_truncated(self):
        message = compose_message("y" * 141)
        assert len(message) == 140
        assert message == "y" * 137 + "..."


def test_resolve_recipients_keeps_only_reachable_current_members():
    members = [
        make_member("m1"),
        make_member("m2", phone=None, carrier=None),
        make_member("m3"),
    ]
    result = resolve_recipients(["m3", "m2", "gone"], members)
    assert [m.id for m in result] == ["m3"]


# ---------------------------------------------------------------------------
# ReminderDispatcher
# ---------------------------------------------------------------------------


def _dispatcher(state, relay):
    store = MagicMock()
    store.load.return_value = state
    store.family_ids.return_value = [state.family_id]
    return ReminderDispatcher(store, relay), store


class TestProcessRecord:
    @pytest.mark.asyncio
    async def test_orphaned_record_is_removed_without_sending(self, family_state, fake_relay):
        record = make_record(item_id="deleted-event")
        family_state.scheduled_reminders = [record]
        dispatcher, store = _dispatcher(family_state, fake_relay)

        result = await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert result == ScanResult(orphaned=1)
        assert family_state.scheduled_reminders == []
        assert fake_relay.calls == []
        store.save.assert_called_once_with(family_state)

    @pytest.mark.asyncio
    async def test_no_reachable_recipient_marks_sent(self, family_state, fake_relay):
        record = make_record(member_ids=("m3", "removed-member"))
        family_state.scheduled_reminders = [record]
        dispatcher, store = _dispatcher(family_state, fake_relay)

        result = await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert result == ScanResult(undeliverable=1)
        assert record.sent is True
        assert fake_relay.calls == []
        store.save.assert_called_once()

    @pytest.mark.asyncio
    async def test_sends_to_each_recipient_in_order(self, family_state, fake_relay):
        record = make_record(member_ids=("m2", "m1", "m3"))
        family_state.scheduled_reminders = [record]
        dispatcher, store = _dispatcher(family_state, fake_relay)

        result = await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert result == ScanResult(sent=1)
        assert record.sent is True
        assert fake_relay.calls == [
            ("5551111111", "verizon", "Soccer practice"),
            ("5552222222", "att", "Soccer practice"),
        ]
        store.save.assert_called_once()

    @pytest.mark.asyncio
    async def test_one_success_is_enough(self, family_state):
        relay = FakeRelay(results={"5551111111": False})
        record = make_record(member_ids=("m1", "m2"))
        family_state.scheduled_reminders = [record]
        dispatcher, _ = _dispatcher(family_state, relay)

        await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert record.sent is True
        assert len(relay.calls) == 2

    @pytest.mark.asyncio
    async def test_all_failures_leave_record_pending_and_retry_next_scan(self, family_state):
        relay = FakeRelay(results={"5551111111": False, "5552222222": False})
        record = make_record(member_ids=("m1", "m2"))
        family_state.scheduled_reminders = [record]
        dispatcher, store = _dispatcher(family_state, relay)

        first = await dispatcher.scan_family(FAMILY_ID, now=DUE)
        assert first == ScanResult(failed=1)
        assert record.sent is False
        store.save.assert_not_called()

        relay.results["5552222222"] = True
        second = await dispatcher.scan_family(FAMILY_ID, now=DUE + timedelta(minutes=1))
        assert second == ScanResult(sent=1)
        assert record.sent is True
        # m1 failed both times, m2 failed then succeeded
        assert len(relay.calls) == 4

    @pytest.mark.asyncio
    async def test_long_titles_are_truncated(self, family_state, fake_relay):
        family_state.events[0].title = "t" * 200
        family_state.scheduled_reminders = [make_record(member_ids=("m1",))]
        dispatcher, _ = _dispatcher(family_state, fake_relay)

        await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert fake_relay.calls[0][2] == "t" * 137 + "..."

    @pytest.mark.asyncio
    async def test_future_and_sent_records_are_left_alone(self, family_state, fake_relay):
        future = make_record("future", scheduled_time=DUE + timedelta(hours=1))
        done = make_record("done", sent=True)
        family_state.scheduled_reminders = [future, done]
        dispatcher, store = _dispatcher(family_state, fake_relay)

        result = await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert result == ScanResult()
        assert fake_relay.calls == []
        assert future.sent is False
        store.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_task_reminders_use_task_title(self, family_state, fake_relay):
        family_state.scheduled_reminders = [make_record(item_type="task", item_id="t1")]
        dispatcher, _ = _dispatcher(family_state, fake_relay)

        await dispatcher.scan_family(FAMILY_ID, now=DUE)

        assert fake_relay.calls == [("5551111111", "verizon", "Take out the trash")]


class TestScanAll:
    @pytest.mark.asyncio
    async def test_errors_in_one_family_do_not_stop_others(self, family_state, fake_relay):
        family_state.scheduled_reminders = [make_record()]
        store = MagicMock()
        store.family_ids.return_value = ["999999", FAMILY_ID]

        def load(family_id):
            if family_id == "999999":
                raise RuntimeError("corrupt document")
            return family_state

        store.load.side_effect = load
        dispatcher = ReminderDispatcher(store, fake_relay)

        result = await dispatcher.scan_all(now=DUE)

        assert result == ScanResult(sent=1)

    @pytest.mark.asyncio
    async def test_against_real_store(self, store, family_state, fake_relay):
        family_state.scheduled_reminders = [make_record(member_ids=("m1",))]
        store.save(family_state)
        dispatcher = ReminderDispatcher(store, fake_relay)

        assert await dispatcher.scan_all(now=DUE) == ScanResult(sent=1)
        assert store.load(FAMILY_ID).scheduled_reminders[0].sent is True

        # Sent reminders are never sent again
        assert await dispatcher.scan_all(now=DUE + timedelta(days=1)) == ScanResult()
        assert len(fake_relay.calls) == 1


class TestSendNow:
    @pytest.mark.asyncio
    async def test_all_succeed(self, family_state, fake_relay):
        dispatcher, store = _dispatcher(family_state, fake_relay)

        result = await dispatcher.send_now(FAMILY_ID, "event", "e1", ["m1", "m2"])

        assert result.success_count == 2
        assert result.fail_count == 0
        assert result.summary == "Reminders sent successfully to 2 member(s)!"
        store.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_partial_success_lists_errors(self, family_state):
        relay = FakeRelay(results={"5552222222": False})
        dispatcher, _ = _dispatcher(family_state, relay)

        result = await dispatcher.send_now(FAMILY_ID, "event", "e1", ["m1", "m2"])

        assert (result.success_count, result.fail_count) == (1, 1)
        assert result.errors == ["Dad: Failed to send SMS"]
        assert result.summary == "Sent to 1 member(s), but 1 failed."

    @pytest.mark.asyncio
    async def test_all_fail(self, family_state):
        relay = FakeRelay(results={"5551111111": False})
        dispatcher, _ = _dispatcher(family_state, relay)

        result = await dispatcher.send_now(FAMILY_ID, "event", "e1", ["m1"])

        assert result.summary == "Failed to send reminders to all members."

    @pytest.mark.asyncio
    async def test_missing_item(self, family_state, fake_relay):
        dispatcher, _ = _dispatcher(family_state, fake_relay)
        with pytest.raises(LookupError):
            await dispatcher.send_now(FAMILY_ID, "task", "nope", ["m1"])

    @pytest.mark.asyncio
    async def test_no_selection_or_no_phones(self, family_state, fake_relay):
        dispatcher, _ = _dispatcher(family_state, fake_relay)
        with pytest.raises(ValueError):
            await dispatcher.send_now(FAMILY_ID, "event", "e1", [])
        with pytest.raises(ValueError):
            await dispatcher.send_now(FAMILY_ID, "event", "e1", ["m3"])
        assert fake_relay.calls == []


class TestWorkerLoop:
    @pytest.mark.asyncio
    async def test_scans_immediately_then_stops_on_shutdown(self, monkeypatch, fake_relay):
        monkeypatch.setattr(background_worker, "shutdown_requested", False)
        scans = []

        class StubDispatcher:
            relay = fake_relay

            async def scan_all(self):
                scans.append(datetime.now(timezone.utc))
                background_worker.shutdown_requested = True
                return ScanResult(sent=1)

        await worker_loop(StubDispatcher(), interval=60)

        assert len(scans) == 1

    @pytest.mark.asyncio
    async def test_scan_errors_do_not_kill_the_loop(self, monkeypatch, fake_relay):
        monkeypatch.setattr(background_worker, "shutdown_requested", False)
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(background_worker.asyncio, "sleep", fake_sleep)
        calls = []

        class FlakyDispatcher:
            relay = fake_relay

            async def scan_all(self):
                calls.append(1)
                if len(calls) == 1:
                    raise RuntimeError("boom")
                background_worker.shutdown_requested = True
                return ScanResult()

        await worker_loop(FlakyDispatcher(), interval=60)

        assert len(calls) == 2
        assert sleeps == [5]
