"""Shared test fixtures and configuration.

Points the database and log directory at a temp dir and clears provider
credentials BEFORE any project module reads settings.
"""

import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="family_connect_tests_")

# Patch env vars BEFORE any project imports
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'default.db')}"
os.environ["FAMILY_CONNECT_LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ.pop("MIRROR_DATABASE_URL", None)
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("SENDGRID_FROM_EMAIL", None)
os.environ.pop("FAMILY_CONNECT_API_KEY", None)

from datetime import datetime, timezone

import pytest

from database import make_session_factory
from relay_client import SendResult
from schemas import Event, FamilyState, Member, ReminderConfig, ReminderRecord, Task
from state_store import StateStore

FAMILY_ID = "123456"


class FakeRelay:
    """Stands in for RelayClient. results maps phone -> success."""

    def __init__(self, results=None, url="http://relay.test/api/send-reminder"):
        self.url = url
        self.results = results or {}
        self.calls = []

    async def send_sms(self, phone, carrier, message):
        self.calls.append((phone, carrier, message))
        if self.results.get(phone, True):
            return SendResult(success=True, details={"success": True})
        return SendResult(success=False, error="Failed to send SMS")


def make_member(member_id="m1", name=None, phone="5551234567", carrier="verizon"):
    return Member(id=member_id, name=name or f"Member {member_id}", phone=phone, carrier=carrier)


def make_event(event_id="e1", title="Soccer practice", date="2024-01-10T18:00:00Z",
               times=("1 day before",), member_ids=("m1",)):
    reminders = ReminderConfig(enabled=True, times=list(times), member_ids=list(member_ids))
    return Event(id=event_id, title=title, date=date, reminders=reminders)


def make_record(record_id="r1", item_type="event", item_id="e1",
                scheduled_time=datetime(2024, 1, 9, 18, 0, tzinfo=timezone.utc),
                member_ids=("m1",), sent=False):
    return ReminderRecord(
        id=record_id,
        item_type=item_type,
        item_id=item_id,
        scheduled_time=scheduled_time,
        member_ids=list(member_ids),
        sent=sent,
    )


@pytest.fixture
def store(tmp_path):
    """StateStore backed by a temp SQLite file, no mirror."""
    return StateStore(make_session_factory(f"sqlite:///{tmp_path / 'local.db'}"))


@pytest.fixture
def mirrored_store(tmp_path):
    """StateStore with a local and a mirror SQLite file."""
    return StateStore(
        make_session_factory(f"sqlite:///{tmp_path / 'local.db'}"),
        make_session_factory(f"sqlite:///{tmp_path / 'mirror.db'}"),
    )


@pytest.fixture
def fake_relay():
    return FakeRelay()


@pytest.fixture
def family_state():
    """A family with two reachable members, one without a phone, and one event."""
    return FamilyState(
        family_id=FAMILY_ID,
        members=[
            make_member("m1", "Mom", "5551111111", "verizon"),
            make_member("m2", "Dad", "5552222222", "att"),
            Member(id="m3", name="Kid"),
        ],
        events=[make_event(member_ids=("m1", "m2"))],
        tasks=[Task(id="t1", title="Take out the trash", due_date="2024-01-11T07:00:00Z")],
    )
