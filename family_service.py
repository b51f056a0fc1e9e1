"""Family operations: events, tasks and members.

Each operation loads the family document, changes it, reschedules
reminders where the item's reminder settings changed, and saves the whole
document back through the StateStore.

Missing items raise LookupError; invalid input raises ValueError.
"""

import random
import re
import uuid
from typing import List, Optional, Union

from logger_config import setup_logger
from scheduler import ReminderScheduler
from schemas import (
    Event,
    EventCreate,
    EventUpdate,
    FamilyState,
    Member,
    MemberCreate,
    Task,
    TaskCreate,
    TaskUpdate,
    active_config,
)
from state_store import StateStore

logger = setup_logger(__name__, 'family_service.log')

_FAMILY_ID = re.compile(r'^\d{6}$')


def generate_family_id() -> str:
    """Random 6-digit family id."""
    return str(random.randint(100000, 999999))


def validate_family_id(family_id: str) -> str:
    family_id = (family_id or '').strip()
    if not _FAMILY_ID.match(family_id):
        raise ValueError("Family ID must be exactly 6 digits")
    return family_id


class FamilyService:
    """Application operations over one StateStore."""

    def __init__(self, store: StateStore, scheduler: Optional[ReminderScheduler] = None):
        self.store = store
        self.scheduler = scheduler or ReminderScheduler(store.save)

    def get_state(self, family_id: str) -> FamilyState:
        return self.store.load(validate_family_id(family_id))

    def _schedule_and_save(self, state: FamilyState, item_type: str, item: Union[Event, Task]) -> None:
        # schedule() saves when it creates records; otherwise save here
        if not self.scheduler.schedule(state, item_type, item.id, item):
            self.store.save(state)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def create_event(self, family_id: str, data: EventCreate) -> Event:
        state = self.get_state(family_id)
        event = Event(
            id=str(uuid.uuid4()),
            title=data.title.strip(),
            date=data.date,
            description=data.description or None,
            reminders=active_config(data.reminders),
        )
        state.events.append(event)
        self._schedule_and_save(state, 'event', event)
        logger.info(f"Created event {event.id} in family {state.family_id}")
        return event

    def update_event(self, family_id: str, event_id: str, updates: EventUpdate) -> Event:
        state = self.get_state(family_id)
        event = state.find_item('event', event_id)
        if event is None:
            raise LookupError(f"Event {event_id} not found")

        changes = updates.model_dump(exclude_unset=True)
        if 'reminders' in changes:
            changes['reminders'] = active_config(updates.reminders)
        if changes.get('title'):
            changes['title'] = changes['title'].strip()
        for key, value in changes.items():
            if key in ('title', 'date') and value is None:
                continue
            setattr(event, key, value)

        self._schedule_and_save(state, 'event', event)
        return event

    def delete_event(self, family_id: str, event_id: str) -> None:
        """Delete an event. Its reminder records are left for the dispatcher to drop."""
        state = self.get_state(family_id)
        if state.find_item('event', event_id) is None:
            raise LookupError(f"Event {event_id} not found")
        state.events = [e for e in state.events if e.id != event_id]
        self.store.save(state)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, family_id: str, data: TaskCreate) -> Task:
        state = self.get_state(family_id)
        task = Task(
            id=str(uuid.uuid4()),
            title=data.title.strip(),
            assignee=data.assignee or None,
            due_date=data.due_date or None,
            description=data.description or None,
            reminders=active_config(data.reminders),
        )
        state.tasks.append(task)
        self._schedule_and_save(state, 'task', task)
        logger.info(f"Created task {task.id} in family {state.family_id}")
        return task

    def update_task(self, family_id: str, task_id: str, updates: TaskUpdate) -> Task:
        state = self.get_state(family_id)
        task = state.find_item('task', task_id)
        if task is None:
            raise LookupError(f"Task {task_id} not found")

        changes = updates.model_dump(exclude_unset=True)
        if 'reminders' in changes:
            changes['reminders'] = active_config(updates.reminders)
        if changes.get('title'):
            changes['title'] = changes['title'].strip()
        for key, value in changes.items():
            if key == 'title' and value is None:
                continue
            setattr(task, key, value)

        self._schedule_and_save(state, 'task', task)
        return task

    def toggle_task(self, family_id: str, task_id: str) -> Task:
        state = self.get_state(family_id)
        task = state.find_item('task', task_id)
        if task is None:
            raise LookupError(f"Task {task_id} not found")
        task.completed = not task.completed
        self.store.save(state)
        return task

    def delete_task(self, family_id: str, task_id: str) -> None:
        """Delete a task. Its reminder records are left for the dispatcher to drop."""
        state = self.get_state(family_id)
        if state.find_item('task', task_id) is None:
            raise LookupError(f"Task {task_id} not found")
        state.tasks = [t for t in state.tasks if t.id != task_id]
        self.store.save(state)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def add_member(self, family_id: str, data: MemberCreate) -> Member:
        state = self.get_state(family_id)
        if any(m.name.lower() == data.name.lower() for m in state.members):
            raise ValueError("A member with this name already exists")

        member = Member(
            id=str(uuid.uuid4()),
            name=data.name,
            phone=data.phone,
            carrier=data.carrier,
        )
        state.members.append(member)
        self.store.save(state)
        logger.info(f"Added member {member.id} to family {state.family_id}")
        return member

    def remove_member(self, family_id: str, member_id: str) -> None:
        state = self.get_state(family_id)
        if state.find_member(member_id) is None:
            raise LookupError(f"Member {member_id} not found")
        state.members = [m for m in state.members if m.id != member_id]
        self.store.save(state)

    def sms_members(self, family_id: str) -> List[Member]:
        """Members that can be picked as reminder recipients."""
        return [m for m in self.get_state(family_id).members if m.can_receive_sms]
