"""Reminder scheduler.

Turns an item's reminder offsets ("1 day before", "2 hours before", ...)
into absolute fire times and replaces the item's pending reminder records.

IMPORTANT: compute() keeps the timezone of its input. Records store
scheduled_time as timezone-aware UTC; naive item dates are local time.
"""

import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Union

from logger_config import setup_logger
from schemas import (
    Event,
    FamilyState,
    ReminderRecord,
    Task,
    active_config,
    parse_item_datetime,
    to_utc,
    utcnow,
)

logger = setup_logger(__name__, 'scheduler.log')

OFFSETS = {
    '1 day before': timedelta(days=1),
    '2 hours before': timedelta(hours=2),
    '1 hour before': timedelta(hours=1),
    '30 minutes before': timedelta(minutes=30),
    '15 minutes before': timedelta(minutes=15),
}


def compute(item_datetime: Union[str, datetime], offset_labels: Iterable[str]) -> List[datetime]:
    """Compute absolute reminder times for an item.

    Unknown labels are ignored.

    Args:
        item_datetime: the item's date-time, as a datetime or stored string
        offset_labels: labels from OFFSETS

    Returns:
        List[datetime]: fire times, ascending
    """
    when = parse_item_datetime(item_datetime)
    times = []
    for label in offset_labels:
        offset = OFFSETS.get(label)
        if offset is None:
            logger.debug(f"Ignoring unknown reminder offset {label!r}")
            continue
        times.append(when - offset)
    return sorted(times)


def records_for(state: FamilyState, item_type: str, item_id: str) -> List[ReminderRecord]:
    """All reminder records belonging to one item."""
    return [
        r for r in state.scheduled_reminders
        if r.item_type == item_type and r.item_id == item_id
    ]


class ReminderScheduler:
    """Materializes reminder records for items.

    Args:
        save: commits the family state; called once per schedule()
    """

    def __init__(self, save: Callable[[FamilyState], None]):
        self.save = save

    def schedule(
        self,
        state: FamilyState,
        item_type: str,
        item_id: str,
        item: Union[Event, Task],
    ) -> List[ReminderRecord]:
        """Replace an item's reminder records with ones from its current config.

        No-op (returns []) when the item's reminder configuration is inactive
        or the item has no date.

        Returns:
            List[ReminderRecord]: the newly created records
        """
        config = active_config(item.reminders)
        if config is None or not item.when:
            return []

        state.scheduled_reminders = [
            r for r in state.scheduled_reminders
            if not (r.item_type == item_type and r.item_id == item_id)
        ]

        now = utcnow()
        new_records = [
            ReminderRecord(
                id=str(uuid.uuid4()),
                item_type=item_type,
                item_id=item_id,
                scheduled_time=to_utc(fire_time),
                sent=False,
                member_ids=list(config.member_ids),
                created_at=now,
            )
            for fire_time in compute(item.when, config.times)
        ]
        state.scheduled_reminders.extend(new_records)

        logger.info(
            f"Scheduled {len(new_records)} reminder(s) for {item_type} {item_id} "
            f"in family {state.family_id}"
        )
        self.save(state)
        return new_records
