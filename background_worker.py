"""Background Worker for Family Connect reminders.

This module implements the reminder dispatcher: it scans every family's
scheduled reminders for due ones and texts the recipients through the
SMS relay endpoint.

The worker:
- Runs once immediately, then every 60 seconds (configurable)
- Processes due reminders one at a time, one recipient at a time
- Drops reminders whose event or task no longer exists
- Marks a reminder sent when at least one recipient was texted
- Leaves a reminder pending when every send failed, so the next scan
  retries it (no backoff, no retry limit)
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Iterable, List, Optional

from config import settings
from logger_config import setup_logger
from relay_client import RelayClient, get_relay_client
from schemas import (
    FamilyState,
    Member,
    ReminderRecord,
    ScanResult,
    SendNowResult,
    utcnow,
)
from state_store import StateStore, get_store

# Configure logging
logger = setup_logger(__name__, 'worker.log')

MAX_MESSAGE_LENGTH = 140

# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_requested = True


def compose_message(title: str) -> str:
    """SMS body for an item: its title, cut to 140 characters."""
    if len(title) > MAX_MESSAGE_LENGTH:
        return title[:MAX_MESSAGE_LENGTH - 3] + '...'
    return title


def select_due(records: Iterable[ReminderRecord], now: datetime) -> List[ReminderRecord]:
    """Unsent records whose scheduled time has passed."""
    return [r for r in records if not r.sent and r.scheduled_time <= now]


def resolve_recipients(member_ids: Iterable[str], members: Iterable[Member]) -> List[Member]:
    """Current members among member_ids that have a phone and a carrier."""
    wanted = set(member_ids)
    return [m for m in members if m.id in wanted and m.can_receive_sms]


class ReminderDispatcher:
    """Delivers due reminders for families held in a StateStore.

    Args:
        store: family state store (load/save)
        relay: client for the SMS relay endpoint
    """

    def __init__(self, store: StateStore, relay: RelayClient):
        self.store = store
        self.relay = relay

    async def process_record(self, state: FamilyState, record: ReminderRecord) -> str:
        """Deliver one due reminder.

        Returns the outcome: 'orphaned', 'undeliverable', 'sent' or 'failed'.
        """
        item = state.find_item(record.item_type, record.item_id)

        if item is None:
            # Item was deleted, drop its reminder without sending
            state.scheduled_reminders = [r for r in state.scheduled_reminders if r.id != record.id]
            self.store.save(state)
            logger.info(f"Removed orphaned reminder {record.id} ({record.item_type} {record.item_id})")
            return 'orphaned'

        recipients = resolve_recipients(record.member_ids, state.members)
        if not recipients:
            record.sent = True
            self.store.save(state)
            logger.info(f"Reminder {record.id} has no reachable recipients, marked sent")
            return 'undeliverable'

        message = compose_message(item.title)

        delivered = False
        for member in recipients:
            logger.info(f"Sending reminder {record.id} to {member.name} via {member.carrier}")
            result = await self.relay.send_sms(member.phone, member.carrier, message)
            if result.success:
                delivered = True
            else:
                logger.warning(f"Failed to send reminder {record.id} to {member.name}: {result.error}")

        if delivered:
            record.sent = True
            self.store.save(state)
            return 'sent'

        logger.warning(f"All sends failed for reminder {record.id}, will retry on next scan")
        return 'failed'

    async def scan_family(self, family_id: str, now: Optional[datetime] = None) -> ScanResult:
        """Process every due reminder of one family, sequentially."""
        now = now or utcnow()
        state = self.store.load(family_id)
        result = ScanResult()

        due = select_due(state.scheduled_reminders, now)
        if not due:
            logger.debug(f"No due reminders for family {family_id}")
            return result

        logger.info(f"Found {len(due)} due reminder(s) for family {family_id}")
        for record in due:
            outcome = await self.process_record(state, record)
            setattr(result, outcome, getattr(result, outcome) + 1)
        return result

    async def scan_all(self, now: Optional[datetime] = None) -> ScanResult:
        """Scan every family. Errors in one family are logged and skipped."""
        total = ScanResult()
        for family_id in self.store.family_ids():
            try:
                result = await self.scan_family(family_id, now)
            except Exception as e:
                logger.error(f"Error scanning family {family_id}: {str(e)}", exc_info=True)
                continue
            total.sent += result.sent
            total.orphaned += result.orphaned
            total.undeliverable += result.undeliverable
            total.failed += result.failed
        return total

    async def send_now(
        self,
        family_id: str,
        item_type: str,
        item_id: str,
        member_ids: Iterable[str],
    ) -> SendNowResult:
        """Text an item's title to chosen members right away.

        Does not touch scheduled reminder records.

        Raises:
            LookupError: the item does not exist
            ValueError: no members selected, or none of them can receive SMS
        """
        state = self.store.load(family_id)
        item = state.find_item(item_type, item_id)
        if item is None:
            raise LookupError("Item not found")

        member_ids = list(member_ids)
        if not member_ids:
            raise ValueError("Please select at least one family member to notify")

        recipients = resolve_recipients(member_ids, state.members)
        if not recipients:
            raise ValueError("Selected members do not have phone numbers configured")

        message = compose_message(item.title)
        result = SendNowResult()
        for member in recipients:
            logger.info(f"Sending SMS to {member.name} ({member.phone}) via {member.carrier}...")
            sent = await self.relay.send_sms(member.phone, member.carrier, message)
            if sent.success:
                result.success_count += 1
            else:
                result.fail_count += 1
                result.errors.append(f"{member.name}: {sent.error}")

        if result.fail_count == 0:
            result.summary = f"Reminders sent successfully to {result.success_count} member(s)!"
        elif result.success_count > 0:
            result.summary = (
                f"Sent to {result.success_count} member(s), but {result.fail_count} failed."
            )
        else:
            result.summary = "Failed to send reminders to all members."
        return result


async def worker_loop(dispatcher: ReminderDispatcher, interval: Optional[int] = None):
    """Main worker loop that runs until shutdown is requested.

    Scans once immediately, then at the configured interval.
    """
    interval = interval or settings.WORKER_CHECK_INTERVAL
    logger.info("Reminder dispatcher started")
    logger.info(f"Check interval: {interval} seconds")
    logger.info(f"Relay URL: {dispatcher.relay.url}")

    iteration = 0
    while not shutdown_requested:
        try:
            iteration += 1
            logger.debug(f"Worker iteration {iteration} started")

            result = await dispatcher.scan_all()
            if result.sent or result.orphaned or result.undeliverable or result.failed:
                logger.info(
                    f"Scan {iteration}: sent={result.sent} orphaned={result.orphaned} "
                    f"undeliverable={result.undeliverable} failed={result.failed}"
                )

            # Break sleep into 1-second intervals to allow quick shutdown
            for _ in range(interval):
                if shutdown_requested:
                    break
                await asyncio.sleep(1)

        except Exception as e:
            logger.error(f"Error in worker loop iteration {iteration}: {str(e)}", exc_info=True)
            await asyncio.sleep(5)  # Brief pause before the next scan

    logger.info("Reminder dispatcher shutting down gracefully")


def main():
    """Main entry point for the background worker."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("=" * 60)
    logger.info("Family Connect - Reminder Dispatcher")
    logger.info("=" * 60)

    if not settings.WORKER_ENABLED:
        logger.warning("Worker is disabled in configuration. Exiting.")
        sys.exit(0)

    dispatcher = ReminderDispatcher(get_store(), get_relay_client())
    try:
        asyncio.run(worker_loop(dispatcher))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error in background worker: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info("Background worker stopped")
    sys.exit(0)


if __name__ == "__main__":
    main()
