"""Going-to-event reminders.

When a user marks themselves as going to an event, two local reminders are
scheduled ahead of the start time. The trigger handles are persisted per
event so the reminders can be cancelled later, even after a restart.

Every reschedule is a full reset: existing reminders are cancelled and the
desired set is recomputed from scratch. The scheduler has no update-in-place
primitive, so the persisted handle list only records what is currently live.

Reminders are a best-effort side channel. Public operations log failures and
never raise; the ``try_*`` variants return a ReminderResult describing what
happened.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from dateutil.parser import isoparse

from logger import logger
from . import config
from .kv_store import KeyValueStore
from .permissions import PermissionGate
from .triggers import NotificationContent, NotificationHandler, TriggerScheduler


class SchedulingError(Exception):
    """A reminder operation could not be completed."""


@dataclass
class TriggerSpec:
    """A computed reminder time (never persisted)."""
    fire_at: datetime
    label: str


@dataclass
class ReminderResult:
    """Outcome of a reminder operation."""
    ok: bool = True
    handles: list[str] = field(default_factory=list)
    skipped: Optional[str] = None
    error: Optional[SchedulingError] = None


def reminder_key(entity_id: str) -> str:
    return f"{config.GOING_NOTIFS_KEY_PREFIX}{entity_id}"


def parse_start_time(starts_at_iso: str) -> datetime:
    """Parse an ISO 8601 start time. Naive values are treated as UTC.

    Raises:
        SchedulingError: If the value is not a valid timestamp
    """
    try:
        starts_at = isoparse(starts_at_iso)
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        raise SchedulingError(f"Invalid start time {starts_at_iso!r}: {e}") from e

    if starts_at.tzinfo is None:
        starts_at = starts_at.replace(tzinfo=timezone.utc)
    return starts_at


def compute_triggers(starts_at: datetime, now: Optional[datetime] = None) -> list[TriggerSpec]:
    """Return the reminder times for an event that are still in the future.

    Args:
        starts_at: Event start (timezone aware)
        now: Current time (defaults to now in UTC)

    Returns:
        Trigger specs in configured offset order, excluding any not
        strictly after now
    """
    now = now or datetime.now(timezone.utc)
    candidates = [TriggerSpec(starts_at - offset, label) for offset, label in config.REMINDER_OFFSETS]
    return [t for t in candidates if t.fire_at > now]


def decode_handles(raw: Optional[str]) -> Optional[list[str]]:
    """Decode a persisted handle list.

    Returns:
        The handles, or None if raw is not a JSON array of strings
    """
    try:
        handles = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(handles, list) or not all(isinstance(h, str) for h in handles):
        return None
    return handles


class ReminderManager:
    """Schedules and cancels going-to-event reminders."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        scheduler: Optional[TriggerScheduler] = None,
        permissions: Optional[PermissionGate] = None,
    ):
        self.store = store or KeyValueStore()
        self.scheduler = scheduler or TriggerScheduler()
        self.permissions = permissions or PermissionGate()
        # One lock per event so schedule/cancel calls for it never interleave.
        # Entries live only while some call holds or waits on them.
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str):
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = self._locks[entity_id] = asyncio.Lock()
        self._lock_users[entity_id] = self._lock_users.get(entity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[entity_id] -= 1
            if not self._lock_users[entity_id]:
                del self._lock_users[entity_id]
                del self._locks[entity_id]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_scheduled_handles(self, entity_id: str) -> list[str]:
        """Return the persisted trigger handles for an event (empty if none)."""
        raw = await self.store.get_item(reminder_key(entity_id))
        if not raw:
            return []
        return decode_handles(raw) or []

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------
    async def _cancel_locked(self, entity_id: str) -> ReminderResult:
        key = reminder_key(entity_id)
        raw = await self.store.get_item(key)
        if not raw:
            return ReminderResult(skipped="nothing stored")

        handles = decode_handles(raw)
        if handles is None:
            logger.warning(f"Discarding malformed reminder state for event {entity_id}: {raw[:100]!r}")
            await self.store.remove_item(key)
            return ReminderResult(skipped="malformed state")

        results = await asyncio.gather(
            *(self.scheduler.cancel(h) for h in handles),
            return_exceptions=True
        )
        failed = 0
        for handle, result in zip(handles, results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(f"Failed to cancel notification {handle} for event {entity_id}: {result}")

        await self.store.remove_item(key)
        logger.info(f"Cancelled {len(handles) - failed}/{len(handles)} reminders for event {entity_id}")

        if failed:
            return ReminderResult(
                ok=False,
                error=SchedulingError(f"Failed to cancel {failed} notification(s)")
            )
        return ReminderResult()

    async def try_cancel_reminders(self, entity_id: str) -> ReminderResult:
        """Cancel all reminders for an event and forget their handles."""
        try:
            async with self._entity_lock(entity_id):
                return await self._cancel_locked(entity_id)
        except Exception as e:
            logger.error(f"Failed cancelling reminders for event {entity_id}: {e}")
            return ReminderResult(ok=False, error=_as_scheduling_error(e))

    async def cancel_reminders(self, entity_id: str) -> None:
        await self.try_cancel_reminders(entity_id)

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------
    async def _schedule_locked(
        self,
        entity_id: str,
        title: str,
        starts_at_iso: str,
        now: Optional[datetime],
    ) -> ReminderResult:
        # Always clear old ones first; a failed cancel must not block rescheduling
        cleared = await self._cancel_locked_safely(entity_id)

        starts_at = parse_start_time(starts_at_iso)
        triggers = compute_triggers(starts_at, now)
        if not triggers:
            logger.info(f"No future reminder times for event {entity_id} (starts {starts_at.isoformat()})")
            return ReminderResult(ok=cleared.ok, skipped="no future triggers", error=cleared.error)

        scheduled: list[str] = []
        try:
            for trigger in triggers:
                handle = await self.scheduler.schedule(
                    trigger.fire_at,
                    NotificationContent(
                        title=config.REMINDER_TITLE,
                        body=config.REMINDER_BODY_TEMPLATE.format(title=title, label=trigger.label),
                        data={"eventId": entity_id},
                    )
                )
                scheduled.append(handle)

            await self.store.set_item(reminder_key(entity_id), json.dumps(scheduled))
        except Exception:
            # Roll back so no trigger is left without a persisted handle
            await asyncio.gather(
                *(self.scheduler.cancel(h) for h in scheduled),
                return_exceptions=True
            )
            raise

        logger.info(f"Scheduled {len(scheduled)} reminders for event {entity_id}")
        return ReminderResult(handles=scheduled)

    async def _cancel_locked_safely(self, entity_id: str) -> ReminderResult:
        try:
            return await self._cancel_locked(entity_id)
        except Exception as e:
            logger.error(f"Failed cancelling reminders for event {entity_id}: {e}")
            return ReminderResult(ok=False, error=_as_scheduling_error(e))

    async def try_schedule_reminders(
        self,
        entity_id: str,
        title: str,
        starts_at_iso: str,
        now: Optional[datetime] = None,
    ) -> ReminderResult:
        """Replace an event's reminders with ones derived from its start time.

        Args:
            entity_id: Event ID
            title: Event title shown in the reminder body
            starts_at_iso: Event start as an ISO 8601 string
            now: Current time (defaults to now in UTC)

        Returns:
            ReminderResult with the handles now persisted
        """
        if not await self.permissions.has_permission(False):
            logger.debug(f"Notifications not permitted, skipping reminders for event {entity_id}")
            return ReminderResult(skipped="permission denied")

        try:
            async with self._entity_lock(entity_id):
                return await self._schedule_locked(entity_id, title, starts_at_iso, now)
        except Exception as e:
            logger.error(f"Failed scheduling reminders for event {entity_id}: {e}")
            return ReminderResult(ok=False, error=_as_scheduling_error(e))

    async def schedule_reminders(self, entity_id: str, title: str, starts_at_iso: str) -> None:
        await self.try_schedule_reminders(entity_id, title, starts_at_iso)

    # ------------------------------------------------------------------
    # Immediate notifications
    # ------------------------------------------------------------------
    async def present_new_event_notification(self, entity_id: str, title: str, actor_label: str) -> None:
        """Immediately notify that an organizer posted a new event.

        Not persisted and not cancellable.
        """
        if not await self.permissions.has_permission(False):
            return

        try:
            await self.scheduler.present(NotificationContent(
                title=title,
                body=config.NEW_EVENT_BODY_TEMPLATE.format(organizer=actor_label),
                data={"eventId": entity_id},
            ))
        except Exception as e:
            logger.error(f"Failed presenting notification for event {entity_id}: {e}")


def _as_scheduling_error(e: Exception) -> SchedulingError:
    if isinstance(e, SchedulingError):
        return e
    error = SchedulingError(str(e))
    error.__cause__ = e
    return error


# Global manager instance
_reminder_manager: Optional[ReminderManager] = None


def get_reminder_manager() -> ReminderManager:
    """Get the global reminder manager.

    Creates the instance on first call (lazy initialization).
    """
    global _reminder_manager

    if _reminder_manager is None:
        _reminder_manager = ReminderManager()
        logger.info("Reminder manager initialized")

    return _reminder_manager


def reset_reminder_manager() -> None:
    """Drop the global reminder manager (for testing)."""
    global _reminder_manager

    if _reminder_manager is not None:
        _reminder_manager.scheduler.shutdown()
        _reminder_manager.store.close()
    _reminder_manager = None


def configure_notifications_once(handler: Optional[NotificationHandler] = None) -> None:
    """Install the handler that receives fired notifications (first call wins)."""
    get_reminder_manager().scheduler.configure_notifications_once(handler)


async def schedule_going_reminders(event_id: str, event_title: str, starts_at_iso: str) -> None:
    """Schedule reminders for an event the user is going to."""
    await get_reminder_manager().schedule_reminders(event_id, event_title, starts_at_iso)


async def cancel_going_reminders(event_id: str) -> None:
    """Cancel reminders for an event the user is no longer going to."""
    await get_reminder_manager().cancel_reminders(event_id)


async def present_new_event_notification(event_id: str, organizer_username: str, event_title: str) -> None:
    """Notify that an organizer posted a new event."""
    await get_reminder_manager().present_new_event_notification(event_id, event_title, organizer_username)
