"""Local notification triggers with APScheduler.

Each scheduled notification is a one-off DateTrigger job. The job id is the
opaque handle handed back to callers for cancellation.
"""

import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from logger import logger


@dataclass
class NotificationContent:
    """What the user sees when a notification is shown."""
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


NotificationHandler = Callable[[NotificationContent], Union[Awaitable[None], None]]


async def _log_notification(content: NotificationContent) -> None:
    logger.info(f"Notification: {content.title} - {content.body} {content.data}")


class TriggerScheduler:
    """Schedules, cancels and presents local notifications."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._handler: NotificationHandler = _log_notification
        self._configured = False

    def configure_notifications_once(self, handler: Optional[NotificationHandler] = None) -> None:
        """Install the handler that receives fired notifications.

        Only the first call has any effect.
        """
        if self._configured:
            return
        self._configured = True
        if handler is not None:
            self._handler = handler

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Trigger scheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Trigger scheduler stopped")

    async def _deliver(self, content: NotificationContent) -> None:
        try:
            result = self._handler(content)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Notification handler failed for '{content.title}': {e}")

    async def schedule(self, fire_at: datetime, content: NotificationContent) -> str:
        """Schedule a notification for a future time.

        Args:
            fire_at: When to show the notification (naive values are UTC)
            content: Notification title, body and data

        Returns:
            Opaque handle for cancel()

        Raises:
            ValueError: If fire_at is not in the future
        """
        if fire_at.tzinfo is None:
            fire_at = fire_at.replace(tzinfo=timezone.utc)

        if fire_at <= datetime.now(timezone.utc):
            raise ValueError(f"Trigger time {fire_at.isoformat()} is not in the future")

        # Jobs only fire once the scheduler runs on the current event loop
        self.start()

        handle = f"notif_{uuid.uuid4().hex}"
        self._scheduler.add_job(
            self._deliver,
            trigger=DateTrigger(run_date=fire_at),
            args=[content],
            id=handle,
            name=f"notification:{content.title[:30]}",
            replace_existing=True
        )
        logger.debug(f"Scheduled notification {handle} at {fire_at.isoformat()}")
        return handle

    async def cancel(self, handle: str) -> None:
        """Cancel a scheduled notification. Unknown or fired handles are ignored."""
        try:
            self._scheduler.remove_job(handle)
            logger.debug(f"Cancelled notification {handle}")
        except JobLookupError:
            logger.debug(f"Notification {handle} already fired or cancelled")

    async def present(self, content: NotificationContent) -> None:
        """Show a notification immediately, without a trigger."""
        await self._deliver(content)

    def is_scheduled(self, handle: str) -> bool:
        return self._scheduler.get_job(handle) is not None
