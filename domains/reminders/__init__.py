"""Reminders for events the user is going to.

Uses APScheduler date triggers with handles persisted in a local SQLite
key-value store.
"""

from .kv_store import KeyValueStore
from .permissions import PermissionGate, PermissionStatus
from .triggers import NotificationContent, TriggerScheduler
from .manager import (
    ReminderManager,
    ReminderResult,
    SchedulingError,
    TriggerSpec,
    compute_triggers,
    configure_notifications_once,
    get_reminder_manager,
    reset_reminder_manager,
    schedule_going_reminders,
    cancel_going_reminders,
    present_new_event_notification,
)

__all__ = [
    "KeyValueStore",
    "PermissionGate",
    "PermissionStatus",
    "NotificationContent",
    "TriggerScheduler",
    "ReminderManager",
    "ReminderResult",
    "SchedulingError",
    "TriggerSpec",
    "compute_triggers",
    "configure_notifications_once",
    "get_reminder_manager",
    "reset_reminder_manager",
    "schedule_going_reminders",
    "cancel_going_reminders",
    "present_new_event_notification",
]
