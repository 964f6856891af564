"""Reminder domain configuration - "going" reminders and event notifications."""

import os
from datetime import timedelta

from config import DATA_DIR

# Key prefix for persisted trigger handles (one entry per event)
GOING_NOTIFS_KEY_PREFIX = "eventfinder:going-notifs:"

# Lead times before an event starts, paired with the label used in the body
REMINDER_OFFSETS = [
    (timedelta(hours=24), "1 day"),
    (timedelta(hours=3), "3 hours"),
]

# Notification copy
REMINDER_TITLE = "Reminder"
REMINDER_BODY_TEMPLATE = "{title} starts in {label}."
NEW_EVENT_BODY_TEMPLATE = "{organizer} posted a new event"

# Local key-value store for reminder handles
KV_STORE_DB = os.environ.get("EVENTFINDER_KV_DB", str(DATA_DIR / "kv_store.db"))

# Notification permission as reported by the platform:
# "granted", "denied" or "undetermined"
NOTIFICATIONS_PERMISSION = os.environ.get("NOTIFICATIONS_PERMISSION", "undetermined").lower()
