"""Tests for the reminder key-value store, permission gate and trigger scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from domains.reminders import configure_notifications_once
from domains.reminders.kv_store import KeyValueStore
from domains.reminders.manager import ReminderManager
from domains.reminders.permissions import PermissionGate, PermissionStatus
from domains.reminders.triggers import NotificationContent


# ----------------------------------------------------------------------
# Key-value store
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_kv_set_get_remove(temp_kv_store):
    assert await temp_kv_store.get_item("missing") is None

    await temp_kv_store.set_item("k", '["a"]')
    assert await temp_kv_store.get_item("k") == '["a"]'

    await temp_kv_store.set_item("k", '["b"]')
    assert await temp_kv_store.get_item("k") == '["b"]'

    await temp_kv_store.remove_item("k")
    assert await temp_kv_store.get_item("k") is None

    # Removing again is fine
    await temp_kv_store.remove_item("k")


@pytest.mark.asyncio
async def test_kv_survives_reopen(temp_kv_store):
    """Values persist across store instances (app restarts)."""
    await temp_kv_store.set_item("eventfinder:going-notifs:e1", '["h1", "h2"]')
    temp_kv_store.close()

    reopened = KeyValueStore(temp_kv_store.db_path)
    try:
        assert await reopened.get_item("eventfinder:going-notifs:e1") == '["h1", "h2"]'
    finally:
        reopened.close()


# ----------------------------------------------------------------------
# Permission gate
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_permission_granted():
    gate = PermissionGate(status=PermissionStatus.GRANTED)
    assert await gate.has_permission() is True


@pytest.mark.asyncio
async def test_permission_undetermined_without_prompt():
    gate = PermissionGate(status=PermissionStatus.UNDETERMINED)
    assert await gate.has_permission(False) is False
    # Not prompting leaves the status untouched
    assert await gate.get_status() == PermissionStatus.UNDETERMINED


@pytest.mark.asyncio
async def test_permission_prompt_grants_undetermined():
    gate = PermissionGate(status=PermissionStatus.UNDETERMINED)
    assert await gate.has_permission(True) is True
    assert await gate.has_permission(False) is True


@pytest.mark.asyncio
async def test_permission_denied_stays_denied():
    gate = PermissionGate(status=PermissionStatus.DENIED)
    assert await gate.has_permission(True) is False


@pytest.mark.asyncio
async def test_permission_platform_error_maps_to_false():
    async def broken_status():
        raise RuntimeError("platform unavailable")

    gate = PermissionGate(get_status=broken_status)
    assert await gate.has_permission(True) is False


def test_permission_from_config(monkeypatch):
    import domains.reminders.config as config

    monkeypatch.setattr(config, 'NOTIFICATIONS_PERMISSION', "granted")
    assert PermissionGate()._status == PermissionStatus.GRANTED

    monkeypatch.setattr(config, 'NOTIFICATIONS_PERMISSION', "bogus")
    assert PermissionGate()._status == PermissionStatus.UNDETERMINED


# ----------------------------------------------------------------------
# Trigger scheduler (APScheduler)
# ----------------------------------------------------------------------

async def _wait_for(delivered, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not delivered and loop.time() < deadline:
        await asyncio.sleep(0.05)


@pytest.mark.asyncio
async def test_trigger_start_and_shutdown(trigger_scheduler):
    assert not trigger_scheduler._scheduler.running

    trigger_scheduler.start()
    trigger_scheduler.start()  # Already running is fine
    assert trigger_scheduler._scheduler.running

    trigger_scheduler.shutdown()
    assert not trigger_scheduler._scheduler.running

    # Stopping twice is fine
    trigger_scheduler.shutdown()


@pytest.mark.asyncio
async def test_schedule_starts_scheduler(trigger_scheduler):
    content = NotificationContent(title="Reminder", body="x")

    await trigger_scheduler.schedule(datetime.now(timezone.utc) + timedelta(hours=1), content)

    assert trigger_scheduler._scheduler.running


@pytest.mark.asyncio
async def test_scheduled_trigger_fires(trigger_scheduler):
    delivered = []

    async def handler(content):
        delivered.append(content)

    trigger_scheduler.configure_notifications_once(handler)
    content = NotificationContent(title="Reminder", body="Concert starts in 3 hours.", data={"eventId": "e1"})

    handle = await trigger_scheduler.schedule(
        datetime.now(timezone.utc) + timedelta(milliseconds=300), content
    )
    await _wait_for(delivered)

    assert delivered == [content]
    assert not trigger_scheduler.is_scheduled(handle)


@pytest.mark.asyncio
async def test_cancelled_trigger_does_not_fire(trigger_scheduler):
    delivered = []
    trigger_scheduler.configure_notifications_once(delivered.append)

    handle = await trigger_scheduler.schedule(
        datetime.now(timezone.utc) + timedelta(milliseconds=300),
        NotificationContent(title="Reminder", body="x")
    )
    await trigger_scheduler.cancel(handle)
    await asyncio.sleep(0.6)

    assert delivered == []


@pytest.mark.asyncio
async def test_global_manager_delivers_fired_reminders(global_reminder_manager):
    delivered = []

    async def handler(content):
        delivered.append(content)

    configure_notifications_once(handler)
    content = NotificationContent(title="Reminder", body="Concert starts in 1 day.", data={"eventId": "e1"})

    await global_reminder_manager.scheduler.schedule(
        datetime.now(timezone.utc) + timedelta(milliseconds=300), content
    )
    await _wait_for(delivered)

    assert delivered == [content]


@pytest.mark.asyncio
async def test_trigger_schedule_and_cancel(trigger_scheduler):
    content = NotificationContent(title="Reminder", body="Concert starts in 1 day.", data={"eventId": "e1"})

    handle = await trigger_scheduler.schedule(datetime.now(timezone.utc) + timedelta(hours=6), content)

    assert handle.startswith("notif_")
    assert trigger_scheduler.is_scheduled(handle)

    await trigger_scheduler.cancel(handle)
    assert not trigger_scheduler.is_scheduled(handle)

    # Idempotent
    await trigger_scheduler.cancel(handle)
    await trigger_scheduler.cancel("notif_unknown")


@pytest.mark.asyncio
async def test_trigger_rejects_past_time(trigger_scheduler):
    content = NotificationContent(title="Reminder", body="too late")

    with pytest.raises(ValueError):
        await trigger_scheduler.schedule(datetime.now(timezone.utc) - timedelta(minutes=1), content)


@pytest.mark.asyncio
async def test_trigger_handles_are_unique(trigger_scheduler):
    content = NotificationContent(title="Reminder", body="x")
    fire_at = datetime.now(timezone.utc) + timedelta(hours=1)

    first = await trigger_scheduler.schedule(fire_at, content)
    second = await trigger_scheduler.schedule(fire_at, content)

    assert first != second
    assert trigger_scheduler.is_scheduled(first) and trigger_scheduler.is_scheduled(second)


@pytest.mark.asyncio
async def test_present_delivers_to_configured_handler(trigger_scheduler):
    delivered = []

    async def handler(content):
        delivered.append(content)

    trigger_scheduler.configure_notifications_once(handler)
    # Later configuration is ignored
    trigger_scheduler.configure_notifications_once(lambda c: delivered.append("second handler"))

    content = NotificationContent(title="Jazz Night", body="ana posted a new event")
    await trigger_scheduler.present(content)

    assert delivered == [content]


@pytest.mark.asyncio
async def test_handler_failure_does_not_propagate(trigger_scheduler):
    def handler(content):
        raise RuntimeError("delivery failed")

    trigger_scheduler.configure_notifications_once(handler)

    await trigger_scheduler.present(NotificationContent(title="t", body="b"))


@pytest.mark.asyncio
async def test_manager_with_real_scheduler(temp_kv_store, trigger_scheduler):
    """End-to-end: persisted handles match live APScheduler jobs."""
    manager = ReminderManager(
        store=temp_kv_store,
        scheduler=trigger_scheduler,
        permissions=PermissionGate(status=PermissionStatus.GRANTED),
    )
    starts_at = (datetime.now(timezone.utc) + timedelta(hours=30)).isoformat()

    await manager.schedule_reminders("evt-1", "Concert", starts_at)
    handles = await manager.get_scheduled_handles("evt-1")

    assert len(handles) == 2
    assert all(trigger_scheduler.is_scheduled(h) for h in handles)

    await manager.cancel_reminders("evt-1")

    assert not any(trigger_scheduler.is_scheduled(h) for h in handles)
    assert await manager.get_scheduled_handles("evt-1") == []
