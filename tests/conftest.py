"""Pytest configuration and fixtures."""

import json
import os
import sys
import tempfile

import httpx
import pytest
from unittest.mock import Mock, AsyncMock, patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class FakeTriggerScheduler:
    """Records schedule/cancel calls instead of creating APScheduler jobs."""

    def __init__(self):
        self.scheduled = {}
        self.cancelled = []
        self.presented = []
        self.fail_schedule_after = None
        self.fail_cancel = set()
        self._counter = 0

    async def schedule(self, fire_at, content):
        if self.fail_schedule_after is not None and len(self.scheduled) >= self.fail_schedule_after:
            raise RuntimeError("scheduler unavailable")
        self._counter += 1
        handle = f"handle-{self._counter}"
        self.scheduled[handle] = (fire_at, content)
        return handle

    async def cancel(self, handle):
        self.cancelled.append(handle)
        if handle in self.fail_cancel:
            raise RuntimeError(f"cannot cancel {handle}")
        self.scheduled.pop(handle, None)

    async def present(self, content):
        self.presented.append(content)

    def shutdown(self):
        pass


@pytest.fixture
def temp_kv_store():
    """Create a KeyValueStore on a fresh temp database for each test."""
    from domains.reminders.kv_store import KeyValueStore

    fd, temp_path = tempfile.mkstemp(suffix="_kv_test.db")
    os.close(fd)

    store = KeyValueStore(temp_path)
    yield store

    store.close()
    for suffix in ["", "-wal", "-shm"]:
        try:
            os.unlink(temp_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def fake_scheduler():
    return FakeTriggerScheduler()


@pytest.fixture
def trigger_scheduler():
    """Real APScheduler-backed TriggerScheduler, shut down after the test."""
    from domains.reminders.triggers import TriggerScheduler

    scheduler = TriggerScheduler()
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def global_reminder_manager(monkeypatch, tmp_path):
    """Fresh global reminder manager on a temp database with permission granted."""
    import domains.reminders.config as reminders_config
    from domains.reminders.manager import get_reminder_manager, reset_reminder_manager

    reset_reminder_manager()
    monkeypatch.setattr(reminders_config, 'KV_STORE_DB', str(tmp_path / "kv_store.db"))
    monkeypatch.setattr(reminders_config, 'NOTIFICATIONS_PERMISSION', "granted")

    yield get_reminder_manager()

    reset_reminder_manager()


@pytest.fixture
def granted_permissions():
    from domains.reminders.permissions import PermissionGate, PermissionStatus
    return PermissionGate(status=PermissionStatus.GRANTED)


@pytest.fixture
def reminder_manager(temp_kv_store, fake_scheduler, granted_permissions):
    """ReminderManager wired to a temp store, fake scheduler and granted permission."""
    from domains.reminders.manager import ReminderManager
    return ReminderManager(
        store=temp_kv_store,
        scheduler=fake_scheduler,
        permissions=granted_permissions,
    )


@pytest.fixture
def supabase_config(monkeypatch):
    """Point storage calls at a fake Supabase project."""
    import config
    monkeypatch.setattr(config, 'SUPABASE_URL', "https://proj.supabase.co")
    monkeypatch.setattr(config, 'SUPABASE_KEY', "anon-key")
    return config


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx client."""
    with patch('httpx.AsyncClient') as mock:
        client = AsyncMock()
        mock.return_value.__aenter__.return_value = client
        yield client


@pytest.fixture
def make_response():
    """Factory for mock httpx responses."""
    return _make_response


def _make_response(status_code=200, json_data=None, text=None, content_type="application/json"):
    response = Mock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.headers = {"content-type": content_type}
    if text is None:
        text = json.dumps(json_data) if json_data is not None else ""
    response.text = text
    response.json = Mock(return_value=json_data)
    if response.is_success:
        response.raise_for_status = Mock()
    else:
        response.raise_for_status = Mock(side_effect=httpx.HTTPStatusError(
            f"HTTP {status_code}", request=Mock(), response=response
        ))
    return response
