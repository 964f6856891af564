"""Notification permission gate."""

from enum import Enum
from typing import Awaitable, Callable, Optional

from logger import logger
from . import config


class PermissionStatus(Enum):
    """Notification permission states reported by the platform."""
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class PermissionGate:
    """Reports and requests permission to show notifications.

    The platform primitives are pluggable: ``get_status`` reads the current
    permission and ``request`` prompts the user. Without them the gate is
    backed by the NOTIFICATIONS_PERMISSION setting, and a prompt turns an
    undetermined status into a grant.
    """

    def __init__(
        self,
        status: Optional[PermissionStatus] = None,
        get_status: Optional[Callable[[], Awaitable[PermissionStatus]]] = None,
        request: Optional[Callable[[], Awaitable[PermissionStatus]]] = None,
    ):
        if status is None:
            try:
                status = PermissionStatus(config.NOTIFICATIONS_PERMISSION)
            except ValueError:
                logger.warning(
                    f"Unknown NOTIFICATIONS_PERMISSION '{config.NOTIFICATIONS_PERMISSION}', "
                    "treating as undetermined"
                )
                status = PermissionStatus.UNDETERMINED
        self._status = status
        self._get_status = get_status
        self._request = request

    async def get_status(self) -> PermissionStatus:
        if self._get_status is not None:
            return await self._get_status()
        return self._status

    async def request_permission(self) -> PermissionStatus:
        if self._request is not None:
            return await self._request()
        if self._status == PermissionStatus.UNDETERMINED:
            self._status = PermissionStatus.GRANTED
        return self._status

    async def has_permission(self, prompt_if_needed: bool = False) -> bool:
        """Check whether notifications may be shown.

        Args:
            prompt_if_needed: Ask the user when not already granted

        Returns:
            True if granted. Never raises; platform errors count as not granted.
        """
        try:
            if await self.get_status() == PermissionStatus.GRANTED:
                return True

            if not prompt_if_needed:
                return False

            return await self.request_permission() == PermissionStatus.GRANTED
        except Exception as e:
            logger.warning(f"Notification permission check failed: {e}")
            return False
