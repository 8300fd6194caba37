"""
Host notification mechanism.

The authorization step completes outside the process. The host environment
posts named notifications here (the redirect URL arrived, the application
came back to the foreground) and the pending AuthorizationFlow observes them.
"""

import asyncio
import concurrent.futures
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import uuid4


logger = logging.getLogger(__name__)

APP_LAUNCHED_WITH_URL = "app_launched_with_url"
APP_DID_BECOME_ACTIVE = "app_did_become_active"

ObserverCallback = Callable[..., Awaitable[Any] | Any]


@dataclass(frozen=True)
class Observer:
    """Registration handle returned by add_observer."""

    id: str
    name: str


class NotificationCenter:
    """
    Named observer registry.

    Observers receive the notification payload as keyword arguments and may
    be plain functions or coroutines.
    """

    def __init__(self) -> None:
        self._observers: dict[str, tuple[Observer, ObserverCallback]] = {}

    def add_observer(self, name: str, callback: ObserverCallback) -> Observer:
        observer = Observer(id=str(uuid4()), name=name)
        self._observers[observer.id] = (observer, callback)
        logger.debug(f"Registered observer for '{name}'")
        return observer

    def remove_observer(self, observer: Observer | None) -> bool:
        """
        Unregister an observer.

        Safe to call more than once or with None.

        Returns:
            True if the observer was registered, False otherwise
        """
        if observer is None:
            return False
        removed = self._observers.pop(observer.id, None) is not None
        if removed:
            logger.debug(f"Removed observer for '{observer.name}'")
        return removed

    def observer_count(self, name: str | None = None) -> int:
        if name is None:
            return len(self._observers)
        return sum(1 for obs, _ in self._observers.values() if obs.name == name)

    async def post(self, name: str, **payload: Any) -> None:
        """
        Deliver a notification to every current observer of ``name``.

        Observers registered or removed while delivering do not affect the
        current delivery.
        """
        targets = [
            (obs, cb) for obs, cb in list(self._observers.values()) if obs.name == name
        ]
        logger.info(
            f"Posting notification '{name}' to {len(targets)} observer(s)",
            extra={"notification": name},
        )
        for observer, callback in targets:
            result = callback(**payload)
            if inspect.isawaitable(result):
                await result

    def post_threadsafe(
        self, loop: asyncio.AbstractEventLoop, name: str, **payload: Any
    ) -> "concurrent.futures.Future[None]":
        """Post from a thread other than the one running ``loop``."""
        return asyncio.run_coroutine_threadsafe(self.post(name, **payload), loop)


_notification_center: NotificationCenter | None = None


def get_notification_center() -> NotificationCenter:
    """Get the process-wide notification center."""
    global _notification_center
    if _notification_center is None:
        _notification_center = NotificationCenter()
    return _notification_center


def reset_notification_center() -> None:
    """
    Reset the notification center singleton.

    Useful for testing to ensure clean state between tests.
    """
    global _notification_center
    _notification_center = None
