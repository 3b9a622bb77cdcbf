"""Reactive updaters that mirror session events onto an output surface."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..events import EventBus, StatusMessage

LOGGER = logging.getLogger(__name__)


class StatusLineProtocol(Protocol):
    """Anything that can show the current status line."""

    def set_message(self, message: str, *, is_error: bool = False) -> None:
        """Show ``message``; an empty string clears the line."""
        ...


class StatusLineUpdater:
    """Subscribes to :class:`StatusMessage` and forwards it to a status line.

    Example:
        updater = StatusLineUpdater(status_line, event_bus)
        ...
        updater.dispose()
    """

    __slots__ = ("_status_line", "_event_bus", "_subscribed")

    def __init__(self, status_line: StatusLineProtocol, event_bus: "EventBus") -> None:
        self._status_line = status_line
        self._event_bus = event_bus
        from ..events import StatusMessage

        self._event_bus.subscribe(StatusMessage, self._on_status_message)
        self._subscribed = True
        LOGGER.debug("StatusLineUpdater: subscribed to events")

    def dispose(self) -> None:
        """Unsubscribe from the bus."""
        if not self._subscribed:
            return
        from ..events import StatusMessage

        self._event_bus.unsubscribe(StatusMessage, self._on_status_message)
        self._subscribed = False

    def _on_status_message(self, event: "StatusMessage") -> None:
        self._status_line.set_message(event.message, is_error=event.is_error)


__all__ = ["StatusLineProtocol", "StatusLineUpdater"]
