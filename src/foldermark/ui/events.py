"""Event bus and the events published by the folder session.

Observers (status line, CLI output, a future window) subscribe to typed
events instead of polling session fields.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar
from weakref import WeakMethod, ref

from .models.session_state import DerivedState

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all session events.

    Subclasses are ``@dataclass(slots=True)`` records::

        @dataclass(slots=True)
        class ActiveFolderChanged(Event):
            path: str | None
            token: str | None = None
    """

    pass


# =============================================================================
# Session Events
# =============================================================================


@dataclass(slots=True)
class SessionChanged(Event):
    """Emitted after session fields changed and derived state was recomputed.

    Attributes:
        fields: Names of the session fields that changed.
        derived: The derived state computed from the new field values.
    """

    fields: tuple[str, ...]
    derived: DerivedState


@dataclass(slots=True)
class StatusMessage(Event):
    """Emitted whenever the message slot is written or cleared.

    Attributes:
        message: The new message text; empty when the slot was cleared.
        is_error: Whether the message reports a failure.
    """

    message: str
    is_error: bool = False


@dataclass(slots=True)
class ActiveFolderChanged(Event):
    """Emitted when the session activates a folder or returns to empty.

    Attributes:
        path: Display path of the active folder, or ``None`` when empty.
        token: The bookmark token the folder was opened from, if any.
    """

    path: str | None
    token: str | None = None


@dataclass(slots=True)
class BookmarksChanged(Event):
    """Emitted when the mirrored bookmark list is replaced.

    Attributes:
        tokens: The tokens now available for selection.
    """

    tokens: tuple[str, ...]


@dataclass(slots=True)
class FileListRefreshed(Event):
    """Emitted after the active folder was re-enumerated.

    Attributes:
        names: File names in enumeration order.
    """

    names: tuple[str, ...]


@dataclass(slots=True)
class FileContentLoaded(Event):
    """Emitted when a selected file's content reached the session.

    Attributes:
        name: Name of the file whose content was committed.
    """

    name: str


# =============================================================================
# Event Bus
# =============================================================================


class EventBus(Generic[E]):
    """Synchronous publish/subscribe hub.

    Handlers run in registration order on the publishing thread. Bound
    methods are held through :class:`~weakref.WeakMethod` so observers that
    go away drop out automatically; plain functions are held strongly.

    Example::

        bus = EventBus()
        bus.subscribe(StatusMessage, lambda event: print(event.message))
        bus.publish(StatusMessage(message="Bookmark saved successfully!"))

    Thread Safety:
        Not thread-safe. Publish from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice registers it twice.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug(
                    "Unsubscribed %s from %s", _handler_name(handler), event_type.__name__
                )
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to its handlers.

        A handler that raises is logged and does not stop the remaining
        handlers.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return

        saw_dead = False
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                saw_dead = True
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised for %s", _handler_name(handler), event_type.__name__
                )

        if saw_dead:
            handlers[:] = [handler_ref for handler_ref in handlers if handler_ref.resolve() is not None]

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of handlers, for one event type or overall."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "SessionChanged",
    "StatusMessage",
    "ActiveFolderChanged",
    "BookmarksChanged",
    "FileListRefreshed",
    "FileContentLoaded",
]
