"""UI package holding the folder session, its events and presentation helpers."""

from .domain import FolderSession, MessageSlot
from .events import EventBus
from .models.session_state import DerivedState, MessageKind, SessionMessage

__all__ = [
    # Event Bus
    "EventBus",
    # Domain
    "FolderSession",
    "MessageSlot",
    # Models
    "DerivedState",
    "MessageKind",
    "SessionMessage",
]
