"""Domain layer for the folder-access UI.

Domain managers hold state and business rules independent of any widget
toolkit. They receive their collaborators through the constructor and
report changes through the event bus.

Domain Managers:
    - FolderSession: Active folder, bookmarks, file selection and editing
    - MessageSlot: The single current status/error message
"""

from __future__ import annotations

from .folder_session import FolderSession
from .message_slot import MessageSlot

__all__: list[str] = [
    "FolderSession",
    "MessageSlot",
]
