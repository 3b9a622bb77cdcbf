"""Value types shared by the folder session and its observers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MessageKind(Enum):
    """Whether a slot message reports an outcome or a failure."""

    STATUS = "status"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SessionMessage:
    """One entry in the last-write-wins message slot."""

    text: str
    kind: MessageKind = MessageKind.STATUS

    @property
    def is_error(self) -> bool:
        return self.kind is MessageKind.ERROR


@dataclass(slots=True, frozen=True)
class DerivedState:
    """Command enablement derived from the session fields."""

    can_overwrite: bool = False
    can_save_bookmark: bool = False
    can_release_bookmark: bool = False
    can_load_selected_bookmark: bool = False
    can_delete_file: bool = False
    has_error: bool = False


__all__ = ["MessageKind", "SessionMessage", "DerivedState"]
