"""Single last-write-wins slot for the session's current message."""

from __future__ import annotations

from ..models.session_state import MessageKind, SessionMessage


class MessageSlot:
    """Holds at most one message; every write replaces the previous one.

    Success text and failures share the slot, but each entry keeps its
    :class:`MessageKind` so error display never depends on the wording.
    """

    __slots__ = ("_message",)

    def __init__(self) -> None:
        self._message: SessionMessage | None = None

    @property
    def message(self) -> SessionMessage | None:
        return self._message

    @property
    def text(self) -> str | None:
        return self._message.text if self._message is not None else None

    @property
    def has_error(self) -> bool:
        return self._message is not None and bool(self._message.text) and self._message.is_error

    def post(self, text: str, kind: MessageKind = MessageKind.STATUS) -> SessionMessage:
        self._message = SessionMessage(text=text, kind=kind)
        return self._message

    def post_error(self, text: str) -> SessionMessage:
        return self.post(text, MessageKind.ERROR)

    def clear(self) -> bool:
        """Empty the slot; return ``True`` when something was removed."""
        had_message = self._message is not None
        self._message = None
        return had_message


__all__ = ["MessageSlot"]
