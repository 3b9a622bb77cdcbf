"""Presentation layer: thin adapters between the session and a host surface.

1. **Updaters**: subscribe to session events and update an output surface
   - StatusLineUpdater: mirrors the message slot onto a status line

2. **Dialogs**: native pickers handed to the permission broker
   - QtPickerProvider: folder and save-destination pickers
"""

from __future__ import annotations

from .dialogs import QtPickerProvider
from .status_updaters import StatusLineProtocol, StatusLineUpdater

__all__ = [
    "QtPickerProvider",
    "StatusLineProtocol",
    "StatusLineUpdater",
]
