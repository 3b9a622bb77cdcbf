"""Shared pytest fixtures."""

from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_logging_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ``setup_logging`` from treating one test's config as final."""
    from foldermark.utils import logging as logging_utils

    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    monkeypatch.delenv("FOLDERMARK_LOG_DIR", raising=False)
    logging.getLogger("foldermark").setLevel(logging.NOTSET)
