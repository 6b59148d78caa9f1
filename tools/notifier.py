"""Fire-and-forget user notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from storefront_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

SUCCESS = "success"
ERROR = "error"
WARNING = "warning"
INFO = "info"
NOTICE_KINDS = (SUCCESS, ERROR, WARNING, INFO)

_LEVELS = {SUCCESS: logging.INFO, INFO: logging.INFO, WARNING: logging.WARNING, ERROR: logging.ERROR}


@dataclass(frozen=True)
class Notice:
    kind: str
    title: str
    message: str


class Notifier:
    """Interface for surfacing toast-style notices to the caller."""

    def notify(self, kind: str, title: str, message: str) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Writes every notice to the structured log."""

    def notify(self, kind: str, title: str, message: str) -> None:
        log_event(LOGGER, _LEVELS.get(kind, logging.INFO), "notice", kind=kind, title=title, notice=message)


class MemoryNotifier(Notifier):
    """Keeps notices in memory so callers can drain and display them."""

    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def notify(self, kind: str, title: str, message: str) -> None:
        if kind not in NOTICE_KINDS:
            kind = INFO
        self.notices.append(Notice(kind=kind, title=title, message=message))

    def drain(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices


__all__ = [
    "ERROR",
    "INFO",
    "LoggingNotifier",
    "MemoryNotifier",
    "Notice",
    "Notifier",
    "SUCCESS",
    "WARNING",
]
