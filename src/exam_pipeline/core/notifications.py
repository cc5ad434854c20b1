# ============================================================================
# src/exam_pipeline/core/notifications.py
# ============================================================================
"""
User-facing notifications: (message, severity).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .models import Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.SUCCESS: logging.INFO,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity


class NotificationSink(ABC):
    @abstractmethod
    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the log. Default sink outside a UI."""

    def __init__(self, target: logging.Logger = logger):
        self.target = target

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.target.log(_LOG_LEVELS[Severity(severity)], f"[{Severity(severity).value}] {message}")


class RecordingNotificationSink(NotificationSink):
    """Keeps every notification in memory (API responses, tests)."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.notifications.append(Notification(message, Severity(severity)))

    def messages(self, severity: Optional[Severity] = None) -> List[str]:
        return [
            n.message for n in self.notifications
            if severity is None or n.severity is Severity(severity)
        ]

    def clear(self) -> None:
        self.notifications.clear()
