"""
Domain: user-facing notifications.

The engine emits notifications; the presentation layer decides how to render
them (toasts, banners, log lines).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class Notification:
    message: str
    severity: Severity = Severity.INFO


NotificationSink = Callable[[Notification], None]


def discard(notification: Notification) -> None:
    """Sink for callers that do not render notifications."""


__all__ = ["Severity", "Notification", "NotificationSink", "discard"]
