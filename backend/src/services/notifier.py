"""
Notification sink for user-facing toasts.

The chancellor workflow reports the outcome of each action through a
fire-and-forget ``notify(kind, title, message)`` call. Nothing is returned
and nothing is retried.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


class ToastKind(enum.Enum):
    """Kind of toast shown to the officer."""
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Toast:
    kind: str
    title: str
    message: str


class Notifier(ABC):
    """Fire-and-forget notification sink."""

    @abstractmethod
    def notify(self, kind: ToastKind, title: str, message: str) -> None:
        """Deliver one toast."""


class LogNotifier(Notifier):
    """Notifier that only writes toasts to the services log."""

    def notify(self, kind: ToastKind, title: str, message: str) -> None:
        if kind is ToastKind.ERROR:
            logger.warning(f"[toast:{kind.value}] {title}: {message}")
        else:
            logger.info(f"[toast:{kind.value}] {title}: {message}")


class ToastCollector(LogNotifier):
    """
    Notifier that keeps the toasts of one request so the API can return them.

    Usage:
        >>> toasts = ToastCollector()
        >>> toasts.notify(ToastKind.SUCCESS, "Saved", "Attendance updated")
        >>> toasts.toasts[0].title
        'Saved'
    """

    def __init__(self):
        self.toasts: List[Toast] = []

    def notify(self, kind: ToastKind, title: str, message: str) -> None:
        super().notify(kind, title, message)
        self.toasts.append(Toast(kind=kind.value, title=title, message=message))
