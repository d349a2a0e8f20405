"""Transient user-visible notifications."""

import time
from dataclasses import dataclass
from typing import Callable, Literal

from retroboard.config import get_settings

ToastLevel = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True)
class Toast:
    level: ToastLevel
    message: str
    expires_at: float


class ToastQueue:
    """Short-lived notifications; expired entries drop out on read."""

    def __init__(self, duration_ms: int | None = None, clock: Callable[[], float] = time.monotonic):
        if duration_ms is None:
            duration_ms = get_settings().toast_duration_ms
        self.duration = duration_ms / 1000
        self.clock = clock
        self._toasts: list[Toast] = []

    def push(self, level: ToastLevel, message: str) -> Toast:
        toast = Toast(level=level, message=message, expires_at=self.clock() + self.duration)
        self._toasts.append(toast)
        return toast

    def error(self, message: str) -> Toast:
        return self.push("error", message)

    def success(self, message: str) -> Toast:
        return self.push("success", message)

    def active(self) -> list[Toast]:
        now = self.clock()
        self._toasts = [toast for toast in self._toasts if toast.expires_at > now]
        return list(self._toasts)

    def dismiss(self, toast: Toast) -> None:
        if toast in self._toasts:
            self._toasts.remove(toast)
