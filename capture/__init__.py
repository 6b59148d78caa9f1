"""Timed body-scan capture sessions."""

from capture.session import (
    CANCELLABLE_STATES,
    COUNTDOWN_SECONDS,
    TERMINAL_STATES,
    CaptureSession,
    CaptureSessionMachine,
    CaptureSessionManager,
    CaptureStatus,
)

__all__ = [
    "CANCELLABLE_STATES",
    "COUNTDOWN_SECONDS",
    "TERMINAL_STATES",
    "CaptureSession",
    "CaptureSessionMachine",
    "CaptureSessionManager",
    "CaptureStatus",
]
