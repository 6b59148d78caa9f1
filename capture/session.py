"""Capture session lifecycle.

A session moves ``idle -> device_requested -> device_ready -> counting ->
finalizing`` and ends in ``completed``, ``cancelled`` or ``failed``. The
machine owns the device handle for the whole session and releases it on every
terminal transition. Countdown ticks are plain method calls, so any scheduler
can drive them; :meth:`CaptureSessionMachine.drive` does so with an
injectable async ``sleep``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from memory.scan_store import ScanStore
from models.errors import (
    InvalidTransition,
    PersistenceFailure,
    ResourceUnavailable,
    SessionActiveError,
    StorefrontError,
    Unauthenticated,
)
from models.scan import ScanRecord
from storefront_app.logging_config import get_logger, log_event
from tools.camera import DeviceHandle, DeviceProvider
from tools.notifier import ERROR, INFO, SUCCESS, WARNING, LoggingNotifier, Notifier

LOGGER = get_logger(__name__)

COUNTDOWN_SECONDS = 30


class CaptureStatus(str, Enum):
    IDLE = "idle"
    DEVICE_REQUESTED = "device_requested"
    DEVICE_READY = "device_ready"
    COUNTING = "counting"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({CaptureStatus.COMPLETED, CaptureStatus.CANCELLED, CaptureStatus.FAILED})
CANCELLABLE_STATES = frozenset(
    {CaptureStatus.DEVICE_REQUESTED, CaptureStatus.DEVICE_READY, CaptureStatus.COUNTING}
)


@dataclass
class CaptureSession:
    session_id: str
    caller_id: str
    platform_signal: str = ""
    status: CaptureStatus = CaptureStatus.DEVICE_REQUESTED
    remaining_seconds: int = 0
    device_handle: Optional[DeviceHandle] = None
    result: Optional[ScanRecord] = None
    error: Optional[StorefrontError] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_dict(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "remaining_seconds": self.remaining_seconds,
            "result": self.result.to_dict() if self.result else None,
            "error": str(self.error) if self.error else None,
        }


SessionObserver = Callable[[CaptureSession], None]
Sleep = Callable[[float], Awaitable[object]]


def _reject_unauthenticated(notifier: Notifier) -> Unauthenticated:
    notifier.notify(WARNING, "Login Required", "Please login to use the body scan feature.")
    log_event(LOGGER, logging.WARNING, "capture_rejected", reason="unauthenticated")
    return Unauthenticated()


class CaptureSessionMachine:
    """Runs one caller's capture sessions, at most one at a time.

    ``status`` reads ``idle`` whenever no session is active; the most recent
    session, terminal or not, stays available as ``last_session``.
    """

    def __init__(
        self,
        device_provider: DeviceProvider,
        scan_store: ScanStore,
        notifier: Notifier | None = None,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.device_provider = device_provider
        self.scan_store = scan_store
        self.notifier = notifier or LoggingNotifier()
        self.countdown_seconds = max(1, int(countdown_seconds))
        self._sleep = sleep
        self._clock = clock
        self._monotonic = monotonic
        self._session: Optional[CaptureSession] = None
        self.last_session: Optional[CaptureSession] = None
        self._ids = itertools.count(1)
        self._observers: Dict[int, SessionObserver] = {}
        self._next_observer_id = 1

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    @property
    def status(self) -> CaptureStatus:
        return self._session.status if self._session else CaptureStatus.IDLE

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def remaining_seconds(self) -> int:
        if self._session and self._session.status is CaptureStatus.COUNTING:
            return self._session.remaining_seconds
        return 0

    def subscribe(self, callback: SessionObserver) -> int:
        """Observe every transition and tick; callbacks get a snapshot copy."""

        token = self._next_observer_id
        self._next_observer_id += 1
        self._observers[token] = callback
        return token

    def unsubscribe(self, token: int) -> None:
        self._observers.pop(token, None)

    def request_device(self, caller_id: str | None, platform_signal: str = "") -> CaptureSession:
        """Open a new session in ``device_requested``."""

        if not caller_id:
            raise _reject_unauthenticated(self.notifier)
        if self._session is not None:
            raise SessionActiveError(f"Capture session {self._session.session_id} is still {self._session.status.value}")

        session = CaptureSession(
            session_id=f"capture_{int(self._clock() * 1000)}_{next(self._ids)}",
            caller_id=caller_id,
            platform_signal=platform_signal or "",
        )
        self._session = session
        self.last_session = session
        log_event(LOGGER, logging.INFO, "capture_started", session_id=session.session_id)
        self._emit(session)
        return session

    async def acquire_device(self) -> CaptureSession:
        """Acquire the camera for the requested session.

        A handle that arrives after the session was cancelled is released
        straight away; a failure that arrives late is ignored.
        """

        session = self._require(CaptureStatus.DEVICE_REQUESTED)
        pending = asyncio.ensure_future(asyncio.to_thread(self._acquire_for, session))
        try:
            handle = await asyncio.shield(pending)
        except asyncio.CancelledError:
            pending.add_done_callback(self._release_orphaned_handle)
            raise
        except Exception as exc:
            if not self._still_waiting_for_device(session):
                log_event(LOGGER, logging.INFO, "capture_late_device_failure", session_id=session.session_id)
                return session
            error = ResourceUnavailable()
            session.error = error
            log_event(
                LOGGER,
                logging.ERROR,
                "capture_device_unavailable",
                session_id=session.session_id,
                error=str(exc),
            )
            self._finish(session, CaptureStatus.FAILED)
            self.notifier.notify(ERROR, "Camera Access Denied", "Please allow camera access to use body scan feature.")
            raise error from exc

        if handle is None or not self._still_waiting_for_device(session):
            log_event(LOGGER, logging.INFO, "capture_stale_device_released", session_id=session.session_id)
            if handle is not None:
                self._release_handle(handle)
            return session

        session.device_handle = handle
        self._transition(session, CaptureStatus.DEVICE_READY)
        return session

    async def start(self, caller_id: str | None, platform_signal: str = "") -> CaptureSession:
        self.request_device(caller_id, platform_signal)
        return await self.acquire_device()

    def begin_countdown(self) -> CaptureSession:
        session = self._require(CaptureStatus.DEVICE_READY)
        session.remaining_seconds = self.countdown_seconds
        self._transition(session, CaptureStatus.COUNTING)
        return session

    def tick(self) -> int:
        """Advance the countdown by one second and return what is left.

        Reaching zero builds the scan record candidate and moves the session to
        ``finalizing``.
        """

        session = self._require(CaptureStatus.COUNTING)
        session.remaining_seconds -= 1
        if session.remaining_seconds > 0:
            self._emit(session)
            return session.remaining_seconds

        session.remaining_seconds = 0
        session.result = ScanRecord.candidate(session.platform_signal, now=self._clock())
        self._transition(session, CaptureStatus.FINALIZING)
        return 0

    async def finalize(self) -> CaptureSession:
        """Hand the finished scan to the store; the device is released either way."""

        session = self._require(CaptureStatus.FINALIZING)
        try:
            await asyncio.to_thread(self.scan_store.save_scan_record, session.caller_id, session.result)
        except Exception as exc:
            error = exc if isinstance(exc, PersistenceFailure) else PersistenceFailure(f"Failed to save scan: {exc}")
            session.error = error
            log_event(LOGGER, logging.ERROR, "capture_save_failed", session_id=session.session_id, error=str(exc))
            self._finish(session, CaptureStatus.FAILED)
            self.notifier.notify(ERROR, "Error", "Failed to save scan. Please try again.")
            if error is exc:
                raise
            raise error from exc

        self._finish(session, CaptureStatus.COMPLETED)
        self.notifier.notify(SUCCESS, "Scan Complete!", "Your body scan has been completed successfully.")
        return session

    def cancel(self) -> CaptureSession:
        session = self._session
        if session is None or session.status not in CANCELLABLE_STATES:
            current = session.status.value if session else CaptureStatus.IDLE.value
            raise InvalidTransition(f"Cannot cancel a capture that is {current}")
        session.result = None
        self._finish(session, CaptureStatus.CANCELLED)
        self.notifier.notify(INFO, "Scan Cancelled", "Body scan has been cancelled.")
        return session

    async def drive(self) -> CaptureSession:
        """Carry a requested session through to a terminal state."""

        session = self._require(CaptureStatus.DEVICE_REQUESTED)
        try:
            await self.acquire_device()
            if session.status is not CaptureStatus.DEVICE_READY:
                return session

            self.begin_countdown()
            started = self._monotonic()
            elapsed_ticks = 0
            while session.status is CaptureStatus.COUNTING:
                elapsed_ticks += 1
                await self._sleep(max(0.0, started + elapsed_ticks - self._monotonic()))
                # cancel() may have run while we were sleeping
                if session.status is not CaptureStatus.COUNTING:
                    break
                self.tick()

            if session.status is CaptureStatus.FINALIZING:
                await self.finalize()
        except asyncio.CancelledError:
            self._abandon(session)
            raise
        return session

    async def run(self, caller_id: str | None, platform_signal: str = "") -> CaptureSession:
        self.request_device(caller_id, platform_signal)
        return await self.drive()

    def _acquire_for(self, session: CaptureSession) -> Optional[DeviceHandle]:
        """Runs in a worker thread; gives the handle back if the session moved on meanwhile."""

        handle = self.device_provider.acquire()
        if session.status is not CaptureStatus.DEVICE_REQUESTED:
            self._release_handle(handle)
            return None
        return handle

    def _release_orphaned_handle(self, pending: "asyncio.Future[Optional[DeviceHandle]]") -> None:
        if pending.cancelled() or pending.exception() is not None:
            return
        handle = pending.result()
        if handle is not None:
            log_event(LOGGER, logging.INFO, "capture_orphaned_device_released", handle_id=handle.handle_id)
            self._release_handle(handle)

    def _abandon(self, session: CaptureSession) -> None:
        """Close out a session whose driving task was cancelled."""

        if self._session is not session:
            return
        log_event(LOGGER, logging.WARNING, "capture_driver_cancelled", session_id=session.session_id)
        if session.status in CANCELLABLE_STATES:
            self.cancel()
            return
        session.error = PersistenceFailure("capture interrupted before the scan was saved")
        self._finish(session, CaptureStatus.FAILED)
        self.notifier.notify(ERROR, "Error", "Failed to save scan. Please try again.")

    def _still_waiting_for_device(self, session: CaptureSession) -> bool:
        return self._session is session and session.status is CaptureStatus.DEVICE_REQUESTED

    def _require(self, status: CaptureStatus) -> CaptureSession:
        session = self._session
        if session is None or session.status is not status:
            current = session.status.value if session else CaptureStatus.IDLE.value
            raise InvalidTransition(f"Expected a {status.value} session, found {current}")
        return session

    def _transition(self, session: CaptureSession, status: CaptureStatus) -> None:
        session.status = status
        log_event(LOGGER, logging.INFO, "capture_transition", session_id=session.session_id, status=status.value)
        self._emit(session)

    def _finish(self, session: CaptureSession, status: CaptureStatus) -> None:
        handle, session.device_handle = session.device_handle, None
        if handle is not None:
            self._release_handle(handle)
        session.remaining_seconds = 0
        if self._session is session:
            self._session = None
        self._transition(session, status)

    def _release_handle(self, handle: DeviceHandle) -> None:
        try:
            self.device_provider.release(handle)
        except Exception as exc:
            log_event(LOGGER, logging.WARNING, "capture_release_failed", error=str(exc))

    def _emit(self, session: CaptureSession) -> None:
        snapshot = replace(session)
        for callback in list(self._observers.values()):
            callback(snapshot)


class CaptureSessionManager:
    """Hands out one :class:`CaptureSessionMachine` per caller."""

    def __init__(
        self,
        device_provider: DeviceProvider,
        scan_store: ScanStore,
        notifier: Notifier | None = None,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.device_provider = device_provider
        self.scan_store = scan_store
        self.notifier = notifier or LoggingNotifier()
        self.countdown_seconds = countdown_seconds
        self._sleep = sleep
        self._machines: Dict[str, CaptureSessionMachine] = {}

    def machine_for(self, caller_id: str | None) -> CaptureSessionMachine:
        if not caller_id:
            raise _reject_unauthenticated(self.notifier)
        machine = self._machines.get(caller_id)
        if machine is None:
            machine = CaptureSessionMachine(
                device_provider=self.device_provider,
                scan_store=self.scan_store,
                notifier=self.notifier,
                countdown_seconds=self.countdown_seconds,
                sleep=self._sleep,
            )
            self._machines[caller_id] = machine
        return machine

    async def run(self, caller_id: str | None, platform_signal: str = "") -> CaptureSession:
        return await self.machine_for(caller_id).run(caller_id, platform_signal)

    def history(self, caller_id: str) -> list[ScanRecord]:
        return self.scan_store.list_scan_records(caller_id)


__all__ = [
    "CANCELLABLE_STATES",
    "COUNTDOWN_SECONDS",
    "TERMINAL_STATES",
    "CaptureSession",
    "CaptureSessionMachine",
    "CaptureSessionManager",
    "CaptureStatus",
]
