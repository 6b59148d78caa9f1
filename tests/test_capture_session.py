"""Capture session lifecycle tests driven with an instant sleep."""

import asyncio
import sys
import threading
from pathlib import Path
from typing import List

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from capture.session import CaptureSessionMachine, CaptureSessionManager, CaptureStatus
from memory.scan_store import JSONScanStore, ScanStore
from models.errors import (
    InvalidTransition,
    PersistenceFailure,
    ResourceUnavailable,
    SessionActiveError,
    Unauthenticated,
)
from models.scan import ScanRecord
from tools.camera import DeviceHandle, SimulatedCameraProvider
from tools.notifier import MemoryNotifier

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"
LINUX = "Mozilla/5.0 (X11; Linux x86_64)"


async def _instant_sleep(_: float) -> None:
    await asyncio.sleep(0)


class RecordingScanStore(ScanStore):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.saved: List[tuple] = []

    def save_scan_record(self, caller_id: str, record: ScanRecord) -> ScanRecord:
        if self.fail:
            raise PersistenceFailure("disk full")
        self.saved.append((caller_id, record))
        return record

    def list_scan_records(self, caller_id: str) -> List[ScanRecord]:
        return [record for owner, record in self.saved if owner == caller_id]


class BlockingCamera(SimulatedCameraProvider):
    """Holds acquisition until the test releases the gate."""

    def __init__(self, available: bool = True) -> None:
        super().__init__(available=available)
        self.gate = threading.Event()

    def acquire(self) -> DeviceHandle:
        self.gate.wait(timeout=5)
        return super().acquire()


def _machine(camera=None, store=None, notifier=None, sleep=_instant_sleep) -> CaptureSessionMachine:
    return CaptureSessionMachine(
        device_provider=camera or SimulatedCameraProvider(),
        scan_store=store if store is not None else RecordingScanStore(),
        notifier=notifier or MemoryNotifier(),
        sleep=sleep,
        clock=lambda: 1_700_000_000.0,
    )


def test_start_without_caller_stays_idle_and_never_acquires() -> None:
    camera = SimulatedCameraProvider()
    notifier = MemoryNotifier()
    machine = _machine(camera=camera, notifier=notifier)

    with pytest.raises(Unauthenticated):
        asyncio.run(machine.run(None, LINUX))
    with pytest.raises(Unauthenticated):
        asyncio.run(machine.start("", LINUX))

    assert machine.status is CaptureStatus.IDLE
    assert machine.last_session is None
    assert camera.acquire_count == 0
    assert notifier.notices[0].kind == "warning"
    assert notifier.notices[0].title == "Login Required"


def test_full_countdown_saves_one_record_and_releases_device() -> None:
    camera = SimulatedCameraProvider()
    store = RecordingScanStore()
    notifier = MemoryNotifier()
    machine = _machine(camera=camera, store=store, notifier=notifier)
    ticks: List[int] = []
    machine.subscribe(lambda snapshot: ticks.append(snapshot.remaining_seconds)
                      if snapshot.status is CaptureStatus.COUNTING else None)

    session = asyncio.run(machine.run("user-1", IPHONE))

    assert session.status is CaptureStatus.COMPLETED
    assert machine.status is CaptureStatus.IDLE
    assert ticks == list(range(30, 0, -1))
    assert len(store.saved) == 1
    caller_id, record = store.saved[0]
    assert caller_id == "user-1"
    assert record.try_on_count == 0
    assert record.device == "mobile"
    assert record.height is None and record.weight is None
    assert record.scan_id == "scan_1700000000000"
    assert camera.acquire_count == 1 and camera.release_count == 1
    assert not camera.active
    assert session.device_handle is None
    assert session.remaining_seconds == 0
    assert notifier.notices[-1].title == "Scan Complete!"


def test_desktop_platform_signal_yields_desktop_record() -> None:
    store = RecordingScanStore()
    asyncio.run(_machine(store=store).run("user-1", LINUX))
    assert store.saved[0][1].device == "desktop"


def test_cancel_during_countdown_releases_once_and_skips_save() -> None:
    camera = SimulatedCameraProvider()
    store = RecordingScanStore()
    notifier = MemoryNotifier()
    holder = {}

    async def sleep_then_cancel(_: float) -> None:
        machine = holder["machine"]
        if machine.remaining_seconds == 25:
            machine.cancel()
        await asyncio.sleep(0)

    machine = _machine(camera=camera, store=store, notifier=notifier, sleep=sleep_then_cancel)
    holder["machine"] = machine

    session = asyncio.run(machine.run("user-1", LINUX))

    assert session.status is CaptureStatus.CANCELLED
    assert session.result is None
    assert store.saved == []
    assert camera.release_count == 1
    assert machine.remaining_seconds == 0
    assert notifier.notices[-1].kind == "info"
    with pytest.raises(InvalidTransition):
        machine.cancel()


def test_manual_ticks_and_cancel_from_device_ready() -> None:
    camera = SimulatedCameraProvider()
    machine = _machine(camera=camera)

    session = asyncio.run(machine.start("user-1", LINUX))
    assert session.status is CaptureStatus.DEVICE_READY
    assert machine.remaining_seconds == 0
    with pytest.raises(InvalidTransition):
        machine.tick()

    machine.begin_countdown()
    assert machine.tick() == 29
    assert machine.tick() == 28
    machine.cancel()
    assert camera.release_count == 1
    with pytest.raises(InvalidTransition):
        machine.tick()


def test_device_failure_reports_resource_unavailable_and_allows_restart() -> None:
    camera = SimulatedCameraProvider(available=False)
    notifier = MemoryNotifier()
    machine = _machine(camera=camera, notifier=notifier)

    with pytest.raises(ResourceUnavailable):
        asyncio.run(machine.run("user-1", LINUX))

    failed = machine.last_session
    assert failed.status is CaptureStatus.FAILED
    assert str(failed.error) == "device unavailable"
    assert failed.device_handle is None
    assert machine.status is CaptureStatus.IDLE
    assert notifier.notices[-1].title == "Camera Access Denied"

    camera.available = True
    session = asyncio.run(machine.run("user-1", LINUX))
    assert session.status is CaptureStatus.COMPLETED


def test_persistence_failure_still_releases_device() -> None:
    camera = SimulatedCameraProvider()
    notifier = MemoryNotifier()
    machine = _machine(camera=camera, store=RecordingScanStore(fail=True), notifier=notifier)

    with pytest.raises(PersistenceFailure) as excinfo:
        asyncio.run(machine.run("user-1", LINUX))

    assert excinfo.value.retryable
    assert machine.last_session.status is CaptureStatus.FAILED
    assert camera.release_count == 1
    assert not camera.active
    assert notifier.notices[-1].kind == "error"


def test_second_start_while_active_is_rejected() -> None:
    camera = SimulatedCameraProvider()
    machine = _machine(camera=camera)

    async def scenario() -> None:
        await machine.start("user-1", LINUX)
        with pytest.raises(SessionActiveError):
            machine.request_device("user-1", LINUX)
        machine.cancel()

    asyncio.run(scenario())
    assert camera.acquire_count == 1
    assert camera.release_count == 1


def test_late_acquisition_after_cancel_is_released() -> None:
    camera = BlockingCamera()
    machine = _machine(camera=camera)

    async def scenario():
        task = asyncio.create_task(machine.start("user-1", LINUX))
        await asyncio.sleep(0)
        assert machine.status is CaptureStatus.DEVICE_REQUESTED
        cancelled = machine.cancel()
        camera.gate.set()
        return cancelled, await task

    cancelled, session = asyncio.run(scenario())

    assert cancelled is session
    assert session.status is CaptureStatus.CANCELLED
    assert camera.acquire_count == 1
    assert camera.release_count == 1
    assert not camera.active


def test_late_acquisition_failure_after_cancel_is_absorbed() -> None:
    camera = BlockingCamera(available=False)
    notifier = MemoryNotifier()
    machine = _machine(camera=camera, notifier=notifier)

    async def scenario():
        task = asyncio.create_task(machine.start("user-1", LINUX))
        await asyncio.sleep(0)
        machine.cancel()
        camera.gate.set()
        return await task

    session = asyncio.run(scenario())
    assert session.status is CaptureStatus.CANCELLED
    assert session.error is None
    assert [notice.title for notice in notifier.notices] == ["Scan Cancelled"]


def test_manager_keeps_one_machine_per_caller(tmp_path: Path) -> None:
    manager = CaptureSessionManager(
        device_provider=SimulatedCameraProvider(),
        scan_store=JSONScanStore(tmp_path),
        notifier=MemoryNotifier(),
        countdown_seconds=3,
        sleep=_instant_sleep,
    )
    assert manager.machine_for("a") is manager.machine_for("a")
    assert manager.machine_for("a") is not manager.machine_for("b")
    with pytest.raises(Unauthenticated):
        manager.machine_for(None)

    session = asyncio.run(manager.run("a", LINUX))
    assert session.status is CaptureStatus.COMPLETED
    assert [record.scan_id for record in manager.history("a")] == [session.result.scan_id]
    assert manager.history("b") == []


async def _wait_for(predicate, attempts: int = 500) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition never became true")


def test_cancelled_driver_during_acquisition_releases_late_handle() -> None:
    camera = BlockingCamera()
    notifier = MemoryNotifier()
    machine = _machine(camera=camera, notifier=notifier)

    async def scenario():
        task = asyncio.create_task(machine.run("user-1", LINUX))
        await asyncio.sleep(0)
        assert machine.status is CaptureStatus.DEVICE_REQUESTED
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        camera.gate.set()
        await _wait_for(lambda: camera.release_count == 1)

    asyncio.run(scenario())

    assert machine.last_session.status is CaptureStatus.CANCELLED
    assert not machine.is_active
    assert camera.acquire_count == 1
    assert not camera.active
    assert notifier.notices[-1].title == "Scan Cancelled"


def test_cancelled_driver_during_countdown_releases_device() -> None:
    camera = SimulatedCameraProvider()
    store = RecordingScanStore()

    async def never_wake(_: float) -> None:
        await asyncio.Event().wait()

    machine = _machine(camera=camera, store=store, sleep=never_wake)

    async def scenario():
        task = asyncio.create_task(machine.run("user-1", LINUX))
        await _wait_for(lambda: machine.status is CaptureStatus.COUNTING)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert machine.last_session.status is CaptureStatus.CANCELLED
    assert not machine.is_active
    assert camera.release_count == 1
    assert not camera.active
    assert store.saved == []


def test_countdown_sleeps_towards_fixed_deadlines() -> None:
    now = {"t": 0.0}
    delays: List[float] = []

    async def late_sleep(seconds: float) -> None:
        delays.append(seconds)
        # every wake-up arrives a quarter second late
        now["t"] += seconds + 0.25

    machine = CaptureSessionMachine(
        device_provider=SimulatedCameraProvider(),
        scan_store=RecordingScanStore(),
        notifier=MemoryNotifier(),
        sleep=late_sleep,
        clock=lambda: 1_700_000_000.0,
        monotonic=lambda: now["t"],
    )

    session = asyncio.run(machine.run("user-1", LINUX))

    assert session.status is CaptureStatus.COMPLETED
    assert len(delays) == 30
    assert delays[0] == 1
    assert all(delay < 1 for delay in delays[1:])
    assert now["t"] <= 30.25
