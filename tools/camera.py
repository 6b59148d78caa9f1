"""Camera collaborators: acquire and release a media stream handle."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from storefront_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

CAPTURE_WIDTH = 1280
CAPTURE_HEIGHT = 720


@dataclass
class DeviceHandle:
    """Opaque reference to an acquired stream."""

    handle_id: str
    stream: Any = field(default=None, repr=False)
    released: bool = False


class DeviceProvider:
    """Interface for acquiring exclusive access to a capture device."""

    def acquire(self) -> DeviceHandle:
        """Return a live handle or raise when the device is unavailable."""

        raise NotImplementedError

    def release(self, handle: DeviceHandle) -> None:
        """Release ``handle``. Releasing an already released handle is a no-op."""

        raise NotImplementedError


class SimulatedCameraProvider(DeviceProvider):
    """In-process camera used for local runs and tests.

    ``available=False`` makes every acquisition fail, mimicking a denied
    permission prompt or a missing webcam.
    """

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self._ids = itertools.count(1)
        self.active: Dict[str, DeviceHandle] = {}
        self.acquire_count = 0
        self.release_count = 0

    def acquire(self) -> DeviceHandle:
        if not self.available:
            raise RuntimeError("camera not available")
        handle = DeviceHandle(handle_id=f"sim-{next(self._ids)}")
        self.active[handle.handle_id] = handle
        self.acquire_count += 1
        return handle

    def release(self, handle: DeviceHandle) -> None:
        if handle.released:
            return
        handle.released = True
        self.active.pop(handle.handle_id, None)
        self.release_count += 1


class OpenCVCameraProvider(DeviceProvider):
    """Webcam access through OpenCV's ``VideoCapture``."""

    def __init__(
        self,
        camera: int | str = 0,
        width: int = CAPTURE_WIDTH,
        height: int = CAPTURE_HEIGHT,
    ) -> None:
        self.camera = camera
        self.width = int(width)
        self.height = int(height)

    def acquire(self) -> DeviceHandle:
        import cv2

        cap: Optional[Any] = cv2.VideoCapture(self.camera)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise RuntimeError(f"OpenCV could not open camera {self.camera!r}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(self.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(self.height))
        log_event(LOGGER, logging.INFO, "camera_opened", camera=str(self.camera))
        return DeviceHandle(handle_id=f"cv2-{self.camera}", stream=cap)

    def release(self, handle: DeviceHandle) -> None:
        if handle.released:
            return
        handle.released = True
        if handle.stream is not None:
            try:
                handle.stream.release()
            except Exception as exc:
                log_event(LOGGER, logging.WARNING, "camera_release_failed", error=str(exc))
            finally:
                handle.stream = None


def build_device_provider(backend: str) -> DeviceProvider:
    if backend.strip().lower() in {"opencv", "cv2", "webcam"}:
        return OpenCVCameraProvider()
    return SimulatedCameraProvider()


__all__ = [
    "DeviceHandle",
    "DeviceProvider",
    "OpenCVCameraProvider",
    "SimulatedCameraProvider",
    "build_device_provider",
]
