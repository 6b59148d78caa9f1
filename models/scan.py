"""Body-scan records and helpers for summarising scan history."""

from __future__ import annotations

import re
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional

from models.taxonomy import DEVICE_CLASSES, DEVICE_DESKTOP, DEVICE_MOBILE

_MOBILE_SIGNAL = re.compile(r"Mobile|Android|iPhone|iPad")


def device_class_for(platform_signal: str | None) -> str:
    """Classify a user-agent style platform string as mobile or desktop."""

    if platform_signal and _MOBILE_SIGNAL.search(platform_signal):
        return DEVICE_MOBILE
    return DEVICE_DESKTOP


@dataclass
class ScanRecord:
    """One completed capture, as handed to the scan store."""

    scan_id: str
    scan_time: float
    device: str
    try_on_count: int = 0
    height: Optional[float] = None
    weight: Optional[float] = None
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.device not in DEVICE_CLASSES:
            raise ValueError(f"Unsupported device class '{self.device}'. Allowed: {DEVICE_CLASSES}")
        self.try_on_count = int(self.try_on_count)
        if self.try_on_count < 0:
            raise ValueError("try_on_count cannot be negative")

    @classmethod
    def candidate(cls, platform_signal: str | None, now: float | None = None) -> "ScanRecord":
        """Build the record for a freshly finished capture.

        No measurement pipeline is wired in, so height, weight and image stay
        empty.
        """

        captured_at = time.time() if now is None else now
        return cls(
            scan_id=f"scan_{int(captured_at * 1000)}",
            scan_time=captured_at,
            device=device_class_for(platform_signal),
            try_on_count=0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ScanRecord":
        return cls(
            scan_id=str(payload["scan_id"]),
            scan_time=float(payload["scan_time"]),
            device=str(payload.get("device") or DEVICE_DESKTOP),
            try_on_count=int(payload.get("try_on_count") or 0),
            height=payload.get("height"),
            weight=payload.get("weight"),
            image_url=payload.get("image_url"),
        )


@dataclass(frozen=True)
class ScanSummary:
    total_scans: int
    last_scan_time: Optional[float]
    total_try_ons: int


def summarize_scans(records: Iterable[ScanRecord]) -> ScanSummary:
    """Aggregate the progress figures shown next to the scan screen."""

    records = list(records)
    last = max((record.scan_time for record in records), default=None)
    return ScanSummary(
        total_scans=len(records),
        last_scan_time=last,
        total_try_ons=sum(record.try_on_count for record in records),
    )


__all__ = ["ScanRecord", "ScanSummary", "device_class_for", "summarize_scans"]
