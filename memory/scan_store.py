"""Scan record persistence: JSON files for local runs, SQLite for durability."""
from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List

from models.errors import PersistenceFailure
from models.scan import ScanRecord
from models.taxonomy import validate_caller_id
from tools.observability import instrument_tool


class ScanStore:
    """Interface for persisting completed body scans."""

    def save_scan_record(self, caller_id: str, record: ScanRecord) -> ScanRecord:
        raise NotImplementedError

    def list_scan_records(self, caller_id: str) -> List[ScanRecord]:
        """Return the caller's scans, newest first."""

        raise NotImplementedError


def _newest_first(records: List[ScanRecord]) -> List[ScanRecord]:
    return sorted(records, key=lambda record: record.scan_time, reverse=True)


class JSONScanStore(ScanStore):
    """One JSON file per caller under ``base_dir``."""

    def __init__(self, base_dir: str | Path = "data/scans") -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, caller_id: str) -> Path:
        return self.base_dir / f"{validate_caller_id(caller_id)}.json"

    def _load(self, caller_id: str) -> Dict[str, Any]:
        path = self._path(caller_id)
        if not path.exists():
            return {"caller_id": caller_id, "scans": []}
        try:
            return json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"Could not read scans: {exc}") from exc

    def _save(self, caller_id: str, payload: Dict[str, Any]) -> None:
        try:
            self._path(caller_id).write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise PersistenceFailure(f"Could not save scan: {exc}") from exc

    @instrument_tool("save_scan_record")
    def save_scan_record(self, caller_id: str, record: ScanRecord) -> ScanRecord:
        payload = self._load(caller_id)
        payload["scans"] = [scan for scan in payload.get("scans", []) if scan.get("scan_id") != record.scan_id]
        payload["scans"].append(record.to_dict())
        self._save(caller_id, payload)
        return record

    def list_scan_records(self, caller_id: str) -> List[ScanRecord]:
        payload = self._load(caller_id)
        return _newest_first([ScanRecord.from_dict(scan) for scan in payload.get("scans", [])])


class SQLiteScanStore(ScanStore):
    """SQLite-backed scan store."""

    def __init__(self, db_path: str | Path = "data/scans.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS scans (
                    caller_id TEXT NOT NULL,
                    scan_id TEXT NOT NULL,
                    scan_time REAL NOT NULL,
                    device TEXT NOT NULL,
                    try_on_count INTEGER NOT NULL DEFAULT 0,
                    height REAL,
                    weight REAL,
                    image_url TEXT,
                    PRIMARY KEY (caller_id, scan_id)
                );
                """
            )

    @instrument_tool("save_scan_record")
    def save_scan_record(self, caller_id: str, record: ScanRecord) -> ScanRecord:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO scans(caller_id, scan_id, scan_time, device, try_on_count, height, weight, image_url)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        caller_id,
                        record.scan_id,
                        record.scan_time,
                        record.device,
                        record.try_on_count,
                        record.height,
                        record.weight,
                        record.image_url,
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not save scan: {exc}") from exc
        return record

    def list_scan_records(self, caller_id: str) -> List[ScanRecord]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM scans WHERE caller_id = ? ORDER BY scan_time DESC",
                    (caller_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not read scans: {exc}") from exc
        return [ScanRecord.from_dict(dict(row)) for row in rows]


__all__ = ["JSONScanStore", "SQLiteScanStore", "ScanStore"]
