from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from .models import utc_now_iso


class EditStore:
    """Ledger snapshots keyed by page URL; SQLite when available, a JSON file otherwise."""

    def __init__(self, base_dir: Path | None = None, *, prefer_sqlite: bool = True) -> None:
        root = base_dir or (Path.home() / ".tweaqengine")
        root.mkdir(parents=True, exist_ok=True)
        self.db_path = root / "edits.db"
        self.json_path = root / "edits.json"
        self._lock = threading.Lock()
        self._use_sqlite = prefer_sqlite and self._initialize_sqlite()
        if not self._use_sqlite:
            self._initialize_json()

    @property
    def backend(self) -> str:
        return "sqlite" if self._use_sqlite else "json"

    def _initialize_sqlite(self) -> bool:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS snapshots (
                        page_url TEXT PRIMARY KEY,
                        payload TEXT NOT NULL,
                        edit_count INTEGER NOT NULL,
                        saved_at TEXT NOT NULL
                    )
                    """
                )
                conn.commit()
            return True
        except sqlite3.Error:
            return False

    def _initialize_json(self) -> None:
        if self.json_path.exists():
            return
        self.json_path.write_text(json.dumps({"snapshots": {}}, indent=2), encoding="utf-8")

    def _read_json(self) -> dict:
        if not self.json_path.exists():
            return {"snapshots": {}}
        try:
            payload = json.loads(self.json_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {"snapshots": {}}
        if not isinstance(payload, dict):
            return {"snapshots": {}}
        payload.setdefault("snapshots", {})
        return payload

    def _fall_back_to_json(self) -> None:
        self._use_sqlite = False
        self._initialize_json()

    def save_snapshot(self, page_url: str, edits: list[dict[str, Any]]) -> None:
        serialized = json.dumps(edits, ensure_ascii=True)
        saved_at = utc_now_iso()
        with self._lock:
            if self._use_sqlite:
                try:
                    with sqlite3.connect(self.db_path) as conn:
                        cur = conn.cursor()
                        cur.execute(
                            """
                            INSERT INTO snapshots (page_url, payload, edit_count, saved_at)
                            VALUES (?, ?, ?, ?)
                            ON CONFLICT(page_url) DO UPDATE SET
                                payload = excluded.payload,
                                edit_count = excluded.edit_count,
                                saved_at = excluded.saved_at
                            """,
                            (page_url, serialized, len(edits), saved_at),
                        )
                        conn.commit()
                    return
                except sqlite3.Error:
                    self._fall_back_to_json()

            payload = self._read_json()
            payload["snapshots"][page_url] = {"edits": json.loads(serialized), "saved_at": saved_at}
            self.json_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def load_snapshot(self, page_url: str) -> list[dict[str, Any]]:
        with self._lock:
            if self._use_sqlite:
                try:
                    with sqlite3.connect(self.db_path) as conn:
                        cur = conn.cursor()
                        cur.execute("SELECT payload FROM snapshots WHERE page_url = ?", (page_url,))
                        row = cur.fetchone()
                    if not row:
                        return []
                    edits = json.loads(row[0])
                    return edits if isinstance(edits, list) else []
                except (sqlite3.Error, json.JSONDecodeError):
                    self._fall_back_to_json()

            entry = self._read_json()["snapshots"].get(page_url) or {}
            edits = entry.get("edits", [])
            return edits if isinstance(edits, list) else []
