from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Protocol

import anyio

from .logging import _redact_value
from .settings import TranscriptSettings

USER_KIND = "user"
MODEL_KIND = "model"

DEFAULT_PATHS = {
    "jsonl": Path("~/.tgrelay/transcript.jsonl"),
    "sqlite": Path("~/.tgrelay/transcript.db"),
}


class TranscriptError(RuntimeError):
    pass


class TranscriptRecorder(Protocol):
    async def record(self, user_id: int, human_text: str, assistant_text: str) -> None: ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


class JsonlTranscript:
    """Appends each exchange as two JSON lines."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _write(self, user_id: int, human_text: str, assistant_text: str) -> None:
        ts = _utc_now()
        rows = [
            {"ts": ts, "kind": USER_KIND, "user_id": user_id, "text": human_text},
            {"ts": ts, "kind": MODEL_KIND, "user_id": user_id, "text": assistant_text},
        ]
        _ensure_parent(self.path)
        with open(self.path, "a", encoding="utf-8") as handle:
            for row in rows:
                handle.write(json.dumps(_redact_value(row, memo={})) + "\n")

    async def record(self, user_id: int, human_text: str, assistant_text: str) -> None:
        try:
            await anyio.to_thread.run_sync(
                partial(self._write, user_id, human_text, assistant_text)
            )
        except OSError as exc:
            raise TranscriptError(f"failed to write {self.path}: {exc}") from exc


def read_transcript_jsonl(path: Path) -> list[dict]:
    if not path.exists():
        return []
    rows: list[dict] = []
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                rows.append(data)
    return rows


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            type TEXT NOT NULL CHECK (type IN ('user', 'model')),
            message TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )


class SqliteTranscript:
    """Stores each exchange as two rows of a ``messages`` table."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _write(self, user_id: int, human_text: str, assistant_text: str) -> None:
        _ensure_parent(self.path)
        conn = sqlite3.connect(self.path)
        try:
            _init_schema(conn)
            ts = _utc_now()
            with conn:
                conn.executemany(
                    "INSERT INTO messages (user_id, type, message, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    [
                        (user_id, USER_KIND, human_text, ts),
                        (user_id, MODEL_KIND, assistant_text, ts),
                    ],
                )
        finally:
            conn.close()

    async def record(self, user_id: int, human_text: str, assistant_text: str) -> None:
        try:
            await anyio.to_thread.run_sync(
                partial(self._write, user_id, human_text, assistant_text)
            )
        except (OSError, sqlite3.Error) as exc:
            raise TranscriptError(f"failed to write {self.path}: {exc}") from exc


def build_recorder(settings: TranscriptSettings) -> TranscriptRecorder | None:
    if not settings.enabled:
        return None
    path = (settings.path or DEFAULT_PATHS[settings.format]).expanduser()
    if settings.format == "sqlite":
        return SqliteTranscript(path)
    return JsonlTranscript(path)
