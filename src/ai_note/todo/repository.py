from __future__ import annotations

import json
import logging
import os
import re
import sqlite3
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from .exceptions import DuplicateIdentityError, StorageError
from .models import Confidence, TodoGroup, TodoOrigin, TodoRecord, TodoStatus, now_ms

UNSET = object()

STATE_KEY = "ai-note.todos"

logger = logging.getLogger(__name__)


class StateBackend(Protocol):
    """レコード集合全体を1スロットとして読み書きする永続化先"""

    def load(self) -> List[Dict[str, Any]]: ...

    def save(self, payload: List[Dict[str, Any]]) -> None: ...


class MemoryStateBackend:
    """プロセス内のみのバックエンド（テスト・一時利用向け）"""

    def __init__(self, initial: Optional[List[Dict[str, Any]]] = None):
        self._payload = json.dumps(initial or [])

    def load(self) -> List[Dict[str, Any]]:
        return json.loads(self._payload)

    def save(self, payload: List[Dict[str, Any]]) -> None:
        self._payload = json.dumps(payload, ensure_ascii=False)


class SqliteStateBackend:
    """SQLiteのキー値テーブルにJSON配列として保存するバックエンド"""

    def __init__(self, db_path: Optional[Path] = None, key: str = STATE_KEY):
        root = Path(__file__).resolve().parents[3]
        default_path = root / "data" / "ai_note.db"
        env_path = os.getenv("AI_NOTE_DB_PATH")
        if db_path:
            self.db_path = Path(db_path)
        elif env_path:
            self.db_path = Path(env_path)
        else:
            self.db_path = default_path
        self.key = key
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def load(self) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_state WHERE key = ?", (self.key,)
            ).fetchone()
        if row is None:
            return []
        try:
            payload = json.loads(row["value"])
        except json.JSONDecodeError as exc:
            raise StorageError(f"Stored todo collection is not valid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise StorageError("Stored todo collection is not a JSON array")
        return payload

    def save(self, payload: List[Dict[str, Any]]) -> None:
        value = json.dumps(payload, ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (self.key, value),
            )
            conn.commit()


def display_name(file_path: str) -> str:
    """パスの最終要素（``/`` と ``\\`` の両方で分割）"""
    return re.split(r"[/\\]", file_path)[-1]


def _by_line(records: Iterable[TodoRecord]) -> List[TodoRecord]:
    return sorted(records, key=lambda record: record.line_number)


class TodoRepository:
    """identityをキーとするTodoストア。変更のたびに集合全体を永続化する。"""

    def __init__(
        self,
        backend: Optional[StateBackend] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.backend = backend if backend is not None else SqliteStateBackend()
        self.clock = clock or now_ms
        self._lock = threading.RLock()
        self._records: Dict[str, TodoRecord] = {}
        self._load()

    def _load(self) -> None:
        records: Dict[str, TodoRecord] = {}
        for item in self.backend.load():
            try:
                record = TodoRecord.from_dict(item)
            except (KeyError, TypeError, ValueError) as exc:
                raise StorageError(f"Invalid stored todo record {item!r}: {exc}") from exc
            if record.identity in records:
                raise StorageError(f"Duplicate identity in stored todos: {record.identity}")
            records[record.identity] = record
        self._records = records
        logger.debug(f"Loaded {len(records)} todos")

    def _commit(self, records: Dict[str, TodoRecord]) -> None:
        """新しい集合を永続化し、成功した場合のみメモリ上の集合を差し替える"""
        self.backend.save([record.to_dict() for record in records.values()])
        self._records = records

    # ---- 読み取り専用ビュー ----

    def all_records(self) -> List[TodoRecord]:
        with self._lock:
            return list(self._records.values())

    def get(self, identity: str) -> Optional[TodoRecord]:
        with self._lock:
            return self._records.get(identity)

    def records_for_file(self, file_path: str) -> List[TodoRecord]:
        with self._lock:
            return _by_line(r for r in self._records.values() if r.file_path == file_path)

    def grouped_by_file(self) -> List[TodoGroup]:
        with self._lock:
            groups: Dict[str, List[TodoRecord]] = {}
            for record in self._records.values():
                groups.setdefault(record.file_path, []).append(record)
        return [
            TodoGroup(file_path=path, display_name=display_name(path), records=_by_line(items))
            for path, items in groups.items()
        ]

    # ---- 変更操作（ロックで直列化） ----

    def replace_marker_records_for_file(
        self, file_path: str, new_records: Iterable[TodoRecord]
    ) -> None:
        """対象ファイルの全レコードを削除し、new_recordsで置き換える"""
        incoming = list(new_records)
        for record in incoming:
            if record.origin is not TodoOrigin.MARKER:
                raise ValueError(f"Only marker records can replace a file's todos: {record.identity}")
            if record.file_path != file_path:
                raise ValueError(f"Record {record.identity} does not belong to {file_path}")

        with self._lock:
            updated = {
                identity: record
                for identity, record in self._records.items()
                if record.file_path != file_path
            }
            for record in incoming:
                if record.identity in updated:
                    raise DuplicateIdentityError(record.identity)
                updated[record.identity] = record
            self._commit(updated)
        logger.info(f"Stored {len(incoming)} marker todos for {file_path}")

    def append_records(self, records: Iterable[TodoRecord]) -> None:
        """既存レコードに触れずに追加"""
        incoming = list(records)
        with self._lock:
            updated = dict(self._records)
            for record in incoming:
                if record.identity in updated:
                    raise DuplicateIdentityError(record.identity)
                updated[record.identity] = record
            self._commit(updated)

    def update_record(
        self,
        identity: str,
        *,
        text: Optional[str] = None,
        status: Optional[TodoStatus] = None,
        line_number: Optional[int] = None,
        confidence: Any = UNSET,
        surrounding_text: Any = UNSET,
    ) -> Optional[TodoRecord]:
        """
        指定フィールドをマージしてupdated_atを更新する

        Returns:
            更新後のレコード、存在しない場合はNone
        """
        changes: Dict[str, Any] = {}
        if text is not None:
            changes["text"] = text
        if status is not None:
            changes["status"] = TodoStatus(status)
        if line_number is not None:
            if line_number < 1:
                raise ValueError("line_number is 1-indexed")
            changes["line_number"] = line_number
        if confidence is not UNSET:
            changes["confidence"] = Confidence(confidence) if confidence is not None else None
        if surrounding_text is not UNSET:
            changes["surrounding_text"] = surrounding_text

        with self._lock:
            current = self._records.get(identity)
            if current is None:
                return None
            changes["updated_at"] = max(self.clock(), current.created_at)
            updated_record = replace(current, **changes)
            updated = dict(self._records)
            updated[identity] = updated_record
            self._commit(updated)
        return updated_record

    def update_status(self, identity: str, status: TodoStatus) -> Optional[TodoRecord]:
        return self.update_record(identity, status=status)

    def delete_record(self, identity: str) -> bool:
        with self._lock:
            if identity not in self._records:
                return False
            updated = {k: v for k, v in self._records.items() if k != identity}
            self._commit(updated)
        return True

    def delete_file(self, file_path: str) -> int:
        """ファイルの全レコードを削除し、削除件数を返す"""
        with self._lock:
            updated = {
                identity: record
                for identity, record in self._records.items()
                if record.file_path != file_path
            }
            removed = len(self._records) - len(updated)
            if removed:
                self._commit(updated)
        logger.info(f"Removed {removed} todos for {file_path}")
        return removed

    def clear_all(self) -> None:
        with self._lock:
            self._commit({})
