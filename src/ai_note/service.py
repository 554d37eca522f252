"""
TodoService: ノートTodo機能のまとめ役

ファイル読み込み → 抽出 → ストア置換、および
推論 → 突き合わせ → ストア追記 の流れを1か所で扱う。

関連クラス:
  - todo.repository.TodoRepository: 永続化ストア
  - todo.extractor.TodoExtractor: マーカー抽出
  - todo.reconciler.reconcile: 推論候補の重複抑止
  - inference.semantic.SemanticScanner: 推論プロバイダ
  - todo.watcher.NoteWatcher: build_watcherで設定から生成
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional
from weakref import WeakValueDictionary

from .config import Config
from .inference import (
    InferenceTimeoutError,
    OllamaClient,
    SemanticScanner,
    to_inferred_records,
)
from .todo import (
    SqliteStateBackend,
    TodoExtractor,
    TodoGroup,
    TodoRecord,
    TodoRepository,
    TodoStatus,
    reconcile,
)
from .todo.watcher import NoteWatcher

logger = logging.getLogger(__name__)


def read_note(path: str) -> str:
    """ノート本文をUTF-8で読み込む"""
    return Path(path).read_text(encoding="utf-8")


@dataclass(slots=True)
class ScanSummary:
    """セマンティックスキャンの結果"""

    found: int = 0
    added: int = 0
    skipped: int = 0


class TodoService:
    """ストア・抽出・推論を束ねるサービス"""

    def __init__(
        self,
        repository: TodoRepository,
        extractor: Optional[TodoExtractor] = None,
        scanner: Optional[SemanticScanner] = None,
        reader: Callable[[str], str] = read_note,
        inference_timeout: float = 30.0,
        dedupe_within_batch: bool = False,
    ):
        """
        初期化

        Args:
            repository: Todoストア
            extractor: マーカー抽出器
            scanner: セマンティックスキャナ（Noneなら推論機能は無効）
            reader: パスから本文を返す関数（テスト用にDI可能）
            inference_timeout: 推論1回あたりのタイムアウト（秒）
            dedupe_within_batch: 推論バッチ内でも重複を除くか
        """
        self.repository = repository
        self.extractor = extractor or TodoExtractor()
        self.scanner = scanner
        self.reader = reader
        self.inference_timeout = inference_timeout
        self.dedupe_within_batch = dedupe_within_batch
        # 使用中（保持・待機中）のロックだけが残る
        self._file_locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def _lock_for(self, file_path: str) -> asyncio.Lock:
        lock = self._file_locks.get(file_path)
        if lock is None:
            lock = self._file_locks[file_path] = asyncio.Lock()
        return lock

    async def _read(self, file_path: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self.reader, file_path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"Failed to read {file_path}: {exc}")
            return None

    async def refresh_file(self, file_path: str) -> Optional[List[TodoRecord]]:
        """
        ファイルを読み込み、マーカー由来のTodoを置き換える

        読み込みに失敗した場合はストアを変更せずNoneを返す。
        """
        content = await self._read(file_path)
        if content is None:
            return None

        records = self.extractor.extract(file_path, content)
        await asyncio.to_thread(
            self.repository.replace_marker_records_for_file, file_path, records
        )
        return records

    async def remove_file(self, file_path: str) -> int:
        """削除されたファイルのTodoをすべて取り除く"""
        return await asyncio.to_thread(self.repository.delete_file, file_path)

    async def semantic_scan(
        self, file_path: str, content: Optional[str] = None
    ) -> ScanSummary:
        """
        推論で暗黙Todoを探し、重複でないものをストアへ追加する

        同一ファイルへのスキャンは直列化される。

        Args:
            file_path: 対象ファイル
            content: 本文（省略時はファイルから読み込む）

        Raises:
            RuntimeError: 推論が設定されていない
            FileNotFoundError: ファイルを読み込めない
            InferenceError: 推論の失敗（分類済み、リトライしない）
        """
        if self.scanner is None:
            raise RuntimeError("Semantic scanning is not configured")

        async with self._lock_for(file_path):
            if content is None:
                content = await self._read(file_path)
                if content is None:
                    raise FileNotFoundError(file_path)

            try:
                candidates = await asyncio.wait_for(
                    asyncio.to_thread(self.scanner.scan, content),
                    timeout=self.inference_timeout,
                )
            except asyncio.TimeoutError as exc:
                logger.error(f"Semantic scan of {file_path} timed out")
                raise InferenceTimeoutError("Request timeout", 408) from exc

            if not candidates:
                return ScanSummary()

            inferred = to_inferred_records(
                file_path, candidates, clock=self.extractor.clock
            )
            existing = self.repository.records_for_file(file_path)
            result = reconcile(
                file_path,
                existing,
                inferred,
                dedupe_within_batch=self.dedupe_within_batch,
            )
            await asyncio.to_thread(self.repository.append_records, result.accepted)

        return ScanSummary(
            found=len(candidates),
            added=result.accepted_count,
            skipped=result.skipped_count,
        )

    def update_status(self, identity: str, status: TodoStatus) -> Optional[TodoRecord]:
        return self.repository.update_status(identity, status)

    def delete_todo(self, identity: str) -> bool:
        return self.repository.delete_record(identity)

    def clear_all(self) -> None:
        self.repository.clear_all()

    def grouped(self) -> List[TodoGroup]:
        return self.repository.grouped_by_file()


def build_service(config: Config) -> TodoService:
    """設定から各コンポーネントを組み立てる"""
    repository = TodoRepository(
        SqliteStateBackend(db_path=Path(config.db_path) if config.db_path else None)
    )
    client = OllamaClient(
        host=config.ollama.host,
        model=config.ollama.model,
        temperature=config.ollama.temperature,
        max_tokens=config.ollama.max_tokens,
        timeout=config.ollama.timeout_seconds,
        api_key=config.ollama.api_key,
        require_api_key=config.ollama.require_api_key,
    )
    return TodoService(
        repository,
        scanner=SemanticScanner(client),
        inference_timeout=config.ollama.timeout_seconds,
    )


def build_watcher(service: TodoService, config: Config) -> NoteWatcher:
    """設定のデバウンス時間と拡張子でNoteWatcherを組み立てる"""
    return NoteWatcher(
        service,
        debounce_seconds=config.watcher.debounce_ms / 1000,
        extensions=config.watcher.extensions,
    )
