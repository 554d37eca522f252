"""
ノート変更通知のデバウンス処理

ファイルごとに1つの遅延タスクを持ち、新しい通知が来たら既存タスクを
キャンセルしてから改めて遅延を開始する。発火時点の最新内容だけが解析される。
OSのファイル監視への購読は呼び出し側の責務で、ここでは通知を受け取るのみ。
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List

if TYPE_CHECKING:
    from ..service import TodoService


class NoteWatcher:
    """ファイル単位でデバウンスされたTodo再抽出"""

    def __init__(
        self,
        service: "TodoService",
        debounce_seconds: float = 0.5,
        extensions: Iterable[str] = (".md", ".txt"),
    ):
        """
        初期化

        Args:
            service: TodoService
            debounce_seconds: デバウンス時間（秒）
            extensions: 対象とするノートの拡張子
        """
        self.service = service
        self.debounce_seconds = debounce_seconds
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.logger = logging.getLogger(__name__)
        self._pending: Dict[str, asyncio.Task] = {}

    def is_note_file(self, path: str) -> bool:
        return Path(path).suffix.lower() in self.extensions

    def _cancel(self, path: str) -> None:
        task = self._pending.pop(path, None)
        if task is not None and not task.done():
            task.cancel()

    def notify_changed(self, path: str) -> None:
        """作成・変更通知。実行中のイベントループから呼ぶこと。"""
        if not self.is_note_file(path):
            return
        self._cancel(path)
        self._pending[path] = asyncio.get_running_loop().create_task(self._refresh_later(path))

    async def _refresh_later(self, path: str) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
            await self.service.refresh_file(path)
        except asyncio.CancelledError:
            self.logger.debug(f"Debounced refresh of {path} superseded")
            raise
        except Exception as e:
            self.logger.error(f"Failed to refresh {path}: {e}", exc_info=True)
        finally:
            if self._pending.get(path) is asyncio.current_task():
                del self._pending[path]

    async def notify_deleted(self, path: str) -> None:
        """削除通知。保留中の再抽出を取り消し、ファイルのTodoを削除する。"""
        self._cancel(path)
        await self.service.remove_file(path)

    async def scan_workspace(self, root: str, limit: int = 100) -> int:
        """
        ワークスペース内のノートを順に抽出する

        Returns:
            処理したファイル数
        """
        files: List[Path] = sorted(
            p for p in Path(root).rglob("*") if p.is_file() and self.is_note_file(str(p))
        )[:limit]
        for path in files:
            await self.service.refresh_file(str(path))
        self.logger.info(f"Initial scan processed {len(files)} note files under {root}")
        return len(files)

    def pending_paths(self) -> List[str]:
        return sorted(self._pending)

    async def flush(self) -> None:
        """保留中の再抽出がすべて終わるまで待つ"""
        tasks = list(self._pending.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def close(self) -> None:
        for path in list(self._pending):
            self._cancel(path)
