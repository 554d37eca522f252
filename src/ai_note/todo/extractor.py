"""抽出エンジン

文書全体に行分類器を適用し、マーカー由来のTodoRecordを行順で生成する。
時刻とidentityの生成は注入可能（テストで固定値を使うため）。
"""

from __future__ import annotations

from typing import Callable, List, Optional

from .classifier import classify
from .models import TodoOrigin, TodoRecord, now_ms

Clock = Callable[[], int]
MarkerIdFactory = Callable[[str, int, int], str]


def marker_identity(file_path: str, line_number: int, timestamp: int) -> str:
    """マーカー由来レコードのidentity"""
    return f"{file_path}:{line_number}:{timestamp}"


class TodoExtractor:
    """ノート本文からマーカー由来のTodoを抽出する"""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        id_factory: Optional[MarkerIdFactory] = None,
    ):
        """
        初期化

        Args:
            clock: 現在時刻（エポックミリ秒）を返す関数
            id_factory: (file_path, line_number, timestamp) からidentityを作る関数
        """
        self.clock = clock or now_ms
        self.id_factory = id_factory or marker_identity

    def extract(self, file_path: str, document_text: str) -> List[TodoRecord]:
        """
        文書からTodoRecordを抽出

        Args:
            file_path: ノートのパス
            document_text: ノート本文

        Returns:
            行番号昇順のTodoRecordリスト
        """
        lines = document_text.split("\n")
        records: List[TodoRecord] = []
        for index, line in enumerate(lines):
            candidate = classify(line, index, lines)
            if candidate is None:
                continue
            now = self.clock()
            records.append(
                TodoRecord(
                    identity=self.id_factory(file_path, candidate.line_number, now),
                    text=candidate.text,
                    status=candidate.status,
                    file_path=file_path,
                    line_number=candidate.line_number,
                    created_at=now,
                    updated_at=now,
                    origin=TodoOrigin.MARKER,
                    surrounding_text=candidate.surrounding_text,
                )
            )
        return records


def extract(file_path: str, document_text: str) -> List[TodoRecord]:
    """デフォルト設定のTodoExtractorで抽出する"""
    return TodoExtractor().extract(file_path, document_text)
