"""ノート由来Todoのデータモデル

永続化スキーマ（camelCaseのキー）との変換はこのモジュールの境界でのみ行う。
プロセス内ではステータス・由来・確信度はすべてEnumとして扱う。

関連クラス:
  - repository.TodoRepository: TodoRecordを保持・永続化
  - extractor.TodoExtractor: マーカー由来のTodoRecordを生成
  - reconciler.reconcile: 推論由来のTodoRecordを既存集合へマージ
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TodoStatus(str, Enum):
    """Todoの進捗ステータス"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TodoOrigin(str, Enum):
    """Todoの由来（明示マーカー or モデル推論）"""

    MARKER = "marker"
    INFERRED = "inferred"


class Confidence(str, Enum):
    """推論Todoの確信度"""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def now_ms() -> int:
    """現在時刻（エポックミリ秒）"""
    return int(time.time() * 1000)


@dataclass(slots=True)
class TodoCandidate:
    """行分類器が1行から得たTodo候補（まだidentityを持たない）"""

    text: str
    status: TodoStatus
    line_number: int  # 1始まり
    surrounding_text: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TodoRecord:
    """永続化されるTodoレコード（変更はストア経由でdataclasses.replaceにより行う）"""

    identity: str
    text: str
    status: TodoStatus
    file_path: str
    line_number: int  # 1始まり
    created_at: int  # エポックミリ秒
    updated_at: int  # エポックミリ秒
    origin: TodoOrigin = TodoOrigin.MARKER
    confidence: Optional[Confidence] = None  # INFERREDのみ
    surrounding_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """永続化/APIスキーマ（camelCase）へ変換"""
        data: Dict[str, Any] = {
            "identity": self.identity,
            "text": self.text,
            "status": self.status.value,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "origin": self.origin.value,
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence.value
        if self.surrounding_text is not None:
            data["surroundingText"] = self.surrounding_text
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TodoRecord":
        """永続化スキーマから復元

        Raises:
            KeyError: 必須フィールドが欠けている場合
            ValueError: Enum値が不正な場合
        """
        confidence = data.get("confidence")
        return cls(
            identity=str(data["identity"]),
            text=str(data["text"]),
            status=TodoStatus(data["status"]),
            file_path=str(data["filePath"]),
            line_number=int(data["lineNumber"]),
            created_at=int(data["createdAt"]),
            updated_at=int(data["updatedAt"]),
            origin=TodoOrigin(data.get("origin", TodoOrigin.MARKER.value)),
            confidence=Confidence(confidence) if confidence is not None else None,
            surrounding_text=data.get("surroundingText"),
        )


@dataclass(slots=True)
class TodoGroup:
    """ファイル単位のTodoグループ（表示層向けの読み取り専用ビュー）"""

    file_path: str
    display_name: str
    records: List[TodoRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "displayName": self.display_name,
            "records": [record.to_dict() for record in self.records],
        }
