"""
SemanticScanner: LLMベースの暗黙Todo抽出

設計方針:
- 明示マーカー（チェックボックス、TODO: 等）の無いタスクだけをモデルに探させる
- 応答は {"todos": [...]} 形式のJSONのみ受け付ける
- 1件でも不正な候補があればスキャン全体を失敗とする（部分採用しない）

関連:
- inference/ollama_client.py: LLM推論
- todo/reconciler.py: 候補と既存Todoの突き合わせ
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..todo.models import Confidence, TodoOrigin, TodoRecord, TodoStatus, now_ms
from .exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a precise task extraction assistant. Only output valid JSON."

PROMPT_TEMPLATE = '''You are a task extraction assistant. Analyze the following document and identify implicit tasks or action items that do NOT have explicit markers like "- [ ]", "TODO:", "DONE:", or "IN PROGRESS:".

Look for:
1. Sentences expressing intent to do something ("I need to...", "Should...", "Must...", "Have to...")
2. Questions that imply action needed ("How to fix...", "What about...", "Need to figure out...")
3. Future plans mentioned in context ("Will...", "Going to...", "Plan to...")
4. Implicit commitments or deadlines ("By Friday...", "Before the meeting...")
5. Problems mentioned that need addressing ("Bug in...", "Issue with...", "Problem:")
6. Follow-up items implied in discussions ("Check with...", "Verify that...", "Make sure...")

Return ONLY tasks that are NOT already marked with explicit todo syntax.

Document:
"""
{document}
"""

Respond in JSON format:
{{
  "todos": [
    {{
      "content": "The task description (clear, actionable)",
      "lineNumber": <line number in original document, 1-indexed>,
      "confidence": "high" | "medium" | "low",
      "reasoning": "Brief explanation of why this is a task"
    }}
  ]
}}

Confidence levels:
- high: Explicit future action with clear verb ("need to", "must", "will", "have to")
- medium: Implied action from context or question
- low: Possible task inferred from problem description

If no implicit tasks found, return: {{"todos": []}}'''


class ChatClient(Protocol):
    def chat(self, messages: List[Dict[str, str]]) -> Dict[str, Any]: ...


@dataclass(slots=True)
class InferenceCandidate:
    """推論プロバイダが返した暗黙Todo候補"""

    text: str
    line_number: int
    confidence: Confidence
    reasoning: Optional[str] = None


def build_prompt(document_text: str) -> str:
    """暗黙Todo抽出用のプロンプトを構築"""
    return PROMPT_TEMPLATE.format(document=document_text)


def parse_payload(payload: Any) -> List[InferenceCandidate]:
    """
    応答JSONを候補リストへ変換

    Raises:
        MalformedResponseError: 形式が不正な場合
    """
    if not isinstance(payload, dict) or "todos" not in payload:
        raise MalformedResponseError("Response is missing the 'todos' field")
    items = payload["todos"]
    if not isinstance(items, list):
        raise MalformedResponseError("'todos' must be a list")

    candidates: List[InferenceCandidate] = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise MalformedResponseError(f"todos[{position}] is not an object")

        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError(f"todos[{position}].content must be a non-empty string")

        line_number = item.get("lineNumber")
        if isinstance(line_number, bool) or not isinstance(line_number, int) or line_number < 1:
            raise MalformedResponseError(f"todos[{position}].lineNumber must be a positive integer")

        try:
            confidence = Confidence(item.get("confidence"))
        except ValueError as exc:
            raise MalformedResponseError(
                f"todos[{position}].confidence is invalid: {item.get('confidence')!r}"
            ) from exc

        reasoning = item.get("reasoning")
        candidates.append(
            InferenceCandidate(
                text=content.strip(),
                line_number=line_number,
                confidence=confidence,
                reasoning=reasoning if isinstance(reasoning, str) else None,
            )
        )
    return candidates


def inferred_identity(file_path: str, line_number: int, timestamp: int, index: int) -> str:
    """推論由来レコードのidentity（バッチ内の位置で同時刻の候補を区別）"""
    return f"{file_path}:semantic:{line_number}:{timestamp}:{index}"


def to_inferred_records(
    file_path: str,
    candidates: List[InferenceCandidate],
    clock: Callable[[], int] = now_ms,
    id_factory: Callable[[str, int, int, int], str] = inferred_identity,
) -> List[TodoRecord]:
    """候補をINFERRED/PENDINGのTodoRecordへ変換"""
    now = clock()
    return [
        TodoRecord(
            identity=id_factory(file_path, candidate.line_number, now, index),
            text=candidate.text,
            status=TodoStatus.PENDING,
            file_path=file_path,
            line_number=candidate.line_number,
            created_at=now,
            updated_at=now,
            origin=TodoOrigin.INFERRED,
            confidence=candidate.confidence,
            surrounding_text=candidate.reasoning,
        )
        for index, candidate in enumerate(candidates)
    ]


class SemanticScanner:
    """LLMで文書中の暗黙Todoを探す"""

    def __init__(self, client: ChatClient):
        """
        初期化

        Args:
            client: chat(messages) -> dict を持つクライアント（テスト用にDI可能）
        """
        self.client = client

    def scan(self, document_text: str) -> List[InferenceCandidate]:
        """
        文書をスキャンして暗黙Todo候補を返す

        Raises:
            InferenceError: 推論呼び出しの失敗（分類済み）
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(document_text)},
        ]
        payload = self.client.chat(messages)
        candidates = parse_payload(payload)
        logger.info(f"Semantic scan returned {len(candidates)} candidates")
        return candidates
