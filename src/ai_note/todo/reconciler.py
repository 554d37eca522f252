"""推論Todoと既存Todoの突き合わせ（重複抑止）

候補は呼び出し時点の既存レコードとのみ比較される。同一バッチ内で先に
採用された候補は、後続候補の重複判定には使われない。推論結果そのものに
ほぼ同一の候補が2件含まれていれば両方採用される。バッチ内でも重複を
除きたい呼び出し側は ``dedupe_within_batch=True`` を指定する。

重複の判定:
  - 正規化後のテキストが完全一致
  - 行番号の差が2以内、かつトークン集合の類似度が0.8より大きい
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .models import TodoRecord

logger = logging.getLogger(__name__)

LINE_PROXIMITY = 2
SIMILARITY_THRESHOLD = 0.8

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class ReconcileResult:
    """突き合わせ結果"""

    accepted: List[TodoRecord] = field(default_factory=list)
    accepted_count: int = 0
    skipped_count: int = 0


def normalize_text(text: str) -> str:
    """小文字化・連続空白の1文字化・前後空白除去"""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def similarity(a: str, b: str) -> float:
    """正規化後の単語集合によるJaccard係数"""
    normalized_a = normalize_text(a)
    normalized_b = normalize_text(b)
    if normalized_a == normalized_b:
        return 1.0

    tokens_a = set(normalized_a.split(" "))
    tokens_b = set(normalized_b.split(" "))
    union = tokens_a | tokens_b
    return len(tokens_a & tokens_b) / len(union)


def is_duplicate(candidate: TodoRecord, existing: TodoRecord) -> bool:
    """candidateがexistingの重複かどうか"""
    if normalize_text(candidate.text) == normalize_text(existing.text):
        return True
    return (
        abs(candidate.line_number - existing.line_number) <= LINE_PROXIMITY
        and similarity(candidate.text, existing.text) > SIMILARITY_THRESHOLD
    )


def reconcile(
    file_path: str,
    existing: Sequence[TodoRecord],
    candidates: Iterable[TodoRecord],
    *,
    dedupe_within_batch: bool = False,
) -> ReconcileResult:
    """
    候補を既存レコードと突き合わせ、重複でないものを採用する

    既存レコードは変更しない。

    Args:
        file_path: 対象ファイル
        existing: 対象ファイルの既存レコード
        candidates: 推論で得た候補レコード（入力順に判定）
        dedupe_within_batch: Trueなら同一バッチで採用済みの候補とも比較する

    Returns:
        ReconcileResult

    Raises:
        ValueError: 別ファイルの候補が含まれている場合
    """
    baseline = list(existing)
    result = ReconcileResult()

    for candidate in candidates:
        if candidate.file_path != file_path:
            raise ValueError(
                f"Candidate {candidate.identity} belongs to {candidate.file_path}, not {file_path}"
            )

        compared = baseline + result.accepted if dedupe_within_batch else baseline
        if any(is_duplicate(candidate, record) for record in compared):
            result.skipped_count += 1
            continue

        result.accepted.append(candidate)
        result.accepted_count += 1

    logger.info(
        f"Reconciled {file_path}: {result.accepted_count} accepted, "
        f"{result.skipped_count} skipped"
    )
    return result
