"""行分類器

1行（と前後の行）からTodo候補を判定する。1行から得られる候補は最大1件で、
以下の優先順位で最初に一致した規則が採用される。

1. チェックボックス: ``- [ ] text`` / ``* [x] text`` / ``- [~] text``
2. ``TODO:`` （大文字小文字を区別しない、行内のどこでも可）
3. ``DONE:``
4. ``IN PROGRESS:`` / ``IN-PROGRESS:``
"""

from __future__ import annotations

import re
from typing import Optional, Sequence, Tuple

from .models import TodoCandidate, TodoStatus

CHECKBOX_PATTERN = re.compile(r"^[-*]\s+\[([ xX~])\]\s+(.+)$")

# (パターン, ステータス) 優先順位順
PREFIX_RULES: Tuple[Tuple[re.Pattern[str], TodoStatus], ...] = (
    (re.compile(r"TODO:", re.IGNORECASE), TodoStatus.PENDING),
    (re.compile(r"DONE:", re.IGNORECASE), TodoStatus.COMPLETED),
    (re.compile(r"IN[- ]PROGRESS:", re.IGNORECASE), TodoStatus.IN_PROGRESS),
)

CHECKBOX_STATUS = {
    " ": TodoStatus.PENDING,
    "x": TodoStatus.COMPLETED,
    "X": TodoStatus.COMPLETED,
    "~": TodoStatus.IN_PROGRESS,
}

CONTEXT_SEPARATOR = " | "


def build_context(all_lines: Sequence[str], line_index: int) -> str:
    """前後1行ずつのトリム済み非空行を ``" | "`` で連結して返す"""
    neighbours = []
    for index in (line_index - 1, line_index + 1):
        if 0 <= index < len(all_lines):
            trimmed = all_lines[index].strip()
            if trimmed:
                neighbours.append(trimmed)
    return CONTEXT_SEPARATOR.join(neighbours)


def _match_line(trimmed: str) -> Optional[Tuple[str, TodoStatus]]:
    checkbox = CHECKBOX_PATTERN.match(trimmed)
    if checkbox:
        return checkbox.group(2).strip(), CHECKBOX_STATUS[checkbox.group(1)]

    for pattern, status in PREFIX_RULES:
        found = pattern.search(trimmed)
        if found:
            text = trimmed[found.end():].strip()
            # 接頭辞だけの場合は次の規則へ
            if text:
                return text, status
    return None


def classify(
    line: str, line_index: int, all_lines: Sequence[str]
) -> Optional[TodoCandidate]:
    """
    1行を分類してTodo候補を返す

    Args:
        line: 対象行
        line_index: 0始まりの行インデックス
        all_lines: 文書全体の行（前後文脈の抽出に使用）

    Returns:
        TodoCandidate（line_numberは1始まり）、該当しなければNone
    """
    matched = _match_line(line.strip())
    if matched is None:
        return None

    text, status = matched
    return TodoCandidate(
        text=text,
        status=status,
        line_number=line_index + 1,
        surrounding_text=build_context(all_lines, line_index) or None,
    )
