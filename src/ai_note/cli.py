#!/usr/bin/env python3
"""
ノートTodo管理CLI

Usage:
    python -m ai_note scan PATH [PATH ...]
    python -m ai_note list [--file PATH] [--format json|text]
    python -m ai_note groups [--format json|text]
    python -m ai_note semantic-scan PATH
    python -m ai_note set-status --id ID --status pending|in-progress|completed
    python -m ai_note delete --id ID
    python -m ai_note clear
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config
from .logger import setup_logger
from .inference import InferenceError, UnauthorizedError
from .service import TodoService, build_service, build_watcher
from .todo import TodoGroup, TodoRecord, TodoStatus
from .todo.watcher import NoteWatcher

STATUS_CHOICES = [status.value for status in TodoStatus]

STATUS_MARK = {
    TodoStatus.PENDING: "[ ]",
    TodoStatus.IN_PROGRESS: "[~]",
    TodoStatus.COMPLETED: "[x]",
}


def format_todo_text(todo: TodoRecord) -> str:
    """Todoをテキスト形式で整形"""
    line = f"{STATUS_MARK[todo.status]} {todo.text} ({todo.file_path}:{todo.line_number})"
    if todo.confidence is not None:
        line += f" <{todo.origin.value}/{todo.confidence.value}>"
    return f"{line}  id={todo.identity}"


def format_group_text(group: TodoGroup) -> str:
    lines = [f"{group.display_name} ({group.file_path})"]
    lines.extend(f"  {format_todo_text(todo)}" for todo in group.records)
    return "\n".join(lines)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def cmd_scan(watcher: NoteWatcher, paths: List[str], limit: int, output_format: str) -> int:
    """ファイルまたはディレクトリのマーカーTodoを抽出して保存"""
    service = watcher.service
    summary: Dict[str, Any] = {}

    async def run() -> int:
        failures = 0
        for raw in paths:
            path = Path(raw).resolve()
            if path.is_dir():
                summary[str(path)] = await watcher.scan_workspace(str(path), limit=limit)
                continue
            records = await service.refresh_file(str(path))
            if records is None:
                print(f"Error: ファイルを読み込めません: {path}", file=sys.stderr)
                failures += 1
            else:
                summary[str(path)] = len(records)
        return failures

    failures = asyncio.run(run())
    if output_format == "json":
        _print_json(summary)
    else:
        for path, count in summary.items():
            print(f"{path}: {count}")
    return 1 if failures else 0


def cmd_list(service: TodoService, file_path: Optional[str], output_format: str) -> int:
    """Todoリストを表示"""
    repo = service.repository
    items = (
        repo.records_for_file(str(Path(file_path).resolve()))
        if file_path
        else repo.all_records()
    )
    if output_format == "json":
        _print_json([item.to_dict() for item in items])
    elif not items:
        print("Todoは登録されていません。")
    else:
        for item in items:
            print(format_todo_text(item))
    return 0


def cmd_groups(service: TodoService, output_format: str) -> int:
    """ファイルごとにTodoを表示"""
    groups = service.grouped()
    if output_format == "json":
        _print_json([group.to_dict() for group in groups])
    else:
        for group in groups:
            print(format_group_text(group))
    return 0


def cmd_semantic_scan(service: TodoService, file_path: str, output_format: str) -> int:
    """LLMで暗黙Todoを探して追加"""
    path = str(Path(file_path).resolve())
    try:
        summary = asyncio.run(service.semantic_scan(path))
    except FileNotFoundError:
        print(f"Error: ファイルを読み込めません: {path}", file=sys.stderr)
        return 1
    except UnauthorizedError as exc:
        print(
            f"Error: {exc.message}。OLLAMA_API_KEY を設定してください。",
            file=sys.stderr,
        )
        return 1
    except InferenceError as exc:
        print(f"Error: 推論に失敗しました ({exc.kind.value}): {exc.message}", file=sys.stderr)
        return 1

    if output_format == "json":
        _print_json({"found": summary.found, "added": summary.added, "skipped": summary.skipped})
    elif summary.found == 0:
        print("暗黙のTodoは見つかりませんでした。")
    else:
        print(
            f"Found {summary.found} semantic todos: "
            f"{summary.added} added, {summary.skipped} already exist"
        )
    return 0


def cmd_set_status(service: TodoService, identity: str, status: str, output_format: str) -> int:
    """Todoのステータスを変更"""
    updated = service.update_status(identity, TodoStatus(status))
    if not updated:
        print(f"Error: ID {identity} のTodoが見つかりません。", file=sys.stderr)
        return 1
    if output_format == "json":
        _print_json(updated.to_dict())
    else:
        print(f"更新しました: {format_todo_text(updated)}")
    return 0


def cmd_delete(service: TodoService, identity: str, output_format: str) -> int:
    """Todoを削除"""
    if not service.delete_todo(identity):
        print(f"Error: ID {identity} のTodoが見つかりません。", file=sys.stderr)
        return 1
    if output_format == "json":
        _print_json({"deleted": True, "identity": identity})
    else:
        print(f"削除しました: ID {identity}")
    return 0


def cmd_clear(service: TodoService) -> int:
    """全Todoを削除"""
    service.clear_all()
    print("すべてのTodoを削除しました。")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ノートTodo管理CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, help="設定YAMLのパス（デフォルト: config/app_config.yaml）")
    parser.add_argument("--db-path", type=str, help="SQLiteデータベースファイルのパス")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="ログレベル（デフォルト: WARNING）",
    )

    format_parent = argparse.ArgumentParser(add_help=False)
    format_parent.add_argument(
        "--format",
        choices=["json", "text"],
        default="text",
        help="出力フォーマット（デフォルト: text）",
    )

    subparsers = parser.add_subparsers(dest="command", help="実行するコマンド", required=True)

    parser_scan = subparsers.add_parser("scan", parents=[format_parent], help="マーカーTodoを抽出")
    parser_scan.add_argument("paths", nargs="+", help="ノートファイルまたはディレクトリ")
    parser_scan.add_argument("--limit", type=int, default=None, help="ディレクトリあたりの最大ファイル数")

    parser_list = subparsers.add_parser("list", parents=[format_parent], help="Todoリストを表示")
    parser_list.add_argument("--file", help="このファイルのTodoだけを表示")

    subparsers.add_parser("groups", parents=[format_parent], help="ファイルごとにTodoを表示")

    parser_semantic = subparsers.add_parser(
        "semantic-scan", parents=[format_parent], help="LLMで暗黙Todoを探す"
    )
    parser_semantic.add_argument("path", help="ノートファイル")

    parser_status = subparsers.add_parser(
        "set-status", parents=[format_parent], help="Todoのステータスを変更"
    )
    parser_status.add_argument("--id", required=True, help="TodoのID")
    parser_status.add_argument("--status", choices=STATUS_CHOICES, required=True, help="新しいステータス")

    parser_delete = subparsers.add_parser("delete", parents=[format_parent], help="Todoを削除")
    parser_delete.add_argument("--id", required=True, help="TodoのID")

    subparsers.add_parser("clear", help="すべてのTodoを削除")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLIエントリポイント"""
    args = build_parser().parse_args(argv)
    setup_logger(args.log_level, log_file=None)

    config = Config.load(Path(args.config) if args.config else None)
    if args.db_path:
        config.db_path = args.db_path
    service = build_service(config)

    if args.command == "scan":
        limit = args.limit if args.limit is not None else config.watcher.max_initial_files
        return cmd_scan(build_watcher(service, config), args.paths, limit, args.format)
    elif args.command == "list":
        return cmd_list(service, args.file, args.format)
    elif args.command == "groups":
        return cmd_groups(service, args.format)
    elif args.command == "semantic-scan":
        return cmd_semantic_scan(service, args.path, args.format)
    elif args.command == "set-status":
        return cmd_set_status(service, args.id, args.status, args.format)
    elif args.command == "delete":
        return cmd_delete(service, args.id, args.format)
    elif args.command == "clear":
        return cmd_clear(service)
    else:
        print(f"Error: 不明なコマンド: {args.command}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
