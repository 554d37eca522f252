"""Dependency helpers shared across FastAPI routes."""

from __future__ import annotations

from functools import lru_cache

from ai_note.config import Config
from ai_note.logger import setup_logger
from ai_note.service import TodoService, build_service
from ai_note.todo import TodoGroup, TodoRecord

from .schemas import TodoGroupResponse, TodoResponse

config = Config.load()
setup_logger(log_level=config.log_level, log_file=config.log_file)


@lru_cache(maxsize=1)
def get_todo_service() -> TodoService:
    """Singleton TodoService built from the application config."""
    return build_service(config)


def serialize_todo(record: TodoRecord) -> TodoResponse:
    """Convert domain TodoRecord to API response."""
    return TodoResponse(
        identity=record.identity,
        text=record.text,
        status=record.status,
        file_path=record.file_path,
        line_number=record.line_number,
        created_at=record.created_at,
        updated_at=record.updated_at,
        origin=record.origin,
        confidence=record.confidence,
        surrounding_text=record.surrounding_text,
    )


def serialize_group(group: TodoGroup) -> TodoGroupResponse:
    """Convert TodoGroup to API response."""
    return TodoGroupResponse(
        file_path=group.file_path,
        display_name=group.display_name,
        records=[serialize_todo(record) for record in group.records],
    )
