"""Pydantic schemas for the FastAPI server.

Field names are exposed in camelCase, matching the persisted todo schema.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ai_note.todo import Confidence, TodoOrigin, TodoStatus


class CamelModel(BaseModel):
    """Base model serializing snake_case fields as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TodoResponse(CamelModel):
    """Serialized todo record."""

    identity: str
    text: str
    status: TodoStatus
    file_path: str
    line_number: int
    created_at: int
    updated_at: int
    origin: TodoOrigin
    confidence: Optional[Confidence] = None
    surrounding_text: Optional[str] = None


class TodoGroupResponse(CamelModel):
    """Todos of one note file."""

    file_path: str
    display_name: str
    records: List[TodoResponse]


class TodoStatusUpdateRequest(CamelModel):
    """Request body for changing a todo's status."""

    status: TodoStatus = Field(..., description="pending | in-progress | completed")


class FilePathRequest(CamelModel):
    """Request body naming a note file."""

    path: str = Field(..., min_length=1, description="Absolute path of the note file")


class FileRefreshResponse(CamelModel):
    """Result of re-extracting one note file."""

    file_path: str
    count: int


class SemanticScanResponse(CamelModel):
    """Result of a semantic scan."""

    file_path: str
    found: int
    added: int
    skipped: int


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str
