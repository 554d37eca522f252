"""Todo endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from fastapi import Depends, FastAPI, HTTPException

from ai_note.inference import InferenceError, InferenceErrorKind
from ai_note.service import TodoService

from ..dependencies import get_todo_service, serialize_group, serialize_todo
from ..schemas import (
    FilePathRequest,
    FileRefreshResponse,
    SemanticScanResponse,
    TodoGroupResponse,
    TodoResponse,
    TodoStatusUpdateRequest,
)

logger = logging.getLogger(__name__)

INFERENCE_STATUS_CODES = {
    InferenceErrorKind.UNAUTHORIZED: 401,
    InferenceErrorKind.RATE_LIMITED: 429,
    InferenceErrorKind.TIMEOUT: 504,
    InferenceErrorKind.UNKNOWN: 502,
}


def register_todo_routes(app: FastAPI) -> None:
    """Register todo endpoints."""

    @app.get("/api/todos", response_model=List[TodoGroupResponse])
    async def list_todo_groups(
        service: TodoService = Depends(get_todo_service),
    ) -> List[TodoGroupResponse]:
        """List todos grouped by note file, each group ordered by line."""
        groups = await asyncio.to_thread(service.grouped)
        return [serialize_group(group) for group in groups]

    @app.delete("/api/todos")
    async def clear_todos(service: TodoService = Depends(get_todo_service)) -> Dict[str, bool]:
        """Delete every stored todo."""
        await asyncio.to_thread(service.clear_all)
        return {"cleared": True}

    @app.get("/api/todos/{identity:path}", response_model=TodoResponse)
    async def get_todo(
        identity: str, service: TodoService = Depends(get_todo_service)
    ) -> TodoResponse:
        record = service.repository.get(identity)
        if record is None:
            raise HTTPException(status_code=404, detail="Todo not found")
        return serialize_todo(record)

    @app.patch("/api/todos/{identity:path}", response_model=TodoResponse)
    async def update_todo_status(
        identity: str,
        request: TodoStatusUpdateRequest,
        service: TodoService = Depends(get_todo_service),
    ) -> TodoResponse:
        """Change the status of a todo."""
        record = await asyncio.to_thread(service.update_status, identity, request.status)
        if not record:
            raise HTTPException(status_code=404, detail="Todo not found")
        return serialize_todo(record)

    @app.delete("/api/todos/{identity:path}")
    async def delete_todo(
        identity: str, service: TodoService = Depends(get_todo_service)
    ) -> Dict[str, bool]:
        """Delete a todo."""
        deleted = await asyncio.to_thread(service.delete_todo, identity)
        if not deleted:
            raise HTTPException(status_code=404, detail="Todo not found")
        return {"deleted": True}

    @app.post("/api/files/refresh", response_model=FileRefreshResponse)
    async def refresh_file(
        request: FilePathRequest, service: TodoService = Depends(get_todo_service)
    ) -> FileRefreshResponse:
        """Re-extract marker todos of one note file."""
        records = await service.refresh_file(request.path)
        if records is None:
            raise HTTPException(status_code=404, detail="File could not be read")
        return FileRefreshResponse(file_path=request.path, count=len(records))

    @app.post("/api/files/semantic-scan", response_model=SemanticScanResponse)
    async def semantic_scan(
        request: FilePathRequest, service: TodoService = Depends(get_todo_service)
    ) -> SemanticScanResponse:
        """Ask the inference provider for implicit todos and merge them."""
        try:
            summary = await service.semantic_scan(request.path)
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail="File could not be read") from exc
        except InferenceError as exc:
            logger.warning("Semantic scan failed (%s): %s", exc.kind.value, exc.message)
            raise HTTPException(
                status_code=INFERENCE_STATUS_CODES[exc.kind],
                detail={"kind": exc.kind.value, "message": exc.message},
            ) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return SemanticScanResponse(
            file_path=request.path,
            found=summary.found,
            added=summary.added,
            skipped=summary.skipped,
        )
