"""Note todo extraction, reconciliation and storage."""

from .classifier import build_context, classify
from .exceptions import DuplicateIdentityError, StorageError, TodoStoreError
from .extractor import TodoExtractor, extract
from .models import (
    Confidence,
    TodoCandidate,
    TodoGroup,
    TodoOrigin,
    TodoRecord,
    TodoStatus,
)
from .reconciler import ReconcileResult, normalize_text, reconcile, similarity
from .repository import (
    UNSET,
    MemoryStateBackend,
    SqliteStateBackend,
    TodoRepository,
)

__all__ = [
    "build_context",
    "classify",
    "Confidence",
    "DuplicateIdentityError",
    "extract",
    "MemoryStateBackend",
    "normalize_text",
    "reconcile",
    "ReconcileResult",
    "similarity",
    "SqliteStateBackend",
    "StorageError",
    "TodoCandidate",
    "TodoExtractor",
    "TodoGroup",
    "TodoOrigin",
    "TodoRecord",
    "TodoRepository",
    "TodoStatus",
    "TodoStoreError",
    "UNSET",
]
