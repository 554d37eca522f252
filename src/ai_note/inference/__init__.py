"""Inference provider client and semantic todo scanning."""

from .exceptions import (
    InferenceError,
    InferenceErrorKind,
    InferenceTimeoutError,
    MalformedResponseError,
    RateLimitedError,
    UnauthorizedError,
)
from .ollama_client import OllamaClient
from .semantic import InferenceCandidate, SemanticScanner, to_inferred_records

__all__ = [
    "InferenceCandidate",
    "InferenceError",
    "InferenceErrorKind",
    "InferenceTimeoutError",
    "MalformedResponseError",
    "OllamaClient",
    "RateLimitedError",
    "SemanticScanner",
    "to_inferred_records",
    "UnauthorizedError",
]
