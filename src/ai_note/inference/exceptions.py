"""推論プロバイダ呼び出しのカスタム例外定義

すべての失敗はInferenceErrorKindのいずれかに分類される。
いずれも自動リトライはせず、呼び出し元へそのまま伝播させる。
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class InferenceErrorKind(str, Enum):
    """推論失敗の分類"""

    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class InferenceError(Exception):
    """推論プロバイダ基底例外"""

    kind = InferenceErrorKind.UNKNOWN

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UnauthorizedError(InferenceError):
    """認証情報が未設定または無効"""

    kind = InferenceErrorKind.UNAUTHORIZED


class RateLimitedError(InferenceError):
    """レート制限に到達"""

    kind = InferenceErrorKind.RATE_LIMITED


class InferenceTimeoutError(InferenceError):
    """タイムアウト"""

    kind = InferenceErrorKind.TIMEOUT


class MalformedResponseError(InferenceError):
    """応答がJSONでない、または必須フィールドが欠けている"""

    kind = InferenceErrorKind.UNKNOWN
