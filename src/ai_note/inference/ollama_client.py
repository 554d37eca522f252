"""
Ollama APIクライアントモジュール

関連クラス:
  - config.OllamaConfig: Ollama設定を提供
  - semantic.SemanticScanner: このクライアントを使用

注意: このクライアントは常にJSON形式でレスポンスを返します。
失敗はinference.exceptionsの分類済み例外として送出し、リトライはしません。
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
import ollama

from .exceptions import (
    InferenceError,
    InferenceTimeoutError,
    MalformedResponseError,
    RateLimitedError,
    UnauthorizedError,
)


class OllamaClient:
    """Ollama APIクライアント（JSON形式レスポンス専用）"""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "qwen3:8b",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
        require_api_key: bool = False,
    ):
        """
        初期化

        Args:
            host: OllamaサーバーのURL
            model: 使用するモデル名
            temperature: 生成温度（0.0-1.0）
            max_tokens: 最大トークン数
            timeout: リクエストのタイムアウト（秒）
            api_key: Bearerトークン（リモートのOllamaを使う場合）
            require_api_key: Trueの場合、api_keyが無ければ送信前にUnauthorizedErrorとする
        """
        self.host = host
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.api_key = api_key
        self.require_api_key = require_api_key
        self.logger = logging.getLogger(__name__)

        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self.client = ollama.Client(host=host, timeout=timeout, headers=headers)

    def chat(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """
        チャット形式で問い合わせ、JSONオブジェクトを返す

        Args:
            messages: メッセージのリスト [{"role": "user", "content": "..."}]

        Returns:
            応答本文をパースした辞書

        Raises:
            UnauthorizedError: 認証情報が無い/無効
            RateLimitedError: HTTP 429
            InferenceTimeoutError: タイムアウト
            InferenceError: その他の通信エラー
            MalformedResponseError: 応答がJSONオブジェクトでない
        """
        if self.require_api_key and not self.api_key:
            raise UnauthorizedError("Inference API key not configured", 401)

        try:
            response = self.client.chat(
                model=self.model,
                messages=messages,
                format="json",
                options={
                    "temperature": self.temperature,
                    "num_predict": self.max_tokens,
                },
            )
        except ollama.ResponseError as e:
            self.logger.error(f"Ollama chat error ({e.status_code}): {e.error}")
            if e.status_code in (401, 403):
                raise UnauthorizedError(f"Unauthorized: {e.error}", e.status_code) from e
            if e.status_code == 429:
                raise RateLimitedError("Rate limit exceeded", e.status_code) from e
            if e.status_code == 408:
                raise InferenceTimeoutError("Request timeout", e.status_code) from e
            raise InferenceError(f"API request failed: {e.error}", e.status_code) from e
        except httpx.TimeoutException as e:
            self.logger.error(f"Ollama request timed out after {self.timeout}s")
            raise InferenceTimeoutError("Request timeout", 408) from e
        except (httpx.HTTPError, ConnectionError) as e:
            self.logger.error(f"Ollama transport error: {e}")
            raise InferenceError(f"Network error: {e}") from e

        content = response["message"]["content"]
        if not content:
            raise MalformedResponseError("Empty response from API")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            self.logger.error(f"JSON decode error: {e}")
            raise MalformedResponseError(f"Ollamaからの応答がJSON形式ではありません: {e}") from e

        if not isinstance(parsed, dict):
            raise MalformedResponseError("Ollamaからの応答がJSONオブジェクトではありません")
        return parsed

