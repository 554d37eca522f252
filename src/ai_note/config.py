"""
設定管理モジュール

関連クラス:
  - service.build_service: この設定から各コンポーネントを組み立てる
  - inference.ollama_client.OllamaClient: Ollama API設定を使用
  - todo.watcher.NoteWatcher: デバウンス時間・拡張子を使用（service.build_watcher）
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "app_config.yaml"


@dataclass
class OllamaConfig:
    """Ollama API設定"""

    host: str = "http://localhost:11434"
    model: str = "qwen3:8b"
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout_seconds: float = 30.0
    api_key: Optional[str] = None
    require_api_key: bool = False


@dataclass
class WatcherConfig:
    """ノート監視設定"""

    debounce_ms: int = 500
    extensions: Tuple[str, ...] = (".md", ".txt")
    max_initial_files: int = 100


@dataclass
class Config:
    """アプリケーション設定クラス"""

    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)

    # 永続化設定（Noneの場合はAI_NOTE_DB_PATHまたはdata/ai_note.db）
    db_path: Optional[str] = None

    # ログ設定
    log_level: str = "INFO"
    log_file: str = "logs/ai_note.log"

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス（省略時はconfig/app_config.yamlを使用）

        Returns:
            Config: 設定インスタンス
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}

        ollama_data = yaml_data.get("ollama", {})
        watcher_data = yaml_data.get("watcher", {})
        storage_data = yaml_data.get("storage", {})
        log_data = yaml_data.get("log", {})

        # APIキーはファイルに直接書かず環境変数名で指定する
        api_key_env = ollama_data.get("api_key_env", "OLLAMA_API_KEY")

        return cls(
            ollama=OllamaConfig(
                host=ollama_data.get("host", "http://localhost:11434"),
                model=ollama_data.get("model", "qwen3:8b"),
                temperature=float(ollama_data.get("temperature", 0.3)),
                max_tokens=int(ollama_data.get("max_tokens", 2000)),
                timeout_seconds=float(ollama_data.get("timeout_seconds", 30.0)),
                api_key=os.getenv(api_key_env),
                require_api_key=bool(ollama_data.get("require_api_key", False)),
            ),
            watcher=WatcherConfig(
                debounce_ms=int(watcher_data.get("debounce_ms", 500)),
                extensions=tuple(watcher_data.get("extensions", (".md", ".txt"))),
                max_initial_files=int(watcher_data.get("max_initial_files", 100)),
            ),
            db_path=storage_data.get("db_path"),
            log_level=log_data.get("level", "INFO"),
            log_file=log_data.get("file", "logs/ai_note.log"),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """環境変数から設定を読み込む"""
        return cls(
            ollama=OllamaConfig(
                host=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
                model=os.getenv("OLLAMA_MODEL", "qwen3:8b"),
                timeout_seconds=float(os.getenv("OLLAMA_TIMEOUT", "30")),
                api_key=os.getenv("OLLAMA_API_KEY"),
                require_api_key=os.getenv("OLLAMA_REQUIRE_API_KEY", "").lower()
                in ("1", "true", "yes"),
            ),
            watcher=WatcherConfig(
                debounce_ms=int(os.getenv("AI_NOTE_DEBOUNCE_MS", "500")),
            ),
            db_path=os.getenv("AI_NOTE_DB_PATH"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/ai_note.log"),
        )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLがあればYAMLから、無ければ環境変数から読み込む"""
        path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        if path.exists():
            return cls.from_yaml(path)
        return cls.from_env()
