"""
設定管理モジュール

Design Reference: DESIGN.md (sitebook.config)
関連クラス:
  - status_engine.StatusCascade: manual_policy を使用
  - construction.ConstructionRepository: database_path を使用
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.status_engine import ManualStatusPolicy

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "app_config.yaml"


@dataclass
class ServerConfig:
    """HTTPサーバー設定"""

    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class Config:
    """アプリケーション設定クラス"""

    # サーバー設定
    server: ServerConfig = None  # type: ignore

    # ログ設定
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/sitebook.log"

    # DB設定（None の場合はリポジトリ側の既定パス）
    database_path: Optional[str] = None

    # ステータスカスケード設定
    manual_policy: ManualStatusPolicy = ManualStatusPolicy.PRESERVE_TERMINAL

    def __post_init__(self):
        """デフォルト値の初期化"""
        if self.server is None:
            self.server = ServerConfig()
        if not isinstance(self.manual_policy, ManualStatusPolicy):
            self.manual_policy = ManualStatusPolicy.parse(self.manual_policy)

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス（省略時はconfig/app_config.yamlを使用）

        Returns:
            Config: 設定インスタンス

        Raises:
            ConfigurationError: 不正なポリシー名が指定された場合
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}

        server_data = yaml_data.get("server", {})
        log_data = yaml_data.get("log", {})
        database_data = yaml_data.get("database", {})
        status_data = yaml_data.get("status", {})

        return cls(
            server=ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=int(server_data.get("port", 8000)),
            ),
            log_level=log_data.get("level", "INFO"),
            log_file=log_data.get("file", "logs/sitebook.log"),
            database_path=database_data.get("path"),
            manual_policy=ManualStatusPolicy.parse(
                status_data.get("manual_policy", ManualStatusPolicy.PRESERVE_TERMINAL.value)
            ),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """環境変数から設定を読み込む"""
        return cls(
            server=ServerConfig(
                host=os.getenv("SITEBOOK_HOST", "0.0.0.0"),
                port=int(os.getenv("SITEBOOK_PORT", "8000")),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/sitebook.log"),
            database_path=os.getenv("SITEBOOK_DB_PATH"),
            manual_policy=ManualStatusPolicy.parse(
                os.getenv("SITEBOOK_MANUAL_POLICY", ManualStatusPolicy.PRESERVE_TERMINAL.value)
            ),
        )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLがあればYAMLを読み環境変数で上書き、なければ環境変数から読み込む

        SITEBOOK_CONFIG 環境変数で設定ファイルを差し替えられる。
        """
        env_path = os.getenv("SITEBOOK_CONFIG")
        path = Path(config_path or env_path or DEFAULT_CONFIG_PATH)
        if path.exists():
            return cls.from_yaml(path).apply_env_overrides()
        return cls.from_env()

    def apply_env_overrides(self) -> "Config":
        """設定済みの環境変数でYAMLの値を上書きする

        DBパスは SITEBOOK_DB_PATH をリポジトリ側が解決するため対象外。

        Raises:
            ConfigurationError: SITEBOOK_MANUAL_POLICY が不正な場合
        """
        host = os.getenv("SITEBOOK_HOST")
        if host:
            self.server.host = host
        port = os.getenv("SITEBOOK_PORT")
        if port:
            self.server.port = int(port)
        log_level = os.getenv("LOG_LEVEL")
        if log_level:
            self.log_level = log_level
        log_file = os.getenv("LOG_FILE")
        if log_file:
            self.log_file = log_file
        policy = os.getenv("SITEBOOK_MANUAL_POLICY")
        if policy:
            self.manual_policy = ManualStatusPolicy.parse(policy)
        return self
