"""
ロギング設定モジュール

Design Reference: DESIGN.md (sitebook.logger)
"""

import logging
from pathlib import Path
from typing import List, Optional

# リクエスト毎のアクセスログ
ACCESS_LOGGER = "uvicorn.access"


def setup_logger(log_level: str = "INFO", log_file: Optional[str] = "logs/sitebook.log") -> None:
    """
    ロガーのセットアップ

    Args:
        log_level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルのパス。None または空文字の場合は標準エラーのみ
    """
    level = getattr(logging, log_level.upper())
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # DEBUG 以外ではアクセスログを WARNING 以上に絞る
    access_level = logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    logging.getLogger(ACCESS_LOGGER).setLevel(access_level)
