"""sitebook application settings and logging."""

from .config import Config, ServerConfig
from .logger import setup_logger

__all__ = ["Config", "ServerConfig", "setup_logger"]
