"""Console logging configuration."""

import logging
import sys
from datetime import datetime


class StickiesFormatter(logging.Formatter):
    """Compact ``[HH:MM:SS] LEVEL name message`` formatter with optional colors."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if self.use_colors and sys.stderr.isatty():
            levelname = f"{self.COLORS.get(levelname, '')}{levelname}{self.COLORS['RESET']}"

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        name = record.name.split(".")[-1]
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"[{timestamp}] {levelname:8} {name:16} {message}"


def setup_logging(level: str = "WARNING", use_colors: bool = True) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Whether to color level names on a terminal
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StickiesFormatter(use_colors=use_colors))
    root_logger.addHandler(handler)

    # SDK transport logs are noise at INFO
    for noisy in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
