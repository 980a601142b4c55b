"""Process settings loaded from environment variables."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    """Settings shared by the server and the CLI.

    Attributes:
        db_path: SQLite file holding jobs, logs, sources and conflicts.
        log_path: Log file written next to stdout output.
        log_level: Level of the "recordsync" logger.
        http_timeout: Default per-call timeout in seconds for API adapters.
        recent_results: How many past results a job status returns.
        internal_db_url: When set, an "internal_db" source is seeded at startup.
    """

    db_path: Path = Path("recordsync.db")
    log_path: Path = Path("recordsync.log")
    log_level: str = "INFO"
    http_timeout: float = 30.0
    recent_results: int = 10
    internal_db_url: str | None = None

    def __post_init__(self) -> None:
        """Validate and normalize values."""
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Log level must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}")
        if self.http_timeout <= 0:
            raise ValueError("HTTP timeout must be positive")
        if self.recent_results <= 0:
            raise ValueError("Recent results limit must be positive")

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from RECORDSYNC_* environment variables.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        return cls(
            db_path=Path(os.environ.get("RECORDSYNC_DB_PATH", "recordsync.db")),
            log_path=Path(os.environ.get("RECORDSYNC_LOG_PATH", "recordsync.log")),
            log_level=os.environ.get("RECORDSYNC_LOG_LEVEL", "INFO"),
            http_timeout=float(os.environ.get("RECORDSYNC_HTTP_TIMEOUT", "30")),
            recent_results=int(os.environ.get("RECORDSYNC_RECENT_RESULTS", "10")),
            internal_db_url=os.environ.get("RECORDSYNC_INTERNAL_DB_URL") or None,
        )


def setup_logging(log_path: Path | None, level: str = "INFO") -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file, or None for stdout only.
        level: Level name for the "recordsync" logger.
    """
    formatter = logging.Formatter(_LOG_FORMAT)

    root_logger = logging.getLogger("recordsync")
    root_logger.setLevel(level)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Also capture uvicorn logs to file
        for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(uvicorn_name).addHandler(file_handler)
