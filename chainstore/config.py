"""
Runtime settings and logging setup.
"""

import logging
import os
from dataclasses import dataclass

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    """
    Settings shared by every logical database of a StoreContext.

    Attributes:
        query_size_limit: Records returned by read_all/find when no limit is given.
        storage_dir: Root directory of the filesystem driver.
        fsync_interval_ms: Milliseconds between record log fsyncs (0 = always).
        log_level: Level name passed to configure_logging().
    """

    # Default query window for read_all/find
    DEFAULT_QUERY_SIZE_LIMIT = 50

    query_size_limit: int = DEFAULT_QUERY_SIZE_LIMIT
    storage_dir: str = "data/"
    fsync_interval_ms: int = 0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.query_size_limit <= 0:
            raise ValueError(f"query_size_limit must be positive, got {self.query_size_limit}")
        if not self.storage_dir or not self.storage_dir.strip():
            raise ValueError("storage_dir cannot be empty")
        if self.fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {self.fsync_interval_ms}")
        if self.fsync_interval_ms > 10000:
            raise ValueError(
                f"fsync_interval_ms cannot exceed 10000ms (10 seconds), got {self.fsync_interval_ms}"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log_level: {self.log_level}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from CHAINSTORE_* and LOG_LEVEL environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            query_size_limit=int(
                env.get("CHAINSTORE_QUERY_SIZE_LIMIT", cls.DEFAULT_QUERY_SIZE_LIMIT)
            ),
            storage_dir=env.get("CHAINSTORE_STORAGE_DIR", "data/"),
            fsync_interval_ms=int(env.get("CHAINSTORE_FSYNC_INTERVAL_MS", 0)),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging for applications embedding the store."""
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
