"""Root logger setup for the billing API server.

Level and log file come from ``Settings`` (``LOG_LEVEL`` / ``LOG_FILE``), so the
environment, ``.env`` and explicit overrides all go through one place.
"""

import logging
import sys
from pathlib import Path

from unified_billing.services.config import Settings, get_settings

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# SQL statement logging is owned by database_echo, not by the root level
SQLALCHEMY_LOGGER = "sqlalchemy.engine"


def resolve_log_level(name: str) -> int:
    """Map a level name such as ``"warning"`` to its logging constant.

    Unknown names fall back to INFO.
    """
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_server_logging(settings: Settings | None = None) -> int:
    """Send every logger to stdout and to ``settings.log_file``.

    Replaces existing root handlers, so calling it twice does not duplicate
    output. Returns the level that was applied.
    """
    settings = settings or get_settings()
    level = resolve_log_level(settings.log_level)

    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level, formatter))
    root_logger.addHandler(_handler(logging.FileHandler(log_path), level, formatter))

    if not settings.database_echo:
        logging.getLogger(SQLALCHEMY_LOGGER).setLevel(max(level, logging.WARNING))

    return level


__all__ = ["resolve_log_level", "setup_server_logging"]
