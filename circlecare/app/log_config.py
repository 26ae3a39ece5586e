"""Logging configuration for the API server.

Single stdout handler on the root logger so service modules can simply use
`logging.getLogger(__name__)`. Level comes from the LOG_LEVEL config value
(DEBUG, INFO, WARNING, ERROR, CRITICAL); unknown names fall back to INFO.
"""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(name: str | None) -> int:
    """Maps a level name to its logging constant (default: INFO)."""
    return LOG_LEVEL_MAP.get((name or "INFO").upper(), logging.INFO)


def configure_logging(app) -> None:
    """
    Configure the root logger for the Flask app.

    Behavior:
        - Replaces existing root handlers so repeated create_app() calls
          (one per test session, one per worker) do not duplicate output.
        - Flask's own app.logger propagates to the root handler.
    """
    level = get_log_level(app.config.get("LOG_LEVEL"))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # SQLAlchemy echo output is controlled by SQLALCHEMY_ECHO, not LOG_LEVEL.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
