"""Logging setup for the chrome connector.

Standard output carries the MCP protocol stream, so log records only ever go to
a rotating file and, when explicitly asked for, to stderr.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import TextIO

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ('playwright', 'asyncio', 'mcp')

_configured = False


def _resolve_level(log_level: str | int | None) -> int:
    if isinstance(log_level, int):
        return log_level
    if not log_level:
        return logging.INFO
    return getattr(logging, log_level.upper(), logging.INFO)


def setup_logging(
    stream: TextIO | None = None,
    log_level: str | int | None = None,
    log_file: str | Path | None = None,
    force_setup: bool = False,
) -> logging.Logger:
    """Configure the ``chrome_connector`` logger tree.

    Args:
        stream: Stream for console output. No console handler is installed when omitted.
        log_level: Level name such as ``'info'`` or ``'debug'``.
        log_file: Path of the rotating log file. Its directory is created if needed.
        force_setup: Replace handlers even if logging was already configured.

    Returns:
        The package root logger.
    """
    global _configured

    root_logger = logging.getLogger('chrome_connector')
    if _configured and not force_setup:
        return root_logger

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    level = _resolve_level(log_level)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if stream is not None:
        console_handler = logging.StreamHandler(stream)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if not root_logger.handlers:
        root_logger.addHandler(logging.NullHandler())

    root_logger.setLevel(level)
    root_logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    return root_logger
