"""Loguru sinks for the trust-circle service.

Every record carries ``extra["module"]``. Module loggers get it from
:func:`get_logger`; records emitted through the bare ``loguru.logger`` fall
back to the emitting module's dotted name.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>.<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DDTHH:mm:ss.SSSZ} {level} {extra[module]}.{function} {message}"
AUDIT_FILE_NAME = "trustcircle_{time:YYYY-MM-DD}.log"


def _with_module(record) -> bool:
    record["extra"].setdefault("module", record["name"])
    return True


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = True,
    log_dir: str = "logs",
    file_rotation: str = "10 MB",
    file_retention: str = "7 days",
    compression: str = "zip",
    serialize: bool = True,
) -> None:
    """Replace loguru's default handler with a console sink and an optional audit file.

    The audit file gets one JSON object per line when ``serialize`` is set, so
    invite and connection changes can be replayed with ``jq`` or shipped as is.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True, filter=_with_module)

    if not log_to_file:
        return

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    logger.add(
        directory / AUDIT_FILE_NAME,
        level=level,
        format=FILE_FORMAT,
        rotation=file_rotation,
        retention=file_retention,
        compression=compression,
        serialize=serialize,
        enqueue=True,
        filter=_with_module,
    )


def get_logger(name: str):
    """Return the shared loguru logger bound to ``name``."""
    return logger.bind(module=name)
