"""Logging setup for the ``fgi_lab`` logger tree."""

from __future__ import annotations

import logging
from pathlib import Path

from fgi_lab.config.models import LoggingConfig

ROOT_LOGGER = "fgi_lab"
_HANDLER_MARK = "_fgi_lab_handler"


def configure_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Attach a stream handler (and optional file handler) to the ``fgi_lab`` logger.

    Handlers installed by an earlier call are replaced, never duplicated.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid level: {config.level}")

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.path:
        path = Path(config.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
