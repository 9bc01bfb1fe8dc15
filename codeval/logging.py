"""Package-level logging helpers."""

from __future__ import annotations

import logging
from typing import Optional, Union

_ROOT_LOGGER_NAME = "codeval"
_DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the ``codeval`` namespace.

    Parameters
    ----------
    name : Optional[str]
        The child logger name, e.g. ``"Evaluator"``. None returns the package root logger.

    Returns
    -------
    logging.Logger
        The requested logger.
    """
    if not name:
        return logging.getLogger(_ROOT_LOGGER_NAME)
    if name == _ROOT_LOGGER_NAME or name.startswith(_ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    level: Union[int, str] = "INFO", fmt: str = _DEFAULT_FORMAT
) -> logging.Logger:
    """Attach a stream handler to the package root logger and set its level.

    Calling this more than once replaces the level and format but never stacks handlers.

    Parameters
    ----------
    level : Union[int, str]
        Logging level name or number. Default: ``"INFO"``.
    fmt : str
        Format string for the handler.

    Returns
    -------
    logging.Logger
        The configured package root logger.
    """
    logger = get_logger()
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)

    handler = next(
        (h for h in logger.handlers if getattr(h, "_codeval_handler", False)), None
    )
    if handler is None:
        handler = logging.StreamHandler()
        handler._codeval_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    handler.setFormatter(logging.Formatter(fmt))
    return logger
