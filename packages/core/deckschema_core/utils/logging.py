"""Logging utilities for the conversion pipeline."""

import asyncio
import logging
import os
import sys
from functools import wraps
from typing import Any, Callable, TypeVar

from deckschema_core.errors import DeckSchemaError

_LOG_LEVEL = os.environ.get("DECKSCHEMA_LOG_LEVEL", "INFO").upper()
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """Return a stdout logger for ``name``.

    The level comes from ``level`` or, failing that, ``DECKSCHEMA_LOG_LEVEL``.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)

    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(getattr(logging, _LOG_LEVEL, logging.INFO))
    return logger


def unit_label(slide_index: int | None, shape_index: int | None = None) -> str:
    """Format slide/shape coordinates for log lines."""
    parts = []
    if slide_index is not None:
        parts.append(f"slide={slide_index}")
    if shape_index is not None:
        parts.append(f"shape={shape_index}")
    return " ".join(parts) or "document"


def _report(logger: logging.Logger, func_name: str, error: Exception) -> None:
    # Classified failures are expected outcomes; keep tracebacks for the rest
    if isinstance(error, DeckSchemaError):
        logger.warning(f"{func_name} failed [{error.code}]: {error.message}")
    else:
        logger.exception(f"Unexpected error in {func_name}: {error}")


def log_exceptions(logger: logging.Logger) -> Callable[[F], F]:
    """Decorator that logs exceptions from sync or async callables and re-raises.

    ``DeckSchemaError`` subclasses are logged at warning level with their
    error code; anything else is logged with its traceback.
    """

    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _report(logger, func.__name__, e)
                    raise

            return async_wrapper  # type: ignore

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _report(logger, func.__name__, e)
                raise

        return sync_wrapper  # type: ignore

    return decorator
