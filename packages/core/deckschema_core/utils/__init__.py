"""Utility functions."""

from deckschema_core.utils.logging import get_logger, log_exceptions, unit_label
from deckschema_core.utils.retry import with_retry

__all__ = [
    "get_logger",
    "log_exceptions",
    "unit_label",
    "with_retry",
]
