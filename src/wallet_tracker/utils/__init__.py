"""Утилиты приложения."""

from wallet_tracker.utils.logger import setup_logging, get_logger
from wallet_tracker.utils.events import EventBus, event_bus, subscribe, unsubscribe, publish
from wallet_tracker.utils.formatting import format_currency
from wallet_tracker.utils.exceptions import (
    WalletTrackerError,
    ValidationError,
    BusinessLogicError,
    HasDependentsError,
    DatabaseError,
    ConstraintViolationError,
    SchemaMigrationError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "EventBus",
    "event_bus",
    "subscribe",
    "unsubscribe",
    "publish",
    "format_currency",
    "WalletTrackerError",
    "ValidationError",
    "BusinessLogicError",
    "HasDependentsError",
    "DatabaseError",
    "ConstraintViolationError",
    "SchemaMigrationError",
]
