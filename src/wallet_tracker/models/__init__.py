"""Модели данных Wallet Tracker."""

from wallet_tracker.models.enums import TransactionType, ChangeEvent
from wallet_tracker.models.models import (
    Base,
    UserDB,
    CategoryDB,
    TransactionDB,
    SessionEntryDB,
    UserCreate,
    User,
    CategoryCreate,
    Category,
    TransactionCreate,
    Transaction,
    utcnow,
    new_id,
)

__all__ = [
    "TransactionType",
    "ChangeEvent",
    "Base",
    "UserDB",
    "CategoryDB",
    "TransactionDB",
    "SessionEntryDB",
    "UserCreate",
    "User",
    "CategoryCreate",
    "Category",
    "TransactionCreate",
    "Transaction",
    "utcnow",
    "new_id",
]
