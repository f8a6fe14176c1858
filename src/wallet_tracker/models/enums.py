"""
Модуль перечислений (enums) для Wallet Tracker.

Содержит все Enum классы, используемые в моделях данных и шине событий.
"""

from enum import Enum


class TransactionType(str, Enum):
    """
    Тип финансовой транзакции.

    Attributes:
        INCOME: Доход (поступление средств)
        EXPENSE: Расход (трата средств)
    """
    INCOME = "income"
    EXPENSE = "expense"


class ChangeEvent(str, Enum):
    """
    Закрытый набор событий шины изменений.

    Attributes:
        TRANSACTIONS_CHANGED: Транзакции добавлены, изменены или удалены
        CATEGORIES_CHANGED: Категории добавлены, переименованы или удалены
    """
    TRANSACTIONS_CHANGED = "transactions:changed"
    CATEGORIES_CHANGED = "categories:changed"
