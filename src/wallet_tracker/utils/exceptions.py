"""
Модуль пользовательских исключений приложения.

Отсутствие записи (NotFound) исключением не является: функции поиска
возвращают None или пустую коллекцию.
"""


class WalletTrackerError(Exception):
    """Базовый класс для всех исключений приложения."""
    pass


class ValidationError(WalletTrackerError):
    """Исключение при ошибке валидации данных (пользовательский ввод)."""
    pass


class BusinessLogicError(WalletTrackerError):
    """Исключение при нарушении бизнес-правил."""
    pass


class HasDependentsError(BusinessLogicError):
    """
    Категорию нельзя удалить, пока на неё ссылаются транзакции.

    Attributes:
        category_id: ID категории
        count: Количество связанных транзакций
    """

    def __init__(self, category_id: str, count: int):
        self.category_id = category_id
        self.count = count
        super().__init__(
            f"Невозможно удалить категорию {category_id}: "
            f"существует {count} транзакций с этой категорией. "
            f"Сначала переназначьте их на другую категорию."
        )


class DatabaseError(WalletTrackerError):
    """Исключение при ошибках работы с базой данных."""
    pass


class ConstraintViolationError(DatabaseError):
    """Нарушение ограничения целостности (уникальный email, внешний ключ)."""
    pass


class SchemaMigrationError(DatabaseError):
    """Ошибка создания или миграции схемы БД."""
    pass
