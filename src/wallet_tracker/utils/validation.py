import logging
from typing import Any

from wallet_tracker.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


def validate_identifier(id_value: Any, field_name: str = "ID") -> str:
    """
    Проверяет, что идентификатор является непустой строкой.

    Идентификаторы непрозрачны: формат (UUID, "default-user" и т.п.) не проверяется.

    Args:
        id_value: Значение для проверки
        field_name: Название поля для сообщения об ошибке

    Returns:
        Идентификатор без пробелов по краям

    Raises:
        ValidationError: Если значение пустое или не строка
    """
    if not isinstance(id_value, str) or not id_value.strip():
        error_msg = f'Невалидный {field_name}: {id_value!r}. Ожидается непустая строка'
        logger.error(error_msg)
        raise ValidationError(error_msg)
    return id_value.strip()


def normalize_email(email: Any) -> str:
    """Обрезает пробелы и приводит email к нижнему регистру."""
    return str(email if email is not None else "").strip().lower()


def normalize_name(name: Any) -> str:
    """Обрезает пробелы в названии (категории, пользователя)."""
    return str(name if name is not None else "").strip()
