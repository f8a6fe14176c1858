"""
Хэширование паролей пользователей.

Пароли хранятся как солёные bcrypt-хэши. Записи, созданные старой версией
приложения в открытом виде, распознаются по отсутствию префикса bcrypt.
"""

import hmac
import logging
from typing import Optional

import bcrypt

from wallet_tracker.config import settings

logger = logging.getLogger(__name__)

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Возвращает bcrypt-хэш пароля с новой солью."""
    salt = bcrypt.gensalt(rounds=rounds or settings.password_hash_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def is_password_hash(stored: Optional[str]) -> bool:
    return bool(stored) and stored.startswith(_BCRYPT_PREFIXES)


def verify_password(password: str, stored: Optional[str]) -> bool:
    """
    Проверяет пароль по сохранённому значению.

    Для bcrypt-хэшей используется bcrypt.checkpw, для устаревших
    записей в открытом виде - сравнение за постоянное время.
    """
    if not stored or password is None:
        return False
    if is_password_hash(stored):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Повреждённый хэш пароля: {e}")
            return False
    return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))
