"""
Сервис пользователей.

Предоставляет функции для работы с учётными записями:
- create_user: создание/обновление пользователя (upsert по ID)
- get_user_by_email / get_user_by_id: поиск пользователя
- authenticate_user: проверка email и пароля
- sign_in / register_user: вход и регистрация с сохранением активного пользователя

Пароли хранятся как bcrypt-хэши. Записи старой версии с паролем в открытом
виде принимаются и при успешном входе заменяются хэшем.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from wallet_tracker.models import UserDB, UserCreate, User
from wallet_tracker.schema import ensure_table
from wallet_tracker.services.session_service import set_current_user_id
from wallet_tracker.utils.exceptions import ConstraintViolationError
from wallet_tracker.utils.passwords import hash_password, verify_password, is_password_hash
from wallet_tracker.utils.validation import normalize_email

logger = logging.getLogger(__name__)


def create_user(session: Session, user: UserCreate) -> UserDB:
    """
    Создаёт пользователя или заменяет запись с тем же ID.

    Args:
        session: Активная сессия БД
        user: Данные пользователя (email уже нормализован моделью)

    Returns:
        Сохранённая запись пользователя

    Raises:
        ConstraintViolationError: Если email занят пользователем с другим ID
        SQLAlchemyError: При прочих ошибках БД
    """
    ensure_table(session, "users")

    try:
        owner = session.query(UserDB).filter(
            func.lower(UserDB.email) == user.email,
            UserDB.id != user.id,
        ).first()
        if owner is not None:
            error_msg = f"Email '{user.email}' уже используется другим пользователем"
            logger.error(error_msg)
            raise ConstraintViolationError(error_msg)

        db_user = session.merge(UserDB(
            id=user.id,
            name=user.name,
            email=user.email,
            password_hash=hash_password(user.password),
        ))
        session.commit()
        session.refresh(db_user)

        logger.info(f"Пользователь {user.email} сохранён с ID {db_user.id}")
        return db_user

    except IntegrityError as e:
        session.rollback()
        error_msg = f"Email '{user.email}' уже используется (constraint violation)"
        logger.error(f"{error_msg}: {e}")
        raise ConstraintViolationError(error_msg) from e

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при сохранении пользователя {user.email}: {e}")
        raise


def get_user_by_email(session: Session, email: str) -> Optional[UserDB]:
    """Ищет пользователя по email без учёта регистра. Запись содержит хэш пароля."""
    ensure_table(session, "users")
    normalized = normalize_email(email)
    if not normalized:
        return None
    return session.query(UserDB).filter(func.lower(UserDB.email) == normalized).first()


def get_user_by_id(session: Session, user_id: str) -> Optional[User]:
    """Возвращает публичное представление пользователя (без пароля) или None."""
    ensure_table(session, "users")
    db_user = session.get(UserDB, user_id)
    if db_user is None:
        return None
    return User.model_validate(db_user)


def authenticate_user(session: Session, email: str, password: str) -> Optional[User]:
    """
    Проверяет email и пароль.

    Отсутствующий пользователь и неверный пароль неразличимы для вызывающего:
    в обоих случаях возвращается None.
    """
    db_user = get_user_by_email(session, email)
    if db_user is None or not verify_password(password, db_user.password_hash):
        logger.info("Неудачная попытка входа")
        return None

    if not is_password_hash(db_user.password_hash):
        try:
            db_user.password_hash = hash_password(password)
            session.commit()
            logger.info(f"Пароль пользователя {db_user.id} переведён на bcrypt")
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Не удалось обновить хэш пароля пользователя {db_user.id}: {e}")

    return User.model_validate(db_user)


def sign_in(session: Session, email: str, password: str) -> Optional[User]:
    """Аутентифицирует пользователя и делает его активным. None - неверные данные."""
    user = authenticate_user(session, email, password)
    if user is not None:
        set_current_user_id(session, user.id)
    return user


def register_user(session: Session, name: str, email: str, password: str) -> User:
    """
    Регистрирует нового пользователя с новым ID и делает его активным.

    Raises:
        ConstraintViolationError: Если email уже зарегистрирован
    """
    data = UserCreate(name=name, email=email, password=password)
    if get_user_by_email(session, data.email) is not None:
        raise ConstraintViolationError(f"Email '{data.email}' уже зарегистрирован")

    db_user = create_user(session, data)
    set_current_user_id(session, db_user.id)
    return User.model_validate(db_user)
