"""
Хранилище состояния входа (таблица session).

Строка с ключом "currentUser" содержит ID активного пользователя;
отсутствие строки означает, что вход не выполнен.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from wallet_tracker.models import SessionEntryDB
from wallet_tracker.schema import ensure_table

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"


def get_current_user_id(session: Session) -> Optional[str]:
    """Возвращает ID активного пользователя или None."""
    ensure_table(session, "session")
    entry = session.get(SessionEntryDB, CURRENT_USER_KEY)
    if entry is None or not entry.value:
        return None
    return entry.value


def set_current_user_id(session: Session, user_id: Optional[str]) -> None:
    """
    Запоминает активного пользователя.

    Args:
        session: Активная сессия БД
        user_id: ID пользователя; None выполняет выход
    """
    ensure_table(session, "session")
    try:
        if user_id is None:
            session.query(SessionEntryDB).filter_by(key=CURRENT_USER_KEY).delete()
            logger.info("Выход пользователя")
        else:
            session.merge(SessionEntryDB(key=CURRENT_USER_KEY, value=user_id))
            logger.info(f"Активный пользователь: {user_id}")
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при сохранении состояния входа: {e}")
        raise


def clear_session(session: Session) -> None:
    set_current_user_id(session, None)


# Алиас для экрана входа
sign_out = clear_session


def resolve_user_id(session: Session, user_id: Optional[str] = None) -> Optional[str]:
    """Явно переданный ID имеет приоритет, иначе - активный пользователь сессии."""
    if user_id:
        return user_id
    return get_current_user_id(session)
