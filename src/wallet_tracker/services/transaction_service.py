"""
Модуль сервисного слоя для транзакций Wallet Tracker.

Содержит CRUD операции и выборки по транзакциям пользователя:
- get_transactions: все транзакции пользователя (новые сверху)
- add_transaction: создание транзакции (сумма приводится к неотрицательной)
- update_transaction: полная замена записи по ID
- delete_transaction: удаление по ID
- get_transactions_by_category: транзакции, использующие категорию
- reassign_category: перенос транзакций на другую категорию (перед удалением категории)
- filter_transactions: фильтры экрана транзакций
- get_total_balance: баланс (доходы - расходы)

Все функции принимают сессию БД как параметр (Dependency Injection).
Если пользователь не передан явно, используется активный пользователь сессии.
Успешные изменения публикуют ChangeEvent.TRANSACTIONS_CHANGED.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional, Union
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from wallet_tracker.models import (
    TransactionDB,
    CategoryDB,
    TransactionCreate,
    Transaction,
    ChangeEvent,
    new_id,
)
from wallet_tracker.models.models import to_utc_naive
from wallet_tracker.schema import ensure_table
from wallet_tracker.services.category_service import get_or_create_category_by_name
from wallet_tracker.services.session_service import resolve_user_id
from wallet_tracker.utils.events import publish
from wallet_tracker.utils.exceptions import ConstraintViolationError, ValidationError
from wallet_tracker.utils.validation import validate_identifier

logger = logging.getLogger(__name__)

DateBound = Union[date, datetime, str]


def _require_own_category(session: Session, category_id: str, user_id: str) -> None:
    """Категория должна существовать и принадлежать тому же пользователю, что и транзакция."""
    category = session.get(CategoryDB, category_id)
    if category is None or category.user_id != user_id:
        error_msg = f"Категория {category_id} не найдена у пользователя {user_id}"
        logger.error(error_msg)
        raise ConstraintViolationError(error_msg)


def get_transactions(session: Session, user_id: Optional[str] = None) -> List[TransactionDB]:
    """
    Получает транзакции пользователя, отсортированные по дате (новые сверху).

    Если пользователь не передан и вход не выполнен, возвращаются транзакции
    всех пользователей (режим совместимости со старой схемой без владельцев).

    Raises:
        SQLAlchemyError: При ошибках работы с базой данных
    """
    ensure_table(session, "transactions")
    owner = resolve_user_id(session, user_id)

    try:
        query = session.query(TransactionDB)
        if owner is None:
            logger.warning("Пользователь не определён, возвращаются транзакции всех пользователей")
        else:
            query = query.filter(TransactionDB.user_id == owner)

        transactions = query.order_by(TransactionDB.date.desc(), TransactionDB.id).all()
        logger.debug(f"Найдено {len(transactions)} транзакций пользователя {owner}")
        return transactions

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при получении транзакций: {e}")
        raise


def add_transaction(
    session: Session,
    payload: TransactionCreate,
    user_id: Optional[str] = None
) -> TransactionDB:
    """
    Создаёт транзакцию.

    ID берётся из payload или генерируется. Пользователь: аргумент user_id,
    затем payload.user_id, затем активный пользователь сессии. Если задано
    только название категории, категория находится или создаётся.

    Args:
        session: Активная сессия БД
        payload: Данные транзакции (Pydantic модель, сумма уже неотрицательная)
        user_id: Явный владелец транзакции

    Returns:
        Созданная транзакция

    Raises:
        ValidationError: Если не удалось определить пользователя
        ConstraintViolationError: Если категория не существует или принадлежит
            другому пользователю, либо пользователь не существует
    """
    ensure_table(session, "transactions")

    owner = resolve_user_id(session, user_id or payload.user_id)
    if owner is None:
        error_msg = "Не удалось определить пользователя для новой транзакции"
        logger.error(error_msg)
        raise ValidationError(error_msg)

    if payload.category_id and payload.category_id.strip():
        category_id = validate_identifier(payload.category_id, "category_id")
        _require_own_category(session, category_id, owner)
    else:
        category_id = get_or_create_category_by_name(session, payload.category_name, owner).id

    try:
        db_transaction = TransactionDB(
            id=payload.id or new_id(),
            title=payload.title,
            amount=payload.amount,
            type=payload.type,
            date=payload.date,
            category_id=category_id,
            notes=payload.notes,
            user_id=owner,
        )
        logger.debug(f"Создание транзакции: {payload.amount}, cat_id={category_id}")

        session.add(db_transaction)
        session.commit()
        session.refresh(db_transaction)

    except IntegrityError as e:
        session.rollback()
        error_msg = "Не удалось сохранить транзакцию: категория или пользователь не существуют"
        logger.error(f"{error_msg}: {e}")
        raise ConstraintViolationError(error_msg) from e

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при сохранении транзакции в БД: {e}")
        raise

    logger.info(f"Транзакция успешно создана с ID: {db_transaction.id}")
    publish(ChangeEvent.TRANSACTIONS_CHANGED)
    return db_transaction


def update_transaction(session: Session, transaction: Transaction) -> Optional[TransactionDB]:
    """
    Полностью заменяет транзакцию с тем же ID.

    Returns:
        Обновлённая транзакция или None, если транзакция не найдена

    Raises:
        ConstraintViolationError: Если категория не существует, принадлежит другому
            пользователю, либо пользователь больше не существует
    """
    ensure_table(session, "transactions")

    try:
        db_transaction = session.get(TransactionDB, transaction.id)
        if db_transaction is None:
            logger.warning(f"Транзакция с ID {transaction.id} не найдена")
            return None

        _require_own_category(session, transaction.category_id, transaction.user_id)

        db_transaction.title = transaction.title
        db_transaction.amount = transaction.amount
        db_transaction.type = transaction.type
        db_transaction.date = transaction.date
        db_transaction.category_id = transaction.category_id
        db_transaction.notes = transaction.notes
        db_transaction.user_id = transaction.user_id

        session.commit()
        session.refresh(db_transaction)

    except IntegrityError as e:
        session.rollback()
        error_msg = f"Не удалось обновить транзакцию {transaction.id}: нарушение внешнего ключа"
        logger.error(f"{error_msg}: {e}")
        raise ConstraintViolationError(error_msg) from e

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при обновлении транзакции в БД: {e}")
        raise

    logger.info(f"Транзакция ID {transaction.id} успешно обновлена")
    publish(ChangeEvent.TRANSACTIONS_CHANGED)
    return db_transaction


def delete_transaction(session: Session, transaction_id: str) -> bool:
    """
    Удаляет транзакцию по ID.

    Returns:
        True если транзакция была удалена, False если её не было
    """
    ensure_table(session, "transactions")

    try:
        deleted = session.query(TransactionDB).filter_by(id=transaction_id).delete(
            synchronize_session="fetch"
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при удалении транзакции из БД: {e}")
        raise

    if deleted:
        logger.info(f"Транзакция ID {transaction_id} успешно удалена")
    else:
        logger.warning(f"Транзакция с ID {transaction_id} не найдена для удаления")
    publish(ChangeEvent.TRANSACTIONS_CHANGED)
    return bool(deleted)


def get_transactions_by_category(session: Session, user_id: str, category_id: str) -> List[TransactionDB]:
    """Транзакции пользователя, использующие категорию (новые сверху)."""
    ensure_table(session, "transactions")
    return (
        session.query(TransactionDB)
        .filter(TransactionDB.user_id == user_id, TransactionDB.category_id == category_id)
        .order_by(TransactionDB.date.desc(), TransactionDB.id)
        .all()
    )


def reassign_category(
    session: Session,
    old_category_id: str,
    new_category_id: str,
    user_id: str
) -> int:
    """
    Переносит все транзакции пользователя из одной категории в другую.

    После переноса старую категорию можно удалить через delete_category.

    Returns:
        Количество перенесённых транзакций

    Raises:
        ConstraintViolationError: Если целевая категория не существует
            или принадлежит другому пользователю
    """
    ensure_table(session, "transactions")

    if old_category_id == new_category_id:
        return 0

    _require_own_category(session, new_category_id, user_id)

    try:
        moved = (
            session.query(TransactionDB)
            .filter(TransactionDB.user_id == user_id, TransactionDB.category_id == old_category_id)
            .update({TransactionDB.category_id: new_category_id}, synchronize_session="fetch")
        )
        session.commit()
    except IntegrityError as e:
        session.rollback()
        error_msg = f"Не удалось перенести транзакции в категорию {new_category_id}"
        logger.error(f"{error_msg}: {e}")
        raise ConstraintViolationError(error_msg) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при переносе транзакций категории {old_category_id}: {e}")
        raise

    logger.info(f"Перенесено {moved} транзакций: {old_category_id} -> {new_category_id}")
    publish(ChangeEvent.TRANSACTIONS_CHANGED)
    return moved


def _day_start(value: DateBound) -> datetime:
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return datetime.combine(to_utc_naive(value).date(), time.min)


def _day_end(value: DateBound) -> datetime:
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max)
    return datetime.combine(to_utc_naive(value).date(), time.max)


def filter_transactions(
    session: Session,
    user_id: Optional[str] = None,
    title: Optional[str] = None,
    category: Optional[str] = None,
    notes: Optional[str] = None,
    date_from: Optional[DateBound] = None,
    date_to: Optional[DateBound] = None,
) -> List[TransactionDB]:
    """
    Фильтрует транзакции пользователя для экрана истории.

    Текстовые фильтры - подстрока без учёта регистра (category сравнивается
    с названием категории). Границы дат включительные: date_from с начала дня,
    date_to до конца дня.
    """
    ensure_table(session, "transactions")
    owner = resolve_user_id(session, user_id)

    query = session.query(TransactionDB)
    if owner is not None:
        query = query.filter(TransactionDB.user_id == owner)
    if title:
        query = query.filter(func.lower(TransactionDB.title).contains(title.strip().lower(), autoescape=True))
    if notes:
        query = query.filter(func.lower(TransactionDB.notes).contains(notes.strip().lower(), autoescape=True))
    if category:
        query = query.join(CategoryDB, CategoryDB.id == TransactionDB.category_id).filter(
            func.lower(CategoryDB.name).contains(category.strip().lower(), autoescape=True)
        )
    if date_from is not None:
        query = query.filter(TransactionDB.date >= _day_start(date_from))
    if date_to is not None:
        query = query.filter(TransactionDB.date <= _day_end(date_to))

    transactions = query.order_by(TransactionDB.date.desc(), TransactionDB.id).all()
    logger.debug(f"Фильтр вернул {len(transactions)} транзакций")
    return transactions


def get_total_balance(session: Session, user_id: Optional[str] = None) -> Decimal:
    """
    Рассчитывает баланс пользователя (доходы - расходы).

    Returns:
        Decimal: Текущий баланс
    """
    balance = sum(
        (transaction.signed_amount for transaction in get_transactions(session, user_id)),
        Decimal("0.00"),
    )
    logger.info(f"Текущий баланс: {balance}")
    return balance
