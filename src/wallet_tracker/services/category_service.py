"""
Сервис управления категориями транзакций.

Предоставляет функции для работы с категориями пользователя:
- Получение списка категорий и количества их использований
- Создание категорий, в том числе "найти или создать" по названию
- Переименование
- Удаление (запрещено, пока категорию используют транзакции)

Название категории уникально в пределах пользователя без учёта регистра.
Составные операции "прочитать, затем записать" выполняются под общей
блокировкой процесса: хранилище рассчитано на одного писателя в одном процессе.
"""

import logging
from threading import RLock
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from wallet_tracker.models import CategoryDB, CategoryCreate, TransactionDB, ChangeEvent
from wallet_tracker.schema import ensure_table, table_exists
from wallet_tracker.utils.events import publish
from wallet_tracker.utils.exceptions import ConstraintViolationError, HasDependentsError, ValidationError
from wallet_tracker.utils.validation import normalize_name

logger = logging.getLogger(__name__)

# Сериализует составные операции над категориями
_category_lock = RLock()


def get_categories(session: Session, user_id: str) -> List[CategoryDB]:
    """
    Получает все категории пользователя, отсортированные по названию (NOCASE).
    """
    ensure_table(session, "categories")
    try:
        categories = (
            session.query(CategoryDB)
            .filter(CategoryDB.user_id == user_id)
            .order_by(CategoryDB.name.collate("NOCASE"))
            .all()
        )
        logger.debug(f"Загружено {len(categories)} категорий пользователя {user_id}")
        return categories
    except SQLAlchemyError as e:
        logger.error(f"Ошибка при получении категорий пользователя {user_id}: {e}")
        raise


def get_category_by_name(session: Session, name: str, user_id: str) -> Optional[CategoryDB]:
    """Ищет категорию пользователя по точному названию без учёта регистра."""
    ensure_table(session, "categories")
    normalized = normalize_name(name)
    if not normalized:
        return None
    # lower() на обеих сторонах, как в уникальном индексе
    return session.query(CategoryDB).filter(
        CategoryDB.user_id == user_id,
        func.lower(CategoryDB.name) == func.lower(normalized),
    ).first()


def create_category(session: Session, category: CategoryCreate) -> CategoryDB:
    """
    Создаёт категорию или заменяет категорию с тем же ID.

    Если у пользователя уже есть другая категория с таким же названием
    (без учёта регистра), возвращается она и новая запись не создаётся.

    Raises:
        ConstraintViolationError: При нарушении ограничений БД (например, нет пользователя)
            или если категория с этим ID принадлежит другому пользователю
    """
    ensure_table(session, "categories")

    with _category_lock:
        try:
            existing = session.get(CategoryDB, category.id)
            if existing is not None and existing.user_id != category.user_id:
                error_msg = f"Категория {category.id} принадлежит другому пользователю"
                logger.error(error_msg)
                raise ConstraintViolationError(error_msg)

            same_name = get_category_by_name(session, category.name, category.user_id)
            if same_name is not None and same_name.id != category.id:
                logger.info(
                    f"Категория '{category.name}' уже существует у пользователя "
                    f"{category.user_id} (ID {same_name.id})"
                )
                return same_name

            db_category = session.merge(CategoryDB(
                id=category.id,
                name=category.name,
                user_id=category.user_id,
            ))
            session.commit()
            session.refresh(db_category)

        except IntegrityError as e:
            session.rollback()
            error_msg = f"Не удалось сохранить категорию '{category.name}' (constraint violation)"
            logger.error(f"{error_msg}: {e}")
            raise ConstraintViolationError(error_msg) from e

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Ошибка при создании категории '{category.name}': {e}")
            raise

    logger.info(f"Сохранена категория '{db_category.name}' с ID {db_category.id}")
    publish(ChangeEvent.CATEGORIES_CHANGED)
    return db_category


def get_or_create_category_by_name(session: Session, name: str, user_id: str) -> CategoryDB:
    """
    Возвращает категорию пользователя с таким названием или создаёт новую.

    Позволяет форме транзакции ввести новую категорию без отдельного шага.
    Повторный вызов с тем же названием (в любом регистре) возвращает ту же категорию.

    Raises:
        ValidationError: Если название пустое
    """
    name = normalize_name(name)
    if not name:
        error_msg = "Название категории не может быть пустым"
        logger.error(error_msg)
        raise ValidationError(error_msg)

    with _category_lock:
        existing = get_category_by_name(session, name, user_id)
        if existing is not None:
            return existing
        return create_category(session, CategoryCreate(name=name, user_id=user_id))


def update_category(session: Session, category_id: str, name: str) -> Optional[CategoryDB]:
    """
    Переименовывает категорию.

    Returns:
        Обновлённая категория или None, если категория не найдена

    Raises:
        ValidationError: Если название пустое
        ConstraintViolationError: Если у пользователя есть другая категория с таким названием
    """
    name = normalize_name(name)
    if not name:
        error_msg = "Название категории не может быть пустым"
        logger.error(error_msg)
        raise ValidationError(error_msg)

    ensure_table(session, "categories")

    with _category_lock:
        try:
            category = session.get(CategoryDB, category_id)
            if category is None:
                logger.warning(f"Категория с ID {category_id} не найдена")
                return None

            same_name = get_category_by_name(session, name, category.user_id)
            if same_name is not None and same_name.id != category_id:
                error_msg = f"Категория с названием '{name}' уже существует"
                logger.error(error_msg)
                raise ConstraintViolationError(error_msg)

            old_name = category.name
            category.name = name
            session.commit()
            session.refresh(category)

        except IntegrityError as e:
            session.rollback()
            error_msg = f"Категория с названием '{name}' уже существует (constraint violation)"
            logger.error(f"{error_msg}: {e}")
            raise ConstraintViolationError(error_msg) from e

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Ошибка при обновлении категории ID {category_id}: {e}")
            raise

    logger.info(f"Категория '{old_name}' переименована в '{name}' (ID {category_id})")
    publish(ChangeEvent.CATEGORIES_CHANGED)
    return category


def count_category_transactions(session: Session, category_id: str) -> int:
    """
    Количество транзакций, ссылающихся на категорию.

    Если таблица транзакций ещё не создана, ссылок нет.
    """
    if not table_exists(session, "transactions"):
        return 0
    ensure_table(session, "transactions")
    return session.query(TransactionDB).filter(TransactionDB.category_id == category_id).count()


def delete_category(session: Session, category_id: str) -> bool:
    """
    Удаляет категорию, если на неё не ссылается ни одна транзакция.

    Чтобы удалить используемую категорию, сначала переназначьте её транзакции
    (transaction_service.reassign_category), затем повторите удаление.

    Returns:
        True если категория удалена, False если не найдена

    Raises:
        HasDependentsError: Если есть связанные транзакции
    """
    ensure_table(session, "categories")

    with _category_lock:
        try:
            category = session.get(CategoryDB, category_id)
            if category is None:
                logger.warning(f"Категория с ID {category_id} не найдена для удаления")
                return False

            dependents = count_category_transactions(session, category_id)
            if dependents > 0:
                error = HasDependentsError(category_id, dependents)
                logger.error(str(error))
                raise error

            category_name = category.name
            session.delete(category)
            session.commit()

        except IntegrityError as e:
            # Транзакция могла появиться в обход приложения
            session.rollback()
            error_msg = f"Категория ID {category_id} используется и не может быть удалена"
            logger.error(f"{error_msg}: {e}")
            raise ConstraintViolationError(error_msg) from e

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Ошибка при удалении категории ID {category_id}: {e}")
            raise

    logger.info(f"Удалена категория '{category_name}' (ID {category_id})")
    publish(ChangeEvent.CATEGORIES_CHANGED)
    return True


def get_category_usage_counts(session: Session, user_id: str) -> Dict[str, int]:
    """
    Количество транзакций пользователя по каждой категории.

    Returns:
        Словарь {category_id: количество}; пустой, если таблицы транзакций нет
    """
    ensure_table(session, "categories")
    if not table_exists(session, "transactions"):
        return {}
    ensure_table(session, "transactions")

    rows = (
        session.query(TransactionDB.category_id, func.count(TransactionDB.id))
        .filter(TransactionDB.user_id == user_id)
        .group_by(TransactionDB.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}
