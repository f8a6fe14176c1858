"""
Менеджер схемы и миграций Wallet Tracker.

ensure_table(session, name) безопасно вызывать перед каждой операцией:
- таблицы, на которые ссылаются внешние ключи, создаются первыми
- отсутствующая таблица создаётся со всеми ограничениями и индексами
- в существующую таблицу добавляются недостающие колонки (ALTER TABLE ADD COLUMN),
  определяемые по фактическим метаданным БД, а не по номеру версии
- строки при миграции не удаляются
- работа выполняется один раз на таблицу за время жизни процесса
  (состояние сбрасывается при close_db)

Ошибка добавления колонки или индекса логируется и пропускается.
Ошибка создания таблицы, на которую ссылается внешний ключ, пробрасывается
как SchemaMigrationError.
"""

import logging
from threading import RLock
from typing import List, Optional, Set

from sqlalchemy import inspect, text, Table
from sqlalchemy.orm import Session
from sqlalchemy.schema import CreateIndex
from sqlalchemy.exc import SQLAlchemyError

from wallet_tracker import seed
from wallet_tracker.config import settings
from wallet_tracker.models import Base, UserDB, TransactionType
from wallet_tracker.models.models import to_utc_naive
from wallet_tracker.utils.exceptions import SchemaMigrationError

logger = logging.getLogger(__name__)

# Порядок создания всех таблиц приложения
ALL_TABLES = ("users", "categories", "transactions", "session")

LEGACY_CATEGORY_COLUMN = "category"
LEGACY_DEFAULT_CATEGORY = "Outros"

_ensured: Set[str] = set()
_lock = RLock()


def reset_schema_state() -> None:
    """Забывает, какие таблицы уже проверены (вызывается при закрытии БД)."""
    with _lock:
        _ensured.clear()


def table_exists(session: Session, table_name: str) -> bool:
    """Проверяет наличие таблицы в БД по метаданным SQLite."""
    return inspect(session.connection()).has_table(table_name)


def get_column_names(session: Session, table_name: str) -> Set[str]:
    """Возвращает имена колонок таблицы в том виде, в каком она лежит на диске."""
    return {column["name"] for column in inspect(session.connection()).get_columns(table_name)}


def _get_table(table_name: str) -> Table:
    table = Base.metadata.tables.get(table_name)
    if table is None:
        raise SchemaMigrationError(f"Неизвестная таблица: {table_name}")
    return table


def _dependencies(table: Table) -> List[str]:
    """Таблицы, на которые ссылаются внешние ключи (в стабильном порядке)."""
    names = {fk.column.table.name for fk in table.foreign_keys}
    names.discard(table.name)
    return sorted(names, key=lambda n: ALL_TABLES.index(n) if n in ALL_TABLES else len(ALL_TABLES))


def ensure_table(session: Session, table_name: str) -> None:
    """
    Гарантирует, что таблица существует и содержит все колонки модели.

    Args:
        session: Активная сессия БД
        table_name: Имя таблицы (users, categories, transactions, session)

    Raises:
        SchemaMigrationError: Если таблицу или её зависимость создать не удалось
    """
    with _lock:
        if table_name in _ensured:
            return

        table = _get_table(table_name)

        for dependency in _dependencies(table):
            try:
                ensure_table(session, dependency)
            except SchemaMigrationError as e:
                raise SchemaMigrationError(
                    f"Не удалось подготовить таблицу '{dependency}', "
                    f"на которую ссылается '{table_name}': {e}"
                ) from e
            if not table_exists(session, dependency):
                raise SchemaMigrationError(
                    f"Таблица '{dependency}' отсутствует, таблица '{table_name}' не может быть создана"
                )

        try:
            created = _create_or_migrate(session, table)
        except SQLAlchemyError as e:
            session.rollback()
            error_msg = f"Ошибка при создании таблицы '{table_name}': {e}"
            logger.error(error_msg)
            raise SchemaMigrationError(error_msg) from e

        _ensured.add(table_name)
        _after_ensure(session, table_name, created)


def ensure_all_tables(session: Session) -> None:
    """Создаёт/мигрирует все таблицы приложения в порядке зависимостей."""
    for table_name in ALL_TABLES:
        ensure_table(session, table_name)


def _create_or_migrate(session: Session, table: Table) -> bool:
    """
    Создаёт таблицу или добавляет недостающие колонки и индексы.

    Returns:
        True если таблица была создана
    """
    if not table_exists(session, table.name):
        table.create(bind=session.connection())
        session.commit()
        logger.info(f"Создана таблица '{table.name}'")
        return True

    existing = get_column_names(session, table.name)
    for column in table.columns:
        if column.name not in existing:
            _add_column(session, table, column)

    for index in table.indexes:
        try:
            session.execute(CreateIndex(index, if_not_exists=True))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(str(SchemaMigrationError(
                f"Не удалось создать индекс '{index.name}' таблицы '{table.name}': {e}"
            )))

    logger.debug(f"Таблица '{table.name}' проверена")
    return False


def _add_column(session: Session, table: Table, column) -> None:
    """Аддитивная миграция: ALTER TABLE ADD COLUMN (nullable, с server_default)."""
    dialect = session.get_bind().dialect
    preparer = dialect.identifier_preparer
    column_type = column.type.compile(dialect=dialect)

    ddl = (
        f"ALTER TABLE {preparer.format_table(table)} "
        f"ADD COLUMN {preparer.quote(column.name)} {column_type}"
    )
    if column.server_default is not None and isinstance(column.server_default.arg, str):
        default = column.server_default.arg.replace("'", "''")
        ddl += f" DEFAULT '{default}'"

    try:
        session.execute(text(ddl))
        session.commit()
        logger.info(f"Миграция: в таблицу '{table.name}' добавлена колонка '{column.name}'")
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(str(SchemaMigrationError(
            f"Не удалось добавить колонку '{column.name}' в '{table.name}': {e}"
        )))


def _after_ensure(session: Session, table_name: str, created: bool) -> None:
    """Действия первого запуска после подготовки таблицы."""
    if table_name == "users" and settings.seed_demo_data:
        seed.seed_demo_user(session)

    elif table_name == "transactions":
        if not created:
            migrate_legacy_transactions(session)
        if settings.seed_demo_data:
            seed.seed_demo_data(session)


def _current_user_id(session: Session) -> Optional[str]:
    if not table_exists(session, "session"):
        return None
    row = session.execute(
        text("SELECT value FROM session WHERE key = :key LIMIT 1"),
        {"key": "currentUser"},
    ).first()
    return row[0] if row and row[0] else None


def _normalize_legacy_date(value) -> Optional[str]:
    """'2024-05-01T12:00:00.000Z' -> '2024-05-01 12:00:00.000000' (UTC)."""
    if not isinstance(value, str) or "T" not in value:
        return None
    try:
        return to_utc_naive(value).strftime("%Y-%m-%d %H:%M:%S.%f")
    except ValueError:
        return None


def migrate_legacy_transactions(session: Session) -> int:
    """
    Переносит транзакции старой схемы (текстовая колонка category) в нормализованную.

    Каждой строке без category_id назначается владелец (текущий пользователь
    сессии, иначе демо-пользователь) и категория с названием из старой колонки,
    создаваемая при необходимости. Даты в формате ISO-8601 приводятся к формату
    хранения. Строки не удаляются.

    Returns:
        Количество перенесённых строк
    """
    columns = get_column_names(session, "transactions")
    if LEGACY_CATEGORY_COLUMN not in columns:
        return 0

    # Старая схема допускала пустой type
    session.execute(text(
        f"UPDATE transactions SET type = '{TransactionType.INCOME.value}' WHERE type IS NULL"
    ))
    session.commit()

    rows = session.execute(text(
        f"SELECT id, {LEGACY_CATEGORY_COLUMN}, date, user_id FROM transactions "
        f"WHERE category_id IS NULL OR user_id IS NULL"
    )).all()
    if not rows:
        return 0

    logger.info(f"Миграция {len(rows)} транзакций старой схемы")

    default_owner = _current_user_id(session)
    if default_owner is None or session.get(UserDB, default_owner) is None:
        default_owner = seed.seed_demo_user(session)

    migrated = 0
    for row in rows:
        transaction_id, legacy_category, legacy_date, user_id = row
        owner = user_id or default_owner
        name = (legacy_category or "").strip() or LEGACY_DEFAULT_CATEGORY
        try:
            category_id = seed.get_or_create_category_row(session, owner, name)
            params = {"id": transaction_id, "category_id": category_id, "user_id": owner}
            assignments = "category_id = :category_id, user_id = :user_id"
            normalized_date = _normalize_legacy_date(legacy_date)
            if normalized_date is not None:
                assignments += ", date = :date"
                params["date"] = normalized_date
            session.execute(
                text(f"UPDATE transactions SET {assignments} WHERE id = :id"),
                params,
            )
            session.commit()
            migrated += 1
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Не удалось перенести транзакцию {transaction_id}: {e}")

    logger.info(f"Перенесено {migrated} транзакций старой схемы")
    return migrated
