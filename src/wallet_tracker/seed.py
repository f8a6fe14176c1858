"""
Первичное заполнение базы демо-данными.

- seed_demo_user: демо-аккаунт, если пользователя с его email ещё нет
- seed_demo_data: при пустой таблице транзакций - демо-пользователь,
  шесть категорий и десять транзакций за последние ~20 дней

Идентификаторы демо-данных детерминированы (uuid5), поэтому повторный запуск
не создаёт дублей. Ошибка одной строки логируется и пропускается.
"""

import logging
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from wallet_tracker.models import (
    UserDB,
    CategoryDB,
    TransactionDB,
    TransactionType,
    ChangeEvent,
    utcnow,
)
from wallet_tracker.utils.events import publish
from wallet_tracker.utils.passwords import hash_password

logger = logging.getLogger(__name__)

DEMO_USER_ID = "default-user"
DEMO_USER_EMAIL = "user@example.com"
DEMO_USER_NAME = "Usuário"
DEMO_USER_PASSWORD = "user123"

SEED_NAMESPACE = uuid.UUID("6f1c8b0e-2d4a-5e7f-9a3b-1c2d3e4f5a6b")

DEMO_CATEGORIES = (
    "Renda",
    "Saúde",
    "Alimentação",
    "Lazer",
    "Pequeno Negócio",
    "Viagem",
)

# (заголовок, сумма, тип, дней назад, категория, заметки)
DEMO_TRANSACTIONS = (
    ("Salário", Decimal("4500.00"), TransactionType.INCOME, 15, "Renda", "Pagamento mensal"),
    ("Aluguel (fundos)", Decimal("1200.00"), TransactionType.INCOME, 4, "Renda", "Aluguel da casa dos fundos"),
    ("Despesa médica", Decimal("800.00"), TransactionType.EXPENSE, 20, "Saúde", "Dentista"),
    ("Supermercado", Decimal("230.50"), TransactionType.EXPENSE, 12, "Alimentação", "Compras semanais"),
    ("Pipoca e ingresso", Decimal("40.00"), TransactionType.EXPENSE, 7, "Lazer", "Cinema"),
    ("Fliperama", Decimal("30.00"), TransactionType.EXPENSE, 8, "Lazer", "Jogos"),
    ("Vendas mensais", Decimal("180.00"), TransactionType.INCOME, 1, "Pequeno Negócio", "Venda da lojinha de artesanato"),
    ("Hotel", Decimal("420.00"), TransactionType.EXPENSE, 2, "Viagem", "Férias"),
    ("Compra de material", Decimal("130.00"), TransactionType.EXPENSE, 14, "Pequeno Negócio", "Material para artesanato"),
    ("Academia", Decimal("80.00"), TransactionType.EXPENSE, 10, "Saúde", "Pagamento mensal da academia"),
)


def category_id_for(user_id: str, name: str) -> str:
    """Детерминированный ID категории по владельцу и названию (без учёта регистра)."""
    return str(uuid.uuid5(SEED_NAMESPACE, f"category:{user_id}:{name.strip().lower()}"))


def transaction_id_for(user_id: str, index: int) -> str:
    return str(uuid.uuid5(SEED_NAMESPACE, f"transaction:{user_id}:{index}"))


def seed_demo_user(session: Session) -> str:
    """
    Создаёт демо-аккаунт, если пользователя с email DEMO_USER_EMAIL нет.

    Returns:
        ID демо-пользователя (существующего или созданного)
    """
    existing = session.query(UserDB).filter(
        func.lower(UserDB.email) == DEMO_USER_EMAIL
    ).first()
    if existing is not None:
        logger.debug("Демо-пользователь уже существует, пропускаем")
        return existing.id

    try:
        session.add(UserDB(
            id=DEMO_USER_ID,
            name=DEMO_USER_NAME,
            email=DEMO_USER_EMAIL,
            password_hash=hash_password(DEMO_USER_PASSWORD),
        ))
        session.commit()
        logger.info(f"Создан демо-пользователь {DEMO_USER_EMAIL}")
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Не удалось создать демо-пользователя: {e}")
    return DEMO_USER_ID


def get_or_create_category_row(session: Session, user_id: str, name: str) -> str:
    """
    Возвращает ID категории пользователя с таким названием, создавая её при необходимости.

    Новая категория получает детерминированный ID (category_id_for).
    Используется при заполнении и миграции, в обход шины событий.
    """
    name = name.strip()
    existing = session.query(CategoryDB).filter(
        CategoryDB.user_id == user_id,
        func.lower(CategoryDB.name) == func.lower(name),
    ).first()
    if existing is not None:
        return existing.id

    category = CategoryDB(id=category_id_for(user_id, name), name=name, user_id=user_id)
    session.add(category)
    session.commit()
    logger.debug(f"Создана категория '{name}' для пользователя {user_id}")
    return category.id


def seed_demo_data(session: Session) -> int:
    """
    Заполняет пустую таблицу транзакций демо-данными.

    Returns:
        Количество созданных транзакций (0, если таблица не пуста)
    """
    existing_count = session.query(TransactionDB).count()
    if existing_count > 0:
        logger.info(f"Транзакции уже существуют ({existing_count} шт.), пропускаем заполнение")
        return 0

    logger.info("Заполнение демо-данными...")
    owner_id = seed_demo_user(session)

    category_ids: Dict[str, Optional[str]] = {}
    for name in DEMO_CATEGORIES:
        try:
            category_ids[name] = get_or_create_category_row(session, owner_id, name)
        except SQLAlchemyError as e:
            session.rollback()
            category_ids[name] = None
            logger.warning(f"Не удалось создать демо-категорию '{name}': {e}")

    now = utcnow()
    created = 0
    for index, (title, amount, tx_type, days_ago, category_name, notes) in enumerate(DEMO_TRANSACTIONS):
        category_id = category_ids.get(category_name)
        if category_id is None:
            logger.warning(f"Пропуск демо-транзакции '{title}': нет категории '{category_name}'")
            continue
        try:
            session.add(TransactionDB(
                id=transaction_id_for(owner_id, index),
                title=title,
                amount=amount,
                type=tx_type,
                date=now - timedelta(days=days_ago),
                category_id=category_id,
                notes=notes,
                user_id=owner_id,
            ))
            session.commit()
            created += 1
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Не удалось создать демо-транзакцию '{title}': {e}")

    logger.info(f"Создано {created} демо-транзакций")
    if created:
        publish(ChangeEvent.CATEGORIES_CHANGED)
        publish(ChangeEvent.TRANSACTIONS_CHANGED)
    return created
