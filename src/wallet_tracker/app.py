"""
Последовательность запуска Wallet Tracker.

Вызывается внешним UI перед показом первого экрана:
1. Настройка логирования
2. Открытие подключения к БД
3. Создание/миграция всех таблиц (включая первичное заполнение)
"""

import logging
from typing import Optional

from sqlalchemy import Engine

from wallet_tracker.config import settings
from wallet_tracker.database import init_db, get_db_session
from wallet_tracker.schema import ensure_all_tables
from wallet_tracker.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def bootstrap(db_path: Optional[str] = None, configure_logging: bool = True) -> Engine:
    """
    Подготавливает хранилище к работе.

    Args:
        db_path: Путь к файлу БД или ":memory:" (по умолчанию settings.db_path)
        configure_logging: Настраивать ли логирование (тесты отключают)

    Returns:
        Engine: Открытое подключение к БД
    """
    if configure_logging:
        setup_logging()
    logger.info(f"Запуск {settings.APP_NAME} {settings.VERSION}")

    engine = init_db(db_path)
    with get_db_session() as session:
        ensure_all_tables(session)

    logger.info("Хранилище готово к работе")
    return engine
