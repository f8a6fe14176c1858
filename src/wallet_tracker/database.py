"""
Модуль управления базой данных для Wallet Tracker.

Содержит функции для:
- Ленивого открытия единственного на процесс подключения (engine) к SQLite
- Включения проверки внешних ключей на каждом соединении
- Управления сессиями БД через контекстный менеджер с автоматическим откатом
- Закрытия подключения при завершении процесса

Путь к базе данных по умолчанию берётся из settings.db_path (config.py).
"""

from contextlib import contextmanager
from typing import Generator, Optional
from threading import RLock
import logging
import atexit

from sqlalchemy import create_engine, event, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError

from wallet_tracker.config import settings
from wallet_tracker.schema import reset_schema_state

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# Глобальные переменные для engine и session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None
_lock = RLock()
_atexit_registered = False


def _enable_foreign_keys(dbapi_conn, connection_record) -> None:
    """Включает поддержку foreign keys в SQLite (действует на одно соединение)."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine(db_path: str) -> Engine:
    if db_path == MEMORY_DB:
        # Одно общее соединение, иначе каждая сессия увидит свою пустую БД
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def init_db(db_path: Optional[str] = None) -> Engine:
    """
    Открывает подключение к базе данных, если оно ещё не открыто.

    Повторный вызов возвращает уже открытый engine. Таблицы здесь не создаются:
    каждое хранилище вызывает schema.ensure_table перед работой.

    Args:
        db_path: Путь к файлу БД или ":memory:" (по умолчанию settings.db_path)

    Returns:
        Engine: Общий для всех хранилищ engine
    """
    global _engine, _SessionLocal, _atexit_registered

    with _lock:
        if _engine is not None:
            return _engine

        path = db_path or settings.db_path
        logger.info(f"Инициализация базы данных: {path}")

        try:
            _engine = _create_engine(path)
            _SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=_engine
            )
        except SQLAlchemyError as e:
            logger.error(f"Ошибка при инициализации базы данных: {e}")
            _engine = None
            _SessionLocal = None
            raise

        if not _atexit_registered:
            atexit.register(close_db)
            _atexit_registered = True

        logger.info("Подключение к базе данных открыто")
        return _engine


def get_engine() -> Engine:
    """Возвращает общий engine, открывая его при первом обращении."""
    return _engine if _engine is not None else init_db()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Контекстный менеджер для работы с сессией базы данных.

    При первом обращении открывает подключение (settings.db_path).
    При любой ошибке откатывает транзакцию и пробрасывает исключение.
    """
    get_engine()
    session: Session = _SessionLocal()

    try:
        logger.debug("Создана новая сессия БД")
        yield session

    except SQLAlchemyError as e:
        logger.error(f"Ошибка SQLAlchemy, откат транзакции: {e}")
        session.rollback()
        raise

    except Exception as e:
        logger.error(f"Неожиданная ошибка, откат транзакции: {e}")
        session.rollback()
        raise

    finally:
        session.close()
        logger.debug("Сессия БД закрыта")


def close_db() -> None:
    """
    Закрывает соединение с базой данных и сбрасывает состояние схемы.

    После вызова следующее обращение к БД откроет подключение заново.
    """
    global _engine, _SessionLocal

    with _lock:
        if _engine is not None:
            logger.info("Закрытие соединения с базой данных...")
            _engine.dispose()
            _engine = None
            _SessionLocal = None
            logger.info("Соединение с базой данных закрыто")
        reset_schema_state()
