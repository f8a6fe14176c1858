"""
Конфигурация pytest для тестов wallet_tracker.
"""
import pytest
from hypothesis import HealthCheck, settings as hypothesis_settings

from wallet_tracker.config import settings
from wallet_tracker.database import init_db, close_db, get_db_session
from wallet_tracker.models import UserCreate
from wallet_tracker.services.user_service import create_user
from wallet_tracker.utils.events import event_bus

# clean_state не зависит от примеров Hypothesis: memory_store пересоздаёт БД на каждый пример
hypothesis_settings.register_profile(
    "wallet_tracker",
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
hypothesis_settings.load_profile("wallet_tracker")


@pytest.fixture(autouse=True)
def clean_state():
    """
    Сбрасывает глобальное состояние между тестами:
    подписчиков шины событий и открытое подключение к БД.
    """
    event_bus.clear()
    close_db()
    yield
    close_db()
    event_bus.clear()


@pytest.fixture
def fast_settings(monkeypatch):
    """Без демо-данных и с минимальной стоимостью bcrypt."""
    monkeypatch.setattr(settings, "seed_demo_data", False)
    monkeypatch.setattr(settings, "password_hash_rounds", 4)
    return settings


@pytest.fixture
def seeding_enabled(fast_settings, monkeypatch):
    monkeypatch.setattr(settings, "seed_demo_data", True)
    return settings


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "wallet.db")


@pytest.fixture
def store(fast_settings, db_path):
    """Временная файловая БД (без демо-данных)."""
    engine = init_db(db_path)
    yield engine
    close_db()


@pytest.fixture
def db_session(store):
    """Сессия временной файловой БД."""
    with get_db_session() as session:
        yield session


@pytest.fixture
def user(db_session):
    """Пользователь u1@example.com."""
    return create_user(db_session, UserCreate(id="u1", name="Ana", email="u1@example.com", password="pw1"))


@pytest.fixture
def other_user(db_session):
    """Второй пользователь для проверки изоляции данных."""
    return create_user(db_session, UserCreate(id="u2", name="Bruno", email="u2@example.com", password="pw2"))
