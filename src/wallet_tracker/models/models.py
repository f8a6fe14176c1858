"""
Модуль моделей данных для Wallet Tracker.

Содержит:
- UserDB, CategoryDB, TransactionDB, SessionEntryDB: SQLAlchemy модели таблиц
- UserCreate, User: Pydantic модели пользователя (User - публичное представление без пароля)
- CategoryCreate, Category: Pydantic модели категории
- TransactionCreate, Transaction: Pydantic модели транзакции
"""

from datetime import datetime, timezone
from datetime import date as date_type
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional
import uuid

from sqlalchemy import Column, String, Numeric, DateTime, Enum as SQLEnum, ForeignKey, Index, func
from sqlalchemy.orm import relationship, DeclarativeBase
from pydantic import BaseModel, field_validator, model_validator, Field, ConfigDict

from .enums import TransactionType


def utcnow() -> datetime:
    """Текущий момент в UTC без tzinfo (формат хранения дат в БД)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


# Декларативная база для SQLAlchemy моделей
class Base(DeclarativeBase):
    """Базовый класс для всех SQLAlchemy моделей."""
    pass


class UserDB(Base):
    """
    Пользователь приложения.

    Attributes:
        id: Непрозрачный идентификатор пользователя
        name: Отображаемое имя
        email: Email в нижнем регистре (уникальный)
        password_hash: bcrypt-хэш пароля (колонка password)
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String)
    email = Column(String, unique=True)
    password_hash = Column("password", String)

    # Связи (каскадное удаление выполняет БД)
    categories = relationship("CategoryDB", back_populates="user", passive_deletes=True)
    transactions = relationship("TransactionDB", back_populates="user", passive_deletes=True)


class CategoryDB(Base):
    """
    Категория транзакций, принадлежащая пользователю.

    Название уникально в пределах пользователя без учёта регистра
    (индекс uq_categories_user_id_lower_name).

    Attributes:
        id: Идентификатор категории
        name: Название категории
        user_id: Владелец категории
    """
    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Связи
    user = relationship("UserDB", back_populates="categories")
    transactions = relationship("TransactionDB", back_populates="category", passive_deletes="all")


Index(
    "uq_categories_user_id_lower_name",
    CategoryDB.user_id,
    func.lower(CategoryDB.name),
    unique=True,
)


class TransactionDB(Base):
    """
    Финансовая транзакция (доход или расход).

    Attributes:
        id: Идентификатор транзакции
        title: Заголовок
        amount: Сумма (всегда неотрицательная, знак определяется типом)
        type: Тип транзакции (income/expense)
        date: Момент транзакции (UTC)
        category_id: Категория (удаление категории запрещено, пока есть ссылки)
        notes: Заметки (необязательно)
        user_id: Владелец транзакции
    """
    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    title = Column(String)
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    type = Column(
        SQLEnum(
            TransactionType,
            native_enum=False,
            length=16,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=TransactionType.INCOME,
        server_default=TransactionType.INCOME.value,
    )
    date = Column(DateTime, nullable=False, default=utcnow, index=True)
    category_id = Column(String, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False)
    notes = Column(String)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Связи
    category = relationship("CategoryDB", back_populates="transactions")
    user = relationship("UserDB", back_populates="transactions")

    # Индексы для выборок по пользователю и категории
    __table_args__ = (
        Index('ix_transactions_user_id_date', 'user_id', 'date'),
        Index('ix_transactions_category_id', 'category_id'),
    )

    @property
    def signed_amount(self) -> Decimal:
        """Сумма со знаком: расходы отрицательные."""
        amount = self.amount or Decimal('0')
        return -amount if self.type == TransactionType.EXPENSE else amount


class SessionEntryDB(Base):
    """
    Ключ-значение для состояния входа.

    Строка с ключом "currentUser" хранит ID активного пользователя.
    """
    __tablename__ = "session"

    key = Column(String, primary_key=True)
    value = Column(String)


# --- Валидаторы, общие для Pydantic моделей ---

def to_magnitude(value: Any) -> Decimal:
    """
    Приводит сумму к неотрицательному Decimal, округлённому до копеек.

    None трактуется как 0. Знак входного значения отбрасывается.

    Raises:
        ValueError: Если значение не является конечным числом
    """
    if value is None:
        return Decimal('0.00')
    if isinstance(value, bool):
        raise ValueError(f'Невалидная сумма: {value!r}')
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f'Невалидная сумма: {value!r}')
    if not amount.is_finite():
        raise ValueError(f'Невалидная сумма: {value!r}')
    return abs(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def to_utc_naive(value: Any) -> datetime:
    """
    Приводит момент времени к UTC без tzinfo.

    Принимает datetime, date или строку ISO-8601 (в том числе с суффиксом Z).
    None означает текущий момент. Наивные значения считаются UTC.
    """
    if value is None:
        return utcnow()
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f'Невалидная дата: {value!r}')
    elif isinstance(value, date_type) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime):
        raise ValueError(f'Невалидная дата: {value!r}')
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class UserCreate(BaseModel):
    """
    Pydantic модель для создания (upsert) пользователя.

    Email обрезается и приводится к нижнему регистру.
    """
    id: str = Field(default_factory=new_id)
    name: str = ""
    email: str
    password: str = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError('Email не может быть пустым')
        return v

    @field_validator('id', 'name')
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()


class User(BaseModel):
    """Публичное представление пользователя (без пароля)."""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    """
    Pydantic модель для создания категории с валидацией.

    Attributes:
        id: Идентификатор (по умолчанию новый UUID)
        name: Название категории (не может быть пустым, пробелы по краям обрезаются)
        user_id: Владелец категории
    """
    id: str = Field(default_factory=new_id)
    name: str
    user_id: str

    @field_validator('name')
    @classmethod
    def name_not_empty_and_trim(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Название категории не может быть пустым или состоять только из пробелов')
        return v.strip()


class Category(BaseModel):
    """Pydantic модель для чтения категории из БД."""
    id: str
    name: str
    user_id: str

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(BaseModel):
    """
    Pydantic модель для создания транзакции.

    Нормализация входных данных:
    - amount приводится к неотрицательной величине (знак задаётся type)
    - type по умолчанию income
    - date по умолчанию текущий момент, хранится в UTC
    - категория задаётся category_id или названием category_name
      (новая категория создаётся при добавлении транзакции)
    """
    id: Optional[str] = None
    title: str = "Untitled"
    amount: Decimal = Decimal('0.00')
    type: TransactionType = TransactionType.INCOME
    date: datetime = Field(default_factory=utcnow)
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return to_magnitude(v)

    @field_validator('type', mode='before')
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return TransactionType.INCOME if v is None else v

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> datetime:
        return to_utc_naive(v)

    @field_validator('title', mode='before')
    @classmethod
    def default_title(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return "Untitled"
        return str(v).strip()

    @model_validator(mode='after')
    def require_category(self) -> 'TransactionCreate':
        has_id = bool(self.category_id and self.category_id.strip())
        has_name = bool(self.category_name and self.category_name.strip())
        if not has_id and not has_name:
            raise ValueError('Необходимо указать category_id или category_name')
        return self


class Transaction(BaseModel):
    """
    Полная запись транзакции.

    Используется для чтения из БД и для полной замены через update_transaction.
    """
    id: str
    title: Optional[str] = None
    amount: Decimal
    type: TransactionType = TransactionType.INCOME
    date: datetime
    category_id: str
    notes: Optional[str] = None
    user_id: str

    model_config = ConfigDict(from_attributes=True)

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return to_magnitude(v)

    @field_validator('type', mode='before')
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return TransactionType.INCOME if v is None else v

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> datetime:
        return to_utc_naive(v)
