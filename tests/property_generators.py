"""
Генераторы данных для property-based тестирования с Hypothesis.

Содержит стратегии генерации для:
- Сумм (включая отрицательные и строковые)
- Названий категорий
- Дат транзакций
"""
import string
from datetime import datetime
from decimal import Decimal

from hypothesis import strategies as st

from wallet_tracker.models.enums import TransactionType


def signed_amounts() -> st.SearchStrategy[Decimal]:
    """
    Суммы любого знака с двумя знаками после запятой.

    Example:
        @given(amount=signed_amounts())
        def test_amount_is_magnitude(amount):
            assert TransactionCreate(amount=amount, category_name="X").amount >= 0
    """
    return st.decimals(
        min_value=Decimal('-9999999.99'),
        max_value=Decimal('9999999.99'),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


def category_names() -> st.SearchStrategy[str]:
    """ASCII названия: SQLite lower() учитывает регистр только для ASCII."""
    return st.text(
        alphabet=string.ascii_letters,
        min_size=1,
        max_size=20,
    )


def transaction_types() -> st.SearchStrategy[TransactionType]:
    return st.sampled_from(TransactionType)


def transaction_dates() -> st.SearchStrategy[datetime]:
    """Наивные даты (UTC) с точностью до микросекунд."""
    return st.datetimes(
        min_value=datetime(2000, 1, 1),
        max_value=datetime(2035, 12, 31),
    )
