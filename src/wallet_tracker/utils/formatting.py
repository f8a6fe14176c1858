"""Форматирование денежных сумм для экрана баланса."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from wallet_tracker.config import settings


def format_currency(value: Union[Decimal, int, float, str], symbol: Optional[str] = None) -> str:
    """
    Форматирует сумму в стиле бразильского реала: "R$ 1.234,56".

    Отрицательные суммы выводятся как "-R$ 1.234,56".

    Example:
        >>> format_currency(Decimal('-1234.5'))
        '-R$ 1.234,50'
    """
    symbol = settings.currency_symbol if symbol is None else symbol
    amount = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    # 1,234.56 -> 1.234,56
    body = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {body}"
