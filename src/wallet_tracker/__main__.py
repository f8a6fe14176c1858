"""
Точка входа для запуска через python -m wallet_tracker

Подготавливает хранилище и выводит баланс активного пользователя.
"""
from wallet_tracker.app import bootstrap
from wallet_tracker.database import get_db_session
from wallet_tracker.services import get_current_user_id, get_total_balance
from wallet_tracker.utils.formatting import format_currency

if __name__ == "__main__":
    bootstrap()
    with get_db_session() as session:
        user_id = get_current_user_id(session)
        print(f"Пользователь: {user_id or 'вход не выполнен'}")
        print(f"Баланс: {format_currency(get_total_balance(session, user_id))}")
