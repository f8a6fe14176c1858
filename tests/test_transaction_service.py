"""
Тесты хранилища транзакций.

Проверяет:
- Сумма всегда хранится как неотрицательная величина
- Полная замена через update_transaction
- Сортировку по дате (новые сверху) и изоляцию по пользователям
- Фильтры экрана истории и расчёт баланса
- Публикацию событий об изменениях
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st
from pydantic import ValidationError as PydanticValidationError

from wallet_tracker.models import (
    ChangeEvent,
    Transaction,
    TransactionCreate,
    TransactionDB,
    TransactionType,
)
from wallet_tracker.services.category_service import (
    get_or_create_category_by_name,
    get_category_usage_counts,
)
from wallet_tracker.services.session_service import set_current_user_id
from wallet_tracker.services.transaction_service import (
    get_transactions,
    add_transaction,
    update_transaction,
    delete_transaction,
    get_transactions_by_category,
    reassign_category,
    filter_transactions,
    get_total_balance,
)
from wallet_tracker.utils.events import subscribe
from wallet_tracker.utils.exceptions import ConstraintViolationError, ValidationError

from property_generators import signed_amounts, transaction_dates, transaction_types
from store_helpers import memory_store, make_user


class TestTransactionProperties:

    @given(amount=signed_amounts(), tx_type=transaction_types())
    @settings(max_examples=30)
    def test_amount_stored_as_magnitude(self, amount, tx_type):
        with memory_store() as session:
            make_user(session)

            created = add_transaction(
                session,
                TransactionCreate(amount=amount, type=tx_type, category_name="Geral"),
                user_id="u1",
            )
            session.expire_all()
            stored = session.get(TransactionDB, created.id)

            assert stored.amount == abs(amount)
            assert stored.amount >= 0
            assert stored.type == tx_type

    @given(dates=st.lists(transaction_dates(), min_size=1, max_size=8, unique=True))
    @settings(max_examples=20)
    def test_ordered_newest_first(self, dates):
        with memory_store() as session:
            make_user(session)
            for moment in dates:
                add_transaction(
                    session,
                    TransactionCreate(amount=1, date=moment, category_name="Geral"),
                    user_id="u1",
                )

            listed = [t.date for t in get_transactions(session, "u1")]

            assert listed == sorted(dates, reverse=True)


class TestTransactionCreate:

    def test_defaults(self):
        payload = TransactionCreate(category_name="Geral")

        assert payload.title == "Untitled"
        assert payload.amount == Decimal("0.00")
        assert payload.type == TransactionType.INCOME
        assert payload.date.tzinfo is None

    def test_null_type_and_title_use_defaults(self):
        payload = TransactionCreate(title=None, type=None, amount=None, category_name="Geral")

        assert payload.title == "Untitled"
        assert payload.type == TransactionType.INCOME
        assert payload.amount == Decimal("0.00")

    def test_string_amount_and_iso_date(self):
        payload = TransactionCreate(amount="-12.345", date="2024-05-01T12:00:00.000Z", category_name="Geral")

        assert payload.amount == Decimal("12.35")
        assert payload.date == datetime(2024, 5, 1, 12, 0)

    def test_aware_date_converted_to_utc(self):
        moment = datetime(2024, 5, 1, 9, 0, tzinfo=timezone(timedelta(hours=-3)))

        assert TransactionCreate(date=moment, category_name="Geral").date == datetime(2024, 5, 1, 12, 0)

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity", True])
    def test_invalid_amount_rejected(self, amount):
        with pytest.raises(PydanticValidationError):
            TransactionCreate(amount=amount, category_name="Geral")

    def test_category_required(self):
        with pytest.raises(PydanticValidationError):
            TransactionCreate(amount=10)


class TestTransactionStore:

    def test_add_with_category_name_creates_category(self, db_session, user):
        created = add_transaction(
            db_session,
            TransactionCreate(title="Cinema", amount=40, type=TransactionType.EXPENSE, category_name="Lazer"),
            user_id="u1",
        )

        category = get_or_create_category_by_name(db_session, "lazer", "u1")
        assert created.category_id == category.id
        assert created.user_id == "u1"

    def test_add_keeps_given_id(self, db_session, user):
        created = add_transaction(
            db_session,
            TransactionCreate(id="tx-1", amount=1, category_name="Geral"),
            user_id="u1",
        )

        assert created.id == "tx-1"

    def test_add_uses_session_user(self, db_session, user):
        set_current_user_id(db_session, "u1")

        created = add_transaction(db_session, TransactionCreate(amount=1, category_name="Geral"))

        assert created.user_id == "u1"

    def test_add_without_user_fails(self, db_session):
        with pytest.raises(ValidationError):
            add_transaction(db_session, TransactionCreate(amount=1, category_name="Geral"))

    def test_add_with_unknown_category_fails(self, db_session, user):
        with pytest.raises(ConstraintViolationError):
            add_transaction(db_session, TransactionCreate(amount=1, category_id="missing"), user_id="u1")

        assert get_transactions(db_session, "u1") == []

    def test_update_replaces_every_field(self, db_session, user):
        food = get_or_create_category_by_name(db_session, "Food", "u1")
        fun = get_or_create_category_by_name(db_session, "Fun", "u1")
        created = add_transaction(
            db_session,
            TransactionCreate(title="Lunch", amount=20, category_id=food.id, notes="work"),
            user_id="u1",
        )

        replacement = Transaction(
            id=created.id,
            title="Movie",
            amount=Decimal("-35.5"),
            type=TransactionType.EXPENSE,
            date=datetime(2024, 1, 2, 3, 4, 5),
            category_id=fun.id,
            notes=None,
            user_id="u1",
        )
        update_transaction(db_session, replacement)

        db_session.expire_all()
        assert Transaction.model_validate(db_session.get(TransactionDB, created.id)) == replacement
        assert replacement.amount == Decimal("35.50")

    def test_update_missing_returns_none(self, db_session, user):
        missing = Transaction(
            id="ghost", amount=1, date=datetime(2024, 1, 1), category_id="c", user_id="u1"
        )

        assert update_transaction(db_session, missing) is None

    def test_update_with_unknown_category_fails(self, db_session, user):
        created = add_transaction(db_session, TransactionCreate(amount=1, category_name="Geral"), user_id="u1")
        broken = Transaction.model_validate(created).model_copy(update={"category_id": "missing"})

        with pytest.raises(ConstraintViolationError):
            update_transaction(db_session, broken)

    def test_delete(self, db_session, user):
        created = add_transaction(db_session, TransactionCreate(amount=1, category_name="Geral"), user_id="u1")

        assert delete_transaction(db_session, created.id) is True
        assert delete_transaction(db_session, created.id) is False
        assert get_transactions(db_session, "u1") == []

    def test_users_see_only_their_rows(self, db_session, user, other_user):
        add_transaction(db_session, TransactionCreate(title="mine", amount=1, category_name="A"), user_id="u1")
        add_transaction(db_session, TransactionCreate(title="theirs", amount=1, category_name="A"), user_id="u2")

        assert [t.title for t in get_transactions(db_session, "u1")] == ["mine"]
        assert [t.title for t in get_transactions(db_session, "u2")] == ["theirs"]

    def test_without_any_user_all_rows_returned(self, db_session, user, other_user):
        add_transaction(db_session, TransactionCreate(amount=1, category_name="A"), user_id="u1")
        add_transaction(db_session, TransactionCreate(amount=1, category_name="A"), user_id="u2")

        assert len(get_transactions(db_session)) == 2

    def test_by_category(self, db_session, user):
        food = get_or_create_category_by_name(db_session, "Food", "u1")
        add_transaction(db_session, TransactionCreate(amount=1, category_id=food.id), user_id="u1")
        add_transaction(db_session, TransactionCreate(amount=1, category_name="Other"), user_id="u1")

        assert len(get_transactions_by_category(db_session, "u1", food.id)) == 1

    def test_reassign_to_foreign_category_rejected(self, db_session, user, other_user):
        mine = get_or_create_category_by_name(db_session, "Food", "u1")
        theirs = get_or_create_category_by_name(db_session, "Food", "u2")
        add_transaction(db_session, TransactionCreate(amount=1, category_id=mine.id), user_id="u1")

        with pytest.raises(ConstraintViolationError):
            reassign_category(db_session, mine.id, theirs.id, "u1")
        with pytest.raises(ConstraintViolationError):
            reassign_category(db_session, mine.id, "missing", "u1")

        assert len(get_transactions_by_category(db_session, "u1", mine.id)) == 1

    def test_add_with_foreign_category_rejected(self, db_session, user, other_user):
        theirs = get_or_create_category_by_name(db_session, "Food", "u2")

        with pytest.raises(ConstraintViolationError):
            add_transaction(db_session, TransactionCreate(amount=1, category_id=theirs.id), user_id="u1")

        assert get_transactions(db_session, "u1") == []
        assert get_category_usage_counts(db_session, "u2") == {}

    def test_update_to_foreign_category_rejected(self, db_session, user, other_user):
        created = add_transaction(db_session, TransactionCreate(amount=1, category_name="Food"), user_id="u1")
        original_category = created.category_id
        theirs = get_or_create_category_by_name(db_session, "Food", "u2")
        moved = Transaction.model_validate(created).model_copy(update={"category_id": theirs.id})

        with pytest.raises(ConstraintViolationError):
            update_transaction(db_session, moved)

        db_session.expire_all()
        assert db_session.get(TransactionDB, created.id).category_id == original_category


class TestFilterAndBalance:

    @pytest.fixture
    def history(self, db_session, user):
        rows = [
            ("Supermercado", 230, TransactionType.EXPENSE, datetime(2024, 5, 10, 23, 30), "Alimentação", "Compras"),
            ("Cinema", 40, TransactionType.EXPENSE, datetime(2024, 5, 12, 20, 0), "Lazer", "com amigos"),
            ("Salário", 4500, TransactionType.INCOME, datetime(2024, 5, 5, 9, 0), "Renda", None),
        ]
        for title, amount, tx_type, moment, category, notes in rows:
            add_transaction(
                db_session,
                TransactionCreate(
                    title=title, amount=amount, type=tx_type, date=moment, category_name=category, notes=notes
                ),
                user_id="u1",
            )
        return db_session

    def test_title_filter_ignores_case(self, history):
        assert [t.title for t in filter_transactions(history, "u1", title="SUPER")] == ["Supermercado"]

    def test_category_and_notes_filters(self, history):
        assert [t.title for t in filter_transactions(history, "u1", category="lazer")] == ["Cinema"]
        assert [t.title for t in filter_transactions(history, "u1", notes="amigos")] == ["Cinema"]

    def test_date_range_is_inclusive_whole_days(self, history):
        in_range = filter_transactions(history, "u1", date_from=date(2024, 5, 5), date_to=date(2024, 5, 10))
        assert [t.title for t in in_range] == ["Supermercado", "Salário"]

        after = filter_transactions(history, "u1", date_from="2024-05-11")
        assert [t.title for t in after] == ["Cinema"]

    def test_no_filters_returns_everything(self, history):
        assert len(filter_transactions(history, "u1")) == 3

    def test_balance(self, history):
        assert get_total_balance(history, "u1") == Decimal("4230.00")

    def test_balance_of_empty_store(self, db_session, user):
        assert get_total_balance(db_session, "u1") == Decimal("0.00")

    def test_balance_ignores_other_users(self, history, other_user):
        add_transaction(
            history,
            TransactionCreate(amount=999, type=TransactionType.EXPENSE, category_name="Outros"),
            user_id="u2",
        )

        assert get_total_balance(history, "u1") == Decimal("4230.00")
        assert get_total_balance(history, "u2") == Decimal("-999.00")


class TestTransactionEvents:

    def test_each_mutation_publishes_once(self, db_session, user):
        received = []
        subscribe(ChangeEvent.TRANSACTIONS_CHANGED, lambda: received.append("tx"))

        created = add_transaction(db_session, TransactionCreate(amount=1, category_name="A"), user_id="u1")
        assert received == ["tx"]

        update_transaction(db_session, Transaction.model_validate(created))
        assert len(received) == 2

        delete_transaction(db_session, created.id)
        assert len(received) == 3

    def test_delete_of_missing_row_still_publishes(self, db_session, user):
        received = []
        subscribe(ChangeEvent.TRANSACTIONS_CHANGED, lambda: received.append("tx"))

        assert delete_transaction(db_session, "ghost") is False
        assert received == ["tx"]

    def test_failed_add_does_not_publish(self, db_session, user):
        received = []
        subscribe(ChangeEvent.TRANSACTIONS_CHANGED, lambda: received.append("tx"))

        with pytest.raises(ConstraintViolationError):
            add_transaction(db_session, TransactionCreate(amount=1, category_id="missing"), user_id="u1")

        assert received == []
