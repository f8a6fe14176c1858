"""
Тесты хранилища категорий.

Проверяет:
- Уникальность названия в пределах пользователя без учёта регистра
- Идемпотентность "найти или создать"
- Запрет удаления используемой категории и сценарий переназначения
- Работу без таблицы транзакций
"""
import pytest
from hypothesis import given, settings

from wallet_tracker.models import CategoryCreate, CategoryDB, ChangeEvent, TransactionCreate
from wallet_tracker.schema import table_exists
from wallet_tracker.services.category_service import (
    get_categories,
    get_category_by_name,
    create_category,
    get_or_create_category_by_name,
    update_category,
    delete_category,
    count_category_transactions,
    get_category_usage_counts,
)
from wallet_tracker.services.transaction_service import add_transaction, reassign_category
from wallet_tracker.utils.events import subscribe
from wallet_tracker.utils.exceptions import (
    ConstraintViolationError,
    HasDependentsError,
    ValidationError,
)

from property_generators import category_names
from store_helpers import memory_store, make_user


class TestCategoryProperties:

    @given(name=category_names())
    @settings(max_examples=25)
    def test_get_or_create_is_idempotent(self, name):
        """Повторный вызов с тем же названием в любом регистре возвращает ту же категорию."""
        with memory_store() as session:
            make_user(session)

            first = get_or_create_category_by_name(session, name, "u1")
            second = get_or_create_category_by_name(session, name.upper(), "u1")
            third = get_or_create_category_by_name(session, f"  {name.lower()}  ", "u1")

            assert first.id == second.id == third.id
            assert session.query(CategoryDB).count() == 1

    @given(names=category_names().map(lambda n: (n, n.swapcase())))
    @settings(max_examples=15)
    def test_case_variants_cannot_coexist(self, names):
        original, variant = names
        with memory_store() as session:
            make_user(session)
            created = create_category(session, CategoryCreate(name=original, user_id="u1"))

            result = create_category(session, CategoryCreate(name=variant, user_id="u1"))

            assert result.id == created.id
            assert len(get_categories(session, "u1")) == 1


class TestCategoryStore:

    def test_food_and_food_lowercase_are_one_category(self, db_session, user):
        food = get_or_create_category_by_name(db_session, "Food", "u1")

        assert get_or_create_category_by_name(db_session, "food", "u1").id == food.id
        assert get_category_by_name(db_session, "FOOD", "u1").id == food.id
        assert get_or_create_category_by_name(db_session, "Food", "u1").name == "Food"

    def test_same_name_allowed_for_different_users(self, db_session, user, other_user):
        mine = get_or_create_category_by_name(db_session, "Food", "u1")
        theirs = get_or_create_category_by_name(db_session, "Food", "u2")

        assert mine.id != theirs.id
        assert [c.id for c in get_categories(db_session, "u1")] == [mine.id]

    def test_categories_sorted_case_insensitively(self, db_session, user):
        for name in ("banana", "Cherry", "apple"):
            get_or_create_category_by_name(db_session, name, "u1")

        assert [c.name for c in get_categories(db_session, "u1")] == ["apple", "banana", "Cherry"]

    def test_empty_name_rejected(self, db_session, user):
        with pytest.raises(ValidationError):
            get_or_create_category_by_name(db_session, "   ", "u1")

    def test_create_for_missing_user_fails(self, db_session):
        with pytest.raises(ConstraintViolationError):
            create_category(db_session, CategoryCreate(name="Orphan", user_id="ghost"))

    def test_create_with_foreign_id_rejected(self, db_session, user, other_user):
        theirs = get_or_create_category_by_name(db_session, "Food", "u2")
        add_transaction(db_session, TransactionCreate(amount=1, category_id=theirs.id), user_id="u2")

        with pytest.raises(ConstraintViolationError):
            create_category(db_session, CategoryCreate(id=theirs.id, name="Mine", user_id="u1"))

        db_session.expire_all()
        stored = db_session.get(CategoryDB, theirs.id)
        assert (stored.name, stored.user_id) == ("Food", "u2")
        assert get_categories(db_session, "u1") == []

    def test_create_with_own_id_renames(self, db_session, user):
        category = get_or_create_category_by_name(db_session, "Food", "u1")

        saved = create_category(db_session, CategoryCreate(id=category.id, name="Comida", user_id="u1"))

        assert saved.id == category.id
        assert saved.name == "Comida"

    def test_create_publishes_event(self, db_session, user):
        received = []
        subscribe(ChangeEvent.CATEGORIES_CHANGED, lambda: received.append("categories"))

        get_or_create_category_by_name(db_session, "Lazer", "u1")
        get_or_create_category_by_name(db_session, "lazer", "u1")

        assert received == ["categories"]


class TestRenameCategory:

    def test_rename(self, db_session, user):
        category = get_or_create_category_by_name(db_session, "Travel", "u1")

        renamed = update_category(db_session, category.id, "  Viagem ")

        assert renamed.name == "Viagem"
        assert get_category_by_name(db_session, "viagem", "u1").id == category.id

    def test_rename_to_other_case_of_itself(self, db_session, user):
        category = get_or_create_category_by_name(db_session, "travel", "u1")

        assert update_category(db_session, category.id, "Travel").name == "Travel"

    def test_rename_collision(self, db_session, user):
        get_or_create_category_by_name(db_session, "Food", "u1")
        other = get_or_create_category_by_name(db_session, "Fun", "u1")

        with pytest.raises(ConstraintViolationError):
            update_category(db_session, other.id, "FOOD")

        db_session.expire_all()
        assert db_session.get(CategoryDB, other.id).name == "Fun"

    def test_rename_missing(self, db_session, user):
        assert update_category(db_session, "nope", "Whatever") is None


class TestDeleteCategory:

    def test_delete_without_transactions_table(self, db_session, user):
        category = get_or_create_category_by_name(db_session, "Temp", "u1")

        assert count_category_transactions(db_session, category.id) == 0
        assert get_category_usage_counts(db_session, "u1") == {}
        assert delete_category(db_session, category.id) is True
        assert not table_exists(db_session, "transactions")
        assert get_categories(db_session, "u1") == []

    def test_delete_missing(self, db_session, user):
        assert delete_category(db_session, "nope") is False

    def test_in_use_category_reassign_then_delete(self, db_session, user):
        food = get_or_create_category_by_name(db_session, "Food", "u1")
        misc = get_or_create_category_by_name(db_session, "Misc", "u1")
        for title in ("Lunch", "Dinner"):
            add_transaction(db_session, TransactionCreate(title=title, amount=10, category_id=food.id), user_id="u1")

        with pytest.raises(HasDependentsError) as exc_info:
            delete_category(db_session, food.id)
        assert exc_info.value.count == 2
        assert exc_info.value.category_id == food.id
        assert db_session.get(CategoryDB, food.id) is not None

        assert reassign_category(db_session, food.id, misc.id, "u1") == 2
        assert delete_category(db_session, food.id) is True
        assert get_category_usage_counts(db_session, "u1") == {misc.id: 2}

    def test_usage_counts_per_user(self, db_session, user, other_user):
        food = get_or_create_category_by_name(db_session, "Food", "u1")
        add_transaction(db_session, TransactionCreate(amount=5, category_id=food.id), user_id="u1")
        add_transaction(db_session, TransactionCreate(amount=5, category_name="Food"), user_id="u2")

        assert get_category_usage_counts(db_session, "u1") == {food.id: 1}
        assert list(get_category_usage_counts(db_session, "u2").values()) == [1]
