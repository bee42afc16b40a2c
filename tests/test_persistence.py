"""Tests for selection persistence and co-purchase statistics."""

import pytest

from budget_basket.models import CartItem
from budget_basket.persistence.database import DatabaseManager
from budget_basket.persistence.store import SelectionStore
from budget_basket.persistence.tables import ShoppingList, ShoppingListItem


@pytest.fixture
def database(tmp_path):
    db = DatabaseManager(f"sqlite:///{tmp_path / 'store.db'}")
    db.init_db()
    yield db
    db.close()


@pytest.fixture
def store(database):
    return SelectionStore(database)


def _items(*product_ids, price=10.0):
    return [CartItem(product_id=pid, name=f"item {pid}", price=price) for pid in product_ids]


class TestDatabaseManager:
    def test_health_check(self, database):
        assert database.health_check() is True

    def test_init_db_is_idempotent(self, database):
        database.init_db()
        assert database.health_check() is True


class TestSaveSelection:
    def test_returns_list_id(self, store, database):
        list_id = store.save_selection(7, _items(1, 2, price=25.0), 50.0)

        assert list_id is not None
        with database.session_scope() as session:
            saved = session.get(ShoppingList, list_id)
            assert saved.user_id == 7
            assert saved.total_cost == 50.0
            assert sorted(i.product_id for i in saved.items) == [1, 2]

    def test_item_total_uses_quantity(self, store, database):
        item = CartItem(product_id=3, name="Eggs", price=12.5, quantity=4)
        store.save_selection(1, [item], 50.0)

        with database.session_scope() as session:
            row = session.query(ShoppingListItem).one()
            assert row.total_price == 50.0
            assert row.quantity == 4

    def test_ids_increase(self, store):
        first = store.save_selection(1, _items(1), 10.0)
        second = store.save_selection(1, _items(2), 10.0)
        assert second > first

    def test_failed_write_returns_none(self, store, database):
        database.engine.dispose()
        database.SessionLocal.configure(bind=None)
        assert store.save_selection(1, _items(1), 10.0) is None


class TestBudgetItems:
    def test_save_and_read(self, store):
        assert store.save_budget_items(3, 500.0, ["milk", "bread"]) is True
        assert store.budget_items(3) == ["milk", "bread"]

    def test_replaces_previous_items(self, store):
        store.save_budget_items(3, 500.0, ["milk", "bread"])
        store.save_budget_items(3, 300.0, ["tea"])
        assert store.budget_items(3) == ["tea"]

    def test_users_are_independent(self, store):
        store.save_budget_items(1, 100.0, ["milk"])
        store.save_budget_items(2, 100.0, ["coffee"])
        assert store.budget_items(1) == ["milk"]


class TestCoPurchased:
    def test_confidence_over_all_lists(self, store):
        store.save_selection(1, _items(1, 2, 3), 30.0)
        store.save_selection(1, _items(1, 2), 20.0)
        store.save_selection(2, _items(4, 5), 20.0)

        scored = store.co_purchased([1])

        assert [pid for pid, _ in scored] == [2, 3]
        assert scored[0][1] == pytest.approx(2 / 3)
        assert scored[1][1] == pytest.approx(1 / 3)

    def test_min_confidence_is_exclusive(self, store):
        store.save_selection(1, _items(1, 2), 20.0)
        store.save_selection(1, _items(3, 4), 20.0)

        assert store.co_purchased([1], min_confidence=0.5) == []
        assert store.co_purchased([1], min_confidence=0.49) == [(2, 0.5)]

    def test_limit(self, store):
        store.save_selection(1, _items(1, 2, 3, 4, 5, 6, 7), 70.0)
        assert len(store.co_purchased([1], limit=3)) == 3

    def test_anchors_not_returned(self, store):
        store.save_selection(1, _items(1, 2, 3), 30.0)
        assert [pid for pid, _ in store.co_purchased([1, 2])] == [3]

    def test_empty_history(self, store):
        assert store.co_purchased([1]) == []

    def test_empty_input(self, store):
        store.save_selection(1, _items(1, 2), 20.0)
        assert store.co_purchased([]) == []
