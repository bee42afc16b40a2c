"""Tests for greedy bundle selection."""

from budget_basket.engine.selection import SelectionEngine
from conftest import make_product


class TestSelectionEngine:
    def test_worked_example(self, milk_bread_pool):
        selection = SelectionEngine().select(milk_bread_pool, 500, ["milk", "bread"])
        assert [p.price for p in selection] == [40, 30, 60, 50]
        assert sum(p.price for p in selection) == 180

    def test_never_exceeds_budget(self, milk_bread_pool):
        for budget in (0.5, 30, 69, 70, 100, 129, 150, 179, 180, 1000):
            selection = SelectionEngine().select(milk_bread_pool, budget, ["milk", "bread"])
            assert sum(p.price for p in selection) <= budget

    def test_tight_budget_fill_pass(self, milk_bread_pool):
        # 100 - 40 - 30 = 30 left: neither milk@60 nor bread@50 fits
        selection = SelectionEngine().select(milk_bread_pool, 100, ["milk", "bread"])
        assert [p.product_id for p in selection] == [1, 3]

    def test_top_match_over_budget_is_skipped(self):
        pool = [
            make_product(1, "Premium Coffee", 300, weight=1, category="Coffee"),
            make_product(2, "Milk", 40, weight=1, category="Milk"),
        ]
        selection = SelectionEngine().select(pool, 100, ["coffee", "milk"])
        assert [p.product_id for p in selection] == [2]

    def test_unmatched_item_is_skipped(self, milk_bread_pool):
        selection = SelectionEngine().select(milk_bread_pool, 100, ["caviar", "milk"])
        assert selection[0].product_id == 1

    def test_chosen_product_not_reused(self):
        pool = [make_product(1, "Chocolate Milk", 20, weight=1)]
        selection = SelectionEngine().select(pool, 100, ["milk", "chocolate"])
        assert [p.product_id for p in selection] == [1]

    def test_ties_keep_candidate_order(self):
        pool = [
            make_product(1, "Milk A", 50, weight=1, category="Milk"),
            make_product(2, "Milk B", 50, weight=1, category="Milk"),
        ]
        selection = SelectionEngine().select(pool, 50, ["milk"])
        assert [p.product_id for p in selection] == [1]

    def test_order_of_desired_items_matters(self):
        pool = [
            make_product(1, "Milk Bread", 60, weight=1, category="Bread"),
            make_product(2, "Milk", 45, weight=1, category="Milk"),
            make_product(3, "Bread", 40, weight=1, category="Bread"),
        ]
        engine = SelectionEngine()
        first = engine.select(pool, 100, ["bread", "milk"])
        second = engine.select(pool, 100, ["milk", "bread"])
        assert [p.product_id for p in first] != [p.product_id for p in second]

    def test_zero_budget(self, milk_bread_pool):
        assert SelectionEngine().select(milk_bread_pool, 0, ["milk"]) == []

    def test_negative_budget(self, milk_bread_pool):
        assert SelectionEngine().select(milk_bread_pool, -10, ["milk"]) == []

    def test_empty_pool(self):
        assert SelectionEngine().select([], 100, ["milk"]) == []

    def test_pool_not_mutated(self, milk_bread_pool):
        before = list(milk_bread_pool)
        SelectionEngine().select(milk_bread_pool, 500, ["milk", "bread"])
        assert milk_bread_pool == before

    def test_idempotent(self, milk_bread_pool):
        engine = SelectionEngine()
        first = engine.select(milk_bread_pool, 150, ["bread", "milk"])
        second = engine.select(milk_bread_pool, 150, ["bread", "milk"])
        assert first == second
