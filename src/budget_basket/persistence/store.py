"""Selection persistence and purchase-history queries."""

from __future__ import annotations

from collections import Counter

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from budget_basket.models import CartItem
from budget_basket.persistence.database import DatabaseManager
from budget_basket.persistence.tables import BudgetItem, ShoppingList, ShoppingListItem

logger = structlog.get_logger(__name__)


class SelectionStore:
    """Saves finalized selections and answers co-purchase questions."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def save_selection(
        self,
        user_id: int,
        items: list[CartItem],
        total_cost: float,
    ) -> int | None:
        """Persist a shopping list and its items.

        Returns the new list id, or ``None`` if the write failed.  Failed
        writes are not retried.
        """
        try:
            with self._db.session_scope() as session:
                shopping_list = ShoppingList(user_id=user_id, total_cost=total_cost)
                shopping_list.items = [
                    ShoppingListItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        total_price=item.price * item.quantity,
                    )
                    for item in items
                ]
                session.add(shopping_list)
                session.flush()
                list_id = shopping_list.id
        except SQLAlchemyError as exc:
            logger.error("save_selection_failed", user_id=user_id, error=str(exc))
            return None

        logger.info(
            "selection_saved",
            user_id=user_id,
            list_id=list_id,
            items=len(items),
            total_cost=total_cost,
        )
        return list_id

    def save_budget_items(self, user_id: int, budget: float, items: list[str]) -> bool:
        """Replace the user's recorded budget items."""
        try:
            with self._db.session_scope() as session:
                session.execute(delete(BudgetItem).where(BudgetItem.user_id == user_id))
                session.add_all(
                    BudgetItem(user_id=user_id, budget=budget, item_name=item, quantity=1)
                    for item in items
                )
        except SQLAlchemyError as exc:
            logger.error("save_budget_items_failed", user_id=user_id, error=str(exc))
            return False

        logger.info("budget_items_saved", user_id=user_id, budget=budget, items=len(items))
        return True

    def budget_items(self, user_id: int) -> list[str]:
        with self._db.session_scope() as session:
            rows = session.scalars(
                select(BudgetItem.item_name)
                .where(BudgetItem.user_id == user_id)
                .order_by(BudgetItem.id)
            )
            return list(rows)

    def co_purchased(
        self,
        product_ids: list[int],
        min_confidence: float = 0.1,
        limit: int = 5,
    ) -> list[tuple[int, float]]:
        """Products bought in the same lists as any of *product_ids*.

        Confidence is the number of co-occurrences divided by the total
        number of shopping lists.  Results with confidence at or below
        *min_confidence* are dropped; the rest are ordered by confidence
        (ties keep first-seen order).
        """
        if not product_ids:
            return []

        wanted = set(product_ids)
        with self._db.session_scope() as session:
            total_lists = session.scalar(select(func.count(ShoppingList.id))) or 0
            if total_lists == 0:
                return []

            list_ids = select(ShoppingListItem.list_id).where(
                ShoppingListItem.product_id.in_(wanted)
            )
            rows = session.execute(
                select(ShoppingListItem.list_id, ShoppingListItem.product_id)
                .where(ShoppingListItem.list_id.in_(list_ids))
                .order_by(ShoppingListItem.id)
            ).all()

        # One co-occurrence per (anchor item, other item) pair within a list
        anchors: Counter[int] = Counter()
        for list_id, product_id in rows:
            if product_id in wanted:
                anchors[list_id] += 1

        counts: Counter[int] = Counter()
        for list_id, product_id in rows:
            if product_id not in wanted:
                counts[product_id] += anchors[list_id]

        scored = [
            (product_id, count / total_lists)
            for product_id, count in counts.most_common()
            if count / total_lists > min_confidence
        ]
        return scored[:limit]
