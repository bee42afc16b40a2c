"""SQLAlchemy ORM tables for finalized selections.

Tables:
- shopping_lists: one row per finalized selection
- shopping_list_items: the products of each list
- budget_items: the desired items a user last budgeted for
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ShoppingList(Base):
    """A finalized selection saved by a user."""

    __tablename__ = "shopping_lists"
    __table_args__ = (Index("idx_shopping_lists_user", "user_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    total_cost = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    items = relationship("ShoppingListItem", back_populates="shopping_list", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ShoppingList {self.id} user={self.user_id} total={self.total_cost}>"


class ShoppingListItem(Base):
    """One product line of a shopping list."""

    __tablename__ = "shopping_list_items"
    __table_args__ = (
        Index("idx_list_items_list", "list_id"),
        Index("idx_list_items_product", "product_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    list_id = Column(Integer, ForeignKey("shopping_lists.id"), nullable=False)
    product_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    total_price = Column(Float, nullable=False)

    shopping_list = relationship("ShoppingList", back_populates="items")

    def __repr__(self):
        return f"<ShoppingListItem list={self.list_id} product={self.product_id}>"


class BudgetItem(Base):
    """A desired item recorded alongside the budget it was planned with."""

    __tablename__ = "budget_items"
    __table_args__ = (Index("idx_budget_items_user", "user_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    budget = Column(Float, nullable=False)
    item_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<BudgetItem {self.item_name} user={self.user_id}>"
