# app/repositories/catalog_repo.py
import uuid

from sqlalchemy import delete
from sqlmodel import Session, select

from app.models.cart import CartItem
from app.models.catalog import Item, ItemVariant
from app.models.order import OrderItem


class CatalogRepository:
    """
    Data access layer for Item & ItemVariant.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Items -----

    def get_item(self, session: Session, item_id: uuid.UUID) -> Item | None:
        return session.get(Item, item_id)

    def list_items(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_in_stock: bool = False,
        category: str | None = None,
    ) -> list[Item]:
        stmt = select(Item)
        if only_in_stock:
            stmt = stmt.where(Item.in_stock == True)  # noqa: E712
        if category:
            stmt = stmt.where(Item.category == category)
        stmt = stmt.order_by(Item.name).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def save_item(self, session: Session, item: Item) -> Item:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    # ----- Variants -----

    def get_variant(self, session: Session, variant_id: uuid.UUID) -> ItemVariant | None:
        return session.get(ItemVariant, variant_id)

    def list_variants(self, session: Session, item_id: uuid.UUID) -> list[ItemVariant]:
        stmt = (
            select(ItemVariant)
            .where(ItemVariant.item_id == item_id)
            .order_by(ItemVariant.price)
        )
        return session.exec(stmt).all()

    def list_variants_for_items(
        self,
        session: Session,
        item_ids: list[uuid.UUID],
    ) -> list[ItemVariant]:
        if not item_ids:
            return []
        stmt = select(ItemVariant).where(ItemVariant.item_id.in_(item_ids))
        return session.exec(stmt).all()

    def save_variant(self, session: Session, variant: ItemVariant) -> ItemVariant:
        session.add(variant)
        session.commit()
        session.refresh(variant)
        return variant

    def delete_variant(self, session: Session, variant: ItemVariant) -> None:
        """Remove the variant and any cart lines still holding it."""
        session.exec(  # type: ignore[call-overload]
            delete(CartItem).where(CartItem.variant_id == variant.id)
        )
        session.delete(variant)
        session.commit()

    def variant_is_referenced(self, session: Session, variant_id: uuid.UUID) -> bool:
        """True if any historical order line points at this variant."""
        stmt = select(OrderItem.id).where(OrderItem.variant_id == variant_id).limit(1)
        return session.exec(stmt).first() is not None

    def item_is_referenced(self, session: Session, item_id: uuid.UUID) -> bool:
        stmt = select(OrderItem.id).where(OrderItem.item_id == item_id).limit(1)
        return session.exec(stmt).first() is not None

    def delete_item(self, session: Session, item: Item) -> None:
        """
        Remove an item with its variants and the cart lines pointing at
        them. Callers check `item_is_referenced` first.
        """
        session.exec(  # type: ignore[call-overload]
            delete(CartItem).where(CartItem.item_id == item.id)
        )
        session.exec(  # type: ignore[call-overload]
            delete(ItemVariant).where(ItemVariant.item_id == item.id)
        )
        session.delete(item)
        session.commit()
