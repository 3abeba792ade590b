# app/repositories/cart_repo.py
import uuid

from sqlmodel import Session, select

from app.models.cart import CartItem


class CartRepository:

    # Get items for a customer
    def list_for_customer(self, session: Session, customer_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.customer_id == customer_id)
            .order_by(CartItem.created_at)
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, customer_id: uuid.UUID, variant_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.customer_id == customer_id, CartItem.variant_id == variant_id
        )
        return session.exec(stmt).first()

    # CRUD
    def save(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: CartItem) -> None:
        session.delete(item)
        session.commit()

    def clear_customer_cart(
        self, session: Session, customer_id: uuid.UUID, commit: bool = True
    ) -> None:
        """
        Remove every line. Checkout passes commit=False so the cart is
        cleared in the same transaction that creates the order.
        """
        for row in self.list_for_customer(session, customer_id):
            session.delete(row)
        if commit:
            session.commit()
