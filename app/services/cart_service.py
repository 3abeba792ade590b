# app/services/cart_service.py
import uuid

from sqlmodel import Session

from app.core.errors import NotFound, ValidationFailed
from app.models.cart import CartItem
from app.repositories.cart_repo import CartRepository
from app.repositories.catalog_repo import CatalogRepository
from app.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartSummary,
)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - only customers use a cart (via router dependency)
      - one line per variant; adding again merges quantities
      - validate variant existence and item stock flag
      - price lines from the current catalog (the order snapshots prices)
    """

    def __init__(self, cart_repo: CartRepository, catalog_repo: CatalogRepository):
        self.cart_repo = cart_repo
        self.catalog_repo = catalog_repo

    # ---- public operations ----

    def get_cart_summary(
        self,
        session: Session,
        customer_id: uuid.UUID,
    ) -> CartSummary:
        """
        Return full cart summary:
          - list of CartItemRead (with line_total)
          - total_quantity
          - total_price
        """
        items = self.cart_repo.list_for_customer(session, customer_id)

        item_reads: list[CartItemRead] = []
        total_qty = 0
        total_price = 0.0

        for it in items:
            variant = self.catalog_repo.get_variant(session, it.variant_id)
            item = self.catalog_repo.get_item(session, it.item_id)
            if variant is None or item is None:
                # Variant removed from the catalog since it was added
                continue
            line_total = round(it.quantity * variant.price, 2)
            total_qty += it.quantity
            total_price += line_total

            item_reads.append(
                CartItemRead(
                    id=it.id,
                    item_id=it.item_id,
                    variant_id=it.variant_id,
                    item_name=item.name,
                    quantity_unit=variant.quantity_unit,
                    price=variant.price,
                    quantity=it.quantity,
                    line_total=line_total,
                )
            )

        return CartSummary(
            items=item_reads,
            total_quantity=total_qty,
            total_price=round(total_price, 2),
        )

    def add_to_cart(
        self,
        session: Session,
        customer_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a variant to the cart, merging with an existing line.
        """
        variant = self.catalog_repo.get_variant(session, payload.variant_id)
        if not variant:
            raise NotFound("Variant not found")
        item = self.catalog_repo.get_item(session, variant.item_id)
        if not item or not item.in_stock:
            raise ValidationFailed("Item is out of stock")

        existing = self.cart_repo.get_item(session, customer_id, variant.id)
        if existing:
            existing.quantity += payload.quantity
            self.cart_repo.save(session, existing)
        else:
            self.cart_repo.save(
                session,
                CartItem(
                    customer_id=customer_id,
                    item_id=item.id,
                    variant_id=variant.id,
                    quantity=payload.quantity,
                ),
            )

        return self.get_cart_summary(session, customer_id)

    def update_quantity(
        self,
        session: Session,
        customer_id: uuid.UUID,
        variant_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Set the quantity of a cart line; zero or less removes it.
        """
        item = self.cart_repo.get_item(session, customer_id, variant_id)
        if not item:
            raise NotFound("Item not in cart")

        if payload.quantity <= 0:
            self.cart_repo.delete(session, item)
        else:
            item.quantity = payload.quantity
            self.cart_repo.save(session, item)

        return self.get_cart_summary(session, customer_id)

    def remove_item(
        self,
        session: Session,
        customer_id: uuid.UUID,
        variant_id: uuid.UUID,
    ) -> CartSummary:
        item = self.cart_repo.get_item(session, customer_id, variant_id)
        if not item:
            raise NotFound("Item not found in cart")

        self.cart_repo.delete(session, item)
        return self.get_cart_summary(session, customer_id)

    def clear_cart(
        self,
        session: Session,
        customer_id: uuid.UUID,
    ) -> CartSummary:
        self.cart_repo.clear_customer_cart(session, customer_id)
        return CartSummary(items=[], total_quantity=0, total_price=0.0)
