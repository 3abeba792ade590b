# app/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class CartItem(SQLModel, table=True):
    """
    Shopping cart entry for a customer.
    One customer cannot have 2 rows for the same variant.
    """

    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("customer_id", "variant_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    customer_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    item_id: uuid.UUID = Field(foreign_key="items.id")

    variant_id: uuid.UUID = Field(
        foreign_key="item_variants.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
