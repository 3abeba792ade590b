# app/models/catalog.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Item(SQLModel, table=True):
    """
    Catalog entry (e.g. "Basmati Rice").

    Prices live on the variants; an item without variants cannot be
    added to a cart.
    """

    __tablename__ = "items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=100, index=True)
    description: str = Field(default="")

    # Rice | Oil | Pulses | Spices | ...
    category: str = Field(default="Other", index=True)

    in_stock: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class ItemVariant(SQLModel, table=True):
    """
    A purchasable unit/price combination of an item ("1 kg" @ 50.00).
    """

    __tablename__ = "item_variants"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    item_id: uuid.UUID = Field(
        foreign_key="items.id",
        index=True,
    )

    quantity_unit: str = Field(max_length=30)

    price: float = Field(
        ge=0,
        description="Unit price (INR)",
    )

    # Units on hand; informational, checkout does not reserve stock
    stock: int = Field(default=0, ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
