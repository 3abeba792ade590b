# app/schemas/cart.py
import uuid

from sqlmodel import SQLModel, Field


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart. Quantity merges into an existing line
    for the same variant.
    """

    variant_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line.
    Zero or negative removes the line.
    """

    quantity: int


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, priced from the current catalog.
    """

    id: uuid.UUID
    item_id: uuid.UUID
    variant_id: uuid.UUID
    item_name: str
    quantity_unit: str
    price: float
    quantity: int
    line_total: float


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartItemRead]
    total_quantity: int
    total_price: float
