# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal["pending", "accepted", "delivered", "cancelled"]


def _strip_or_none(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    return v or None


class OrderCreate(SQLModel):
    """
    Checkout payload. Items come from the customer's cart.

    Customer provides (falls back to the profile when omitted):
      - customer_name
      - customer_phone
      - delivery_address

    Optional:
      - latitude / longitude (both or neither), used for distance

    Backend derives:
      - customer_id from token
      - order_number, delivery_pin
      - status = 'pending'
      - items and total_amount from the cart
    """

    model_config = ConfigDict(extra="forbid")

    customer_name: str | None = Field(default=None, max_length=100)
    customer_phone: str | None = Field(default=None, max_length=20)
    delivery_address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("customer_name", "customer_phone", "delivery_address")
    @classmethod
    def normalize_text(cls, v: str | None) -> str | None:
        return _strip_or_none(v)

    @model_validator(mode="after")
    def coordinates_together(self) -> "OrderCreate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class OrderItemRead(SQLModel):
    """
    Representation of a single order line.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    item_id: uuid.UUID
    variant_id: uuid.UUID
    item_name: str
    quantity_unit: str
    quantity: int
    price: float
    subtotal: float


class OrderRead(SQLModel):
    """
    Full order view including items.

    `delivery_pin` is withheld (None) from delivery staff: they must
    obtain it from the customer at the door.
    """

    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    customer_name: str
    customer_phone: str
    delivery_address: str
    latitude: float | None
    longitude: float | None
    distance_km: float | None
    total_amount: float
    status: OrderStatus
    delivery_pin: str | None
    delivery_boy_id: uuid.UUID | None
    delivered_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead]


class DeliveryAssignment(SQLModel):
    """
    Owner payload to assign (or, with null, unassign) a delivery person.
    """

    model_config = ConfigDict(extra="forbid")

    delivery_person_id: uuid.UUID | None


class DeliveryConfirmation(SQLModel):
    model_config = ConfigDict(extra="forbid")

    pin: str

    @field_validator("pin")
    @classmethod
    def strip_pin(cls, v: str) -> str:
        return v.strip()


class LineQuantity(SQLModel):
    """
    New quantity for one order line. Non-positive values are rejected
    by the service with reason 'validation_failed'.
    """

    order_item_id: uuid.UUID
    quantity: int


class QuantityEdit(SQLModel):
    model_config = ConfigDict(extra="forbid")

    lines: list[LineQuantity]


class QuantityChange(SQLModel):
    order_item_id: uuid.UUID
    item_name: str
    old_quantity: int
    new_quantity: int
    delta: int


class QuantityEditResult(SQLModel):
    order: OrderRead
    changes: list[QuantityChange]


class OrderEventRead(SQLModel):
    """
    One entry of the order change feed.
    """

    id: int
    order_id: uuid.UUID
    order_number: str
    kind: str
    status: OrderStatus
    customer_id: uuid.UUID
    delivery_boy_id: uuid.UUID | None
    payload: dict[str, Any] | None
    created_at: datetime
