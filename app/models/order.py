# app/models/order.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED, STATUS_DELIVERED, STATUS_CANCELLED)
TERMINAL_STATUSES = (STATUS_DELIVERED, STATUS_CANCELLED)


class Order(SQLModel, table=True):
    """
    One customer purchase request.

    Invariants:
      - total_amount == sum(order_items.subtotal)
      - delivery_boy_id is NULL whenever status == 'cancelled'
      - delivered orders are never mutated
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    # ORD<epoch millis>; unique within a process only
    order_number: str = Field(unique=True, index=True)

    customer_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )
    customer_name: str
    customer_phone: str

    delivery_address: str
    latitude: float | None = None
    longitude: float | None = None
    distance_km: float | None = None

    total_amount: float = Field(ge=0)

    # pending | accepted | delivered | cancelled
    status: str = Field(
        default=STATUS_PENDING,
        index=True,
        description="Order status lifecycle",
    )

    delivery_pin: str | None = Field(default=None, max_length=6)

    delivery_boy_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="profiles.id",
        index=True,
    )

    # Who confirmed the handoff: the assignee, or the owner fallback
    delivered_by: uuid.UUID | None = Field(default=None, foreign_key="profiles.id")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Frozen snapshot of an item variant at order time.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    item_id: uuid.UUID = Field(foreign_key="items.id")
    variant_id: uuid.UUID = Field(foreign_key="item_variants.id", index=True)

    item_name: str
    quantity_unit: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )
    price: float = Field(ge=0)
    subtotal: float = Field(ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderEvent(SQLModel, table=True):
    """
    Append-only change feed for orders.

    `id` is the feed sequence: commit order per database, so readers
    paging with `after=<last seen id>` never go back in time.
    """

    __tablename__ = "order_events"

    id: int | None = Field(default=None, primary_key=True)

    # No FK: events outlive deleted orders
    order_id: uuid.UUID = Field(index=True)
    order_number: str

    # created | accepted | cancelled | deleted | assigned | delivered
    # | quantities_changed | total_synced
    kind: str
    status: str

    customer_id: uuid.UUID = Field(index=True)
    delivery_boy_id: uuid.UUID | None = Field(default=None, index=True)

    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
