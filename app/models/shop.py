# app/models/shop.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class ShopLocation(SQLModel, table=True):
    """
    GPS position of the shop, used only for delivery distance.

    At most one row per owner (unique owner_id).
    """

    __tablename__ = "shop_location"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    owner_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        unique=True,
        index=True,
    )

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
