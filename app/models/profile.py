# app/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

ROLE_OWNER = "owner"
ROLE_CUSTOMER = "customer"
ROLE_DELIVERY = "delivery"
ROLES = (ROLE_OWNER, ROLE_CUSTOMER, ROLE_DELIVERY)


class Profile(SQLModel, table=True):
    """
    Person record for the shop.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "owner" | "customer" | "delivery"
      - fixed at creation; there is no role-change operation.

    Passwords live in Supabase Auth; this table only mirrors identity,
    contact details and the application role.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    role: str = Field(
        default=ROLE_CUSTOMER,
        index=True,
        description="Application role: owner | customer | delivery",
    )

    full_name: str = Field(max_length=100)
    phone: str = Field(default="", max_length=20)
    address: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
