# app/schemas/profile.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

Role = Literal["owner", "customer", "delivery"]


class ProfileRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str
    role: Role
    full_name: str
    phone: str
    address: str | None
    created_at: datetime


class ProfileUpdate(SQLModel):
    """
    Partial profile update for authenticated users.

    Email and role are not editable.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    address: str | None = None

    @field_validator("full_name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("full_name cannot be empty")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: str | None) -> str:
        # Column is NOT NULL; clear it with ""
        if v is None:
            raise ValueError("phone cannot be null")
        return v.strip()

    @field_validator("address")
    @classmethod
    def strip_address(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip()


class DeliveryPersonCreate(SQLModel):
    """
    Owner payload for onboarding a delivery person.

    Creates the Supabase Auth account and the 'delivery' profile.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(max_length=100)
    phone: str = Field(max_length=20)

    @field_validator("full_name", "phone")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v
