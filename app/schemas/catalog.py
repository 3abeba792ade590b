# app/schemas/catalog.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class VariantCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    quantity_unit: str = Field(min_length=1, max_length=30)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)

    @field_validator("quantity_unit")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("quantity_unit cannot be empty")
        return v


class VariantUpdate(SQLModel):
    """
    Partial variant edit (unit, price, stock count). Variants that
    appear in orders are edited this way instead of being deleted.
    """

    model_config = ConfigDict(extra="forbid")

    quantity_unit: str | None = Field(default=None, max_length=30)
    price: float | None = Field(default=None, ge=0)
    stock: int | None = Field(default=None, ge=0)

    @field_validator("price", "stock")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("quantity_unit")
    @classmethod
    def not_blank(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("quantity_unit cannot be empty")
        return v.strip()


class VariantRead(SQLModel):
    id: uuid.UUID
    item_id: uuid.UUID
    quantity_unit: str
    price: float
    stock: int


class ItemCreate(SQLModel):
    """
    Payload for creating an item together with its variants.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    category: str = "Other"
    in_stock: bool = True
    variants: list[VariantCreate]

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("variants")
    @classmethod
    def at_least_one_variant(cls, v: list[VariantCreate]) -> list[VariantCreate]:
        if not v:
            raise ValueError("at least one variant is required")
        return v


class ItemUpdate(SQLModel):
    """
    Partial update; variants are managed through their own endpoints.

    Omitted fields are left alone; explicit nulls are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    category: str | None = None
    in_stock: bool | None = None

    @field_validator("description", "in_stock")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("name", "category")
    @classmethod
    def not_blank(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("field cannot be empty")
        return v.strip()


class ItemRead(SQLModel):
    id: uuid.UUID
    name: str
    description: str
    category: str
    in_stock: bool
    created_at: datetime
    updated_at: datetime
    variants: list[VariantRead]
