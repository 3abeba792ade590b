# app/schemas/shop.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class ShopLocationUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str

    @field_validator("address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("address cannot be empty")
        return v


class ShopLocationRead(SQLModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    latitude: float
    longitude: float
    address: str
    created_at: datetime


class DistanceRead(SQLModel):
    distance_km: float
    deliverable: bool
    radius_km: float
