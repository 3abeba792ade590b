# app/routers/catalog.py
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from app.core.auth import require_owner
from app.database import get_session
from app.repositories.catalog_repo import CatalogRepository
from app.schemas.catalog import (
    ItemCreate,
    ItemRead,
    ItemUpdate,
    VariantCreate,
    VariantUpdate,
)
from app.services.catalog_service import CatalogService

router = APIRouter(prefix="/catalog", tags=["Catalog"])

service = CatalogService(CatalogRepository())


# -------- Public endpoints --------


@router.get("/items", response_model=list[ItemRead])
def list_items(
    session: Session = Depends(get_session),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    only_in_stock: bool = False,
    category: str | None = None,
):
    """
    List items with their variants (cheapest first).
    """
    return service.list_items(session, skip, limit, only_in_stock, category)


@router.get("/items/{item_id}", response_model=ItemRead)
def get_item(item_id: uuid.UUID, session: Session = Depends(get_session)):
    return service.get_item(session, item_id)


# -------- Owner endpoints --------


@router.post(
    "/items",
    response_model=ItemRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_owner)],
)
def create_item(payload: ItemCreate, session: Session = Depends(get_session)):
    """
    Create an item together with at least one variant.
    """
    return service.create_item(session, payload)


@router.patch(
    "/items/{item_id}",
    response_model=ItemRead,
    dependencies=[Depends(require_owner)],
)
def update_item(
    item_id: uuid.UUID,
    payload: ItemUpdate,
    session: Session = Depends(get_session),
):
    """
    Partial update (name, description, category, in_stock).
    """
    return service.update_item(session, item_id, payload)


@router.delete(
    "/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_owner)],
)
def delete_item(item_id: uuid.UUID, session: Session = Depends(get_session)):
    """
    Delete an item with its variants. Refused with 409 once ordered.
    """
    service.delete_item(session, item_id)


@router.post(
    "/items/{item_id}/variants",
    response_model=ItemRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_owner)],
)
def add_variant(
    item_id: uuid.UUID,
    payload: VariantCreate,
    session: Session = Depends(get_session),
):
    return service.add_variant(session, item_id, payload)


@router.patch(
    "/items/{item_id}/variants/{variant_id}",
    response_model=ItemRead,
    dependencies=[Depends(require_owner)],
)
def update_variant(
    item_id: uuid.UUID,
    variant_id: uuid.UUID,
    payload: VariantUpdate,
    session: Session = Depends(get_session),
):
    """
    Edit a variant's unit, price or stock.
    """
    return service.update_variant(session, item_id, variant_id, payload)


@router.delete(
    "/items/{item_id}/variants/{variant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_owner)],
)
def delete_variant(
    item_id: uuid.UUID,
    variant_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a variant. Refused with 409 while order lines reference it.
    """
    service.delete_variant(session, item_id, variant_id)
