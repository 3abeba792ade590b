# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from app.core.auth import require_auth, require_customer, require_owner
from app.core.events import order_feed
from app.database import get_session
from app.models.profile import Profile
from app.repositories.cart_repo import CartRepository
from app.repositories.catalog_repo import CatalogRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.shop_repo import ShopRepository
from app.schemas.order import (
    DeliveryAssignment,
    DeliveryConfirmation,
    OrderCreate,
    OrderEventRead,
    OrderRead,
    OrderStatus,
    QuantityEdit,
    QuantityEditResult,
)
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

service = OrderService(
    OrderRepository(),
    CartRepository(),
    CatalogRepository(),
    ProfileRepository(),
    ShopRepository(),
    order_feed,
)


# -------- Customer endpoints --------


@router.post(
    "/checkout",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
)
def checkout(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    """
    Create a pending order from the current customer's cart.

    Contact fields default to the customer's profile.
    """
    return service.place_order(session, current, payload)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    """
    Delete own order while pending or cancelled.
    """
    service.delete_order(session, current, order_id)


# -------- Role-scoped reads --------


@router.get("", response_model=list[OrderRead])
def list_orders(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
):
    """
    Orders visible to the caller, newest first:

      owner    -> all orders

      customer -> own orders

      delivery -> orders assigned to them
    """
    return service.list_orders(session, current, status_filter, skip, limit)


@router.get("/events", response_model=list[OrderEventRead])
def list_order_events(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
    after: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
):
    """
    Change feed: events with id > `after`, oldest first, scoped like
    GET /orders.
    """
    return service.list_events(session, current, after, limit)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    return service.get_order(session, current, order_id)


# -------- Transitions (role checked per order) --------


@router.post("/{order_id}/accept", response_model=OrderRead)
def accept_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    pending -> accepted. Owner, or the assigned delivery person.
    """
    return service.accept_order(session, current, order_id)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Owner: pending/accepted -> cancelled.
    Customer: own pending order -> cancelled.
    """
    return service.cancel_order(session, current, order_id)


@router.post("/{order_id}/deliver", response_model=OrderRead)
def confirm_delivery(
    order_id: uuid.UUID,
    payload: DeliveryConfirmation,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    accepted -> delivered, after the customer's PIN is verified.
    """
    return service.confirm_delivery(session, current, order_id, payload.pin)


# -------- Owner endpoints --------


@router.put("/{order_id}/delivery-person", response_model=OrderRead)
def assign_delivery_person(
    order_id: uuid.UUID,
    payload: DeliveryAssignment,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_owner),
):
    """
    Assign a delivery person, or clear the assignment with null.
    """
    return service.assign_delivery(session, current, order_id, payload.delivery_person_id)


@router.patch("/{order_id}/items", response_model=QuantityEditResult)
def edit_order_items(
    order_id: uuid.UUID,
    payload: QuantityEdit,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_owner),
):
    """
    Change line quantities; the total is recomputed and the customer
    is notified.
    """
    return service.edit_quantities(session, current, order_id, payload.lines)


@router.post("/{order_id}/sync-total", response_model=OrderRead)
def sync_order_total(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_owner),
):
    return service.sync_total(session, current, order_id)
