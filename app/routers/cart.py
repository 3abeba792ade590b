# app/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_customer
from app.database import get_session
from app.models.profile import Profile
from app.repositories.cart_repo import CartRepository
from app.repositories.catalog_repo import CatalogRepository
from app.schemas.cart import CartSummary, CartItemCreate, CartItemUpdate
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

service = CartService(CartRepository(), CatalogRepository())


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    """
    Get current customer's cart summary.

    Auth:
      - Only role='customer' can access.
    """
    return service.get_cart_summary(session, current.id)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    """
    Add a variant to the cart (merges with an existing line).
    """
    return service.add_to_cart(session, current.id, payload)


@router.patch("/{variant_id}", response_model=CartSummary)
def update_cart_item(
    variant_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    """
    Set the quantity of a line; zero removes it.
    """
    return service.update_quantity(
        session=session,
        customer_id=current.id,
        variant_id=variant_id,
        payload=payload,
    )


@router.delete("/{variant_id}", response_model=CartSummary)
def remove_cart_item(
    variant_id: uuid.UUID,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    return service.remove_item(session, current.id, variant_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_customer),
):
    """
    Clear the entire cart.
    """
    return service.clear_cart(session, current.id)
