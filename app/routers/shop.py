# app/routers/shop.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.auth import require_owner
from app.database import get_session
from app.models.profile import Profile
from app.repositories.shop_repo import ShopRepository
from app.schemas.shop import DistanceRead, ShopLocationRead, ShopLocationUpdate
from app.services.shop_service import ShopService

router = APIRouter(prefix="/shop", tags=["Shop"])

service = ShopService(ShopRepository())


@router.get("/location", response_model=ShopLocationRead)
def get_location(session: Session = Depends(get_session)):
    return service.get_location(session)


@router.put("/location", response_model=ShopLocationRead)
def set_location(
    payload: ShopLocationUpdate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_owner),
):
    """
    Create or replace the shop's location (one per owner).
    """
    return service.set_location(session, current, payload)


@router.get("/distance", response_model=DistanceRead)
def check_distance(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    session: Session = Depends(get_session),
):
    """
    Distance from the shop and whether it is inside the delivery radius.
    """
    return service.distance_from_shop(session, latitude, longitude)
