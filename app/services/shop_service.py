# app/services/shop_service.py
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import NotFound
from app.core.geo import distance_km
from app.models.profile import Profile
from app.models.shop import ShopLocation
from app.repositories.shop_repo import ShopRepository
from app.schemas.shop import DistanceRead, ShopLocationUpdate

settings = get_settings()


class ShopService:
    """
    Shop location (one per owner) and delivery-distance checks.
    """

    def __init__(self, repo: ShopRepository):
        self.repo = repo

    def get_location(self, session: Session) -> ShopLocation:
        location = self.repo.get_current(session)
        if location is None:
            raise NotFound("Shop location not set by owner yet")
        return location

    def set_location(
        self,
        session: Session,
        owner: Profile,
        payload: ShopLocationUpdate,
    ) -> ShopLocation:
        """
        Create or replace the owner's location (never a second row).
        """
        location = self.repo.get_for_owner(session, owner.id)
        if location is None:
            location = ShopLocation(owner_id=owner.id, **payload.model_dump())
        else:
            location.latitude = payload.latitude
            location.longitude = payload.longitude
            location.address = payload.address
        return self.repo.save(session, location)

    def distance_from_shop(
        self,
        session: Session,
        latitude: float,
        longitude: float,
    ) -> DistanceRead:
        location = self.get_location(session)
        km = distance_km(location.latitude, location.longitude, latitude, longitude)
        return DistanceRead(
            distance_km=km,
            deliverable=km <= settings.DELIVERY_RADIUS_KM,
            radius_km=settings.DELIVERY_RADIUS_KM,
        )
