# app/repositories/shop_repo.py
import uuid

from sqlmodel import Session, select

from app.models.shop import ShopLocation


class ShopRepository:

    def get_for_owner(self, session: Session, owner_id: uuid.UUID) -> ShopLocation | None:
        stmt = select(ShopLocation).where(ShopLocation.owner_id == owner_id)
        return session.exec(stmt).first()

    def get_current(self, session: Session) -> ShopLocation | None:
        """Most recently set location (single-shop deployment)."""
        stmt = select(ShopLocation).order_by(ShopLocation.created_at.desc())
        return session.exec(stmt).first()

    def save(self, session: Session, location: ShopLocation) -> ShopLocation:
        session.add(location)
        session.commit()
        session.refresh(location)
        return location
