# app/services/profile_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.errors import Transient, ValidationFailed
from app.core.supabase_client import create_auth_user
from app.models.profile import Profile, ROLE_DELIVERY
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import DeliveryPersonCreate, ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:
    """
    Business logic for Profile.

    Responsibilities:
      - self-service profile edits (role and email stay fixed)
      - owner onboarding of delivery staff via Supabase Auth
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    # ----- Self profile -----

    def update_me(
        self,
        session: Session,
        current: Profile,
        payload: ProfileUpdate,
    ) -> Profile:
        """
        Partial update: full_name, phone, address.
        """
        data = payload.model_dump(exclude_unset=True)
        for field, value in data.items():
            setattr(current, field, value)
        current.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, current)

    # ----- Owner operations -----

    def list_delivery_people(self, session: Session) -> list[Profile]:
        return self.repo.list_by_role(session, ROLE_DELIVERY)

    def create_delivery_person(
        self,
        session: Session,
        payload: DeliveryPersonCreate,
    ) -> Profile:
        """
        Create the Supabase Auth account, then the 'delivery' profile.

        Raises:
            ValidationFailed: email already has a profile, or Supabase
                rejected the account.
            Transient: Supabase could not be reached.
        """
        if self.repo.get_by_email(session, payload.email) is not None:
            raise ValidationFailed("A profile with this email already exists")

        try:
            auth_user_id = create_auth_user(payload.email, payload.password)
        except (ConnectionError, TimeoutError) as exc:
            raise Transient("Identity provider unavailable, please retry") from exc
        except Exception as exc:
            logger.warning("Supabase rejected delivery account %s: %s", payload.email, exc)
            raise ValidationFailed(f"Could not create account: {exc}") from exc

        profile = self.repo.create(
            session,
            Profile(
                id=uuid.UUID(str(auth_user_id)),
                email=payload.email,
                role=ROLE_DELIVERY,
                full_name=payload.full_name,
                phone=payload.phone,
            ),
        )
        logger.info("Delivery profile %s created for %s", profile.id, profile.email)
        return profile
