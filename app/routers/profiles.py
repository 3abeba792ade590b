# app/routers/profiles.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_auth, require_owner
from app.database import get_session
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import DeliveryPersonCreate, ProfileRead, ProfileUpdate
from app.services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["Profiles"])

service = ProfileService(ProfileRepository())


# -------- Self profile --------


@router.get("/me", response_model=ProfileRead)
def read_me(current: Profile = Depends(require_auth)):
    """
    Return the caller's profile (auto-created as customer on first call).
    """
    return current


@router.patch("/me", response_model=ProfileRead)
def update_me(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Update name, phone and default delivery address.
    """
    return service.update_me(session, current, payload)


# -------- Owner: delivery staff --------


@router.get(
    "/delivery",
    response_model=list[ProfileRead],
    dependencies=[Depends(require_owner)],
)
def list_delivery_people(session: Session = Depends(get_session)):
    return service.list_delivery_people(session)


@router.post(
    "/delivery",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_owner)],
)
def create_delivery_person(
    payload: DeliveryPersonCreate,
    session: Session = Depends(get_session),
):
    """
    Create a Supabase Auth account and a 'delivery' profile for it.
    """
    return service.create_delivery_person(session, payload)
