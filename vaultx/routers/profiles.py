from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Field, Session, SQLModel

from ..core.security import get_current_user, get_profile
from ..database import get_session
from ..models.profile import Profile
from ..models.user import User
from ..services.profiles import ProfileService


router = APIRouter(
    prefix="/api/profiles",
    tags=["profiles"],
)


class ProfileCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    avatar_color: Optional[str] = Field(default=None, max_length=20)


class ProfileUpdate(SQLModel):
    # Empty or missing values keep what is stored
    name: Optional[str] = Field(default=None, max_length=100)
    avatar_color: Optional[str] = Field(default=None, max_length=20)


class ProfileRead(SQLModel):
    id: int
    user_id: int
    name: str
    avatar_color: str
    is_owner: bool
    created_at: datetime


@router.get(
    "",
    response_model=List[ProfileRead],
)
def list_profiles(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return ProfileService(session).list_profiles(current_user.id)


@router.post(
    "",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
)
def create_profile(
    payload: ProfileCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return ProfileService(session).create_profile(current_user.id, payload.name, payload.avatar_color)


@router.get(
    "/{profile_id}",
    response_model=ProfileRead,
)
def get_profile_by_id(profile: Profile = Depends(get_profile)):
    return profile


@router.put(
    "/{profile_id}",
    response_model=ProfileRead,
)
def update_profile(
    profile_id: int,
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return ProfileService(session).update_profile(
        current_user.id, profile_id, name=payload.name, avatar_color=payload.avatar_color
    )


@router.delete(
    "/{profile_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_profile(
    profile_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    ProfileService(session).delete_profile(current_user.id, profile_id)
    return None
