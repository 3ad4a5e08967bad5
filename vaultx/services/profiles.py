from typing import List, Optional

import structlog
from sqlmodel import Session, select

from ..core.errors import Forbidden
from ..database import atomic
from ..models.profile import DEFAULT_AVATAR_COLOR, Profile
from .access import ProfileGate


log = structlog.get_logger(__name__)


class ProfileService:
    def __init__(self, session: Session):
        self.session = session
        self.gate = ProfileGate(session)

    def list_profiles(self, user_id: int) -> List[Profile]:
        stmt = (
            select(Profile)
            .where(Profile.user_id == user_id)
            .order_by(Profile.is_owner.desc(), Profile.name)
        )
        return list(self.session.exec(stmt).all())

    def create_profile(self, user_id: int, name: str, avatar_color: Optional[str] = None) -> Profile:
        profile = Profile(
            user_id=user_id,
            name=name,
            avatar_color=avatar_color or DEFAULT_AVATAR_COLOR,
            is_owner=False,
        )
        with atomic(self.session):
            self.session.add(profile)
        self.session.refresh(profile)
        return profile

    def update_profile(
        self,
        user_id: int,
        profile_id: int,
        name: Optional[str] = None,
        avatar_color: Optional[str] = None,
    ) -> Profile:
        """Blank fields leave the stored value untouched."""
        profile = self.gate.profile_for(user_id, profile_id)
        if name:
            profile.name = name
        if avatar_color:
            profile.avatar_color = avatar_color
        with atomic(self.session):
            self.session.add(profile)
        self.session.refresh(profile)
        return profile

    def delete_profile(self, user_id: int, profile_id: int) -> None:
        profile = self.gate.profile_for(user_id, profile_id)
        if profile.is_owner:
            raise Forbidden("Cannot delete owner profile")
        # Nodes, flows, budgets, goals and their ledgers go by store cascade
        with atomic(self.session):
            self.session.delete(profile)
        log.info("profile_deleted", user_id=user_id, profile_id=profile_id)
