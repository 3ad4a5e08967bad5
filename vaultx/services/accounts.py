"""Registration, login and the refresh-token rotation."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..config import Settings
from ..core.errors import Conflict, InvalidInput, Unauthorized
from ..core.jwt import create_access_token
from ..core.security import generate_refresh_token, hash_password, hash_refresh_token, verify_password
from ..database import atomic
from ..models.profile import DEFAULT_AVATAR_COLOR, Profile
from ..models.user import RefreshToken, User


log = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass
class AuthResult:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User
    profiles: List[Profile] = field(default_factory=list)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings

    def register(self, email: str, password: str, name: str) -> AuthResult:
        email_norm = normalize_email(email)
        if not email_norm or not password or not name.strip():
            raise InvalidInput("email, password, and name are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

        existing = self.session.exec(select(User).where(User.email == email_norm)).first()
        if existing is not None:
            raise Conflict("Email already registered")

        now = datetime.utcnow()
        user = User(
            email=email_norm,
            hashed_password=hash_password(password, self.settings.password_hash_iterations),
            created_at=now,
            updated_at=now,
        )
        try:
            with atomic(self.session):
                self.session.add(user)
                self.session.flush()
                self.session.add(
                    Profile(user_id=user.id, name=name.strip(), avatar_color=DEFAULT_AVATAR_COLOR, is_owner=True)
                )
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            raise Conflict("Email already registered")

        self.session.refresh(user)
        log.info("user_registered", user_id=user.id)
        return self._issue(user)

    def authenticate(self, email: str, password: str) -> User:
        user = self.session.exec(select(User).where(User.email == normalize_email(email))).first()
        if user is None or not verify_password(password, user.hashed_password):
            log.info("login_failed")
            raise Unauthorized("Invalid email or password")
        return user

    def login(self, email: str, password: str) -> AuthResult:
        return self._issue(self.authenticate(email, password))

    def refresh(self, refresh_token: str) -> AuthResult:
        """Redeem a refresh token exactly once and hand out a new pair."""
        token_hash = hash_refresh_token(refresh_token)
        stored = self.session.exec(
            select(RefreshToken).where(
                RefreshToken.token_hash == token_hash,
                RefreshToken.expires_at > datetime.utcnow(),
            )
        ).first()
        if stored is None:
            log.info("refresh_rejected")
            raise Unauthorized("Invalid refresh token")
        user_id = stored.user_id

        with atomic(self.session):
            # Conditional delete: only one redemption can remove the row
            result = self.session.exec(delete(RefreshToken).where(RefreshToken.token_hash == token_hash))
            if result.rowcount != 1:
                raise Unauthorized("Invalid refresh token")
            user = self.session.get(User, user_id)
            if user is None:
                raise Unauthorized("User not found")
            issued = self._issue(user, commit=False)
        return issued

    def logout(self, refresh_token: str) -> None:
        with atomic(self.session):
            self.session.exec(
                delete(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(refresh_token))
            )

    def _issue(self, user: User, commit: bool = True) -> AuthResult:
        access_token = create_access_token({"sub": str(user.id), "email": user.email}, self.settings)
        refresh_token = generate_refresh_token()
        now = datetime.utcnow()
        # Expired tokens of this user are swept on every issue
        self.session.exec(
            delete(RefreshToken).where(RefreshToken.user_id == user.id, RefreshToken.expires_at <= now)
        )
        self.session.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_refresh_token(refresh_token),
                expires_at=now + timedelta(days=self.settings.refresh_token_expire_days),
            )
        )
        if commit:
            self.session.commit()

        profiles = list(
            self.session.exec(
                select(Profile).where(Profile.user_id == user.id).order_by(Profile.is_owner.desc(), Profile.name)
            ).all()
        )
        return AuthResult(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.settings.access_token_expire_minutes * 60,
            user=user,
            profiles=profiles,
        )
