import hashlib
import hmac
import os
import secrets

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose.exceptions import ExpiredSignatureError, JWTError
from sqlmodel import Session

from ..config import Settings
from ..database import get_session
from ..models.profile import Profile
from ..models.user import User
from ..services.access import ProfileGate
from .errors import Unauthorized
from .jwt import decode_access_token


ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 100_000
SALT_BYTES = 16
REFRESH_TOKEN_BYTES = 32


def _pbkdf2_hash(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = _pbkdf2_hash(password, salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt_hex, hash_hex = stored.strip().split("$")
        if algorithm != ALGORITHM:
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
        candidate = _pbkdf2_hash(password, salt, int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(candidate, expected)


def generate_refresh_token() -> str:
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:
    if not token:
        raise Unauthorized("Not authenticated")

    try:
        payload = decode_access_token(token, settings)
    except ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except JWTError:
        raise Unauthorized("Invalid token")

    sub = payload.get("sub")
    if sub is None:
        raise Unauthorized("Invalid token: missing subject")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise Unauthorized("Invalid token: bad subject format")

    user = session.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")
    return user


def get_profile(
    profile_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Profile:
    """Resolve the `{profile_id}` path segment to a profile the caller owns."""
    return ProfileGate(session).profile_for(current_user.id, profile_id)
