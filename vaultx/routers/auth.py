from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import EmailStr
from sqlmodel import Field, Session, SQLModel

from ..config import Settings
from ..core.jwt import create_access_token
from ..core.security import get_current_user, get_settings
from ..database import get_session
from ..models.user import User
from ..services.accounts import AccountService, AuthResult
from .profiles import ProfileRead


router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)


class RegisterIn(SQLModel):
    email: EmailStr
    password: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)


class LoginIn(SQLModel):
    email: EmailStr
    password: str


class RefreshIn(SQLModel):
    refresh_token: str = Field(min_length=1)


class UserRead(SQLModel):
    id: int
    email: str
    created_at: datetime
    updated_at: datetime


class TokenOut(SQLModel):
    access_token: str
    token_type: str = "bearer"


class AuthOut(SQLModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
    profiles: List[ProfileRead]


def _auth_out(result: AuthResult) -> AuthOut:
    return AuthOut(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=result.expires_in,
        user=UserRead.model_validate(result.user, from_attributes=True),
        profiles=[ProfileRead.model_validate(p, from_attributes=True) for p in result.profiles],
    )


@router.post(
    "/register",
    response_model=AuthOut,
    status_code=status.HTTP_201_CREATED,
)
def register_user(
    payload: RegisterIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    result = AccountService(session, settings).register(payload.email, payload.password, payload.name)
    return _auth_out(result)


@router.post(
    "/login",
    response_model=AuthOut,
    status_code=status.HTTP_200_OK,
)
def login(
    payload: LoginIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    result = AccountService(session, settings).login(payload.email, payload.password)
    return _auth_out(result)


@router.post(
    "/refresh",
    response_model=AuthOut,
    status_code=status.HTTP_200_OK,
)
def refresh(
    payload: RefreshIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    result = AccountService(session, settings).refresh(payload.refresh_token)
    return _auth_out(result)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
)
def logout(
    payload: RefreshIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    AccountService(session, settings).logout(payload.refresh_token)
    return None


@router.get(
    "/me",
    response_model=UserRead,
    status_code=status.HTTP_200_OK,
)
def me(current_user: User = Depends(get_current_user)):
    return UserRead(
        id=current_user.id,
        email=current_user.email,
        created_at=current_user.created_at,
        updated_at=current_user.updated_at,
    )


@router.post(
    "/token",
    response_model=TokenOut,
    status_code=status.HTTP_200_OK,
)
def token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    # OAuth2 password form used by the OpenAPI "Authorize" dialog; username carries the email
    user = AccountService(session, settings).authenticate(form_data.username, form_data.password)
    access_token = create_access_token({"sub": str(user.id), "email": user.email}, settings)
    return TokenOut(access_token=access_token)
