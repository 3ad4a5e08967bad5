from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)

    email: str = Field(index=True, unique=True)
    hashed_password: str

    # Naive UTC, as are all timestamps in the schema
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class RefreshToken(SQLModel, table=True):
    __tablename__ = "refresh_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")

    # SHA-256 hex digest; the raw token is never stored
    token_hash: str = Field(index=True, unique=True)
    expires_at: datetime

    created_at: datetime = Field(default_factory=datetime.utcnow)
