from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


DEFAULT_AVATAR_COLOR = "#10b981"


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")

    name: str
    avatar_color: str = Field(default=DEFAULT_AVATAR_COLOR)
    # Exactly one per user, created with the user and never deleted
    is_owner: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
