import datetime as dt
from typing import Optional

from sqlmodel import SQLModel, Field


DEFAULT_GOAL_COLOR = "#a855f7"


class Goal(SQLModel, table=True):
    __tablename__ = "goals"

    id: Optional[int] = Field(default=None, primary_key=True)

    profile_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    # Companion node of type "goal"; survives as NULL when the node is deleted
    node_id: Optional[int] = Field(default=None, foreign_key="nodes.id", ondelete="SET NULL")

    name: str
    target: float
    # Always the sum of this goal's contributions; only changed by atomic increments
    current: float = Field(default=0)
    deadline: Optional[dt.date] = None
    priority: int = Field(default=0)
    color: str = Field(default=DEFAULT_GOAL_COLOR)

    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)


class GoalTransaction(SQLModel, table=True):
    __tablename__ = "goal_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)

    goal_id: int = Field(foreign_key="goals.id", index=True, ondelete="CASCADE")

    amount: float
    note: Optional[str] = None
    date: dt.date = Field(default_factory=dt.date.today, index=True)

    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
