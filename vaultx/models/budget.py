import datetime as dt
from typing import Optional

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


BUDGET_PERIODS = ("weekly", "monthly", "yearly")
DEFAULT_BUDGET_COLOR = "#10b981"


class Budget(SQLModel, table=True):
    __tablename__ = "budgets"
    __table_args__ = (
        CheckConstraint("period IN ('weekly', 'monthly', 'yearly')", name="budgets_period_check"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    profile_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    # Linked expense node; removing the node removes the budget
    node_id: Optional[int] = Field(default=None, foreign_key="nodes.id", ondelete="CASCADE")

    name: str
    budgeted: float
    period: str = Field(default="monthly", max_length=10)
    color: str = Field(default=DEFAULT_BUDGET_COLOR)

    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)

    budget_id: int = Field(foreign_key="budgets.id", index=True, ondelete="CASCADE")

    amount: float
    note: Optional[str] = None
    # Calendar day used for period bucketing
    date: dt.date = Field(default_factory=dt.date.today, index=True)

    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
