import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlmodel import Field, Session, SQLModel

from ..core.security import get_profile
from ..database import get_session
from ..models.goal import DEFAULT_GOAL_COLOR, Goal
from ..models.profile import Profile
from ..services.ledger import GoalLedger
from ..services.metrics import GoalMetrics, goal_metrics
from .budgets import blank_to_none


router = APIRouter(
    prefix="/api/profiles/{profile_id}/goals",
    tags=["goals"],
)


class GoalCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    target: float
    current: float = 0
    deadline: Optional[dt.date] = None
    priority: int = 0
    color: Optional[str] = Field(default=None, max_length=20)

    @field_validator("deadline", mode="before")
    @classmethod
    def empty_deadline(cls, value):
        return blank_to_none(value)


class GoalUpdate(GoalCreate):
    color: str = Field(default=DEFAULT_GOAL_COLOR, max_length=20)


class GoalRead(SQLModel):
    id: int
    profile_id: int
    node_id: Optional[int] = None
    name: str
    target: float
    current: float
    deadline: Optional[dt.date] = None
    priority: int
    color: str
    created_at: dt.datetime
    percentage: float = 0
    days_remaining: Optional[int] = None
    monthly_needed: Optional[float] = None


def goal_read(goal: Goal, metrics: Optional[GoalMetrics] = None) -> GoalRead:
    if metrics is None:
        metrics = goal_metrics(goal.target, goal.current, goal.deadline, dt.datetime.utcnow())
    out = GoalRead.model_validate(goal, from_attributes=True)
    out.percentage = metrics.percentage
    out.days_remaining = metrics.days_remaining
    out.monthly_needed = metrics.monthly_needed
    return out


class GoalTransactionCreate(SQLModel):
    amount: float
    note: Optional[str] = Field(default=None, max_length=255)
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def empty_date(cls, value):
        return blank_to_none(value)


class GoalTransactionRead(SQLModel):
    id: int
    goal_id: int
    amount: float
    note: Optional[str] = None
    date: dt.date
    created_at: dt.datetime


# ─────────────────────────────
#   GOALS
# ─────────────────────────────

@router.get(
    "",
    response_model=List[GoalRead],
)
def list_goals(
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return [goal_read(g, m) for g, m in GoalLedger(session).list_goals(profile.id)]


@router.post(
    "",
    response_model=GoalRead,
    status_code=status.HTTP_201_CREATED,
)
def create_goal(
    payload: GoalCreate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    goal = GoalLedger(session).create_goal(
        profile.id,
        name=payload.name,
        target=payload.target,
        current=payload.current,
        deadline=payload.deadline,
        priority=payload.priority,
        color=payload.color,
    )
    return goal_read(goal)


@router.put(
    "/{goal_id}",
    response_model=GoalRead,
)
def update_goal(
    goal_id: int,
    payload: GoalUpdate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    goal = GoalLedger(session).update_goal(
        profile.id,
        goal_id,
        name=payload.name,
        target=payload.target,
        current=payload.current,
        deadline=payload.deadline,
        priority=payload.priority,
        color=payload.color,
    )
    return goal_read(goal)


@router.delete(
    "/{goal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_goal(
    goal_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    GoalLedger(session).delete_goal(profile.id, goal_id)
    return None


# ─────────────────────────────
#   CONTRIBUTIONS
# ─────────────────────────────

@router.get(
    "/{goal_id}/transactions",
    response_model=List[GoalTransactionRead],
)
def list_goal_transactions(
    goal_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return GoalLedger(session).list_transactions(profile.id, goal_id)


@router.post(
    "/{goal_id}/transactions",
    response_model=GoalTransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_goal_transaction(
    goal_id: int,
    payload: GoalTransactionCreate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return GoalLedger(session).create_transaction(
        profile.id, goal_id, amount=payload.amount, note=payload.note, on=payload.date
    )


@router.delete(
    "/{goal_id}/transactions/{tx_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_goal_transaction(
    goal_id: int,
    tx_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    GoalLedger(session).delete_transaction(profile.id, goal_id, tx_id)
    return None
