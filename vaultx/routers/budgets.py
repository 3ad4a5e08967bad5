import datetime as dt
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlmodel import Field, Session, SQLModel

from ..core.security import get_profile
from ..database import get_session
from ..models.budget import DEFAULT_BUDGET_COLOR, Budget
from ..models.profile import Profile
from ..services.ledger import BudgetLedger
from ..services.metrics import BudgetMetrics


router = APIRouter(
    prefix="/api/profiles/{profile_id}/budgets",
    tags=["budgets"],
)


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BudgetCreate(SQLModel):
    node_id: Optional[int] = None
    name: str = Field(min_length=1, max_length=100)
    budgeted: float
    period: Literal["weekly", "monthly", "yearly"] = "monthly"
    color: Optional[str] = Field(default=None, max_length=20)


class BudgetUpdate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    budgeted: float
    period: Literal["weekly", "monthly", "yearly"] = "monthly"
    color: str = Field(default=DEFAULT_BUDGET_COLOR, max_length=20)


class BudgetRead(SQLModel):
    id: int
    profile_id: int
    node_id: Optional[int] = None
    name: str
    budgeted: float
    period: str
    color: str
    created_at: dt.datetime
    # Filled on list only; computed for the current calendar month
    spent: Optional[float] = None
    remaining: Optional[float] = None
    percentage: Optional[float] = None


def budget_read(budget: Budget, metrics: Optional[BudgetMetrics] = None) -> BudgetRead:
    out = BudgetRead.model_validate(budget, from_attributes=True)
    if metrics is not None:
        out.spent = metrics.spent
        out.remaining = metrics.remaining
        out.percentage = metrics.percentage
    return out


class TransactionCreate(SQLModel):
    amount: float
    note: Optional[str] = Field(default=None, max_length=255)
    # Defaults to today
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def empty_date(cls, value):
        return blank_to_none(value)


class TransactionRead(SQLModel):
    id: int
    budget_id: int
    amount: float
    note: Optional[str] = None
    date: dt.date
    created_at: dt.datetime


# ─────────────────────────────
#   BUDGETS
# ─────────────────────────────

@router.get(
    "",
    response_model=List[BudgetRead],
)
def list_budgets(
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return [budget_read(b, m) for b, m in BudgetLedger(session).list_with_spend(profile.id)]


@router.post(
    "",
    response_model=BudgetRead,
    status_code=status.HTTP_201_CREATED,
)
def create_budget(
    payload: BudgetCreate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    budget = BudgetLedger(session).create_budget(
        profile.id,
        name=payload.name,
        budgeted=payload.budgeted,
        period=payload.period,
        color=payload.color,
        node_id=payload.node_id,
    )
    return budget_read(budget)


@router.put(
    "/{budget_id}",
    response_model=BudgetRead,
)
def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    budget = BudgetLedger(session).update_budget(
        profile.id,
        budget_id,
        name=payload.name,
        budgeted=payload.budgeted,
        period=payload.period,
        color=payload.color,
    )
    return budget_read(budget)


@router.delete(
    "/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_budget(
    budget_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    BudgetLedger(session).delete_budget(profile.id, budget_id)
    return None


# ─────────────────────────────
#   TRANSACTIONS
# ─────────────────────────────

@router.get(
    "/{budget_id}/transactions",
    response_model=List[TransactionRead],
)
def list_transactions(
    budget_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return BudgetLedger(session).list_transactions(profile.id, budget_id)


@router.post(
    "/{budget_id}/transactions",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    budget_id: int,
    payload: TransactionCreate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return BudgetLedger(session).create_transaction(
        profile.id, budget_id, amount=payload.amount, note=payload.note, on=payload.date
    )


@router.delete(
    "/{budget_id}/transactions/{tx_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_transaction(
    budget_id: int,
    tx_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    BudgetLedger(session).delete_transaction(profile.id, budget_id, tx_id)
    return None
