from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session, SQLModel

from ..core.security import get_profile
from ..database import get_session
from ..models.profile import Profile
from ..services.dashboard import build_dashboard
from .budgets import BudgetRead, TransactionRead, budget_read
from .goals import GoalRead, goal_read
from .graph import FlowRead, NodeRead


router = APIRouter(
    prefix="/api/profiles/{profile_id}",
    tags=["dashboard"],
)


class DashboardOut(SQLModel):
    total_income: float
    total_expenses: float
    net_surplus: float
    total_assets: float
    nodes: List[NodeRead]
    flows: List[FlowRead]
    budget_summary: List[BudgetRead]
    goal_progress: List[GoalRead]
    recent_activity: List[TransactionRead]


@router.get(
    "/dashboard",
    response_model=DashboardOut,
)
def get_dashboard(
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    data = build_dashboard(session, profile.id)
    return DashboardOut(
        total_income=data.total_income,
        total_expenses=data.total_expenses,
        net_surplus=data.net_surplus,
        total_assets=data.total_assets,
        nodes=[NodeRead.from_node(n) for n in data.nodes],
        flows=[FlowRead.model_validate(f, from_attributes=True) for f in data.flows],
        budget_summary=[budget_read(b, m) for b, m in data.budget_summary],
        goal_progress=[goal_read(g, m) for g, m in data.goal_progress],
        recent_activity=[TransactionRead.model_validate(t, from_attributes=True) for t in data.recent_activity],
    )
