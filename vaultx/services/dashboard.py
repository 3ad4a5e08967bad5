from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlmodel import Session

from ..models.budget import Budget, Transaction
from ..models.goal import Goal
from ..models.graph import Flow, Node
from .graph import CashFlowGraph
from .ledger import BudgetLedger, GoalLedger
from .metrics import BudgetMetrics, GoalMetrics


ASSET_NODE_TYPES = ("account", "savings", "investment")
SPENDING_NODE_TYPES = ("expense", "budget")
RECENT_ACTIVITY_LIMIT = 10


@dataclass
class Dashboard:
    total_income: float
    total_expenses: float
    net_surplus: float
    total_assets: float
    nodes: List[Node]
    flows: List[Flow]
    budget_summary: List[Tuple[Budget, BudgetMetrics]]
    goal_progress: List[Tuple[Goal, GoalMetrics]]
    recent_activity: List[Transaction]


def build_dashboard(
    session: Session,
    profile_id: int,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Dashboard:
    graph = CashFlowGraph(session)
    budgets = BudgetLedger(session)

    nodes = graph.list_nodes(profile_id)
    total_income = sum(n.amount for n in nodes if n.type == "income")
    total_expenses = sum(n.budgeted for n in nodes if n.type in SPENDING_NODE_TYPES)
    total_assets = sum(n.balance for n in nodes if n.type in ASSET_NODE_TYPES)

    return Dashboard(
        total_income=total_income,
        total_expenses=total_expenses,
        net_surplus=total_income - total_expenses,
        total_assets=total_assets,
        nodes=nodes,
        flows=graph.list_flows(profile_id),
        budget_summary=budgets.list_with_spend(profile_id, today),
        goal_progress=GoalLedger(session).list_goals(profile_id, now),
        recent_activity=budgets.recent_transactions(profile_id, RECENT_ACTIVITY_LIMIT),
    )
