"""Budget and goal ledgers.

Budget spending is never stored: it is summed from the transactions on every
read. Goal progress is stored in ``goals.current`` and kept equal to the sum
of the goal's contributions by adjusting it in the same atomic unit as every
contribution insert or delete, always with an in-database increment.
"""
from datetime import date, datetime
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import and_, delete, func, update
from sqlmodel import Session, select

from ..core.errors import InvalidInput, NotFound
from ..database import atomic
from ..models.budget import BUDGET_PERIODS, DEFAULT_BUDGET_COLOR, Budget, Transaction
from ..models.goal import DEFAULT_GOAL_COLOR, Goal, GoalTransaction
from ..models.graph import Node
from .access import ProfileGate
from .metrics import BudgetMetrics, GoalMetrics, budget_metrics, current_period, goal_metrics


log = structlog.get_logger(__name__)

LEDGER_PAGE_SIZE = 100
OPENING_BALANCE_NOTE = "Opening balance"
ADJUSTMENT_NOTE = "Balance adjustment"


def _check_period(period: str) -> str:
    if period not in BUDGET_PERIODS:
        raise InvalidInput("period must be one of: " + ", ".join(BUDGET_PERIODS))
    return period


class BudgetLedger:
    def __init__(self, session: Session):
        self.session = session
        self.gate = ProfileGate(session)

    # ---- budgets ----

    def list_with_spend(self, profile_id: int, today: Optional[date] = None) -> List[Tuple[Budget, BudgetMetrics]]:
        """Every budget of the profile with what was spent in the current month."""
        start, end = current_period(today or date.today())
        spent = func.coalesce(func.sum(Transaction.amount), 0.0)
        stmt = (
            select(Budget, spent)
            .outerjoin(
                Transaction,
                and_(
                    Transaction.budget_id == Budget.id,
                    Transaction.date >= start,
                    Transaction.date < end,
                ),
            )
            .where(Budget.profile_id == profile_id)
            .group_by(Budget.id)
            .order_by(Budget.name)
        )
        return [
            (budget, budget_metrics(budget.budgeted, float(total)))
            for budget, total in self.session.exec(stmt).all()
        ]

    def create_budget(
        self,
        profile_id: int,
        name: str,
        budgeted: float,
        period: str = "monthly",
        color: Optional[str] = None,
        node_id: Optional[int] = None,
    ) -> Budget:
        _check_period(period)
        if node_id is not None:
            self.gate.node_for(profile_id, node_id)

        budget = Budget(
            profile_id=profile_id,
            node_id=node_id,
            name=name,
            budgeted=budgeted,
            period=period,
            color=color or DEFAULT_BUDGET_COLOR,
        )
        with atomic(self.session):
            self.session.add(budget)
        self.session.refresh(budget)
        return budget

    def update_budget(
        self,
        profile_id: int,
        budget_id: int,
        name: str,
        budgeted: float,
        period: str,
        color: str,
    ) -> Budget:
        budget = self.gate.budget_for(profile_id, budget_id)
        _check_period(period)

        budget.name = name
        budget.budgeted = budgeted
        budget.period = period
        budget.color = color
        with atomic(self.session):
            self.session.add(budget)
        self.session.refresh(budget)
        return budget

    def delete_budget(self, profile_id: int, budget_id: int) -> None:
        self.gate.budget_for(profile_id, budget_id)
        with atomic(self.session):
            self.session.exec(delete(Transaction).where(Transaction.budget_id == budget_id))
            self.session.exec(delete(Budget).where(Budget.id == budget_id, Budget.profile_id == profile_id))
        log.info("budget_deleted", profile_id=profile_id, budget_id=budget_id)

    # ---- transactions ----

    def list_transactions(self, profile_id: int, budget_id: int, limit: int = LEDGER_PAGE_SIZE) -> List[Transaction]:
        self.gate.budget_for(profile_id, budget_id)
        stmt = (
            select(Transaction)
            .where(Transaction.budget_id == budget_id)
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .limit(limit)
        )
        return list(self.session.exec(stmt).all())

    def recent_transactions(self, profile_id: int, limit: int = 10) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .join(Budget, Budget.id == Transaction.budget_id)
            .where(Budget.profile_id == profile_id)
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .limit(limit)
        )
        return list(self.session.exec(stmt).all())

    def create_transaction(
        self,
        profile_id: int,
        budget_id: int,
        amount: float,
        note: Optional[str] = None,
        on: Optional[date] = None,
    ) -> Transaction:
        self.gate.budget_for(profile_id, budget_id)
        tx = Transaction(
            budget_id=budget_id,
            amount=amount,
            note=note or None,
            date=on or date.today(),
        )
        with atomic(self.session):
            self.session.add(tx)
        self.session.refresh(tx)
        return tx

    def delete_transaction(self, profile_id: int, budget_id: int, tx_id: int) -> None:
        self.gate.budget_for(profile_id, budget_id)
        with atomic(self.session):
            result = self.session.exec(
                delete(Transaction).where(Transaction.id == tx_id, Transaction.budget_id == budget_id)
            )
            if result.rowcount == 0:
                raise NotFound("Transaction not found")


class GoalLedger:
    def __init__(self, session: Session):
        self.session = session
        self.gate = ProfileGate(session)

    def _adjust_current(self, goal_id: int, delta: float) -> None:
        # Single UPDATE so concurrent contributions cannot lose each other
        self.session.exec(
            update(Goal).where(Goal.id == goal_id).values(current=Goal.current + delta)
        )

    # ---- goals ----

    def list_goals(self, profile_id: int, now: Optional[datetime] = None) -> List[Tuple[Goal, GoalMetrics]]:
        now = now or datetime.utcnow()
        stmt = (
            select(Goal)
            .where(Goal.profile_id == profile_id)
            .order_by(Goal.priority, Goal.deadline)
        )
        return [
            (goal, goal_metrics(goal.target, goal.current, goal.deadline, now))
            for goal in self.session.exec(stmt).all()
        ]

    def create_goal(
        self,
        profile_id: int,
        name: str,
        target: float,
        current: float = 0,
        deadline: Optional[date] = None,
        priority: int = 0,
        color: Optional[str] = None,
    ) -> Goal:
        """Create the goal together with its companion ``goal`` node.

        A non-zero starting ``current`` is recorded as an opening contribution
        so the goal's total still matches its ledger.
        """
        node = Node(profile_id=profile_id, type="goal", label=name, balance=current, goal=target)
        with atomic(self.session):
            self.session.add(node)
            self.session.flush()

            goal = Goal(
                profile_id=profile_id,
                node_id=node.id,
                name=name,
                target=target,
                current=current,
                deadline=deadline,
                priority=priority,
                color=color or DEFAULT_GOAL_COLOR,
            )
            self.session.add(goal)
            self.session.flush()

            if current:
                self.session.add(GoalTransaction(goal_id=goal.id, amount=current, note=OPENING_BALANCE_NOTE))

        self.session.refresh(goal)
        log.info("goal_created", profile_id=profile_id, goal_id=goal.id, node_id=goal.node_id)
        return goal

    def update_goal(
        self,
        profile_id: int,
        goal_id: int,
        name: str,
        target: float,
        current: float,
        deadline: Optional[date],
        priority: int,
        color: str,
    ) -> Goal:
        """Overwrite the goal's fields.

        The companion node keeps the values it was created with. A change to
        ``current`` is booked as an adjustment contribution.
        """
        goal = self.gate.goal_for(profile_id, goal_id)
        delta = current - goal.current

        with atomic(self.session):
            self.session.exec(
                update(Goal)
                .where(Goal.id == goal_id)
                .values(name=name, target=target, deadline=deadline, priority=priority, color=color)
            )
            if delta:
                self.session.add(GoalTransaction(goal_id=goal_id, amount=delta, note=ADJUSTMENT_NOTE))
                self._adjust_current(goal_id, delta)

        self.session.refresh(goal)
        if delta:
            log.info("goal_current_adjusted", goal_id=goal_id, delta=delta)
        return goal

    def delete_goal(self, profile_id: int, goal_id: int) -> None:
        goal = self.gate.goal_for(profile_id, goal_id)
        node_id = goal.node_id
        with atomic(self.session):
            self.session.exec(delete(GoalTransaction).where(GoalTransaction.goal_id == goal_id))
            self.session.exec(delete(Goal).where(Goal.id == goal_id, Goal.profile_id == profile_id))
        log.info("goal_deleted", profile_id=profile_id, goal_id=goal_id, kept_node_id=node_id)

    # ---- contributions ----

    def list_transactions(self, profile_id: int, goal_id: int, limit: int = LEDGER_PAGE_SIZE) -> List[GoalTransaction]:
        self.gate.goal_for(profile_id, goal_id)
        stmt = (
            select(GoalTransaction)
            .where(GoalTransaction.goal_id == goal_id)
            .order_by(GoalTransaction.date.desc(), GoalTransaction.created_at.desc())
            .limit(limit)
        )
        return list(self.session.exec(stmt).all())

    def create_transaction(
        self,
        profile_id: int,
        goal_id: int,
        amount: float,
        note: Optional[str] = None,
        on: Optional[date] = None,
    ) -> GoalTransaction:
        self.gate.goal_for(profile_id, goal_id)
        tx = GoalTransaction(
            goal_id=goal_id,
            amount=amount,
            note=note or None,
            date=on or date.today(),
        )
        with atomic(self.session):
            self.session.add(tx)
            self.session.flush()
            self._adjust_current(goal_id, amount)

        self.session.refresh(tx)
        log.info("goal_contribution_added", goal_id=goal_id, tx_id=tx.id, amount=amount)
        return tx

    def delete_transaction(self, profile_id: int, goal_id: int, tx_id: int) -> None:
        self.gate.goal_for(profile_id, goal_id)
        # The stored amount is what gets reversed, never a caller-supplied one
        amount = self.gate.goal_transaction_for(goal_id, tx_id).amount

        with atomic(self.session):
            result = self.session.exec(
                delete(GoalTransaction).where(GoalTransaction.id == tx_id, GoalTransaction.goal_id == goal_id)
            )
            if result.rowcount == 0:
                raise NotFound("Transaction not found")
            self._adjust_current(goal_id, -amount)

        log.info("goal_contribution_removed", goal_id=goal_id, tx_id=tx_id, amount=amount)
