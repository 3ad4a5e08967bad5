"""Ownership checks gating every profile-scoped operation.

A profile the caller does not own is indistinguishable from one that does
not exist (both are ``Forbidden``). Once the profile is authorised, a nested
resource that is not under it is ``NotFound``.
"""
from sqlmodel import Session, select

from ..core.errors import Forbidden, NotFound
from ..models.budget import Budget
from ..models.goal import Goal, GoalTransaction
from ..models.graph import Flow, Node
from ..models.profile import Profile


class ProfileGate:
    def __init__(self, session: Session):
        self.session = session

    def profile_for(self, user_id: int, profile_id: int) -> Profile:
        profile = self.session.exec(
            select(Profile).where(Profile.id == profile_id, Profile.user_id == user_id)
        ).first()
        if profile is None:
            raise Forbidden()
        return profile

    def node_for(self, profile_id: int, node_id: int) -> Node:
        node = self.session.exec(
            select(Node).where(Node.id == node_id, Node.profile_id == profile_id)
        ).first()
        if node is None:
            raise NotFound("Node not found")
        return node

    def flow_for(self, profile_id: int, flow_id: int) -> Flow:
        flow = self.session.exec(
            select(Flow).where(Flow.id == flow_id, Flow.profile_id == profile_id)
        ).first()
        if flow is None:
            raise NotFound("Flow not found")
        return flow

    def budget_for(self, profile_id: int, budget_id: int) -> Budget:
        budget = self.session.exec(
            select(Budget).where(Budget.id == budget_id, Budget.profile_id == profile_id)
        ).first()
        if budget is None:
            raise NotFound("Budget not found")
        return budget

    def goal_for(self, profile_id: int, goal_id: int) -> Goal:
        goal = self.session.exec(
            select(Goal).where(Goal.id == goal_id, Goal.profile_id == profile_id)
        ).first()
        if goal is None:
            raise NotFound("Goal not found")
        return goal

    def goal_transaction_for(self, goal_id: int, tx_id: int) -> GoalTransaction:
        tx = self.session.exec(
            select(GoalTransaction).where(GoalTransaction.id == tx_id, GoalTransaction.goal_id == goal_id)
        ).first()
        if tx is None:
            raise NotFound("Transaction not found")
        return tx
