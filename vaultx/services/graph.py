"""Nodes and flows of a profile's cash-flow graph."""
from typing import List, Optional

import structlog
from sqlalchemy import delete, or_, update
from sqlmodel import Session, select

from ..core.errors import InvalidInput, NotFound
from ..database import atomic
from ..models.goal import Goal
from ..models.graph import CLIENT_NODE_TYPES, Flow, Node
from .access import ProfileGate


log = structlog.get_logger(__name__)


class CashFlowGraph:
    def __init__(self, session: Session):
        self.session = session
        self.gate = ProfileGate(session)

    # ---- nodes ----

    def list_nodes(self, profile_id: int) -> List[Node]:
        stmt = select(Node).where(Node.profile_id == profile_id).order_by(Node.sort_order, Node.created_at)
        return list(self.session.exec(stmt).all())

    def create_node(
        self,
        profile_id: int,
        type: str,
        label: str,
        institution: Optional[str] = None,
        amount: float = 0,
        balance: float = 0,
        apy: float = 0,
        budgeted: float = 0,
        goal: float = 0,
        meta: Optional[str] = None,
    ) -> Node:
        # Goal nodes are only ever created alongside their goal
        if type not in CLIENT_NODE_TYPES:
            raise InvalidInput("Invalid node type")

        node = Node(
            profile_id=profile_id,
            type=type,
            label=label,
            institution=institution or None,
            amount=amount,
            balance=balance,
            apy=apy,
            budgeted=budgeted,
            goal=goal,
            meta=meta or "{}",
        )
        with atomic(self.session):
            self.session.add(node)
        self.session.refresh(node)
        return node

    def update_node(
        self,
        profile_id: int,
        node_id: int,
        label: Optional[str] = None,
        institution: Optional[str] = None,
        amount: float = 0,
        balance: float = 0,
        apy: float = 0,
        budgeted: float = 0,
        goal: float = 0,
        meta: Optional[str] = None,
    ) -> Node:
        """Empty ``label``/``meta`` keep the stored value; every other field is overwritten."""
        node = self.gate.node_for(profile_id, node_id)

        if label:
            node.label = label
        if meta:
            node.meta = meta
        node.institution = institution or None
        node.amount = amount
        node.balance = balance
        node.apy = apy
        node.budgeted = budgeted
        node.goal = goal

        with atomic(self.session):
            self.session.add(node)
        self.session.refresh(node)
        return node

    def delete_node(self, profile_id: int, node_id: int) -> None:
        """Remove the node's flows, then the node.

        The two steps commit separately; retrying after the first one is
        harmless because the flow cleanup is then a no-op.
        """
        self.gate.node_for(profile_id, node_id)

        with atomic(self.session):
            result = self.session.exec(
                delete(Flow).where(or_(Flow.from_node_id == node_id, Flow.to_node_id == node_id))
            )
        log.info("node_flows_removed", profile_id=profile_id, node_id=node_id, flows=result.rowcount)

        with atomic(self.session):
            # Goals outlive their node; linked budgets go with it by cascade
            self.session.exec(update(Goal).where(Goal.node_id == node_id).values(node_id=None))
            result = self.session.exec(
                delete(Node).where(Node.id == node_id, Node.profile_id == profile_id)
            )
            if result.rowcount == 0:
                raise NotFound("Node not found")
        log.info("node_deleted", profile_id=profile_id, node_id=node_id)

    # ---- flows ----

    def list_flows(self, profile_id: int) -> List[Flow]:
        stmt = select(Flow).where(Flow.profile_id == profile_id).order_by(Flow.id)
        return list(self.session.exec(stmt).all())

    def create_flow(
        self,
        profile_id: int,
        from_node_id: int,
        to_node_id: int,
        amount: float,
        label: Optional[str] = None,
        is_recurring: bool = True,
    ) -> Flow:
        self.gate.node_for(profile_id, from_node_id)
        self.gate.node_for(profile_id, to_node_id)

        flow = Flow(
            profile_id=profile_id,
            from_node_id=from_node_id,
            to_node_id=to_node_id,
            amount=amount,
            label=label or None,
            is_recurring=is_recurring,
        )
        with atomic(self.session):
            self.session.add(flow)
        self.session.refresh(flow)
        return flow

    def update_flow(
        self,
        profile_id: int,
        flow_id: int,
        amount: float,
        label: Optional[str],
        is_recurring: bool,
    ) -> Flow:
        flow = self.gate.flow_for(profile_id, flow_id)
        flow.amount = amount
        flow.label = label or None
        flow.is_recurring = is_recurring
        with atomic(self.session):
            self.session.add(flow)
        self.session.refresh(flow)
        return flow

    def delete_flow(self, profile_id: int, flow_id: int) -> None:
        with atomic(self.session):
            result = self.session.exec(delete(Flow).where(Flow.id == flow_id, Flow.profile_id == profile_id))
            if result.rowcount == 0:
                raise NotFound("Flow not found")
