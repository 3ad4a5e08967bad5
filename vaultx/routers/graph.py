from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from pydantic import Field as PydanticField
from sqlmodel import Field, Session, SQLModel

from ..core.security import get_profile
from ..database import get_session
from ..models.graph import Node
from ..models.profile import Profile
from ..services.graph import CashFlowGraph


router = APIRouter(
    prefix="/api/profiles/{profile_id}",
    tags=["graph"],
)


# ─────────────────────────────
#   SCHEMAS
# ─────────────────────────────

# Node payloads are plain pydantic models: SQLModel reserves `metadata`.
class NodeCreate(BaseModel):
    type: str
    label: str = PydanticField(min_length=1, max_length=100)
    institution: Optional[str] = None
    amount: float = 0
    balance: float = 0
    apy: float = 0
    budgeted: float = 0
    goal: float = 0
    metadata: Optional[str] = None


class NodeUpdate(BaseModel):
    label: Optional[str] = None
    institution: Optional[str] = None
    amount: float = 0
    balance: float = 0
    apy: float = 0
    budgeted: float = 0
    goal: float = 0
    metadata: Optional[str] = None


class NodeRead(BaseModel):
    id: int
    profile_id: int
    type: str
    label: str
    institution: Optional[str] = None
    amount: float
    balance: float
    apy: float
    budgeted: float
    goal: float
    metadata: str
    sort_order: int
    created_at: datetime

    @classmethod
    def from_node(cls, node: Node) -> "NodeRead":
        return cls(
            id=node.id,
            profile_id=node.profile_id,
            type=node.type,
            label=node.label,
            institution=node.institution,
            amount=node.amount,
            balance=node.balance,
            apy=node.apy,
            budgeted=node.budgeted,
            goal=node.goal,
            metadata=node.meta,
            sort_order=node.sort_order,
            created_at=node.created_at,
        )


class FlowCreate(SQLModel):
    from_node_id: int
    to_node_id: int
    amount: float
    label: Optional[str] = Field(default=None, max_length=100)
    is_recurring: bool = True


class FlowUpdate(SQLModel):
    amount: float = 0
    label: Optional[str] = Field(default=None, max_length=100)
    is_recurring: bool = False


class FlowRead(SQLModel):
    id: int
    profile_id: int
    from_node_id: int
    to_node_id: int
    amount: float
    label: Optional[str] = None
    is_recurring: bool
    created_at: datetime


# ─────────────────────────────
#   NODES
# ─────────────────────────────

@router.get(
    "/nodes",
    response_model=List[NodeRead],
)
def list_nodes(
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return [NodeRead.from_node(n) for n in CashFlowGraph(session).list_nodes(profile.id)]


@router.post(
    "/nodes",
    response_model=NodeRead,
    status_code=status.HTTP_201_CREATED,
)
def create_node(
    payload: NodeCreate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    node = CashFlowGraph(session).create_node(
        profile.id,
        type=payload.type,
        label=payload.label,
        institution=payload.institution,
        amount=payload.amount,
        balance=payload.balance,
        apy=payload.apy,
        budgeted=payload.budgeted,
        goal=payload.goal,
        meta=payload.metadata,
    )
    return NodeRead.from_node(node)


@router.put(
    "/nodes/{node_id}",
    response_model=NodeRead,
)
def update_node(
    node_id: int,
    payload: NodeUpdate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    node = CashFlowGraph(session).update_node(
        profile.id,
        node_id,
        label=payload.label,
        institution=payload.institution,
        amount=payload.amount,
        balance=payload.balance,
        apy=payload.apy,
        budgeted=payload.budgeted,
        goal=payload.goal,
        meta=payload.metadata,
    )
    return NodeRead.from_node(node)


@router.delete(
    "/nodes/{node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_node(
    node_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    CashFlowGraph(session).delete_node(profile.id, node_id)
    return None


# ─────────────────────────────
#   FLOWS
# ─────────────────────────────

@router.get(
    "/flows",
    response_model=List[FlowRead],
)
def list_flows(
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return CashFlowGraph(session).list_flows(profile.id)


@router.post(
    "/flows",
    response_model=FlowRead,
    status_code=status.HTTP_201_CREATED,
)
def create_flow(
    payload: FlowCreate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return CashFlowGraph(session).create_flow(
        profile.id,
        from_node_id=payload.from_node_id,
        to_node_id=payload.to_node_id,
        amount=payload.amount,
        label=payload.label,
        is_recurring=payload.is_recurring,
    )


@router.put(
    "/flows/{flow_id}",
    response_model=FlowRead,
)
def update_flow(
    flow_id: int,
    payload: FlowUpdate,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    return CashFlowGraph(session).update_flow(
        profile.id,
        flow_id,
        amount=payload.amount,
        label=payload.label,
        is_recurring=payload.is_recurring,
    )


@router.delete(
    "/flows/{flow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_flow(
    flow_id: int,
    profile: Profile = Depends(get_profile),
    session: Session = Depends(get_session),
):
    CashFlowGraph(session).delete_flow(profile.id, flow_id)
    return None
