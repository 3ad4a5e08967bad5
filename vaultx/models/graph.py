from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Text
from sqlmodel import SQLModel, Field


NODE_TYPES = ("income", "account", "savings", "investment", "expense", "budget", "goal")
# Types a client may create directly; goal nodes come only from goal creation
CLIENT_NODE_TYPES = ("income", "account", "savings", "investment", "expense", "budget")


class Node(SQLModel, table=True):
    __tablename__ = "nodes"
    __table_args__ = (
        CheckConstraint(
            "type IN (" + ", ".join(f"'{t}'" for t in NODE_TYPES) + ")",
            name="nodes_type_check",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    profile_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")

    type: str = Field(max_length=20)
    label: str
    institution: Optional[str] = None

    # Union of per-type fields; which ones matter depends on `type`
    amount: float = Field(default=0)
    balance: float = Field(default=0)
    apy: float = Field(default=0)
    budgeted: float = Field(default=0)
    goal: float = Field(default=0)

    # Opaque client JSON. SQLModel reserves the `metadata` attribute name.
    meta: str = Field(
        default="{}",
        sa_column=Column("metadata", Text, nullable=False, server_default="{}"),
    )
    sort_order: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)


class Flow(SQLModel, table=True):
    __tablename__ = "flows"

    id: Optional[int] = Field(default=None, primary_key=True)

    profile_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    from_node_id: int = Field(foreign_key="nodes.id", index=True, ondelete="CASCADE")
    to_node_id: int = Field(foreign_key="nodes.id", index=True, ondelete="CASCADE")

    amount: float
    label: Optional[str] = None
    is_recurring: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
