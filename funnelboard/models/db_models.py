"""FUNNELBOARD — Stored Definition Models.

Workspace-scoped funnels, custom metrics and goals. Rows only reach
these tables through funnelboard.storage.repository, which validates
rules and formulas first.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class StoredFunnel(SQLModel, table=True):
    """A funnel definition; rules are kept as their JSON form."""

    __tablename__ = "funnels"
    __table_args__ = (
        UniqueConstraint("workspace_id", "funnel_id", name="uq_funnel"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    funnel_id: str = Field(index=True, description="Client-facing funnel ID")
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)
    conversion_metric: str = Field(default="purchases")
    rules_json: str = Field(
        default="[]", description="FilterRule[] or {logic, rules} as JSON"
    )
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StoredCustomMetric(SQLModel, table=True):
    """A custom metric; formula was validated when it was saved."""

    __tablename__ = "custom_metrics"
    __table_args__ = (
        UniqueConstraint("workspace_id", "metric_id", name="uq_custom_metric"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    metric_id: str = Field(index=True)
    name: str
    formula: str
    format: str = Field(default="number")
    description: Optional[str] = None
    color: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StoredGoal(SQLModel, table=True):
    """A goal; funnel_id None means it applies to every funnel."""

    __tablename__ = "goals"
    __table_args__ = (UniqueConstraint("workspace_id", "goal_id", name="uq_goal"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    goal_id: str = Field(index=True)
    metric_key: str = Field(description="Registry metric key or custom metric ID")
    metric_name: str
    target_value: float
    target_type: str = Field(description="min | max")
    funnel_id: Optional[str] = Field(default=None, index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
