"""FUNNELBOARD — Dashboard Output Models (Versioned)."""

from typing import List, Optional

from pydantic import BaseModel

from funnelboard.models.metric_models import FunnelTotals


class MetricResult(BaseModel):
    """One custom metric evaluated for one funnel.

    value is None when evaluation failed; error_type then holds the
    FormulaError kind so the UI can show a badge instead of a number.
    """

    metric_id: str
    name: str
    format: str = "number"
    value: Optional[float] = None
    error_type: Optional[str] = None
    error: Optional[str] = None


class GoalProgress(BaseModel):
    """Progress of one goal in one funnel report."""

    goal_id: str
    metric_key: str
    metric_name: str
    target_value: float
    target_type: str
    scope: str  # "global" | "funnel"
    funnel_id: Optional[str] = None
    current_value: Optional[float] = None
    progress: Optional[float] = None
    achieved: bool = False


class FunnelReport(BaseModel):
    """Totals, custom metrics and goals for one funnel (or the overall view)."""

    funnel_id: Optional[str] = None
    funnel_name: str = "All"
    record_count: int = 0
    totals: FunnelTotals = FunnelTotals()
    metrics: List[MetricResult] = []
    goals: List[GoalProgress] = []


class DashboardOutput(BaseModel):
    """Everything a dashboard render needs, computed in one pass."""

    schema_version: str = "1.0.0"
    generated_at: str = ""
    overall: FunnelReport = FunnelReport()
    funnels: List[FunnelReport] = []
    failed_metrics: int = 0
