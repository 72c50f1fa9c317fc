"""FUNNELBOARD — Totals, Custom Metric & Goal Models."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FunnelTotals(BaseModel):
    """Aggregate totals for one funnel and period.

    Field names are the NumericEnvironment keys formulas reference.
    """

    # Absolute
    totalSpent: float = 0.0
    totalReach: float = 0.0
    totalImpressions: float = 0.0
    totalClicks: float = 0.0
    totalLinkClicks: float = 0.0
    totalPurchases: float = 0.0
    totalRevenue: float = 0.0
    totalLeads: float = 0.0
    totalAddToCart: float = 0.0
    totalInitiateCheckout: float = 0.0
    totalLandingPageViews: float = 0.0
    totalVideoViews3s: float = 0.0
    totalVideoThruPlays: float = 0.0

    # Aggregated
    avgCpm: float = 0.0
    avgCtr: float = 0.0
    avgCpa: float = 0.0
    avgCpc: float = 0.0
    avgTxConv: float = 0.0
    avgRoas: float = 0.0
    avgCpl: float = 0.0
    avgFrequency: float = 0.0
    avgHookRate: float = 0.0
    avgHoldRate: float = 0.0
    avgLpViewRate: float = 0.0

    def as_environment(self) -> Dict[str, float]:
        """Return a fresh NumericEnvironment for formula evaluation."""
        return self.model_dump()


class MetricFormat(str, Enum):
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    NUMBER = "number"
    DECIMAL = "decimal"


class CustomMetric(BaseModel):
    """A user-authored metric computed from a formula over the totals."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    formula: str = Field(min_length=1, max_length=500)
    format: MetricFormat = MetricFormat.NUMBER
    description: Optional[str] = Field(default=None, max_length=500)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")


class GoalTargetType(str, Enum):
    """Direction of a goal.

    MAX: higher is better (e.g. purchases), progress = current / target.
    MIN: lower is better (e.g. CPA), at or below target counts as reached.
    """

    MIN = "min"
    MAX = "max"


class Goal(BaseModel):
    """A target for a registry metric or a custom metric."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    metric_key: str = Field(min_length=1, alias="metricKey")
    metric_name: str = Field(min_length=1, alias="metricName")
    target_value: float = Field(gt=0, alias="targetValue")
    target_type: GoalTargetType = Field(alias="targetType")
    funnel_id: Optional[str] = Field(default=None, alias="funnelId")
