"""FUNNELBOARD — Unified Metric Registry.

Defines the fixed vocabulary of aggregate metrics a funnel exposes.
These keys are the only identifiers a custom-metric formula may reference,
so adding a totals field means registering it here as well.

The "avg" prefixed keys are aggregate ratios computed from the totals
(e.g. CPM = totalSpent / totalImpressions * 1000), not means of daily values.
The prefix is kept because stored formulas already reference these names.
"""

from enum import Enum
from typing import Dict, List


class MetricUnit(str, Enum):
    """How a metric value is displayed."""

    CURRENCY = "currency"
    NUMBER = "number"
    PERCENTAGE = "percentage"
    DECIMAL = "decimal"


class MetricDefinition:
    """Describes a single aggregate metric."""

    def __init__(
        self,
        key: str,
        label: str,
        unit: MetricUnit,
        formula: str,
        higher_is_better: bool = True,
        description: str = "",
    ):
        self.key = key
        self.label = label
        self.unit = unit
        self.formula = formula
        self.higher_is_better = higher_is_better
        self.description = description

    def __repr__(self) -> str:
        return f"<Metric {self.key} ({self.unit.value})>"


# ─────────────────────────────────────────────
# ABSOLUTE TOTALS — Sums over ad records
# ─────────────────────────────────────────────

TOTAL_METRICS: Dict[str, MetricDefinition] = {
    "totalSpent": MetricDefinition(
        "totalSpent",
        "Amount Spent",
        MetricUnit.CURRENCY,
        "SUM(spend)",
        higher_is_better=False,
        description="Total amount invested in the period",
    ),
    "totalReach": MetricDefinition(
        "totalReach",
        "Reach",
        MetricUnit.NUMBER,
        "SUM(reach)",
        description="Unique people reached",
    ),
    "totalImpressions": MetricDefinition(
        "totalImpressions",
        "Impressions",
        MetricUnit.NUMBER,
        "SUM(impressions)",
        description="Times the ads were shown",
    ),
    "totalClicks": MetricDefinition(
        "totalClicks",
        "Clicks (All)",
        MetricUnit.NUMBER,
        "SUM(clicks_all)",
        description="Clicks on any ad element",
    ),
    "totalLinkClicks": MetricDefinition(
        "totalLinkClicks",
        "Link Clicks",
        MetricUnit.NUMBER,
        "SUM(unique_link_clicks)",
        description="Unique link clicks",
    ),
    "totalPurchases": MetricDefinition(
        "totalPurchases",
        "Purchases",
        MetricUnit.NUMBER,
        "SUM(purchases)",
        description="Purchase conversions",
    ),
    "totalRevenue": MetricDefinition(
        "totalRevenue",
        "Revenue",
        MetricUnit.CURRENCY,
        "SUM(purchase_value)",
        description="Total purchase conversion value",
    ),
    "totalLeads": MetricDefinition(
        "totalLeads", "Leads", MetricUnit.NUMBER, "SUM(leads)", description="Leads"
    ),
    "totalAddToCart": MetricDefinition(
        "totalAddToCart",
        "Add to Cart",
        MetricUnit.NUMBER,
        "SUM(add_to_cart)",
        description="Add-to-cart events",
    ),
    "totalInitiateCheckout": MetricDefinition(
        "totalInitiateCheckout",
        "Initiate Checkout",
        MetricUnit.NUMBER,
        "SUM(initiate_checkout)",
        description="Checkouts started",
    ),
    "totalLandingPageViews": MetricDefinition(
        "totalLandingPageViews",
        "Landing Page Views",
        MetricUnit.NUMBER,
        "SUM(landing_page_views)",
        description="Landing page views",
    ),
    "totalVideoViews3s": MetricDefinition(
        "totalVideoViews3s",
        "3s Video Views",
        MetricUnit.NUMBER,
        "SUM(video_views_3s)",
        description="Video views of 3 seconds or more",
    ),
    "totalVideoThruPlays": MetricDefinition(
        "totalVideoThruPlays",
        "ThruPlays",
        MetricUnit.NUMBER,
        "SUM(video_thru_plays)",
        description="Video views of 15 seconds or to completion",
    ),
}


# ─────────────────────────────────────────────
# AGGREGATED METRICS — Ratios computed from totals
# ─────────────────────────────────────────────

AGGREGATED_METRICS: Dict[str, MetricDefinition] = {
    "avgCpm": MetricDefinition(
        "avgCpm",
        "CPM",
        MetricUnit.CURRENCY,
        "(totalSpent / totalImpressions) * 1000",
        higher_is_better=False,
        description="Cost per 1000 impressions",
    ),
    "avgCtr": MetricDefinition(
        "avgCtr",
        "CTR",
        MetricUnit.PERCENTAGE,
        "(totalLinkClicks / totalImpressions) * 100",
        description="Link click-through rate",
    ),
    "avgCpa": MetricDefinition(
        "avgCpa",
        "CPA",
        MetricUnit.CURRENCY,
        "totalSpent / totalPurchases",
        higher_is_better=False,
        description="Cost per acquisition",
    ),
    "avgCpc": MetricDefinition(
        "avgCpc",
        "CPC",
        MetricUnit.CURRENCY,
        "totalSpent / totalClicks",
        higher_is_better=False,
        description="Cost per click",
    ),
    "avgTxConv": MetricDefinition(
        "avgTxConv",
        "Conversion Rate",
        MetricUnit.PERCENTAGE,
        "(totalPurchases / totalLinkClicks) * 100",
        description="Purchases per link click",
    ),
    "avgRoas": MetricDefinition(
        "avgRoas",
        "ROAS",
        MetricUnit.DECIMAL,
        "totalRevenue / totalSpent",
        description="Return on ad spend",
    ),
    "avgCpl": MetricDefinition(
        "avgCpl",
        "CPL",
        MetricUnit.CURRENCY,
        "totalSpent / totalLeads",
        higher_is_better=False,
        description="Cost per lead",
    ),
    "avgFrequency": MetricDefinition(
        "avgFrequency",
        "Frequency",
        MetricUnit.DECIMAL,
        "totalImpressions / totalReach",
        higher_is_better=False,  # High frequency means saturation
        description="Average times each person saw the ad",
    ),
    "avgHookRate": MetricDefinition(
        "avgHookRate",
        "Hook Rate",
        MetricUnit.PERCENTAGE,
        "(totalVideoViews3s / totalImpressions) * 100",
        description="3s video views per impression",
    ),
    "avgHoldRate": MetricDefinition(
        "avgHoldRate",
        "Hold Rate",
        MetricUnit.PERCENTAGE,
        "(totalVideoThruPlays / totalVideoViews3s) * 100",
        description="ThruPlays per 3s video view",
    ),
    "avgLpViewRate": MetricDefinition(
        "avgLpViewRate",
        "LP View Rate",
        MetricUnit.PERCENTAGE,
        "(totalLandingPageViews / totalLinkClicks) * 100",
        description="Landing page views per link click",
    ),
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

ALL_METRICS = {**TOTAL_METRICS, **AGGREGATED_METRICS}

# Identifiers a custom-metric formula may reference
AVAILABLE_VARIABLES: List[str] = list(ALL_METRICS)


def get_metric(key: str) -> MetricDefinition | None:
    """Look up a metric by key."""
    return ALL_METRICS.get(key)


def metrics_by_unit(unit: MetricUnit) -> list[MetricDefinition]:
    """Return all metrics displayed with a given unit."""
    return [m for m in ALL_METRICS.values() if m.unit == unit]
