"""FUNNELBOARD — Predefined Custom Metrics.

Formulas media buyers reach for most often, offered as one-click custom
metrics. Every formula here must pass validate_formula() against the
metric registry.
"""

from typing import List

from funnelboard.models.metric_models import CustomMetric, MetricFormat

PREDEFINED_METRICS: List[CustomMetric] = [
    # ── Profitability ──
    CustomMetric(
        id="predefined_roas",
        name="ROAS",
        formula="totalRevenue / totalSpent",
        format=MetricFormat.DECIMAL,
        description="Return on ad spend",
        color="#10b981",
    ),
    CustomMetric(
        id="predefined_roi",
        name="ROI %",
        formula="((totalRevenue - totalSpent) / totalSpent) * 100",
        format=MetricFormat.PERCENTAGE,
        description="Percentage return on investment",
        color="#22c55e",
    ),
    CustomMetric(
        id="predefined_gross_profit",
        name="Gross Profit",
        formula="totalRevenue - totalSpent",
        format=MetricFormat.CURRENCY,
        description="Revenue minus ad spend",
        color="#14b8a6",
    ),
    # ── Cost ──
    CustomMetric(
        id="predefined_cpl",
        name="CPL",
        formula="totalSpent / totalLeads",
        format=MetricFormat.CURRENCY,
        description="Cost per lead",
        color="#f59e0b",
    ),
    CustomMetric(
        id="predefined_cpa",
        name="CPA",
        formula="totalSpent / totalPurchases",
        format=MetricFormat.CURRENCY,
        description="Cost per acquisition",
        color="#ef4444",
    ),
    CustomMetric(
        id="predefined_cost_per_lp_view",
        name="Cost per LP View",
        formula="totalSpent / totalLandingPageViews",
        format=MetricFormat.CURRENCY,
        description="Spend per landing page view",
        color="#f97316",
    ),
    # ── Efficiency ──
    CustomMetric(
        id="predefined_average_ticket",
        name="Average Ticket",
        formula="totalRevenue / totalPurchases",
        format=MetricFormat.CURRENCY,
        description="Average value per sale",
        color="#8b5cf6",
    ),
    CustomMetric(
        id="predefined_lead_conversion",
        name="Lead Conversion",
        formula="(totalPurchases / totalLeads) * 100",
        format=MetricFormat.PERCENTAGE,
        description="Leads that became purchases",
        color="#6366f1",
    ),
    CustomMetric(
        id="predefined_checkout_rate",
        name="Checkout Rate",
        formula="(totalPurchases / totalInitiateCheckout) * 100",
        format=MetricFormat.PERCENTAGE,
        description="Started checkouts that completed",
        color="#0ea5e9",
    ),
    CustomMetric(
        id="predefined_cart_to_checkout",
        name="Cart to Checkout",
        formula="(totalInitiateCheckout / totalAddToCart) * 100",
        format=MetricFormat.PERCENTAGE,
        description="Carts that moved to checkout",
        color="#ec4899",
    ),
]
