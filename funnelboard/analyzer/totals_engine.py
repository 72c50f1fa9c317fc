"""FUNNELBOARD — Totals Engine.

Aggregates ad records into the FunnelTotals a formula is evaluated against.

Ratio metrics (CPM, CTR, CPA, ROAS, ...) are derived from the summed
totals, never averaged across days: averaging daily CPMs over-weights
low-spend days.
"""

import math
from typing import Iterable

from funnelboard.models.ad_models import AdRecord
from funnelboard.models.metric_models import FunnelTotals
from funnelboard.core.logging import get_logger

logger = get_logger("analyzer.totals")


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """Divide, returning 0 for an empty denominator."""
    return (numerator / denominator * scale) if denominator > 0 else 0.0


def compute_funnel_totals(records: Iterable[AdRecord]) -> FunnelTotals:
    """Sum absolute fields and derive ratio metrics for a set of records.

    Rows without a positive, finite spend are ignored.
    """
    spent = reach = impressions = clicks = link_clicks = purchases = 0.0
    revenue = leads = add_to_cart = checkout = lp_views = 0.0
    video_3s = thru_plays = 0.0
    used = 0

    for r in records:
        if not math.isfinite(r.spend) or r.spend <= 0:
            continue
        used += 1
        spent += r.spend
        reach += r.reach
        impressions += r.impressions
        clicks += r.clicks_all
        link_clicks += r.unique_link_clicks
        purchases += r.purchases
        revenue += r.purchase_value
        leads += r.leads
        add_to_cart += r.add_to_cart
        checkout += r.initiate_checkout
        lp_views += r.landing_page_views
        video_3s += r.video_views_3s
        thru_plays += r.video_thru_plays

    totals = FunnelTotals(
        totalSpent=spent,
        totalReach=reach,
        totalImpressions=impressions,
        totalClicks=clicks,
        totalLinkClicks=link_clicks,
        totalPurchases=purchases,
        totalRevenue=revenue,
        totalLeads=leads,
        totalAddToCart=add_to_cart,
        totalInitiateCheckout=checkout,
        totalLandingPageViews=lp_views,
        totalVideoViews3s=video_3s,
        totalVideoThruPlays=thru_plays,
        avgCpm=_ratio(spent, impressions, 1000),
        avgCtr=_ratio(link_clicks, impressions, 100),
        avgCpa=_ratio(spent, purchases),
        avgCpc=_ratio(spent, clicks),
        avgTxConv=_ratio(purchases, link_clicks, 100),
        avgRoas=_ratio(revenue, spent),
        avgCpl=_ratio(spent, leads),
        avgFrequency=_ratio(impressions, reach),
        avgHookRate=_ratio(video_3s, impressions, 100),
        avgHoldRate=_ratio(thru_plays, video_3s, 100),
        avgLpViewRate=_ratio(lp_views, link_clicks, 100),
    )

    logger.debug(f"Computed totals from {used} records with spend")
    return totals
