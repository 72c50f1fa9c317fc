"""FUNNELBOARD — Meta Insights → AdRecord Transformer.

Converts ad-level rows from the Meta Marketing API insights endpoint
into AdRecords the filter and totals engines consume.
"""

import math
from typing import Any, Dict, List

from funnelboard.models.ad_models import AdRecord
from funnelboard.core.logging import get_logger

logger = get_logger("meta.transformer")

PURCHASE_ACTIONS = ("purchase", "offsite_conversion.fb_pixel_purchase")
LEAD_ACTIONS = ("lead", "offsite_conversion.fb_pixel_lead")
ADD_TO_CART_ACTIONS = ("add_to_cart", "offsite_conversion.fb_pixel_add_to_cart")
CHECKOUT_ACTIONS = (
    "initiate_checkout",
    "offsite_conversion.fb_pixel_initiate_checkout",
)


def _safe_float(value: Any) -> float:
    """Safely convert a value to float; NaN and infinities become 0."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _safe_str(value: Any) -> str:
    return "" if value is None else str(value)


def _extract_action_metrics(row: Dict[str, Any]) -> Dict[str, float]:
    """Extract action-based metrics (conversions, landing page views, video)."""
    metrics: Dict[str, float] = {}
    actions = row.get("actions") or []
    for action in actions:
        action_type = action.get("action_type", "")
        value = _safe_float(action.get("value", 0))
        if action_type == "link_click":
            metrics["unique_link_clicks"] = value
        elif action_type == "landing_page_view":
            metrics["landing_page_views"] = value
        elif action_type == "video_view":
            metrics["video_views_3s"] = value
        elif action_type in PURCHASE_ACTIONS:
            metrics["purchases"] = max(metrics.get("purchases", 0), value)
        elif action_type in LEAD_ACTIONS:
            metrics["leads"] = max(metrics.get("leads", 0), value)
        elif action_type in ADD_TO_CART_ACTIONS:
            metrics["add_to_cart"] = max(metrics.get("add_to_cart", 0), value)
        elif action_type in CHECKOUT_ACTIONS:
            metrics["initiate_checkout"] = max(
                metrics.get("initiate_checkout", 0), value
            )

    # Action values (revenue)
    action_values = row.get("action_values") or []
    for av in action_values:
        if av.get("action_type") in PURCHASE_ACTIONS:
            metrics["purchase_value"] = max(
                metrics.get("purchase_value", 0), _safe_float(av.get("value", 0))
            )

    # ThruPlays
    for v in row.get("video_thruplay_watched_actions") or []:
        if v.get("action_type") == "video_view":
            metrics["video_thru_plays"] = _safe_float(v.get("value", 0))

    return metrics


def transform_insight_row(row: Dict[str, Any]) -> AdRecord:
    """Transform one Meta insight row into an AdRecord."""
    metrics = _extract_action_metrics(row)
    # Prefer the unique outbound count when Meta returns it directly
    if "unique_inline_link_clicks" in row:
        metrics["unique_link_clicks"] = _safe_float(row["unique_inline_link_clicks"])

    return AdRecord(
        day=_safe_str(row.get("date_start")),
        campaign_name=_safe_str(row.get("campaign_name")),
        campaign_id=_safe_str(row.get("campaign_id")),
        adset_name=_safe_str(row.get("adset_name")),
        adset_id=_safe_str(row.get("adset_id")),
        ad_name=_safe_str(row.get("ad_name")),
        ad_id=_safe_str(row.get("ad_id")),
        spend=_safe_float(row.get("spend")),
        reach=_safe_float(row.get("reach")),
        impressions=_safe_float(row.get("impressions")),
        clicks_all=_safe_float(row.get("clicks")),
        **metrics,
    )


def transform_insight_rows(raw_data: List[Dict[str, Any]]) -> List[AdRecord]:
    """Transform raw Meta insight rows into AdRecords."""
    records = [transform_insight_row(row) for row in raw_data]
    logger.info(f"Transformed {len(records)} Meta insight rows")
    return records
