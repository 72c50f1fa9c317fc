"""FUNNELBOARD — Ad Performance Records.

One AdRecord per (day, ad) row, whatever the source: Meta insights,
Google Ads, or rows forwarded from Google Sheets. The filter engine
only reads the six identity fields; aggregation reads the numbers.
"""

from pydantic import BaseModel


class AdRecord(BaseModel):
    """A single row of ad-performance data."""

    day: str = ""

    # ── Identity (filterable) ──
    campaign_name: str = ""
    campaign_id: str = ""
    adset_name: str = ""
    adset_id: str = ""
    ad_name: str = ""
    ad_id: str = ""

    # ── Delivery ──
    spend: float = 0.0
    reach: float = 0.0
    impressions: float = 0.0
    clicks_all: float = 0.0
    unique_link_clicks: float = 0.0

    # ── Conversions ──
    purchases: float = 0.0
    purchase_value: float = 0.0
    leads: float = 0.0
    add_to_cart: float = 0.0
    initiate_checkout: float = 0.0
    landing_page_views: float = 0.0

    # ── Video ──
    video_views_3s: float = 0.0
    video_thru_plays: float = 0.0
