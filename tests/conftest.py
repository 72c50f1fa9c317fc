"""
Pytest configuration and shared fixtures.
"""
import pytest
from typing import Dict, List, Any

from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.pool import StaticPool

import funnelboard.models.db_models  # noqa: F401
from funnelboard.models.ad_models import AdRecord
from funnelboard.models.funnel_models import FunnelConfig
from funnelboard.models.metric_models import CustomMetric, Goal


@pytest.fixture
def sample_env() -> Dict[str, float]:
    """Complete NumericEnvironment for one funnel."""
    return {
        "totalSpent": 3500,
        "totalReach": 45000,
        "totalImpressions": 95000,
        "totalClicks": 2100,
        "totalLinkClicks": 1470,
        "totalPurchases": 75,
        "totalRevenue": 8500,
        "totalLeads": 120,
        "totalAddToCart": 200,
        "totalInitiateCheckout": 150,
        "totalLandingPageViews": 1200,
        "totalVideoViews3s": 5000,
        "totalVideoThruPlays": 2000,
        "avgCpm": 36.84,
        "avgCtr": 1.55,
        "avgCpa": 46.67,
        "avgCpc": 1.67,
        "avgTxConv": 5.1,
        "avgRoas": 2.43,
        "avgCpl": 29.17,
        "avgFrequency": 2.11,
        "avgHookRate": 5.26,
        "avgHoldRate": 40.0,
        "avgLpViewRate": 81.63,
    }


@pytest.fixture
def sample_records() -> List[AdRecord]:
    """Ad records across two campaigns plus one row without spend."""
    return [
        AdRecord(
            day="2026-01-10",
            campaign_name="Black Friday Sale",
            campaign_id="c1",
            adset_name="BF - Lookalike",
            adset_id="as1",
            ad_name="Video 01",
            ad_id="ad1",
            spend=1000.0,
            reach=20000,
            impressions=50000,
            clicks_all=800,
            unique_link_clicks=500,
            purchases=20,
            purchase_value=3000.0,
            leads=10,
            add_to_cart=60,
            initiate_checkout=40,
            landing_page_views=400,
            video_views_3s=2500,
            video_thru_plays=1000,
        ),
        AdRecord(
            day="2026-01-11",
            campaign_name="Black Friday Sale",
            campaign_id="c1",
            adset_name="BF - Interests",
            adset_id="as2",
            ad_name="Image 02",
            ad_id="ad2",
            spend=500.0,
            reach=10000,
            impressions=25000,
            clicks_all=300,
            unique_link_clicks=200,
            purchases=5,
            purchase_value=750.0,
            leads=0,
            add_to_cart=20,
            initiate_checkout=10,
            landing_page_views=150,
        ),
        AdRecord(
            day="2026-01-10",
            campaign_name="[LEADS] Webinar Jan",
            campaign_id="c2",
            adset_name="Webinar - Broad",
            adset_id="as3",
            ad_name="Carousel 03",
            ad_id="ad3",
            spend=300.0,
            reach=8000,
            impressions=12000,
            clicks_all=240,
            unique_link_clicks=150,
            leads=30,
            landing_page_views=120,
        ),
        AdRecord(
            day="2026-01-12",
            campaign_name="[LEADS] Webinar Jan",
            campaign_id="c2",
            adset_name="Webinar - Broad",
            adset_id="as3",
            ad_name="Carousel 03",
            ad_id="ad3",
            spend=0.0,
            impressions=50,
        ),
    ]


@pytest.fixture
def sample_funnels() -> List[FunnelConfig]:
    """A sales funnel, a leads funnel and an inactive one."""
    return [
        FunnelConfig(
            id="sales",
            name="Sales",
            color="#3B82F6",
            order=0,
            rules=[{"field": "campaign_name", "operator": "contains", "value": "black"}],
        ),
        FunnelConfig(
            id="leads",
            name="Leads",
            order=1,
            conversion_metric="leads",
            rules={
                "logic": "OR",
                "rules": [
                    {"field": "campaign_name", "operator": "starts_with", "value": "[LEADS]"},
                    {"field": "ad_name", "operator": "regex", "value": "^Lead"},
                ],
            },
        ),
        FunnelConfig(
            id="archived",
            name="Archived",
            order=2,
            is_active=False,
            rules=[],
        ),
    ]


@pytest.fixture
def sample_custom_metrics() -> List[CustomMetric]:
    """Custom metrics including one stored formula that no longer parses."""
    return [
        CustomMetric(id="roas", name="ROAS", formula="totalRevenue / totalSpent", format="decimal"),
        CustomMetric(id="profit", name="Profit", formula="totalRevenue - totalSpent", format="currency"),
        CustomMetric(id="broken", name="Broken", formula="totalSpent +* 2"),
    ]


@pytest.fixture
def sample_goals() -> List[Goal]:
    """One global goal and one goal scoped to the sales funnel."""
    return [
        Goal(
            id="g1",
            metric_key="avgCpa",
            metric_name="CPA",
            target_value=60,
            target_type="min",
        ),
        Goal(
            id="g2",
            metric_key="totalPurchases",
            metric_name="Purchases",
            target_value=50,
            target_type="max",
            funnel_id="sales",
        ),
    ]


@pytest.fixture
def sample_insight_row() -> Dict[str, Any]:
    """Ad-level row as returned by the Meta insights endpoint."""
    return {
        "date_start": "2026-01-10",
        "date_stop": "2026-01-10",
        "campaign_id": "120210000000001",
        "campaign_name": "Black Friday Sale",
        "adset_id": "120210000000002",
        "adset_name": "BF - Lookalike",
        "ad_id": "120210000000003",
        "ad_name": "Video 01",
        "spend": "123.45",
        "reach": "9800",
        "impressions": "15000",
        "clicks": "420",
        "actions": [
            {"action_type": "link_click", "value": "300"},
            {"action_type": "landing_page_view", "value": "250"},
            {"action_type": "video_view", "value": "4000"},
            {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "7"},
            {"action_type": "purchase", "value": "6"},
            {"action_type": "lead", "value": "3"},
            {"action_type": "add_to_cart", "value": "18"},
            {"action_type": "initiate_checkout", "value": "11"},
        ],
        "action_values": [
            {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "910.50"},
        ],
        "video_thruplay_watched_actions": [
            {"action_type": "video_view", "value": "1200"},
        ],
    }


@pytest.fixture
def session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()
