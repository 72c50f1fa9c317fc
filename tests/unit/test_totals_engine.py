"""
Tests for analyzer.totals_engine module.
"""
import math

import pytest

from funnelboard.analyzer.totals_engine import compute_funnel_totals
from funnelboard.core.metric_registry import AVAILABLE_VARIABLES
from funnelboard.models.ad_models import AdRecord


class TestComputeFunnelTotals:
    """Tests for compute_funnel_totals function."""

    def test_sums(self, sample_records):
        totals = compute_funnel_totals(sample_records)
        assert totals.totalSpent == 1800
        assert totals.totalReach == 38000
        assert totals.totalImpressions == 87000
        assert totals.totalClicks == 1340
        assert totals.totalLinkClicks == 850
        assert totals.totalPurchases == 25
        assert totals.totalRevenue == 3750
        assert totals.totalLeads == 40
        assert totals.totalVideoThruPlays == 1000

    def test_zero_spend_rows_ignored(self, sample_records):
        """The zero-spend row's impressions are not counted."""
        with_row = compute_funnel_totals(sample_records)
        without_row = compute_funnel_totals(sample_records[:3])
        assert with_row == without_row

    def test_ratios_from_totals(self, sample_records):
        """Ratios are computed on summed totals, not averaged per row."""
        totals = compute_funnel_totals(sample_records)
        assert totals.avgCpm == pytest.approx(1800 / 87000 * 1000)
        assert totals.avgCtr == pytest.approx(850 / 87000 * 100)
        assert totals.avgCpa == pytest.approx(72)
        assert totals.avgCpc == pytest.approx(1800 / 1340)
        assert totals.avgTxConv == pytest.approx(25 / 850 * 100)
        assert totals.avgRoas == pytest.approx(3750 / 1800)
        assert totals.avgCpl == pytest.approx(45)
        assert totals.avgFrequency == pytest.approx(87000 / 38000)
        assert totals.avgHookRate == pytest.approx(2500 / 87000 * 100)
        assert totals.avgHoldRate == pytest.approx(40)
        assert totals.avgLpViewRate == pytest.approx(670 / 850 * 100)

    def test_empty(self):
        """No records gives all-zero totals instead of division errors."""
        totals = compute_funnel_totals([])
        assert all(value == 0 for value in totals.as_environment().values())

    def test_zero_denominators(self):
        totals = compute_funnel_totals([AdRecord(spend=10, impressions=100)])
        assert totals.avgCpa == 0
        assert totals.avgRoas == 0
        assert totals.avgCpm == pytest.approx(100)

    def test_environment_matches_registry(self, sample_records):
        """The environment exposes exactly the registry's variables."""
        env = compute_funnel_totals(sample_records).as_environment()
        assert set(env) == set(AVAILABLE_VARIABLES)
        assert all(isinstance(v, float) for v in env.values())

    def test_environment_is_fresh_copy(self, sample_records):
        totals = compute_funnel_totals(sample_records)
        env = totals.as_environment()
        env["totalSpent"] = -1
        assert totals.totalSpent == 1800

    @pytest.mark.parametrize("spend", [float("nan"), float("inf")])
    def test_non_finite_spend_ignored(self, spend):
        """A row with non-finite spend cannot poison the totals."""
        totals = compute_funnel_totals([
            AdRecord(spend=spend, impressions=10),
            AdRecord(spend=100, impressions=1000),
        ])
        assert totals.totalSpent == 100
        assert totals.totalImpressions == 1000
        assert all(math.isfinite(v) for v in totals.as_environment().values())
