"""
Tests for storage.repository module.
"""
import json

import pytest
from sqlmodel import select

from funnelboard.core.exceptions import ValidationError
from funnelboard.models.db_models import StoredCustomMetric, StoredFunnel, StoredGoal
from funnelboard.models.funnel_models import FilterGroup, LogicOperator
from funnelboard.storage.repository import (
    delete_custom_metric,
    delete_funnel,
    delete_goal,
    list_custom_metrics,
    list_funnels,
    list_goals,
    save_custom_metric,
    save_funnel,
    save_goal,
)

WORKSPACE = "ws-1"


@pytest.fixture
def funnel_payload():
    """Funnel as the editor sends it (camelCase flags, OR group)."""
    return {
        "id": "sales",
        "name": "Sales",
        "color": "#3B82F6",
        "order": 0,
        "isActive": True,
        "conversionMetric": "purchases",
        "rules": {
            "logic": "OR",
            "rules": [
                {"field": "campaign_name", "operator": "contains", "value": "BLACK", "caseSensitive": False},
                {"field": "ad_name", "operator": "regex", "value": "^BF"},
            ],
        },
    }


class TestFunnels:
    """Tests for funnel persistence."""

    def test_save_and_list(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        funnels = list_funnels(session, WORKSPACE)
        assert len(funnels) == 1
        assert funnels[0].id == "sales"
        assert isinstance(funnels[0].rules, FilterGroup)
        assert funnels[0].rules.logic == LogicOperator.OR
        assert funnels[0].rules.rules[1].value == "^BF"

    def test_rules_stored_as_camel_case_json(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        row = session.exec(select(StoredFunnel)).one()
        stored = json.loads(row.rules_json)
        assert stored["logic"] == "OR"
        assert stored["rules"][0]["caseSensitive"] is False

    def test_upsert(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        funnel_payload["name"] = "Sales v2"
        save_funnel(session, WORKSPACE, funnel_payload)
        funnels = list_funnels(session, WORKSPACE)
        assert [f.name for f in funnels] == ["Sales v2"]

    def test_bare_rule_list(self, session, funnel_payload):
        funnel_payload["rules"] = [{"field": "campaign_id", "operator": "equals", "value": "c1"}]
        save_funnel(session, WORKSPACE, funnel_payload)
        assert isinstance(list_funnels(session, WORKSPACE)[0].rules, list)

    def test_workspace_isolation(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        assert list_funnels(session, "ws-2") == []

    def test_order(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, {**funnel_payload, "id": "b", "order": 2})
        save_funnel(session, WORKSPACE, {**funnel_payload, "id": "a", "order": 1})
        assert [f.id for f in list_funnels(session, WORKSPACE)] == ["a", "b"]

    def test_invalid_regex_rejected(self, session, funnel_payload):
        funnel_payload["rules"]["rules"][1]["value"] = "(unclosed"
        with pytest.raises(ValidationError) as exc_info:
            save_funnel(session, WORKSPACE, funnel_payload)
        assert "Invalid regular expression" in str(exc_info.value)
        assert list_funnels(session, WORKSPACE) == []

    def test_nested_group_rejected(self, session, funnel_payload):
        funnel_payload["rules"]["rules"].append({"logic": "AND", "rules": []})
        with pytest.raises(ValidationError):
            save_funnel(session, WORKSPACE, funnel_payload)

    def test_invalid_color_rejected(self, session, funnel_payload):
        funnel_payload["color"] = "blue"
        with pytest.raises(ValidationError) as exc_info:
            save_funnel(session, WORKSPACE, funnel_payload)
        assert exc_info.value.field == "color"

    def test_unreadable_row_skipped(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        session.add(StoredFunnel(workspace_id=WORKSPACE, funnel_id="bad", name="Bad", rules_json="{not json"))
        session.commit()
        assert [f.id for f in list_funnels(session, WORKSPACE)] == ["sales"]

    def test_delete_removes_funnel_goals(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        save_goal(session, WORKSPACE, {
            "id": "g1", "metricKey": "totalPurchases", "metricName": "Purchases",
            "targetValue": 10, "targetType": "max", "funnelId": "sales",
        })
        save_goal(session, WORKSPACE, {
            "id": "g2", "metricKey": "avgCpa", "metricName": "CPA",
            "targetValue": 50, "targetType": "min",
        })
        assert delete_funnel(session, WORKSPACE, "sales") is True
        assert [g.id for g in list_goals(session, WORKSPACE)] == ["g2"]
        assert delete_funnel(session, WORKSPACE, "sales") is False


class TestCustomMetrics:
    """Tests for custom metric persistence."""

    def test_save_and_list(self, session):
        save_custom_metric(session, WORKSPACE, {
            "id": "roas", "name": "ROAS", "formula": "totalRevenue / totalSpent", "format": "decimal",
        })
        metrics = list_custom_metrics(session, WORKSPACE)
        assert [m.id for m in metrics] == ["roas"]
        assert metrics[0].format.value == "decimal"

    def test_invalid_formula_rejected(self, session):
        """A formula that would fail at render time never reaches storage."""
        with pytest.raises(ValidationError) as exc_info:
            save_custom_metric(session, WORKSPACE, {"id": "x", "name": "X", "formula": "process.env.SECRET"})
        assert exc_info.value.field == "formula"
        assert list_custom_metrics(session, WORKSPACE) == []

    def test_unknown_variable_rejected(self, session):
        with pytest.raises(ValidationError) as exc_info:
            save_custom_metric(session, WORKSPACE, {"id": "x", "name": "X", "formula": "fooBar + 1"})
        assert "fooBar" in str(exc_info.value)

    def test_formula_too_long(self, session):
        with pytest.raises(ValidationError):
            save_custom_metric(session, WORKSPACE, {"id": "x", "name": "X", "formula": "1 + " * 200 + "1"})

    def test_upsert(self, session):
        save_custom_metric(session, WORKSPACE, {"id": "m", "name": "M", "formula": "totalSpent"})
        save_custom_metric(session, WORKSPACE, {"id": "m", "name": "M", "formula": "totalSpent * 2"})
        assert [m.formula for m in list_custom_metrics(session, WORKSPACE)] == ["totalSpent * 2"]

    def test_unreadable_row_skipped(self, session):
        """A stored metric that no longer validates does not hide the others."""
        save_custom_metric(session, WORKSPACE, {"id": "roas", "name": "ROAS", "formula": "totalRevenue / totalSpent"})
        session.add(StoredCustomMetric(workspace_id=WORKSPACE, metric_id="long", name="Long", formula="a" * 600))
        session.commit()
        assert [m.id for m in list_custom_metrics(session, WORKSPACE)] == ["roas"]

    def test_delete(self, session):
        save_custom_metric(session, WORKSPACE, {"id": "m", "name": "M", "formula": "totalSpent"})
        assert delete_custom_metric(session, WORKSPACE, "m") is True
        assert delete_custom_metric(session, WORKSPACE, "m") is False


class TestGoals:
    """Tests for goal persistence."""

    def test_registry_metric(self, session):
        save_goal(session, WORKSPACE, {
            "id": "g", "metricKey": "avgRoas", "metricName": "ROAS", "targetValue": 3, "targetType": "max",
        })
        goals = list_goals(session, WORKSPACE)
        assert goals[0].metric_key == "avgRoas"
        assert goals[0].funnel_id is None

    def test_custom_metric(self, session):
        save_custom_metric(session, WORKSPACE, {"id": "profit", "name": "Profit", "formula": "totalRevenue - totalSpent"})
        save_goal(session, WORKSPACE, {
            "id": "g", "metricKey": "profit", "metricName": "Profit", "targetValue": 1000, "targetType": "max",
        })
        assert list_goals(session, WORKSPACE)[0].metric_key == "profit"

    def test_unknown_metric_rejected(self, session):
        with pytest.raises(ValidationError) as exc_info:
            save_goal(session, WORKSPACE, {
                "id": "g", "metricKey": "fooBar", "metricName": "Foo", "targetValue": 1, "targetType": "max",
            })
        assert exc_info.value.field == "metric_key"

    def test_unknown_funnel_rejected(self, session):
        with pytest.raises(ValidationError) as exc_info:
            save_goal(session, WORKSPACE, {
                "id": "g", "metricKey": "avgCpa", "metricName": "CPA", "targetValue": 1,
                "targetType": "min", "funnelId": "missing",
            })
        assert exc_info.value.field == "funnel_id"

    def test_non_positive_target_rejected(self, session):
        with pytest.raises(ValidationError):
            save_goal(session, WORKSPACE, {
                "id": "g", "metricKey": "avgCpa", "metricName": "CPA", "targetValue": 0, "targetType": "min",
            })

    def test_list_for_funnel(self, session, funnel_payload):
        save_funnel(session, WORKSPACE, funnel_payload)
        save_funnel(session, WORKSPACE, {**funnel_payload, "id": "leads"})
        for goal_id, funnel_id in [("global", None), ("s", "sales"), ("l", "leads")]:
            save_goal(session, WORKSPACE, {
                "id": goal_id, "metricKey": "avgCpa", "metricName": "CPA",
                "targetValue": 40, "targetType": "min", "funnelId": funnel_id,
            })
        assert [g.id for g in list_goals(session, WORKSPACE, "sales")] == ["global", "s"]
        assert len(list_goals(session, WORKSPACE)) == 3

    def test_delete(self, session):
        save_goal(session, WORKSPACE, {
            "id": "g", "metricKey": "avgCpa", "metricName": "CPA", "targetValue": 1, "targetType": "min",
        })
        assert delete_goal(session, WORKSPACE, "g") is True
        assert list_goals(session, WORKSPACE) == []

    def test_unreadable_row_skipped(self, session):
        save_goal(session, WORKSPACE, {
            "id": "g", "metricKey": "avgCpa", "metricName": "CPA", "targetValue": 40, "targetType": "min",
        })
        session.add(StoredGoal(
            workspace_id=WORKSPACE, goal_id="zero", metric_key="avgCpa", metric_name="CPA",
            target_value=0, target_type="min",
        ))
        session.commit()
        assert [g.id for g in list_goals(session, WORKSPACE)] == ["g"]
