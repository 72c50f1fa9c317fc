"""FUNNELBOARD — Definition Repository.

Save/list/delete for funnels, custom metrics and goals.

Every save validates before writing, using the same code the render path
uses (normalize_rules + validate_rule for funnels, validate_formula for
custom metrics), so a definition that was accepted here cannot fail
parsing later. Saves are upserts keyed on (workspace_id, client ID).
"""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlmodel import Session, select

from funnelboard.analyzer.filter_engine import validate_rules
from funnelboard.core.exceptions import ValidationError
from funnelboard.core.logging import for_workspace, get_logger
from funnelboard.core.metric_registry import AVAILABLE_VARIABLES
from funnelboard.formula.evaluator import validate_formula
from funnelboard.models.db_models import StoredCustomMetric, StoredFunnel, StoredGoal
from funnelboard.models.funnel_models import FilterGroup, FunnelConfig
from funnelboard.models.metric_models import CustomMetric, Goal

logger = get_logger("storage.repository")

ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce(model: Type[ModelT], data: Any, field: str) -> ModelT:
    """Accept a model instance or its dict form; raise ValidationError if invalid."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or field
        raise ValidationError(location, first["msg"], first.get("input"))


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────
# FUNNELS
# ─────────────────────────────────────────────


def _rules_to_json(funnel: FunnelConfig) -> str:
    if isinstance(funnel.rules, FilterGroup):
        payload = funnel.rules.model_dump(mode="json", by_alias=True)
    else:
        payload = [r.model_dump(mode="json", by_alias=True) for r in funnel.rules]
    return json.dumps(payload)


def save_funnel(session: Session, workspace_id: str, data: Any) -> FunnelConfig:
    """
    Validate and upsert a funnel.

    Raises:
        ValidationError: If the funnel or any of its rules is invalid
    """
    funnel = _coerce(FunnelConfig, data, "funnel")
    validate_rules(funnel.rules)

    row = session.exec(
        select(StoredFunnel).where(
            StoredFunnel.workspace_id == workspace_id,
            StoredFunnel.funnel_id == funnel.id,
        )
    ).first()
    if row is None:
        row = StoredFunnel(workspace_id=workspace_id, funnel_id=funnel.id, name=funnel.name)

    row.name = funnel.name
    row.description = funnel.description
    row.color = funnel.color
    row.sort_order = funnel.order
    row.is_active = funnel.is_active
    row.conversion_metric = funnel.conversion_metric.value
    row.rules_json = _rules_to_json(funnel)
    row.updated_at = _now()

    session.add(row)
    session.commit()
    for_workspace(logger, workspace_id).info(
        f"Saved funnel '{funnel.name}'",
        extra={"funnel_id": funnel.id},
    )
    return funnel


def list_funnels(session: Session, workspace_id: str) -> List[FunnelConfig]:
    """Load a workspace's funnels in display order.

    Rows that no longer validate (e.g. after a data migration) are logged
    and skipped so one bad funnel cannot break the dashboard.
    """
    rows = session.exec(
        select(StoredFunnel)
        .where(StoredFunnel.workspace_id == workspace_id)
        .order_by(StoredFunnel.sort_order)
    ).all()

    funnels: List[FunnelConfig] = []
    for row in rows:
        try:
            funnels.append(
                FunnelConfig(
                    id=row.funnel_id,
                    name=row.name,
                    description=row.description,
                    color=row.color,
                    order=row.sort_order,
                    is_active=row.is_active,
                    conversion_metric=row.conversion_metric,
                    rules=json.loads(row.rules_json),
                )
            )
        except (PydanticValidationError, json.JSONDecodeError) as e:
            for_workspace(logger, workspace_id).error(
                f"Skipping unreadable funnel: {e}",
                extra={"funnel_id": row.funnel_id},
            )
    return funnels


def delete_funnel(session: Session, workspace_id: str, funnel_id: str) -> bool:
    """Delete a funnel and its funnel-specific goals."""
    row = session.exec(
        select(StoredFunnel).where(
            StoredFunnel.workspace_id == workspace_id,
            StoredFunnel.funnel_id == funnel_id,
        )
    ).first()
    if row is None:
        return False

    goals = session.exec(
        select(StoredGoal).where(
            StoredGoal.workspace_id == workspace_id,
            StoredGoal.funnel_id == funnel_id,
        )
    ).all()
    for goal in goals:
        session.delete(goal)
    session.delete(row)
    session.commit()
    for_workspace(logger, workspace_id).info(
        f"Deleted funnel and {len(goals)} funnel goals",
        extra={"funnel_id": funnel_id},
    )
    return True


# ─────────────────────────────────────────────
# CUSTOM METRICS
# ─────────────────────────────────────────────


def save_custom_metric(session: Session, workspace_id: str, data: Any) -> CustomMetric:
    """
    Validate and upsert a custom metric.

    The formula is checked in validate-only mode against the metric
    registry, with the same parser evaluation uses.

    Raises:
        ValidationError: If the metric or its formula is invalid
    """
    metric = _coerce(CustomMetric, data, "custom_metric")
    result = validate_formula(metric.formula, AVAILABLE_VARIABLES)
    if not result.valid:
        raise ValidationError("formula", result.error, metric.formula)

    row = session.exec(
        select(StoredCustomMetric).where(
            StoredCustomMetric.workspace_id == workspace_id,
            StoredCustomMetric.metric_id == metric.id,
        )
    ).first()
    if row is None:
        row = StoredCustomMetric(
            workspace_id=workspace_id,
            metric_id=metric.id,
            name=metric.name,
            formula=metric.formula,
        )

    row.name = metric.name
    row.formula = metric.formula
    row.format = metric.format.value
    row.description = metric.description
    row.color = metric.color
    row.updated_at = _now()

    session.add(row)
    session.commit()
    for_workspace(logger, workspace_id).info(
        f"Saved custom metric '{metric.name}'",
        extra={"metric_id": metric.id},
    )
    return metric


def list_custom_metrics(session: Session, workspace_id: str) -> List[CustomMetric]:
    """Load a workspace's custom metrics, skipping rows that no longer validate."""
    rows = session.exec(
        select(StoredCustomMetric)
        .where(StoredCustomMetric.workspace_id == workspace_id)
        .order_by(StoredCustomMetric.id)
    ).all()

    metrics: List[CustomMetric] = []
    for row in rows:
        try:
            metrics.append(
                CustomMetric(
                    id=row.metric_id,
                    name=row.name,
                    formula=row.formula,
                    format=row.format,
                    description=row.description,
                    color=row.color,
                )
            )
        except PydanticValidationError as e:
            for_workspace(logger, workspace_id).error(
                f"Skipping unreadable custom metric: {e}",
                extra={"metric_id": row.metric_id},
            )
    return metrics


def delete_custom_metric(session: Session, workspace_id: str, metric_id: str) -> bool:
    row = session.exec(
        select(StoredCustomMetric).where(
            StoredCustomMetric.workspace_id == workspace_id,
            StoredCustomMetric.metric_id == metric_id,
        )
    ).first()
    if row is None:
        return False
    session.delete(row)
    session.commit()
    return True


# ─────────────────────────────────────────────
# GOALS
# ─────────────────────────────────────────────


def _custom_metric_exists(session: Session, workspace_id: str, metric_id: str) -> bool:
    return (
        session.exec(
            select(StoredCustomMetric).where(
                StoredCustomMetric.workspace_id == workspace_id,
                StoredCustomMetric.metric_id == metric_id,
            )
        ).first()
        is not None
    )


def _funnel_exists(session: Session, workspace_id: str, funnel_id: str) -> bool:
    return (
        session.exec(
            select(StoredFunnel).where(
                StoredFunnel.workspace_id == workspace_id,
                StoredFunnel.funnel_id == funnel_id,
            )
        ).first()
        is not None
    )


def save_goal(session: Session, workspace_id: str, data: Any) -> Goal:
    """
    Validate and upsert a goal.

    Raises:
        ValidationError: If the goal is invalid, tracks an unknown metric,
            or references a funnel that does not exist
    """
    goal = _coerce(Goal, data, "goal")

    if goal.metric_key not in AVAILABLE_VARIABLES and not _custom_metric_exists(
        session, workspace_id, goal.metric_key
    ):
        raise ValidationError("metric_key", "Unknown metric", goal.metric_key)

    if goal.funnel_id is not None and not _funnel_exists(
        session, workspace_id, goal.funnel_id
    ):
        raise ValidationError("funnel_id", "Unknown funnel", goal.funnel_id)

    row = session.exec(
        select(StoredGoal).where(
            StoredGoal.workspace_id == workspace_id,
            StoredGoal.goal_id == goal.id,
        )
    ).first()
    if row is None:
        row = StoredGoal(
            workspace_id=workspace_id,
            goal_id=goal.id,
            metric_key=goal.metric_key,
            metric_name=goal.metric_name,
            target_value=goal.target_value,
            target_type=goal.target_type.value,
        )

    row.metric_key = goal.metric_key
    row.metric_name = goal.metric_name
    row.target_value = goal.target_value
    row.target_type = goal.target_type.value
    row.funnel_id = goal.funnel_id
    row.updated_at = _now()

    session.add(row)
    session.commit()
    for_workspace(logger, workspace_id).info(
        f"Saved goal for {goal.metric_key}",
        extra={"funnel_id": goal.funnel_id},
    )
    return goal


def list_goals(
    session: Session, workspace_id: str, funnel_id: Optional[str] = None
) -> List[Goal]:
    """Load goals; with funnel_id, only that funnel's goals plus global ones.

    Rows that no longer validate are logged and skipped.
    """
    query = select(StoredGoal).where(StoredGoal.workspace_id == workspace_id)
    rows = session.exec(query.order_by(StoredGoal.id)).all()

    goals: List[Goal] = []
    for row in rows:
        if funnel_id is not None and row.funnel_id not in (None, funnel_id):
            continue
        try:
            goals.append(
                Goal(
                    id=row.goal_id,
                    metric_key=row.metric_key,
                    metric_name=row.metric_name,
                    target_value=row.target_value,
                    target_type=row.target_type,
                    funnel_id=row.funnel_id,
                )
            )
        except PydanticValidationError as e:
            for_workspace(logger, workspace_id).error(
                f"Skipping unreadable goal '{row.goal_id}': {e}",
                extra={"funnel_id": row.funnel_id},
            )
    return goals


def delete_goal(session: Session, workspace_id: str, goal_id: str) -> bool:
    row = session.exec(
        select(StoredGoal).where(
            StoredGoal.workspace_id == workspace_id,
            StoredGoal.goal_id == goal_id,
        )
    ).first()
    if row is None:
        return False
    session.delete(row)
    session.commit()
    return True
