"""FUNNELBOARD — Dashboard Pipeline Orchestrator.

Runs the full data flow for one dashboard render:
  records → assign to funnels → totals → custom metrics → goal progress

Each custom metric is evaluated independently: a broken stored formula
yields an errored MetricResult and a log line, never a failed render.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Union

from funnelboard.config import settings
from funnelboard.core.logging import get_logger
from funnelboard.analyzer.filter_engine import assign_funnels
from funnelboard.analyzer.goal_engine import build_goal_progress, goals_for_funnel
from funnelboard.analyzer.totals_engine import compute_funnel_totals
from funnelboard.formula.errors import FormulaError
from funnelboard.formula.evaluator import evaluate
from funnelboard.formula.parser import CompiledFormula, compile_formula
from funnelboard.models.ad_models import AdRecord
from funnelboard.models.dashboard_models import (
    DashboardOutput,
    FunnelReport,
    MetricResult,
)
from funnelboard.models.funnel_models import FunnelConfig
from funnelboard.models.metric_models import CustomMetric, Goal

logger = get_logger("analyzer.pipeline")

DASHBOARD_SCHEMA_VERSION = settings.dashboard_schema_version

CompiledMetrics = Dict[str, Union[CompiledFormula, FormulaError]]


def _compile_metrics(custom_metrics: Sequence[CustomMetric]) -> CompiledMetrics:
    """Parse each formula once per render; keep the error for broken ones."""
    compiled: CompiledMetrics = {}
    for metric in custom_metrics:
        try:
            compiled[metric.id] = compile_formula(metric.formula)
        except FormulaError as e:
            compiled[metric.id] = e
    return compiled


def evaluate_custom_metric(
    metric: CustomMetric,
    env: Dict[str, float],
    compiled: Optional[Union[CompiledFormula, FormulaError]] = None,
    funnel_id: Optional[str] = None,
) -> MetricResult:
    """Evaluate one custom metric, turning any FormulaError into a result."""
    error = compiled if isinstance(compiled, FormulaError) else None
    if error is None:
        try:
            value = evaluate(compiled or metric.formula, env)
        except FormulaError as e:
            error = e

    if error is not None:
        logger.warning(
            f"Custom metric '{metric.name}' failed: {error}",
            extra={
                "metric_id": metric.id,
                "funnel_id": funnel_id,
                "error_type": error.error_type,
            },
        )
        return MetricResult(
            metric_id=metric.id,
            name=metric.name,
            format=metric.format.value,
            error_type=error.error_type,
            error=str(error),
        )

    return MetricResult(
        metric_id=metric.id,
        name=metric.name,
        format=metric.format.value,
        value=value,
    )


def _resolve_goal_value(
    metric_key: str, env: Dict[str, float], results: Dict[str, MetricResult]
) -> Optional[float]:
    """A goal tracks a registry metric or a custom metric id."""
    if metric_key in env:
        return env[metric_key]
    result = results.get(metric_key)
    return result.value if result is not None else None


def build_report(
    records: Iterable[AdRecord],
    custom_metrics: Sequence[CustomMetric],
    goals: Sequence[Goal],
    funnel_id: Optional[str] = None,
    funnel_name: str = "All",
    compiled: Optional[CompiledMetrics] = None,
) -> FunnelReport:
    """Build totals, metrics and goals for one set of records."""
    records = list(records)
    compiled = compiled if compiled is not None else _compile_metrics(custom_metrics)

    totals = compute_funnel_totals(records)
    env = totals.as_environment()

    metrics = [
        evaluate_custom_metric(m, env, compiled.get(m.id), funnel_id)
        for m in custom_metrics
    ]
    by_id = {m.metric_id: m for m in metrics}

    goal_entries = [
        build_goal_progress(g, _resolve_goal_value(g.metric_key, env, by_id))
        for g in goals_for_funnel(goals, funnel_id)
    ]

    return FunnelReport(
        funnel_id=funnel_id,
        funnel_name=funnel_name,
        record_count=len(records),
        totals=totals,
        metrics=metrics,
        goals=goal_entries,
    )


def build_dashboard(
    records: Iterable[AdRecord],
    funnels: Sequence[FunnelConfig],
    custom_metrics: Sequence[CustomMetric] = (),
    goals: Sequence[Goal] = (),
) -> DashboardOutput:
    """Execute the full dashboard pipeline for one render."""
    started = time.perf_counter()
    records = list(records)
    compiled = _compile_metrics(custom_metrics)

    overall = build_report(records, custom_metrics, goals, compiled=compiled)

    names = {f.id: f.name for f in funnels}
    reports: List[FunnelReport] = []
    for funnel_id, funnel_records in assign_funnels(records, funnels).items():
        reports.append(
            build_report(
                funnel_records,
                custom_metrics,
                goals,
                funnel_id=funnel_id,
                funnel_name=names[funnel_id],
                compiled=compiled,
            )
        )

    failed = sum(
        1 for report in [overall, *reports] for m in report.metrics if m.value is None
    )
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"Dashboard built: {len(records)} records, {len(reports)} funnels, "
        f"{len(custom_metrics)} custom metrics ({failed} failed)",
        extra={"duration_ms": duration_ms},
    )

    return DashboardOutput(
        schema_version=DASHBOARD_SCHEMA_VERSION,
        generated_at=datetime.now(timezone.utc).isoformat(),
        overall=overall,
        funnels=reports,
        failed_metrics=failed,
    )
