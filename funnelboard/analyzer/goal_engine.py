"""FUNNELBOARD — Goal Engine.

Measures progress toward goals:
- MAX goals (higher is better): current / target, capped at 100%
- MIN goals (lower is better): 100% at or below target, then target / current

Global goals and funnel-specific goals for the same metric are both
reported; which one to show first is left to the caller.
"""

import math
from typing import Iterable, List, Optional

from funnelboard.models.metric_models import Goal, GoalTargetType
from funnelboard.models.dashboard_models import GoalProgress
from funnelboard.core.logging import get_logger

logger = get_logger("analyzer.goal")

ACHIEVED_THRESHOLD = 100.0
GOOD_PROGRESS_THRESHOLD = 70.0
WARNING_PROGRESS_THRESHOLD = 40.0


def calculate_goal_progress(goal: Goal, current_value: Optional[float]) -> float:
    """Return progress toward a goal as a percentage in [0, 100]."""
    if goal.target_value == 0:
        return 0.0
    if current_value is None or not math.isfinite(current_value):
        return 0.0

    if goal.target_type == GoalTargetType.MAX:
        return max(0.0, min(current_value / goal.target_value * 100, 100.0))

    if current_value <= goal.target_value:
        return 100.0
    return max(0.0, goal.target_value / current_value * 100)


def progress_status(progress: float) -> str:
    """Bucket a progress percentage: "achieved" | "good" | "warning" | "behind"."""
    if progress >= ACHIEVED_THRESHOLD:
        return "achieved"
    if progress >= GOOD_PROGRESS_THRESHOLD:
        return "good"
    if progress >= WARNING_PROGRESS_THRESHOLD:
        return "warning"
    return "behind"


def goals_for_funnel(goals: Iterable[Goal], funnel_id: Optional[str]) -> List[Goal]:
    """Goals that apply to a report: every global goal plus the funnel's own.

    The overall report (funnel_id None) only gets global goals.
    """
    return [g for g in goals if g.funnel_id is None or g.funnel_id == funnel_id]


def build_goal_progress(goal: Goal, current_value: Optional[float]) -> GoalProgress:
    """Wrap a goal and its current value into a GoalProgress entry."""
    progress = calculate_goal_progress(goal, current_value) if current_value is not None else None
    return GoalProgress(
        goal_id=goal.id,
        metric_key=goal.metric_key,
        metric_name=goal.metric_name,
        target_value=goal.target_value,
        target_type=goal.target_type.value,
        scope="global" if goal.funnel_id is None else "funnel",
        funnel_id=goal.funnel_id,
        current_value=current_value,
        progress=round(progress, 2) if progress is not None else None,
        achieved=progress is not None and progress >= ACHIEVED_THRESHOLD,
    )
