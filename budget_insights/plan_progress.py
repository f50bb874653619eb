"""Plan window arithmetic.

All functions take the reference time explicitly; nothing here reads the
clock. Missing or inconsistent plan dates produce defaults rather than
errors because a freshly created plan routinely lacks them.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from . import settings
from .models import BudgetSettings

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400.0


def _days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / _SECONDS_PER_DAY


def plan_start(plan: Optional[BudgetSettings]) -> Optional[datetime]:
    """Start of the plan window.

    Falls back to one year before the plan end when only the end is known.
    """
    if plan is None:
        return None
    if plan.created_at is not None:
        return plan.created_at
    if plan.end_of_plan is not None:
        return plan.end_of_plan - timedelta(days=settings.SYNTHETIC_START_OFFSET_DAYS)
    return None


def days_elapsed(plan: Optional[BudgetSettings], now: datetime) -> int:
    """Whole days since the plan started, rounded up and never negative."""
    start = plan_start(plan)
    if start is None:
        return settings.DEFAULT_DAYS_ELAPSED
    return max(0, math.ceil(_days_between(start, now)))


def total_plan_days(plan: Optional[BudgetSettings]) -> int:
    """Length of the plan window in whole days."""
    if plan is None or plan.end_of_plan is None:
        return settings.DEFAULT_PLAN_DAYS
    start = plan_start(plan)
    total = math.ceil(_days_between(start, plan.end_of_plan))
    if total <= 0:
        logger.warning(
            "Plan ends before it starts (%s -> %s); using a %d day window",
            start, plan.end_of_plan, settings.DEFAULT_PLAN_DAYS,
        )
        return settings.DEFAULT_PLAN_DAYS
    return total


def remaining_plan_days(plan: Optional[BudgetSettings], now: datetime) -> int:
    total = total_plan_days(plan)
    return max(0, total - min(days_elapsed(plan, now), total))


def plan_progress(plan: Optional[BudgetSettings], now: datetime) -> float:
    """Fraction of the plan window elapsed.

    The raw ratio exceeds 1.0 once the plan is overdue; use
    ``ideal_utilization`` for the clamped value.
    """
    total = total_plan_days(plan)
    return days_elapsed(plan, now) / total


def ideal_utilization(plan: Optional[BudgetSettings], now: datetime) -> float:
    """Utilization expected if consumption were linear over the plan."""
    return min(1.0, max(0.0, plan_progress(plan, now)))
