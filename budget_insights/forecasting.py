"""Spending rate projections for a budget plan.

Covers the depletion forecast, the plan-level summary totals, and the
month-by-month spending timeline with its target and projected lines.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from . import settings
from .models import (
    BudgetSettings,
    BudgetSummary,
    EnhancedBudgetItem,
    MonthlySpending,
    ServiceEvent,
    SpendingEvent,
)
from .plan_progress import days_elapsed, plan_start, remaining_plan_days, total_plan_days

logger = logging.getLogger(__name__)

# Returned when spending has stalled and the budget never runs out
NEVER_DEPLETES = datetime(9999, 12, 31)

_SECONDS_PER_DAY = 86400.0


def _never_depletes(now: datetime) -> datetime:
    return NEVER_DEPLETES.replace(tzinfo=now.tzinfo)


def _naive(stamp: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(stamp)
    return ts.tz_localize(None) if ts.tzinfo is not None else ts


def forecast_depletion(
    total_budget: float,
    total_spent: float,
    events: Sequence[ServiceEvent],
    now: datetime,
) -> datetime:
    """Project the date on which cumulative spending exhausts the budget.

    The spending rate is the amount spent so far spread over the span of
    completed or billed events. With fewer than two such events there is
    no rate, and the forecast is six months out. Forecasts never fall
    within 30 days of ``now`` so a noisy rate cannot raise a same-week
    alarm.

    Args:
        total_budget: Total funds of the plan
        total_spent: Amount spent to date
        events: Service events; only completed/billed ones are considered
        now: Reference time

    Returns:
        Projected depletion timestamp, or ``NEVER_DEPLETES`` at a zero rate
    """
    spending = [event for event in events if event.is_spending]
    if len(spending) < 2:
        fallback = pd.Timestamp(now) + pd.DateOffset(months=settings.FORECAST_FALLBACK_MONTHS)
        return fallback.to_pydatetime()

    stamps = [event.occurred_at for event in spending]
    span = (max(stamps) - min(stamps)).total_seconds() / _SECONDS_PER_DAY
    days_span = max(1.0, span)
    spending_rate = total_spent / days_span
    if spending_rate <= 0:
        return _never_depletes(now)

    days_until = max(float(settings.MIN_DEPLETION_DAYS), (total_budget - total_spent) / spending_rate)
    horizon = _never_depletes(now) - now
    if days_until >= horizon.total_seconds() / _SECONDS_PER_DAY:
        return _never_depletes(now)
    logger.debug("Spending %.2f/day, %.1f days of budget left", spending_rate, days_until)
    return now + timedelta(days=days_until)


def total_budget_for(items: Sequence[EnhancedBudgetItem], plan: Optional[BudgetSettings]) -> float:
    """Plan funds when known, otherwise the allocated cost of the items."""
    if plan is not None and plan.available_funds is not None:
        return float(plan.available_funds)
    return float(sum(item.total_cost for item in items))


def spending_by_category(items: Sequence[EnhancedBudgetItem]) -> dict:
    if not items:
        return {}
    frame = pd.DataFrame(
        {'Category': [item.category for item in items], 'Used Cost': [item.used_cost for item in items]}
    )
    grouped = frame.groupby('Category', sort=True)['Used Cost'].sum()
    return {category: float(amount) for category, amount in grouped.items()}


def calculate_summary(
    items: Sequence[EnhancedBudgetItem],
    plan: Optional[BudgetSettings],
    now: datetime,
) -> BudgetSummary:
    """Plan-level totals and spending rates."""
    total_budget = total_budget_for(items, plan)
    total_allocated = float(sum(item.total_cost for item in items))
    total_spent = float(sum(item.used_cost for item in items))
    remaining = total_budget - total_spent
    utilization_percentage = (total_spent / total_budget * 100) if total_budget > 0 else 0.0

    total_days = total_plan_days(plan)
    elapsed = min(days_elapsed(plan, now), total_days)
    remaining_days = remaining_plan_days(plan, now)
    daily_budget = total_budget / total_days
    daily_spend_rate = total_spent / elapsed if elapsed > 0 else 0.0

    projected_overspend = None
    if daily_spend_rate > daily_budget:
        projected_total = total_spent + daily_spend_rate * remaining_days
        if projected_total > total_budget:
            projected_overspend = projected_total - total_budget

    return BudgetSummary(
        total_budget=total_budget,
        total_allocated=total_allocated,
        total_spent=total_spent,
        remaining=remaining,
        utilization_percentage=utilization_percentage,
        spending_by_category=spending_by_category(items),
        days_elapsed=elapsed,
        total_days=total_days,
        remaining_days=remaining_days,
        daily_budget=daily_budget,
        daily_spend_rate=daily_spend_rate,
        projected_overspend=projected_overspend,
        plan_label=_plan_label(plan),
    )


def _plan_label(plan: Optional[BudgetSettings]) -> str:
    if plan is not None and plan.plan_name:
        return plan.plan_name
    start = plan_start(plan)
    if start is not None:
        return f"Plan from {start:%b %Y}"
    return 'Current plan'


def calculate_monthly_spending(
    spending_events: Sequence[SpendingEvent],
    plan: Optional[BudgetSettings],
    total_budget: float,
    now: datetime,
) -> pd.DataFrame:
    """Month-by-month actual, target and projected spending over the plan.

    Returns:
        DataFrame with columns: Month, Period Start, Actual Spending,
        Target Spending, Projected Spending, Cumulative Actual,
        Cumulative Target, Cumulative Projected, Is Projected
    """
    reference = _naive(now)
    start = plan_start(plan)
    start_ts = _naive(start) if start is not None else reference
    end_ts = start_ts + pd.Timedelta(days=total_plan_days(plan))
    months = pd.period_range(start=start_ts.to_period('M'), end=end_ts.to_period('M'), freq='M')

    if spending_events:
        events_df = pd.DataFrame({
            'Month': [_naive(event.occurred_at).to_period('M') for event in spending_events],
            'Amount': [event.amount for event in spending_events],
        })
        actual = events_df.groupby('Month')['Amount'].sum()
    else:
        actual = pd.Series(dtype=float)
    actual = actual.reindex(months, fill_value=0.0).astype(float)

    target = total_budget / len(months)
    frame = pd.DataFrame({
        'Month': [month.strftime('%b %Y') for month in months],
        'Period Start': [month.start_time.to_pydatetime() for month in months],
        'Actual Spending': actual.to_numpy(),
        'Target Spending': target,
    })
    frame['Cumulative Actual'] = frame['Actual Spending'].cumsum()
    frame['Cumulative Target'] = frame['Target Spending'].cumsum()
    frame['Projected Spending'] = np.nan
    frame['Cumulative Projected'] = np.nan
    frame['Is Projected'] = [month.start_time > reference for month in months]

    current = reference.to_period('M')
    if current in months:
        position = months.get_loc(current)
        past_total = float(frame['Actual Spending'].iloc[: position + 1].sum())
        average = past_total / max(1, position + 1)
        future = frame.index[position + 1:]
        frame.loc[future, 'Projected Spending'] = average
        frame.loc[future, 'Cumulative Projected'] = past_total + average * np.arange(1, len(future) + 1)

    return frame[[
        'Month', 'Period Start', 'Actual Spending', 'Target Spending', 'Projected Spending',
        'Cumulative Actual', 'Cumulative Target', 'Cumulative Projected', 'Is Projected',
    ]]


def monthly_spending_records(frame: pd.DataFrame) -> List[MonthlySpending]:
    """Convert the monthly spending table into result records."""

    def _optional(value) -> Optional[float]:
        return None if pd.isna(value) else float(value)

    return [
        MonthlySpending(
            month=row['Month'],
            period_start=row['Period Start'],
            actual_spending=float(row['Actual Spending']),
            target_spending=float(row['Target Spending']),
            projected_spending=_optional(row['Projected Spending']),
            cumulative_actual=float(row['Cumulative Actual']),
            cumulative_target=float(row['Cumulative Target']),
            cumulative_projected=_optional(row['Cumulative Projected']),
            is_projected=bool(row['Is Projected']),
        )
        for _, row in frame.iterrows()
    ]
