"""Usage-trend classification.

A deliberately simple heuristic: compare the first and last period of a
usage series and fall back to the coefficient of variation when the
change is moderate. Categories are checked in a fixed order: stable,
then increasing/decreasing, then seasonal.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from .models import ServiceEvent, UsagePattern
from .usage_data import period_totals, usage_frame

STABLE_CHANGE_PCT = 10.0
TREND_CHANGE_PCT = 20.0
SEASONAL_CV = 0.2

PERIOD_FREQUENCIES = {'monthly': 'M', 'weekly': 'W'}
DEFAULT_PERIODS = {'monthly': 6, 'weekly': 12}


def percent_change(series: Sequence[float]) -> float:
    """Percent change from the first to the last value (0 when first is 0)."""
    if len(series) == 0:
        return 0.0
    first, last = float(series[0]), float(series[-1])
    if first == 0:
        return 0.0
    return (last - first) / first * 100.0


def coefficient_of_variation(series: Sequence[float]) -> float:
    """Population standard deviation over the mean (0 for a zero mean)."""
    values = np.asarray(series, dtype=float)
    if values.size == 0:
        return 0.0
    mean = values.mean()
    if mean == 0:
        return 0.0
    return float(values.std(ddof=0) / mean)


def classify_usage_pattern(series: Sequence[float]) -> UsagePattern:
    """Classify a per-period usage series.

    Example:
        >>> classify_usage_pattern([10, 12, 14, 16, 18, 20])
        <UsagePattern.INCREASING: 'increasing'>
    """
    if len(series) < 2:
        return UsagePattern.STABLE

    change = percent_change(series)
    if abs(change) < STABLE_CHANGE_PCT:
        return UsagePattern.STABLE
    if change > TREND_CHANGE_PCT:
        return UsagePattern.INCREASING
    if change < -TREND_CHANGE_PCT:
        return UsagePattern.DECREASING
    if coefficient_of_variation(series) > SEASONAL_CV:
        return UsagePattern.SEASONAL
    return UsagePattern.STABLE


def describe_usage_pattern(series: Sequence[float]) -> Dict[str, Any]:
    """Pattern, percent change and a one-line description for display."""
    pattern = classify_usage_pattern(series)
    change = percent_change(series)
    if pattern == UsagePattern.INCREASING:
        description = f"Usage has increased by {round(change)}%"
    elif pattern == UsagePattern.DECREASING:
        description = f"Usage has decreased by {round(abs(change))}%"
    elif pattern == UsagePattern.SEASONAL:
        description = 'Usage shows seasonal or variable patterns'
    else:
        description = 'Usage has remained relatively stable'
    return {'pattern': pattern, 'change': change, 'description': description}


def usage_series(
    events: Sequence[ServiceEvent],
    item_code: str,
    now: datetime,
    period: str = 'monthly',
    periods: int | None = None,
) -> List[float]:
    """Quantity of one item used per period, oldest first.

    The series covers ``periods`` consecutive calendar periods ending with
    the period containing ``now``; periods without usage count as 0.
    """
    if period not in PERIOD_FREQUENCIES:
        raise ValueError(f"Unsupported usage period '{period}'")
    freq = PERIOD_FREQUENCIES[period]
    count = periods if periods is not None else DEFAULT_PERIODS[period]
    if count <= 0:
        return []

    frame = usage_frame(events)
    frame = frame[frame['item_code'] == item_code]
    return _series_from_frame(frame, now, freq, count)


def patterns_by_item(frame: pd.DataFrame, now: datetime, period: str = 'monthly') -> Dict[str, UsagePattern]:
    """Classify the usage series of every item code present in ``frame``."""
    freq = PERIOD_FREQUENCIES[period]
    count = DEFAULT_PERIODS[period]
    return {
        code: classify_usage_pattern(_series_from_frame(group, now, freq, count))
        for code, group in frame.groupby('item_code')
    }


def _period_index(now: datetime, freq: str, count: int) -> pd.PeriodIndex:
    reference = pd.Timestamp(now)
    if reference.tzinfo is not None:
        reference = reference.tz_localize(None)
    return pd.period_range(end=reference.to_period(freq), periods=count, freq=freq)


def _series_from_frame(frame: pd.DataFrame, now: datetime, freq: str, count: int) -> List[float]:
    index = _period_index(now, freq, count)
    totals = period_totals(frame, 'quantity', freq)
    return [float(v) for v in totals.reindex(index, fill_value=0.0).to_numpy()]
