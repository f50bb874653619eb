"""Per-item utilization of a budget plan.

Two strategies produce the used quantity of each item:

* ``UsageSource.EVENTS`` sums the usage records attached to service
  events. It is exact and always wins when any usage record exists.
* ``UsageSource.SYNTHETIC`` estimates usage from plan progress and the
  event count. It only exists to populate demo screens for plans with no
  recorded usage, must be requested explicitly, and flags every item it
  produces with ``is_synthetic``.
"""

from __future__ import annotations

import logging
import zlib
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

import pandas as pd

from .models import (
    BudgetItem,
    BudgetSettings,
    EnhancedBudgetItem,
    ServiceEvent,
    UsagePattern,
    UsageSource,
    UtilizationStatus,
    round_half_up,
)
from .patterns import patterns_by_item
from .plan_progress import ideal_utilization, plan_progress
from .usage_data import has_usage, index_usage, priced_usage, usage_frame

logger = logging.getLogger(__name__)

SORT_FIELDS = ('name', 'category', 'utilization_rate')


def active_items(items: Iterable[BudgetItem]) -> List[BudgetItem]:
    """Items belonging to the active plan."""
    return [item for item in items if item.is_active_plan]


def resolve_usage_source(
    events: Sequence[ServiceEvent],
    requested: Union[UsageSource, str] = UsageSource.EVENTS,
) -> UsageSource:
    """Pick the strategy actually used for a request.

    Recorded usage always takes precedence over a synthetic request.
    """
    requested = UsageSource(requested)
    if has_usage(events):
        if requested == UsageSource.SYNTHETIC:
            logger.info("Usage records present; ignoring synthetic usage request")
        return UsageSource.EVENTS
    if requested == UsageSource.SYNTHETIC:
        logger.warning("No usage records found; utilization figures are SYNTHETIC estimates")
    return requested


def _numeric_id(item_id) -> int:
    try:
        return int(item_id)
    except (TypeError, ValueError):
        return zlib.crc32(str(item_id).encode('utf-8'))


def synthetic_utilization_rate(item: BudgetItem, progress: float, event_count: int) -> float:
    """Plausible, item-specific utilization rate for demo data.

    Blends plan progress with the event count, then offsets it by a
    per-item variance so items do not all show the same rate. A subset of
    items may run over allocation (up to 120%).
    """
    if event_count > 0:
        base = (progress + min(1.0, event_count / 20)) / 2
    else:
        base = progress
    item_id = _numeric_id(item.id)
    rate = base + (item_id % 5) / 10
    cap = 1.2 if item_id % 7 == 0 else 1.0
    return max(0.0, min(cap, rate))


def calculate_utilization(
    items: Sequence[BudgetItem],
    plan: Optional[BudgetSettings],
    events: Sequence[ServiceEvent],
    now: datetime,
    source: Union[UsageSource, str] = UsageSource.EVENTS,
) -> List[EnhancedBudgetItem]:
    """Attach consumption metrics to every budget item.

    Args:
        items: Budget items to analyse (inactive plan items included as given)
        plan: Plan settings defining the window for ideal utilization
        events: Service events, optionally carrying usage records
        now: Reference time
        source: Requested usage strategy, see ``resolve_usage_source``

    Returns:
        One ``EnhancedBudgetItem`` per input item, in input order
    """
    ideal = ideal_utilization(plan, now)
    resolved = resolve_usage_source(events, source)

    if resolved == UsageSource.SYNTHETIC:
        progress = plan_progress(plan, now)
        enhanced = []
        for item in items:
            rate = synthetic_utilization_rate(item, progress, len(events))
            used = round_half_up(item.quantity * rate)
            enhanced.append(_enhance(item, used, used * item.unit_price, ideal, is_synthetic=True))
        return enhanced

    frame = priced_usage(usage_frame(events), items)
    totals = index_usage(frame)
    patterns = patterns_by_item(frame, now) if not frame.empty else {}

    enhanced = []
    for item in items:
        if item.item_code in totals.index:
            used = float(totals.at[item.item_code, 'used_quantity'])
            used_cost = float(totals.at[item.item_code, 'used_cost'])
        else:
            used, used_cost = 0.0, 0.0
        pattern = patterns.get(item.item_code, UsagePattern.STABLE)
        enhanced.append(_enhance(item, used, used_cost, ideal, pattern=pattern))

    logger.debug(
        "Computed utilization for %d items from %d usage records",
        len(enhanced), len(frame),
    )
    return enhanced


def _enhance(
    item: BudgetItem,
    used: float,
    used_cost: float,
    ideal: float,
    pattern: UsagePattern = UsagePattern.STABLE,
    is_synthetic: bool = False,
) -> EnhancedBudgetItem:
    rate = used / item.quantity if item.quantity > 0 else 0.0
    return EnhancedBudgetItem(
        item=item,
        used_quantity=used,
        used_cost=used_cost,
        utilization_rate=rate,
        ideal_utilization=ideal,
        usage_pattern=pattern,
        is_synthetic=is_synthetic,
    )


def filter_items(
    items: Sequence[EnhancedBudgetItem],
    status: Union[UtilizationStatus, str, None] = None,
) -> List[EnhancedBudgetItem]:
    """Items with the given utilization status (all items for ``None``/'all')."""
    if status is None or status == 'all':
        return list(items)
    wanted = UtilizationStatus(status)
    return [item for item in items if item.status == wanted]


def sort_items(
    items: Sequence[EnhancedBudgetItem],
    field: str = 'utilization_rate',
    descending: bool = True,
) -> List[EnhancedBudgetItem]:
    """Sort enhanced items by name, category or utilization rate."""
    if field == 'name':
        key = lambda item: (item.description or '').lower()
    elif field == 'category':
        key = lambda item: (item.category or '').lower()
    elif field == 'utilization_rate':
        key = lambda item: item.utilization_rate
    else:
        raise ValueError(f"Unsupported sort field '{field}', expected one of {SORT_FIELDS}")
    return sorted(items, key=key, reverse=descending)


def utilization_frame(items: Sequence[EnhancedBudgetItem]) -> pd.DataFrame:
    """Tabulate enhanced items, one row per item."""
    columns = [
        'Item Code', 'Description', 'Category', 'Quantity', 'Unit Price',
        'Total Cost', 'Used', 'Used Cost', 'Remaining Cost', 'Utilization Rate',
        'Ideal Utilization', 'Utilization Delta', 'Status', 'Severity',
        'Usage Pattern', 'Synthetic',
    ]
    rows = [
        {
            'Item Code': item.item_code,
            'Description': item.description,
            'Category': item.category,
            'Quantity': item.quantity,
            'Unit Price': item.unit_price,
            'Total Cost': item.total_cost,
            'Used': item.used_quantity,
            'Used Cost': item.used_cost,
            'Remaining Cost': item.remaining_cost,
            'Utilization Rate': item.utilization_rate,
            'Ideal Utilization': item.ideal_utilization,
            'Utilization Delta': item.utilization_delta,
            'Status': item.status.value,
            'Severity': item.severity.value,
            'Usage Pattern': item.usage_pattern.value,
            'Synthetic': item.is_synthetic,
        }
        for item in items
    ]
    return pd.DataFrame(rows, columns=columns)
