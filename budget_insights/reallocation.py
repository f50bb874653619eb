"""Reallocation suggestions between over- and under-used budget items.

Each item running ahead of plan is paired with at most one donor item
running behind plan, preferring a donor from the same category. The
transfer covers the projected shortage of the receiving item as far as
the donor's spare allocation allows.
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence

from .formatting import format_currency
from .models import EnhancedBudgetItem, ReallocationSuggestion

logger = logging.getLogger(__name__)


def overutilized_items(items: Sequence[EnhancedBudgetItem]) -> List[EnhancedBudgetItem]:
    """Items ahead of plan, largest delta first."""
    over = [item for item in items if item.is_overutilized]
    return sorted(over, key=lambda item: item.utilization_delta, reverse=True)


def underutilized_items(items: Sequence[EnhancedBudgetItem]) -> List[EnhancedBudgetItem]:
    """Items behind plan, most under-used first."""
    under = [item for item in items if item.is_underutilized]
    return sorted(under, key=lambda item: item.utilization_delta)


def projected_shortage(item: EnhancedBudgetItem, progress: float) -> int:
    """Extra units the item will need by the end of the plan at its current pace.

    Returns 0 when no time has elapsed, as there is no pace to project.
    """
    if progress <= 0:
        return 0
    # round() drops float noise such as 6.000000000000001 before ceil
    shortage = item.quantity * (item.utilization_rate / progress - 1)
    return math.ceil(round(shortage, 9))


def available_to_reallocate(item: EnhancedBudgetItem) -> int:
    """Units the item will not need if it only keeps pace with the plan."""
    return math.floor(item.quantity - item.ideal_used_quantity)


def suggest_reallocations(
    items: Sequence[EnhancedBudgetItem],
    progress: float,
) -> List[ReallocationSuggestion]:
    """Propose unit transfers from under-used to over-used items.

    Args:
        items: Enhanced budget items of one plan
        progress: Raw plan progress (elapsed / total days)

    Returns:
        At most one suggestion per over-utilized item; amounts are always
        positive
    """
    over = overutilized_items(items)
    under = underutilized_items(items)
    suggestions: List[ReallocationSuggestion] = []
    if not over or not under:
        return suggestions

    for to_item in over:
        same_category = [item for item in under if item.category == to_item.category]
        candidates = same_category or under

        shortage = projected_shortage(to_item, progress)
        if shortage <= 0:
            continue

        for from_item in candidates:
            available = available_to_reallocate(from_item)
            if available <= 0:
                continue
            amount = min(shortage, available)
            cost_impact = amount * (to_item.unit_price - from_item.unit_price)
            suggestions.append(ReallocationSuggestion(
                from_item=from_item,
                to_item=to_item,
                amount=amount,
                cost_impact=cost_impact,
                same_category=from_item.category == to_item.category,
                description=(
                    f"Move {amount} units from {from_item.description} to {to_item.description}"
                    f" ({_impact_text(cost_impact)})"
                ),
            ))
            break

    logger.debug("Generated %d reallocation suggestions", len(suggestions))
    return suggestions


def _impact_text(cost_impact: float) -> str:
    if cost_impact > 0:
        return f"adds {format_currency(cost_impact)}"
    if cost_impact < 0:
        return f"saves {format_currency(-cost_impact)}"
    return 'cost neutral'
