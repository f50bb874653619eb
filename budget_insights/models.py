"""Input records and derived results of the budget utilization engine.

Input records (``BudgetItem``, ``BudgetSettings``, ``ServiceEvent``,
``UsageRecord``, ``Goal``, ``Subgoal``) are frozen: the engine never
mutates what the host hands it. Derived records are rebuilt on every
analysis call.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd

from . import settings

ItemId = Union[int, str]


class EventStatus(str, Enum):
    """Lifecycle states of a service event."""
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    WAIVED = 'waived'
    BILLED = 'billed'
    RESCHEDULED = 'rescheduled'


# Events whose usage has actually been delivered and charged
SPENDING_STATUSES = frozenset({EventStatus.COMPLETED, EventStatus.BILLED})


class UsageSource(str, Enum):
    """Where used quantities come from."""
    EVENTS = 'event-derived'
    SYNTHETIC = 'synthetic-fallback'


class UtilizationStatus(str, Enum):
    OVERUTILIZED = 'overutilized'
    UNDERUTILIZED = 'underutilized'
    NORMAL = 'normal'


class Severity(str, Enum):
    CRITICAL = 'critical'
    WARNING = 'warning'
    UNDERUTILIZED = 'underutilized'
    NORMAL = 'normal'


class UsagePattern(str, Enum):
    STABLE = 'stable'
    INCREASING = 'increasing'
    DECREASING = 'decreasing'
    SEASONAL = 'seasonal'


class RecommendationKind(str, Enum):
    UTILIZATION_INCREASE = 'utilization-increase'
    MISSING_CATEGORY = 'missing-category'
    COST_SUBSTITUTION = 'cost-substitution'


class Impact(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


IMPACT_RANK: Dict[Impact, int] = {Impact.HIGH: 3, Impact.MEDIUM: 2, Impact.LOW: 1}


def round_half_up(value: float) -> int:
    """Nearest whole number with halves rounded up (2.5 -> 3), unlike ``round``."""
    return math.floor(round(value, 9) + 0.5)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetItem:
    id: ItemId
    description: str
    item_code: str
    quantity: int
    unit_price: float
    category: str = settings.DEFAULT_CATEGORY
    name: Optional[str] = None
    is_active_plan: bool = True

    @property
    def total_cost(self) -> float:
        return self.quantity * self.unit_price

    @property
    def label(self) -> str:
        """Best human label for the item."""
        return self.description or self.name or self.item_code


@dataclass(frozen=True)
class BudgetSettings:
    created_at: Optional[datetime] = None
    end_of_plan: Optional[datetime] = None
    available_funds: Optional[float] = None
    plan_name: Optional[str] = None


@dataclass(frozen=True)
class UsageRecord:
    """Quantity of one budget item consumed by an event.

    ``unit_price`` is the price charged at the time of use; when it is
    missing the matched item's current unit price applies.
    """
    item_code: str
    quantity: float
    unit_price: Optional[float] = None


@dataclass(frozen=True)
class ServiceEvent:
    id: ItemId
    status: EventStatus
    occurred_at: datetime
    usage: Tuple[UsageRecord, ...] = ()
    provider: Optional[str] = None

    @property
    def is_spending(self) -> bool:
        return EventStatus(self.status) in SPENDING_STATUSES


@dataclass(frozen=True)
class Goal:
    id: ItemId
    title: str
    description: str = ''
    priority: Optional[str] = None
    status: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.description}".strip()


@dataclass(frozen=True)
class Subgoal(Goal):
    goal_id: Optional[ItemId] = None


# ---------------------------------------------------------------------------
# Derived results
# ---------------------------------------------------------------------------


@dataclass
class EnhancedBudgetItem:
    """A budget item together with its consumption metrics."""
    item: BudgetItem
    used_quantity: float
    used_cost: float
    utilization_rate: float
    ideal_utilization: float
    usage_pattern: UsagePattern = UsagePattern.STABLE
    is_synthetic: bool = False

    # Convenience pass-throughs so callers can treat this like the item
    @property
    def id(self) -> ItemId:
        return self.item.id

    @property
    def item_code(self) -> str:
        return self.item.item_code

    @property
    def description(self) -> str:
        return self.item.description

    @property
    def category(self) -> str:
        return self.item.category or settings.DEFAULT_CATEGORY

    @property
    def quantity(self) -> int:
        return self.item.quantity

    @property
    def unit_price(self) -> float:
        return self.item.unit_price

    @property
    def total_cost(self) -> float:
        return self.item.total_cost

    @property
    def remaining_cost(self) -> float:
        # Negative on overrun
        return self.total_cost - self.used_cost

    @property
    def remaining_quantity(self) -> float:
        return self.quantity - self.used_quantity

    @property
    def utilization_delta(self) -> float:
        return self.utilization_rate - self.ideal_utilization

    @property
    def ideal_used_quantity(self) -> int:
        return round_half_up(self.quantity * self.ideal_utilization)

    @property
    def is_overutilized(self) -> bool:
        # Compared without float noise; a delta of exactly 0.15 is normal
        return round(self.utilization_delta, 9) > settings.OVERUTILIZED_DELTA

    @property
    def is_underutilized(self) -> bool:
        return round(self.utilization_delta, 9) < settings.UNDERUTILIZED_DELTA

    @property
    def status(self) -> UtilizationStatus:
        if self.is_overutilized:
            return UtilizationStatus.OVERUTILIZED
        if self.is_underutilized:
            return UtilizationStatus.UNDERUTILIZED
        return UtilizationStatus.NORMAL

    @property
    def severity(self) -> Severity:
        rate = self.utilization_rate
        if rate > settings.CRITICAL_RATE:
            return Severity.CRITICAL
        if rate > settings.WARNING_RATE:
            return Severity.WARNING
        if rate < settings.LOW_RATE:
            return Severity.UNDERUTILIZED
        return Severity.NORMAL


@dataclass(frozen=True)
class ReallocationSuggestion:
    from_item: EnhancedBudgetItem
    to_item: EnhancedBudgetItem
    amount: int
    cost_impact: float
    same_category: bool
    description: str = ''


@dataclass(frozen=True)
class Recommendation:
    kind: RecommendationKind
    title: str
    description: str
    impact: Impact
    relevance: float
    item: Optional[EnhancedBudgetItem] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class SpendingEvent:
    occurred_at: datetime
    amount: float
    description: str
    item_name: str
    item_code: str


@dataclass(frozen=True)
class MonthlySpending:
    month: str
    period_start: datetime
    actual_spending: float
    target_spending: float
    projected_spending: Optional[float]
    cumulative_actual: float
    cumulative_target: float
    cumulative_projected: Optional[float]
    is_projected: bool


@dataclass(frozen=True)
class BudgetSummary:
    total_budget: float
    total_allocated: float
    total_spent: float
    remaining: float
    utilization_percentage: float
    spending_by_category: Dict[str, float]
    days_elapsed: int
    total_days: int
    remaining_days: int
    daily_budget: float
    daily_spend_rate: float
    projected_overspend: Optional[float]
    plan_label: str


@dataclass
class BudgetAnalysis:
    """Composite result of one ``analyze`` call."""
    reference_time: datetime
    usage_source: UsageSource
    items: List[EnhancedBudgetItem]
    depletion_date: datetime
    suggestions: List[ReallocationSuggestion]
    recommendations: List[Recommendation]
    summary: BudgetSummary
    spending_events: List[SpendingEvent] = field(default_factory=list)
    monthly_spending: List[MonthlySpending] = field(default_factory=list)

    @property
    def is_synthetic(self) -> bool:
        return self.usage_source == UsageSource.SYNTHETIC

    def items_frame(self) -> pd.DataFrame:
        from .utilization import utilization_frame
        return utilization_frame(self.items)
