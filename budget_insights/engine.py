"""Budget utilization analytics.

``BudgetUtilizationAnalytics`` bundles the inputs of one plan and exposes
each analysis as a method; ``analyze`` runs them all and returns a
``BudgetAnalysis``. Every method recomputes from the inputs, so the same
object can be queried repeatedly without stale results.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidBudgetInputError
from .forecasting import (
    calculate_monthly_spending,
    calculate_summary,
    forecast_depletion,
    monthly_spending_records,
    total_budget_for,
)
from .gap_analysis import Taxonomy, recommend_services
from .models import (
    BudgetAnalysis,
    BudgetItem,
    BudgetSettings,
    BudgetSummary,
    EnhancedBudgetItem,
    EventStatus,
    Goal,
    ReallocationSuggestion,
    Recommendation,
    ServiceEvent,
    SpendingEvent,
    Subgoal,
    UsageSource,
)
from .plan_progress import plan_progress
from .reallocation import suggest_reallocations
from .usage_data import calculate_spending_events
from .utilization import active_items, calculate_utilization, resolve_usage_source, utilization_frame

logger = logging.getLogger(__name__)


def validate_inputs(
    items: Sequence[BudgetItem],
    plan: Optional[BudgetSettings],
    events: Sequence[ServiceEvent],
    now: datetime,
) -> None:
    """Reject inputs that make the analysis meaningless.

    Raises:
        InvalidBudgetInputError: On negative quantities, prices or funds,
            unknown event statuses, or a reference time before the plan
            was created
    """
    for item in items:
        if item.quantity < 0:
            raise InvalidBudgetInputError(
                f"Budget item {item.item_code!r} has negative quantity {item.quantity}", 'quantity'
            )
        if item.unit_price < 0:
            raise InvalidBudgetInputError(
                f"Budget item {item.item_code!r} has negative unit price {item.unit_price}", 'unit_price'
            )

    if plan is not None:
        if plan.available_funds is not None and plan.available_funds < 0:
            raise InvalidBudgetInputError(
                f"Available funds cannot be negative ({plan.available_funds})", 'available_funds'
            )
        if plan.created_at is not None and now < plan.created_at:
            raise InvalidBudgetInputError(
                f"Reference time {now} is earlier than plan creation {plan.created_at}", 'reference_time'
            )

    for event in events:
        try:
            EventStatus(event.status)
        except ValueError as exc:
            raise InvalidBudgetInputError(
                f"Event {event.id!r} has unknown status {event.status!r}", 'status'
            ) from exc
        for record in event.usage:
            if record.quantity < 0:
                raise InvalidBudgetInputError(
                    f"Event {event.id!r} uses a negative quantity of {record.item_code!r}", 'quantity'
                )
            if record.unit_price is not None and record.unit_price < 0:
                raise InvalidBudgetInputError(
                    f"Event {event.id!r} charges a negative price for {record.item_code!r}", 'unit_price'
                )


class BudgetUtilizationAnalytics:
    """Utilization analytics for one budget plan."""

    def __init__(
        self,
        budget_items: Sequence[BudgetItem],
        budget_settings: Optional[BudgetSettings],
        events: Sequence[ServiceEvent],
        reference_time: datetime,
        goals: Sequence[Goal] = (),
        subgoals: Sequence[Subgoal] = (),
        usage_source: Union[UsageSource, str] = UsageSource.EVENTS,
        seed: Optional[int] = None,
        jitter: bool = True,
        taxonomy: Optional[Taxonomy] = None,
    ):
        """Initialize with plan data.

        Args:
            budget_items: Items of the plan; inactive-plan items are ignored
            budget_settings: Plan settings (may be ``None`` for a bare plan)
            events: Service events with optional usage records
            reference_time: The "now" all plan progress is measured against
            goals: Client goals used for relevance scoring
            subgoals: Client subgoals used for relevance scoring
            usage_source: ``UsageSource.SYNTHETIC`` opts in to estimated usage
                when no usage records exist
            seed: Seed for the recommendation jitter; ``None`` is unseeded
            jitter: Set ``False`` to score recommendations without jitter
            taxonomy: Service category -> keywords override

        Raises:
            InvalidBudgetInputError: See ``validate_inputs``
        """
        self.budget_items = list(budget_items)
        self.budget_settings = budget_settings
        self.events = list(events)
        self.reference_time = reference_time
        self.goals = list(goals)
        self.subgoals = list(subgoals)
        self.usage_source = UsageSource(usage_source)
        self.seed = seed
        self.jitter = jitter
        self.taxonomy = taxonomy
        validate_inputs(self.budget_items, budget_settings, self.events, reference_time)

    @property
    def active_items(self) -> List[BudgetItem]:
        return active_items(self.budget_items)

    def _rng(self) -> Optional[np.random.Generator]:
        # A fresh generator per call keeps repeated calls with a seed identical
        return np.random.default_rng(self.seed) if self.jitter else None

    def calculate_utilization(self) -> List[EnhancedBudgetItem]:
        return calculate_utilization(
            self.active_items, self.budget_settings, self.events, self.reference_time, self.usage_source
        )

    def utilization_frame(self) -> pd.DataFrame:
        return utilization_frame(self.calculate_utilization())

    def calculate_spending_events(self) -> List[SpendingEvent]:
        return calculate_spending_events(self.events, self.active_items)

    def calculate_summary(self, items: Optional[List[EnhancedBudgetItem]] = None) -> BudgetSummary:
        if items is None:
            items = self.calculate_utilization()
        return calculate_summary(items, self.budget_settings, self.reference_time)

    def forecast_depletion(self, items: Optional[List[EnhancedBudgetItem]] = None) -> datetime:
        """Projected depletion date of the plan's total budget."""
        if items is None:
            items = self.calculate_utilization()
        total_budget = total_budget_for(items, self.budget_settings)
        total_spent = sum(item.used_cost for item in items)
        return forecast_depletion(total_budget, total_spent, self.events, self.reference_time)

    def suggest_reallocations(
        self, items: Optional[List[EnhancedBudgetItem]] = None
    ) -> List[ReallocationSuggestion]:
        if items is None:
            items = self.calculate_utilization()
        progress = plan_progress(self.budget_settings, self.reference_time)
        return suggest_reallocations(items, progress)

    def recommend_services(
        self,
        items: Optional[List[EnhancedBudgetItem]] = None,
        sort_by: str = 'relevance',
    ) -> List[Recommendation]:
        if items is None:
            items = self.calculate_utilization()
        return recommend_services(
            items, self.goals, self.subgoals, sort_by=sort_by, rng=self._rng(), taxonomy=self.taxonomy
        )

    def calculate_monthly_spending(
        self,
        items: Optional[List[EnhancedBudgetItem]] = None,
        spending_events: Optional[List[SpendingEvent]] = None,
    ) -> pd.DataFrame:
        """Monthly actual/target/projected spending table for the plan window."""
        if items is None:
            items = self.calculate_utilization()
        if spending_events is None:
            spending_events = self.calculate_spending_events()
        return calculate_monthly_spending(
            spending_events,
            self.budget_settings,
            total_budget_for(items, self.budget_settings),
            self.reference_time,
        )

    def analyze(self, sort_by: str = 'relevance') -> BudgetAnalysis:
        """Run every analysis over one shared utilization pass."""
        items = self.calculate_utilization()
        source = resolve_usage_source(self.events, self.usage_source)
        spending_events = self.calculate_spending_events()
        monthly = self.calculate_monthly_spending(items, spending_events)
        analysis = BudgetAnalysis(
            reference_time=self.reference_time,
            usage_source=source,
            items=items,
            depletion_date=self.forecast_depletion(items),
            suggestions=self.suggest_reallocations(items),
            recommendations=self.recommend_services(items, sort_by=sort_by),
            summary=self.calculate_summary(items),
            spending_events=spending_events,
            monthly_spending=monthly_spending_records(monthly),
        )
        logger.info(
            "Analyzed %d items (%s): %.2f of %.2f spent, %d suggestions, %d recommendations",
            len(items), source.value, analysis.summary.total_spent, analysis.summary.total_budget,
            len(analysis.suggestions), len(analysis.recommendations),
        )
        return analysis


def analyze(
    budget_items: Sequence[BudgetItem],
    budget_settings: Optional[BudgetSettings],
    events: Sequence[ServiceEvent],
    goals: Sequence[Goal],
    subgoals: Sequence[Subgoal],
    reference_time: datetime,
    *,
    usage_source: Union[UsageSource, str] = UsageSource.EVENTS,
    seed: Optional[int] = None,
    jitter: bool = True,
    sort_by: str = 'relevance',
    taxonomy: Optional[Taxonomy] = None,
) -> BudgetAnalysis:
    """Analyse one budget plan end to end.

    Example:
        >>> result = analyze(items, plan, events, goals, subgoals, now, seed=7)
        >>> result.summary.utilization_percentage
    """
    analytics = BudgetUtilizationAnalytics(
        budget_items,
        budget_settings,
        events,
        reference_time,
        goals=goals,
        subgoals=subgoals,
        usage_source=usage_source,
        seed=seed,
        jitter=jitter,
        taxonomy=taxonomy,
    )
    return analytics.analyze(sort_by=sort_by)
