"""Top-level package for the budget utilization analytics engine.

The engine takes a funded service plan (budget items, plan settings,
service events and client goals) and reports how the plan is being used.
The primary modules are:

* ``utilization`` - per-item used quantity, utilization rate and status
* ``patterns`` - usage trend classification
* ``forecasting`` - depletion date, summary totals and monthly timeline
* ``reallocation`` - unit transfers from under-used to over-used items
* ``gap_analysis`` - goal-driven service recommendations
* ``engine`` - ``analyze`` and the ``BudgetUtilizationAnalytics`` facade
* ``records`` - conversion of host dicts into the model types

Typical use:

```python
from budget_insights import analyze

result = analyze(items, plan, events, goals, subgoals, now, seed=42)
```
"""

from .engine import BudgetUtilizationAnalytics, analyze, validate_inputs
from .exceptions import InvalidBudgetInputError
from .models import (
    BudgetAnalysis,
    BudgetItem,
    BudgetSettings,
    BudgetSummary,
    EnhancedBudgetItem,
    EventStatus,
    Goal,
    Impact,
    MonthlySpending,
    ReallocationSuggestion,
    Recommendation,
    RecommendationKind,
    ServiceEvent,
    Severity,
    SpendingEvent,
    Subgoal,
    UsagePattern,
    UsageRecord,
    UsageSource,
    UtilizationStatus,
)
from .settings import configure_logging

__all__ = [
    "analyze",
    "BudgetUtilizationAnalytics",
    "validate_inputs",
    "configure_logging",
    "InvalidBudgetInputError",
    "BudgetAnalysis",
    "BudgetItem",
    "BudgetSettings",
    "BudgetSummary",
    "EnhancedBudgetItem",
    "EventStatus",
    "Goal",
    "Impact",
    "MonthlySpending",
    "ReallocationSuggestion",
    "Recommendation",
    "RecommendationKind",
    "ServiceEvent",
    "Severity",
    "SpendingEvent",
    "Subgoal",
    "UsagePattern",
    "UsageRecord",
    "UsageSource",
    "UtilizationStatus",
]
