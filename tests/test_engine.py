from datetime import datetime, timedelta

import pytest

from budget_insights import (
    BudgetItem,
    BudgetSettings,
    BudgetUtilizationAnalytics,
    EventStatus,
    Goal,
    InvalidBudgetInputError,
    RecommendationKind,
    ServiceEvent,
    UsageRecord,
    UsageSource,
    UtilizationStatus,
    analyze,
)
from budget_insights.forecasting import forecast_depletion

NOW = datetime(2024, 6, 1)
PLAN = BudgetSettings(
    created_at=NOW - timedelta(days=50),
    end_of_plan=NOW + timedelta(days=50),
    available_funds=1000,
)
SPEECH = BudgetItem(id=1, description='Speech therapy session', item_code='SP01', quantity=10,
                    unit_price=50.0, category='Speech')
SOCIAL_GOAL = Goal(id=1, title='Make friends with peers', description='Practise social play')


def sessions(count=6, code='SP01'):
    return [
        ServiceEvent(
            id=index,
            status=EventStatus.COMPLETED,
            occurred_at=NOW - timedelta(days=7 * index + 1),
            usage=(UsageRecord(code, 1),),
            provider='Alex',
        )
        for index in range(count)
    ]


def test_analyze_half_elapsed_plan():
    events = sessions()
    result = analyze([SPEECH], PLAN, events, [SOCIAL_GOAL], [], NOW, jitter=False)

    [item] = result.items
    assert item.used_cost == 300.0
    assert item.utilization_rate == pytest.approx(0.6)
    assert item.ideal_utilization == 0.5
    assert item.utilization_delta == pytest.approx(0.1)
    assert item.status == UtilizationStatus.NORMAL

    assert result.reference_time == NOW
    assert result.usage_source == UsageSource.EVENTS
    assert result.is_synthetic is False
    assert result.summary.total_budget == 1000
    assert result.summary.total_spent == 300
    assert result.summary.remaining == 700
    assert result.depletion_date == forecast_depletion(1000, 300, events, NOW)
    assert result.suggestions == []
    assert any(rec.kind == RecommendationKind.MISSING_CATEGORY and rec.category == 'Social Skills'
               for rec in result.recommendations)

    assert len(result.spending_events) == 6
    assert result.spending_events[0].occurred_at == NOW - timedelta(days=1)
    assert result.spending_events[0].description == 'Session with Alex'
    assert result.spending_events[0].amount == 50.0
    assert result.monthly_spending
    assert list(result.items_frame()['Item Code']) == ['SP01']


def test_inactive_plan_items_are_excluded():
    old = BudgetItem(id=2, description='Old plan', item_code='OLD', quantity=4, unit_price=25.0,
                     is_active_plan=False)
    result = analyze([SPEECH, old], PLAN, sessions(), [], [], NOW)
    assert [item.item_code for item in result.items] == ['SP01']
    assert result.summary.total_allocated == 500


def test_synthetic_usage_must_be_requested():
    default = analyze([SPEECH], PLAN, [], [], [], NOW)
    assert default.usage_source == UsageSource.EVENTS
    assert default.items[0].used_quantity == 0

    synthetic = analyze([SPEECH], PLAN, [], [], [], NOW, usage_source=UsageSource.SYNTHETIC)
    assert synthetic.is_synthetic
    assert all(item.is_synthetic for item in synthetic.items)


def test_seeded_analysis_is_reproducible():
    under = BudgetItem(id=3, description='Speech group session', item_code='SP02', quantity=20,
                       unit_price=150.0, category='Speech')
    goals = [Goal(id=1, title='Speech clarity'), SOCIAL_GOAL]

    def relevances(seed):
        result = analyze([SPEECH, under], PLAN, sessions(), goals, [], NOW, seed=seed)
        return [(rec.kind, rec.relevance) for rec in result.recommendations]

    assert relevances(11) == relevances(11)


def test_facade_methods_recompute_from_inputs():
    analytics = BudgetUtilizationAnalytics([SPEECH], PLAN, sessions(), NOW, goals=[SOCIAL_GOAL], jitter=False)

    assert analytics.calculate_utilization()[0].used_cost == 300.0
    assert analytics.calculate_summary().total_spent == 300.0
    assert analytics.forecast_depletion() == analytics.forecast_depletion()
    assert analytics.suggest_reallocations() == []
    assert analytics.recommend_services(sort_by='impact')[0].kind == RecommendationKind.MISSING_CATEGORY
    # The 100-day plan spans Apr to Jul 2024
    assert len(analytics.calculate_monthly_spending()) == 4
    assert analytics.utilization_frame().loc[0, 'Used Cost'] == 300.0

    analytics.events = sessions(2)
    assert analytics.calculate_utilization()[0].used_cost == 100.0


def test_missing_plan_dates_use_defaults():
    result = analyze([SPEECH], BudgetSettings(), sessions(), [], [], NOW)
    assert result.summary.total_days == 365
    assert result.summary.days_elapsed == 30


@pytest.mark.parametrize('items, plan, events, field', [
    ([BudgetItem(1, 'Bad', 'B1', -1, 50.0)], PLAN, [], 'quantity'),
    ([BudgetItem(1, 'Bad', 'B1', 1, -50.0)], PLAN, [], 'unit_price'),
    ([SPEECH], BudgetSettings(available_funds=-1), [], 'available_funds'),
    ([SPEECH], PLAN, [ServiceEvent(1, EventStatus.COMPLETED, NOW, (UsageRecord('SP01', -2),))], 'quantity'),
    ([SPEECH], PLAN, [ServiceEvent(1, EventStatus.COMPLETED, NOW, (UsageRecord('SP01', 1, -5.0),))],
     'unit_price'),
    ([SPEECH], PLAN, [ServiceEvent(1, 'lost', NOW)], 'status'),
])
def test_invalid_inputs_raise(items, plan, events, field):
    with pytest.raises(InvalidBudgetInputError) as excinfo:
        analyze(items, plan, events, [], [], NOW)
    assert excinfo.value.field == field


def test_reference_time_before_plan_creation_raises():
    plan = BudgetSettings(created_at=NOW + timedelta(days=1))
    with pytest.raises(InvalidBudgetInputError):
        analyze([SPEECH], plan, [], [], [], NOW)


def test_invalid_input_is_a_value_error():
    with pytest.raises(ValueError):
        BudgetUtilizationAnalytics([BudgetItem(1, 'Bad', 'B1', -1, 50.0)], PLAN, [], NOW)


def test_unknown_sort_key_raises():
    with pytest.raises(ValueError):
        analyze([SPEECH], PLAN, [], [], [], NOW, sort_by='cost')
