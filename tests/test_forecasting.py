from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from budget_insights.forecasting import (
    NEVER_DEPLETES,
    calculate_monthly_spending,
    calculate_summary,
    forecast_depletion,
    monthly_spending_records,
    spending_by_category,
)
from budget_insights.models import (
    BudgetItem,
    BudgetSettings,
    EnhancedBudgetItem,
    EventStatus,
    ServiceEvent,
    SpendingEvent,
)

NOW = datetime(2024, 6, 1)


def completed(*days_ago, status=EventStatus.COMPLETED):
    return [
        ServiceEvent(id=index, status=status, occurred_at=NOW - timedelta(days=days))
        for index, days in enumerate(days_ago)
    ]


def used_item(quantity=10, used=6, price=50.0, category='Speech', code='SP01'):
    item = BudgetItem(id=code, description=f'{category} service', item_code=code, quantity=quantity,
                      unit_price=price, category=category)
    return EnhancedBudgetItem(
        item=item,
        used_quantity=used,
        used_cost=used * price,
        utilization_rate=used / quantity,
        ideal_utilization=0.5,
    )


def test_fewer_than_two_completed_events_forecasts_six_months():
    events = completed(3) + completed(1, 2, 4, status=EventStatus.SCHEDULED)
    assert forecast_depletion(1000, 300, events, NOW) == datetime(2024, 12, 1)
    assert forecast_depletion(1000, 300, [], NOW) == datetime(2024, 12, 1)


def test_forecast_from_spending_rate():
    # $300 over 30 days is $10/day, leaving 70 days of budget
    assert forecast_depletion(1000, 300, completed(30, 0), NOW) == NOW + timedelta(days=70)


def test_billed_events_count_as_spending():
    events = completed(30) + completed(0, status=EventStatus.BILLED)
    assert forecast_depletion(1000, 300, events, NOW) == NOW + timedelta(days=70)


def test_forecast_never_earlier_than_thirty_days():
    assert forecast_depletion(1000, 990, completed(10, 0), NOW) == NOW + timedelta(days=30)
    assert forecast_depletion(1000, 1500, completed(10, 0), NOW) == NOW + timedelta(days=30)


def test_zero_spending_rate_never_depletes():
    result = forecast_depletion(1000, 0, completed(10, 0), NOW)
    assert result == NEVER_DEPLETES
    assert result >= NOW + timedelta(days=30)


def test_zero_spending_rate_keeps_timezone():
    now = NOW.replace(tzinfo=timezone.utc)
    events = [ServiceEvent(id=i, status='completed', occurred_at=now - timedelta(days=i)) for i in range(2)]
    result = forecast_depletion(1000, 0, events, now)
    assert result.tzinfo == timezone.utc
    assert result.year == 9999


def test_summary_for_half_elapsed_plan():
    plan = BudgetSettings(created_at=NOW - timedelta(days=50), end_of_plan=NOW + timedelta(days=50),
                          available_funds=1000)
    summary = calculate_summary([used_item()], plan, NOW)

    assert summary.total_budget == 1000
    assert summary.total_allocated == 500
    assert summary.total_spent == 300
    assert summary.remaining == 700
    assert summary.utilization_percentage == pytest.approx(30.0)
    assert summary.spending_by_category == {'Speech': 300.0}
    assert summary.days_elapsed == 50
    assert summary.total_days == 100
    assert summary.remaining_days == 50
    assert summary.daily_budget == 10
    assert summary.daily_spend_rate == 6
    assert summary.projected_overspend is None
    assert summary.plan_label == 'Plan from Apr 2024'


def test_summary_projects_overspend_against_allocation():
    plan = BudgetSettings(created_at=NOW - timedelta(days=50), end_of_plan=NOW + timedelta(days=50),
                          plan_name='2024 plan')
    summary = calculate_summary([used_item()], plan, NOW)

    assert summary.total_budget == 500
    assert summary.projected_overspend == pytest.approx(100.0)
    assert summary.plan_label == '2024 plan'


def test_summary_without_items_or_plan():
    summary = calculate_summary([], None, NOW)
    assert summary.total_budget == 0
    assert summary.utilization_percentage == 0.0
    assert summary.spending_by_category == {}
    assert summary.plan_label == 'Current plan'


def test_spending_by_category_groups_items():
    items = [used_item(code='A'), used_item(code='B', used=2), used_item(category='OT', code='C', used=1)]
    assert spending_by_category(items) == {'OT': 50.0, 'Speech': 400.0}


def test_monthly_spending_timeline():
    plan = BudgetSettings(created_at=datetime(2024, 1, 1), end_of_plan=datetime(2024, 12, 31))
    events = [
        SpendingEvent(datetime(2024, 1, 15), 50.0, 'Session', 'Speech', 'SP01'),
        SpendingEvent(datetime(2024, 2, 10), 100.0, 'Session', 'Speech', 'SP01'),
        SpendingEvent(datetime(2024, 2, 20), 50.0, 'Session', 'Speech', 'SP01'),
    ]
    frame = calculate_monthly_spending(events, plan, 1200.0, datetime(2024, 3, 15))

    assert len(frame) == 12
    assert list(frame['Month'][:3]) == ['Jan 2024', 'Feb 2024', 'Mar 2024']
    assert list(frame['Actual Spending'][:3]) == [50.0, 150.0, 0.0]
    assert frame['Cumulative Actual'].iloc[1] == 200.0
    assert (frame['Target Spending'] == 100.0).all()
    assert frame['Cumulative Target'].iloc[-1] == pytest.approx(1200.0)

    assert frame['Projected Spending'][:3].isna().all()
    assert frame['Projected Spending'].iloc[3] == pytest.approx(200.0 / 3)
    assert frame['Cumulative Projected'].iloc[-1] == pytest.approx(800.0)
    assert list(frame['Is Projected'][2:4]) == [False, True]

    records = monthly_spending_records(frame)
    assert records[0].month == 'Jan 2024'
    assert records[0].projected_spending is None
    assert records[3].is_projected is True


def test_monthly_spending_without_events():
    frame = calculate_monthly_spending([], None, 0.0, NOW)
    assert not frame.empty
    assert (frame['Actual Spending'] == 0).all()
    assert isinstance(frame['Period Start'].iloc[0], (datetime, pd.Timestamp))
