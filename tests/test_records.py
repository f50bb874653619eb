from datetime import datetime

import pytest

from budget_insights.exceptions import InvalidBudgetInputError
from budget_insights.models import EventStatus
from budget_insights.records import (
    coerce_number,
    coerce_timestamp,
    load_budget_items,
    load_event,
    load_events,
    load_goals,
    load_settings,
    load_subgoals,
)


def test_camel_case_budget_item():
    [item] = load_budget_items([{
        'id': 7,
        'description': 'Speech therapy',
        'itemCode': '15_048_0128_1_3',
        'quantity': '10',
        'unitPrice': '193.99',
        'category': 'Capacity Building',
        'usedQuantity': 4,
        'isActivePlan': 'true',
    }])
    assert item.item_code == '15_048_0128_1_3'
    assert item.quantity == 10
    assert isinstance(item.quantity, int)
    assert item.unit_price == 193.99
    assert item.is_active_plan is True
    assert not hasattr(item, 'used_quantity')


def test_snake_case_budget_item_defaults():
    [item] = load_budget_items([{'id': 'a', 'item_code': 'X1', 'quantity': 2, 'unit_price': 10}])
    assert item.category == 'Uncategorized'
    assert item.description == ''
    assert item.is_active_plan is True


def test_inactive_flag_from_string():
    [item] = load_budget_items([{'id': 1, 'itemCode': 'X', 'quantity': 1, 'unitPrice': 1, 'isActivePlan': 'false'}])
    assert item.is_active_plan is False


def test_settings_aliases():
    settings = load_settings({
        'createdAt': '2024-01-01T00:00:00',
        'endOfPlan': '2024-12-31',
        'ndisFunds': '15000.50',
        'planName': 'Plan 2024',
    })
    assert settings.created_at == datetime(2024, 1, 1)
    assert settings.end_of_plan == datetime(2024, 12, 31)
    assert settings.available_funds == 15000.50
    assert settings.plan_name == 'Plan 2024'
    assert load_settings(None) is None
    assert load_settings({}).available_funds is None


def test_session_with_products_in_note():
    event = load_event({
        'id': 12,
        'status': 'Completed',
        'sessionDate': '2024-05-02T10:30:00',
        'therapistName': 'Alex',
        'note': {'products': [{'productCode': 'SP01', 'quantity': 2, 'unitPrice': '50'}, {'code': 'OT01'}]},
    })
    assert event.status == EventStatus.COMPLETED
    assert event.occurred_at == datetime(2024, 5, 2, 10, 30)
    assert event.provider == 'Alex'
    assert [record.item_code for record in event.usage] == ['SP01', 'OT01']
    assert event.usage[0].quantity == 2
    assert event.usage[0].unit_price == 50.0
    assert event.usage[1].quantity == 1
    assert event.usage[1].unit_price is None


def test_event_without_usage():
    [event] = load_events([{'id': 1, 'status': 'scheduled', 'date': datetime(2024, 5, 2)}])
    assert event.usage == ()
    assert event.provider is None


def test_goals_and_subgoals():
    [goal] = load_goals([{'id': 1, 'title': 'Speech clarity', 'priority': 'high'}])
    [subgoal] = load_subgoals([{'id': 2, 'title': 'Say /s/ sounds', 'goalId': 1}])
    assert goal.description == ''
    assert goal.priority == 'high'
    assert subgoal.goal_id == 1


def test_unparseable_price_names_field():
    with pytest.raises(InvalidBudgetInputError) as excinfo:
        load_budget_items([{'id': 1, 'itemCode': 'X', 'quantity': 1, 'unitPrice': 'free'}])
    assert excinfo.value.field == 'unit_price'


def test_missing_item_code_names_field():
    with pytest.raises(InvalidBudgetInputError) as excinfo:
        load_budget_items([{'id': 1, 'quantity': 1, 'unitPrice': 5}])
    assert excinfo.value.field == 'item_code'


def test_unknown_status_raises():
    with pytest.raises(InvalidBudgetInputError) as excinfo:
        load_event({'id': 1, 'status': 'lost', 'date': '2024-05-02'})
    assert excinfo.value.field == 'status'


def test_coercion_helpers():
    assert coerce_number('1.5', 'x') == 1.5
    assert coerce_timestamp(datetime(2024, 1, 1), 'x') == datetime(2024, 1, 1)
    with pytest.raises(InvalidBudgetInputError):
        coerce_timestamp('not a date', 'created_at')
    with pytest.raises(InvalidBudgetInputError):
        coerce_number(None, 'quantity')
