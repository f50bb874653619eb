"""Conversion of plain host records into engine models.

Host applications usually hold budget data as JSON-like dicts, either in
snake_case or with the camelCase keys of the original API (``itemCode``,
``unitPrice``, ``ndisFunds``, ``sessionDate``...). Prices may arrive as
strings. These helpers normalise such records with pandas coercion; they
do no I/O.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from . import settings
from .exceptions import InvalidBudgetInputError
from .models import (
    BudgetItem,
    BudgetSettings,
    EventStatus,
    Goal,
    ServiceEvent,
    Subgoal,
    UsageRecord,
)

logger = logging.getLogger(__name__)

# Field -> accepted keys, first match wins
ITEM_FIELDS: Dict[str, Tuple[str, ...]] = {
    'id': ('id',),
    'description': ('description',),
    'item_code': ('item_code', 'itemCode', 'code'),
    'quantity': ('quantity',),
    'unit_price': ('unit_price', 'unitPrice'),
    'category': ('category',),
    'name': ('name',),
    'is_active_plan': ('is_active_plan', 'isActivePlan'),
}

SETTINGS_FIELDS: Dict[str, Tuple[str, ...]] = {
    'created_at': ('created_at', 'createdAt', 'start_date', 'startDate'),
    'end_of_plan': ('end_of_plan', 'endOfPlan', 'end_date', 'endDate'),
    'available_funds': ('available_funds', 'availableFunds', 'ndis_funds', 'ndisFunds', 'total_funds', 'totalFunds'),
    'plan_name': ('plan_name', 'planName', 'name'),
}

EVENT_FIELDS: Dict[str, Tuple[str, ...]] = {
    'id': ('id',),
    'status': ('status',),
    'occurred_at': ('occurred_at', 'occurredAt', 'session_date', 'sessionDate', 'date'),
    'provider': ('provider', 'therapist_name', 'therapistName'),
    'usage': ('usage', 'products'),
}

USAGE_FIELDS: Dict[str, Tuple[str, ...]] = {
    'item_code': ('item_code', 'itemCode', 'product_code', 'productCode', 'code'),
    'quantity': ('quantity',),
    'unit_price': ('unit_price', 'unitPrice', 'price'),
}

GOAL_FIELDS: Dict[str, Tuple[str, ...]] = {
    'id': ('id',),
    'title': ('title',),
    'description': ('description',),
    'priority': ('priority',),
    'status': ('status',),
    'goal_id': ('goal_id', 'goalId'),
}

_MISSING = object()


def _lookup(record: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return _MISSING


def _require(record: Mapping[str, Any], field: str, aliases: Mapping[str, Tuple[str, ...]]) -> Any:
    value = _lookup(record, aliases[field])
    if value is _MISSING:
        raise InvalidBudgetInputError(f"Record is missing required field '{field}': {dict(record)!r}", field)
    return value


def _optional(record: Mapping[str, Any], field: str, aliases: Mapping[str, Tuple[str, ...]], default: Any = None) -> Any:
    value = _lookup(record, aliases[field])
    return default if value is _MISSING else value


def coerce_number(value: Any, field: str) -> float:
    """Parse a number that may be given as a string (e.g. ``"50.00"``).

    Raises:
        InvalidBudgetInputError: If the value is not numeric
    """
    try:
        number = pd.to_numeric(value)
    except (TypeError, ValueError) as exc:
        raise InvalidBudgetInputError(f"Field '{field}' is not a number: {value!r}", field) from exc
    if pd.isna(number):
        raise InvalidBudgetInputError(f"Field '{field}' is not a number: {value!r}", field)
    return float(number)


def coerce_quantity(value: Any, field: str = 'quantity') -> float:
    """Whole quantities come back as ``int``, fractional ones as ``float``."""
    number = coerce_number(value, field)
    return int(number) if number.is_integer() else number


def coerce_timestamp(value: Any, field: str) -> datetime:
    """Parse an ISO string, ``datetime`` or pandas timestamp.

    Raises:
        InvalidBudgetInputError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value
    try:
        stamp = pd.to_datetime(value)
    except (TypeError, ValueError) as exc:
        raise InvalidBudgetInputError(f"Field '{field}' is not a timestamp: {value!r}", field) from exc
    if pd.isna(stamp):
        raise InvalidBudgetInputError(f"Field '{field}' is not a timestamp: {value!r}", field)
    return stamp.to_pydatetime()


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'y')
    return bool(value)


def load_budget_item(record: Mapping[str, Any]) -> BudgetItem:
    """Build a ``BudgetItem`` from one host record.

    Client-side fields such as ``usedQuantity`` are ignored; used
    quantities are always derived from events.
    """
    return BudgetItem(
        id=_require(record, 'id', ITEM_FIELDS),
        description=str(_optional(record, 'description', ITEM_FIELDS, '')),
        item_code=str(_require(record, 'item_code', ITEM_FIELDS)),
        quantity=coerce_quantity(_require(record, 'quantity', ITEM_FIELDS)),
        unit_price=coerce_number(_require(record, 'unit_price', ITEM_FIELDS), 'unit_price'),
        category=str(_optional(record, 'category', ITEM_FIELDS, settings.DEFAULT_CATEGORY) or settings.DEFAULT_CATEGORY),
        name=_optional(record, 'name', ITEM_FIELDS),
        is_active_plan=_coerce_bool(_optional(record, 'is_active_plan', ITEM_FIELDS, True)),
    )


def load_budget_items(records: Iterable[Mapping[str, Any]]) -> List[BudgetItem]:
    return [load_budget_item(record) for record in records]


def load_settings(record: Optional[Mapping[str, Any]]) -> Optional[BudgetSettings]:
    """Build ``BudgetSettings``; ``None`` stays ``None``."""
    if record is None:
        return None
    created_at = _optional(record, 'created_at', SETTINGS_FIELDS)
    end_of_plan = _optional(record, 'end_of_plan', SETTINGS_FIELDS)
    funds = _optional(record, 'available_funds', SETTINGS_FIELDS)
    plan_name = _optional(record, 'plan_name', SETTINGS_FIELDS)
    return BudgetSettings(
        created_at=coerce_timestamp(created_at, 'created_at') if created_at is not None else None,
        end_of_plan=coerce_timestamp(end_of_plan, 'end_of_plan') if end_of_plan is not None else None,
        available_funds=coerce_number(funds, 'available_funds') if funds is not None else None,
        plan_name=str(plan_name) if plan_name is not None else None,
    )


def load_usage_record(record: Mapping[str, Any]) -> UsageRecord:
    price = _optional(record, 'unit_price', USAGE_FIELDS)
    return UsageRecord(
        item_code=str(_require(record, 'item_code', USAGE_FIELDS)),
        quantity=coerce_quantity(_optional(record, 'quantity', USAGE_FIELDS, 1)),
        unit_price=coerce_number(price, 'unit_price') if price is not None else None,
    )


def _usage_entries(record: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    entries = _optional(record, 'usage', EVENT_FIELDS)
    if entries is None:
        # Original session records keep products inside the session note
        note = record.get('note')
        if isinstance(note, Mapping):
            entries = note.get('products')
    return list(entries or [])


def load_event(record: Mapping[str, Any]) -> ServiceEvent:
    """Build a ``ServiceEvent`` (with its usage records) from one host record.

    Raises:
        InvalidBudgetInputError: On a missing field, an unknown status or
            an unparseable date
    """
    status = str(_require(record, 'status', EVENT_FIELDS)).lower()
    try:
        status = EventStatus(status)
    except ValueError as exc:
        raise InvalidBudgetInputError(f"Unknown event status {status!r}", 'status') from exc

    provider = _optional(record, 'provider', EVENT_FIELDS)
    return ServiceEvent(
        id=_require(record, 'id', EVENT_FIELDS),
        status=status,
        occurred_at=coerce_timestamp(_require(record, 'occurred_at', EVENT_FIELDS), 'occurred_at'),
        usage=tuple(load_usage_record(entry) for entry in _usage_entries(record)),
        provider=str(provider) if provider is not None else None,
    )


def load_events(records: Iterable[Mapping[str, Any]]) -> List[ServiceEvent]:
    events = [load_event(record) for record in records]
    logger.debug("Loaded %d events with %d usage records", len(events), sum(len(e.usage) for e in events))
    return events


def load_goal(record: Mapping[str, Any]) -> Goal:
    return Goal(
        id=_require(record, 'id', GOAL_FIELDS),
        title=str(_require(record, 'title', GOAL_FIELDS)),
        description=str(_optional(record, 'description', GOAL_FIELDS, '')),
        priority=_optional(record, 'priority', GOAL_FIELDS),
        status=_optional(record, 'status', GOAL_FIELDS),
    )


def load_goals(records: Iterable[Mapping[str, Any]]) -> List[Goal]:
    return [load_goal(record) for record in records]


def load_subgoals(records: Iterable[Mapping[str, Any]]) -> List[Subgoal]:
    return [
        Subgoal(
            id=_require(record, 'id', GOAL_FIELDS),
            title=str(_require(record, 'title', GOAL_FIELDS)),
            description=str(_optional(record, 'description', GOAL_FIELDS, '')),
            priority=_optional(record, 'priority', GOAL_FIELDS),
            status=_optional(record, 'status', GOAL_FIELDS),
            goal_id=_optional(record, 'goal_id', GOAL_FIELDS),
        )
        for record in records
    ]
