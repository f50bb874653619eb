"""Flattening of service events into a usage table.

Every usage record of every event becomes one row of a pandas DataFrame.
The rest of the engine works from that table so events are scanned once,
however many budget items there are.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from .models import BudgetItem, ServiceEvent, SpendingEvent

logger = logging.getLogger(__name__)

USAGE_COLUMNS = [
    'event_id',
    'status',
    'occurred_at',
    'provider',
    'item_code',
    'quantity',
    'unit_price',
]


def has_usage(events: Iterable[ServiceEvent]) -> bool:
    """True when at least one event carries a usage record."""
    return any(event.usage for event in events)


def usage_frame(events: Iterable[ServiceEvent]) -> pd.DataFrame:
    """One row per usage record, with the owning event's metadata."""
    rows = [
        {
            'event_id': event.id,
            'status': getattr(event.status, 'value', event.status),
            'occurred_at': event.occurred_at,
            'provider': event.provider,
            'item_code': record.item_code,
            'quantity': record.quantity,
            'unit_price': record.unit_price,
        }
        for event in events
        for record in event.usage
    ]
    if not rows:
        frame = pd.DataFrame(columns=USAGE_COLUMNS)
        frame['quantity'] = frame['quantity'].astype(float)
        frame['unit_price'] = frame['unit_price'].astype(float)
        frame['occurred_at'] = pd.to_datetime(frame['occurred_at'])
        return frame

    frame = pd.DataFrame(rows, columns=USAGE_COLUMNS)
    frame['occurred_at'] = pd.to_datetime(frame['occurred_at'])
    frame['quantity'] = pd.to_numeric(frame['quantity'], errors='coerce').fillna(0.0)
    frame['unit_price'] = pd.to_numeric(frame['unit_price'], errors='coerce')
    return frame


def items_by_code(items: Sequence[BudgetItem]) -> Dict[str, BudgetItem]:
    """Map item codes to items; the first item wins on duplicate codes."""
    lookup: Dict[str, BudgetItem] = {}
    for item in items:
        lookup.setdefault(item.item_code, item)
    return lookup


def priced_usage(frame: pd.DataFrame, items: Sequence[BudgetItem]) -> pd.DataFrame:
    """Restrict usage rows to known item codes and attach their cost.

    Rows without a price at time of use take the matched item's unit price.
    """
    lookup = items_by_code(items)
    if frame.empty:
        priced = frame.copy()
        priced['cost'] = pd.Series(dtype=float)
        return priced

    known = frame['item_code'].isin(lookup.keys())
    unmatched = int((~known).sum())
    if unmatched:
        codes = sorted(frame.loc[~known, 'item_code'].astype(str).unique())
        logger.warning("Ignoring %d usage records with unknown item codes: %s", unmatched, ', '.join(codes))

    priced = frame[known].copy()
    item_prices = priced['item_code'].map({code: item.unit_price for code, item in lookup.items()})
    priced['unit_price'] = priced['unit_price'].fillna(item_prices).astype(float)
    priced['cost'] = priced['quantity'] * priced['unit_price']
    return priced


def index_usage(priced: pd.DataFrame) -> pd.DataFrame:
    """Used quantity and cost per item code."""
    if priced.empty:
        return pd.DataFrame(
            {'used_quantity': pd.Series(dtype=float), 'used_cost': pd.Series(dtype=float)}
        )
    grouped = priced.groupby('item_code').agg(
        used_quantity=('quantity', 'sum'),
        used_cost=('cost', 'sum'),
    )
    return grouped


def calculate_spending_events(
    events: Sequence[ServiceEvent],
    items: Sequence[BudgetItem],
) -> List[SpendingEvent]:
    """Priced usage records matched to budget items, most recent first."""
    priced = priced_usage(usage_frame(events), items)
    if priced.empty:
        return []

    lookup = items_by_code(items)
    priced = priced.sort_values('occurred_at', ascending=False, kind='mergesort')
    spending: List[SpendingEvent] = []
    for row in priced.itertuples(index=False):
        item = lookup[row.item_code]
        provider = row.provider if isinstance(row.provider, str) and row.provider else None
        description = f"Session with {provider}" if provider else 'Session'
        spending.append(SpendingEvent(
            occurred_at=row.occurred_at.to_pydatetime(),
            amount=float(row.cost),
            description=description,
            item_name=item.label,
            item_code=item.item_code,
        ))
    return spending


def period_totals(
    frame: pd.DataFrame,
    value_column: str,
    freq: str,
) -> pd.Series:
    """Sum a usage column per calendar period (``'M'`` or ``'W'``)."""
    if frame.empty:
        return pd.Series(dtype=float)
    stamps = frame['occurred_at']
    if getattr(stamps.dt, 'tz', None) is not None:
        stamps = stamps.dt.tz_localize(None)
    periods = stamps.dt.to_period(freq)
    return frame.groupby(periods)[value_column].sum().astype(np.float64)
