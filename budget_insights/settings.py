"""Settings for the budget utilization engine.

This module centralizes the fixed thresholds shared by every analysis
component, the plan-window defaults, and the environment variable
overrides used by host applications.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

# Configuration directory - JSON files such as the service taxonomy
CONFIG_DIR = Path(
    os.getenv('BUDGET_INSIGHTS_CONFIG_DIR', Path(__file__).parent / 'config')
).resolve()

LOG_LEVEL = os.getenv('BUDGET_INSIGHTS_LOG_LEVEL', 'WARNING')

# Plan window defaults (days)
DEFAULT_DAYS_ELAPSED = 30
DEFAULT_PLAN_DAYS = 365
SYNTHETIC_START_OFFSET_DAYS = 365

# Utilization status thresholds, shared by the calculator, the
# reallocation engine and the recommendation scorer.
OVERUTILIZED_DELTA = 0.15
UNDERUTILIZED_DELTA = -0.15

# Severity bands on the raw utilization rate
CRITICAL_RATE = 0.85
WARNING_RATE = 0.70
LOW_RATE = 0.30

# Depletion forecast
FORECAST_FALLBACK_MONTHS = 6
MIN_DEPLETION_DAYS = 30

# Recommendations
HIGH_COST_UNIT_PRICE = 100.0
SUBSTITUTION_RATE_CEILING = 0.6
MAX_SUBSTITUTIONS = 2
RELEVANCE_MATCH_SATURATION = 5
JITTER_LOW = 0.8
JITTER_HIGH = 1.2

DEFAULT_CATEGORY = 'Uncategorized'


def configure_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """Attach a console handler to the ``budget_insights`` logger.

    Library modules only create loggers; hosts call this once when they
    want the engine's diagnostics on the console.

    Args:
        level: Level name or number, defaults to ``BUDGET_INSIGHTS_LOG_LEVEL``

    Returns:
        The configured package logger
    """
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger('budget_insights')
    logger.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    if not any(getattr(h, '_budget_insights', False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler._budget_insights = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
    return logger
