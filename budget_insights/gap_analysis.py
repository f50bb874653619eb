"""Service gap analysis against client goals.

Budget items and goals are compared as plain keyword sets: there is no
language model behind the relevance score, only substring overlap between
lowercased words. Small random jitter separates otherwise tied scores; it
is drawn from an injected ``numpy.random.Generator`` so a seeded generator
makes the ranking reproducible, and passing no generator disables it.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Mapping, Optional, Sequence, Set

import numpy as np

from . import settings
from .config import get_service_categories
from .formatting import format_currency, format_percent
from .models import (
    IMPACT_RANK,
    EnhancedBudgetItem,
    Goal,
    Impact,
    Recommendation,
    RecommendationKind,
    Subgoal,
)

logger = logging.getLogger(__name__)

Taxonomy = Mapping[str, Iterable[str]]

SORT_KEYS = ('relevance', 'impact')

_WORD_PATTERN = re.compile(r"[a-z0-9]+")

# Item keywords must be longer than this to count towards relevance
MIN_ITEM_KEYWORD_LENGTH = 3
# Goal words shorter than this never match (avoids "a" or "to" matching everything)
MIN_CORPUS_WORD_LENGTH = 3
# Goal words must be longer than this to suggest a service category
MIN_THEME_LENGTH = 4


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase word tokens of ``text``."""
    if not text:
        return []
    return _WORD_PATTERN.findall(text.lower())


def goal_corpus(goals: Sequence[Goal], subgoals: Sequence[Subgoal]) -> List[str]:
    """Words of every goal and subgoal title and description."""
    words: List[str] = []
    for goal in list(goals) + list(subgoals):
        words.extend(tokenize(goal.title))
        words.extend(tokenize(goal.description))
    return words


def jitter_factor(rng: Optional[np.random.Generator]) -> float:
    """Multiplier in [0.8, 1.2]; exactly 1.0 without a generator."""
    if rng is None:
        return 1.0
    return float(rng.uniform(settings.JITTER_LOW, settings.JITTER_HIGH))


def _jitter_offset(rng: Optional[np.random.Generator], spread: float = 0.2) -> float:
    if rng is None:
        return 0.0
    return float(rng.random() * spread)


def relevance_score(
    item: EnhancedBudgetItem,
    goals: Sequence[Goal],
    subgoals: Sequence[Subgoal],
    rng: Optional[np.random.Generator] = None,
) -> float:
    """Alignment between one budget item and the client's goals, in [0, 1].

    Every item keyword longer than three characters is compared with every
    goal word; each substring overlap (either way round) is one match.
    Five matches saturate the score.
    """
    keywords = [
        word
        for text in (item.description, item.category, item.item_code)
        for word in tokenize(text)
        if len(word) > MIN_ITEM_KEYWORD_LENGTH
    ]
    corpus = [word for word in goal_corpus(goals, subgoals) if len(word) >= MIN_CORPUS_WORD_LENGTH]

    match_count = 0
    for keyword in keywords:
        for need in corpus:
            if need in keyword or keyword in need:
                match_count += 1

    base_score = min(1.0, match_count / settings.RELEVANCE_MATCH_SATURATION)
    return min(1.0, base_score * jitter_factor(rng))


def goal_themes(goals: Sequence[Goal], subgoals: Sequence[Subgoal]) -> Set[str]:
    return {word for word in goal_corpus(goals, subgoals) if len(word) > MIN_THEME_LENGTH}


def find_missing_categories(
    items: Sequence[EnhancedBudgetItem],
    goals: Sequence[Goal],
    subgoals: Sequence[Subgoal],
    taxonomy: Optional[Taxonomy] = None,
) -> List[str]:
    """Service categories the goals call for but no budget item covers.

    A category is relevant when a goal word contains one of its keywords,
    and covered when an item category contains the category name.

    Returns:
        Missing category names in taxonomy order
    """
    if taxonomy is None:
        taxonomy = get_service_categories()
    themes = goal_themes(goals, subgoals)
    if not themes:
        return []

    existing = {(item.category or '').lower() for item in items}
    missing: List[str] = []
    for name, keywords in taxonomy.items():
        keywords = [kw.lower() for kw in keywords]
        relevant = any(keyword in theme for theme in themes for keyword in keywords)
        if not relevant:
            continue
        covered = any(name.lower() in category for category in existing if category)
        if not covered:
            missing.append(name)
    return missing


def recommend_services(
    items: Sequence[EnhancedBudgetItem],
    goals: Sequence[Goal],
    subgoals: Sequence[Subgoal],
    sort_by: str = 'relevance',
    rng: Optional[np.random.Generator] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> List[Recommendation]:
    """Prioritized service recommendations.

    Args:
        items: Enhanced budget items
        goals: Client goals
        subgoals: Client subgoals
        sort_by: 'relevance' (highest first) or 'impact' (high > medium > low)
        rng: Generator for tie-breaking jitter; ``None`` disables jitter
        taxonomy: Category name -> keywords, defaults to the packaged taxonomy

    Returns:
        Sorted list of recommendations

    Raises:
        ValueError: If ``sort_by`` is not a supported key
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unsupported sort key '{sort_by}', expected one of {SORT_KEYS}")

    recommendations: List[Recommendation] = []

    for item in items:
        if not item.is_underutilized:
            continue
        recommendations.append(Recommendation(
            kind=RecommendationKind.UTILIZATION_INCREASE,
            title=f"Increase usage of {item.description}",
            description=(
                f"This service has only been utilized at {format_percent(item.utilization_rate)}"
                f" of allocation"
            ),
            impact=Impact.MEDIUM,
            relevance=relevance_score(item, goals, subgoals, rng),
            item=item,
        ))

    for name in find_missing_categories(items, goals, subgoals, taxonomy):
        recommendations.append(Recommendation(
            kind=RecommendationKind.MISSING_CATEGORY,
            title=f"Add {name} services",
            description=f"Goals suggest a need for {name}, but no services are allocated",
            impact=Impact.HIGH,
            relevance=min(1.0, 0.8 + _jitter_offset(rng)),
            category=name,
        ))

    high_cost = [
        item for item in items
        if item.unit_price > settings.HIGH_COST_UNIT_PRICE
        and item.utilization_rate < settings.SUBSTITUTION_RATE_CEILING
    ][:settings.MAX_SUBSTITUTIONS]
    for item in high_cost:
        recommendations.append(Recommendation(
            kind=RecommendationKind.COST_SUBSTITUTION,
            title=f"Consider alternatives to {item.description}",
            description=(
                f"At {format_currency(item.unit_price)} per unit, similar outcomes might be"
                f" achieved with more cost-effective services"
            ),
            impact=Impact.MEDIUM,
            relevance=min(1.0, 0.6 + _jitter_offset(rng)),
            item=item,
        ))

    if sort_by == 'relevance':
        recommendations.sort(key=lambda rec: rec.relevance, reverse=True)
    else:
        recommendations.sort(key=lambda rec: IMPACT_RANK[rec.impact], reverse=True)

    logger.debug("Generated %d service recommendations", len(recommendations))
    return recommendations

