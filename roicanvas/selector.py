"""Greedy portfolio selection under a fixed effort budget."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from roicanvas.models import ComputedInitiative

log = logging.getLogger(__name__)

EFFORT_BUDGET = 6


def rank_initiatives(items: Iterable[ComputedInitiative]) -> list[ComputedInitiative]:
    """Order by value score, highest first. Ties keep their input order."""
    return sorted(items, key=lambda i: i.value_score, reverse=True)


def select_portfolio(items: Iterable[ComputedInitiative]) -> list[ComputedInitiative]:
    """Rank the initiatives and flag the ones that fit the effort budget.

    Walks the ranking once. An initiative is taken when its effort score still
    fits the remaining budget, or when nothing has been taken yet, so the
    portfolio is never empty. Skipped initiatives consume no budget, which lets
    a later, cheaper item fill a gap a costlier one could not. This is a greedy
    pass, not a knapsack optimum.

    Returns the ranked list; the ``selected`` flag is set in place.
    """
    ranked = rank_initiatives(items)
    used = 0
    count = 0
    for item in ranked:
        if used + item.effort_score <= EFFORT_BUDGET or count == 0:
            item.selected = True
            used += item.effort_score
            count += 1
        else:
            item.selected = False
            log.debug("Skipped %s: effort %d exceeds remaining budget %d",
                      item.name, item.effort_score, EFFORT_BUDGET - used)
    return ranked
