"""Single-pass portfolio pipeline: metrics, selection, schedule, rollups."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from roicanvas.calculations import calculate_metrics
from roicanvas.financials import aggregate_financials, summarize_selection
from roicanvas.models import BusinessContext, PortfolioResult, RawInitiative
from roicanvas.scheduler import build_roadmap, schedule_portfolio
from roicanvas.selector import EFFORT_BUDGET, select_portfolio

log = logging.getLogger(__name__)


def process_portfolio(
    raw_items: Iterable[RawInitiative],
    context: BusinessContext,
    now: datetime | None = None,
) -> PortfolioResult:
    """Turn raw initiative estimates into a ranked, scheduled portfolio.

    Args:
        raw_items: The collected initiatives. The minimum batch size is a
            caller concern and is not checked here.
        context: Header labels, passed through untouched.
        now: Anchor for the schedule dates. Defaults to the current time;
            pass a fixed value for reproducible output.
    """
    now = now or datetime.now()

    computed = [calculate_metrics(raw) for raw in raw_items]
    ranked = select_portfolio(computed)
    scheduled = schedule_portfolio(ranked, now)

    summary = summarize_selection(scheduled)
    financials = aggregate_financials(scheduled)
    roadmap = build_roadmap(scheduled)

    log.info(
        "Portfolio: %d of %d initiatives selected, effort %d/%d, NPV %.0f",
        summary.total_selected, len(scheduled), summary.total_effort, EFFORT_BUDGET,
        summary.total_npv,
    )
    return PortfolioResult(
        initiatives=scheduled,
        summary=summary,
        financials=financials,
        roadmap=roadmap,
        context=context,
        generated_at=now,
        budget=EFFORT_BUDGET,
    )
