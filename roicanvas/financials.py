"""Financial rollups over the selected portfolio."""
from __future__ import annotations

import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from roicanvas.calculations import safe_ratio
from roicanvas.models import AggregatedFinancials, ComputedInitiative, Horizon, PortfolioSummary

MAINTENANCE_RATIO = 0.20

NEAR_TERM_HORIZONS = frozenset({Horizon.Q1, Horizon.ONE_YEAR})
LONG_TERM_HORIZONS = frozenset({Horizon.THREE_YEAR})

SELECTION_JUSTIFICATION = (
    "Selected based on highest Value Score within Effort constraint (Max 6)."
)


def _quantize(value: float, places: str) -> Decimal:
    # Decimal(float) is exact, so 1.005 stays below the half and rounds down.
    return Decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def format_percent(ratio: float) -> str:
    """``1.0`` -> ``"100.0%"``; exact halves round away from zero (0.0025 -> ``"0.3%"``)."""
    return f"{_quantize(ratio * 100, '0.1')}%"


def round_fixed(value: float) -> float:
    """Two decimals, exact halves away from zero (0.125 -> 0.13)."""
    return float(_quantize(value, "0.01"))


def round_amount(value: float) -> int:
    """Round to the nearest whole unit, halves upward (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def _group(items: Iterable[ComputedInitiative], horizons: frozenset[Horizon]) -> list[ComputedInitiative]:
    return [i for i in items if i.selected and i.horizon in horizons]


def aggregate_financials(items: Iterable[ComputedInitiative]) -> AggregatedFinancials:
    """Sum cost and benefit midpoints into near-term and long-term groups.

    Only selected, scheduled initiatives contribute. Values stay unrounded;
    rounding happens when the canvas is built.
    """
    items = list(items)
    near = _group(items, NEAR_TERM_HORIZONS)
    long = _group(items, LONG_TERM_HORIZONS)

    near_cost = sum(i.cost_mid for i in near)
    long_cost = sum(i.cost_mid for i in long)
    near_benefits = sum(i.benefit_mid for i in near)
    long_benefits = sum(i.benefit_mid for i in long)

    total_cost = near_cost + long_cost
    total_benefits = near_benefits + long_benefits

    return AggregatedFinancials(
        near_term_cost=near_cost,
        long_term_cost=long_cost,
        near_term_benefits=near_benefits,
        long_term_benefits=long_benefits,
        annual_maintenance=total_cost * MAINTENANCE_RATIO,
        near_term_roi=safe_ratio(near_benefits - near_cost, near_cost),
        long_term_roi=safe_ratio(long_benefits - long_cost, long_cost),
        total_roi=safe_ratio(total_benefits - total_cost, total_cost),
    )


def summarize_selection(items: Iterable[ComputedInitiative]) -> PortfolioSummary:
    selected = [i for i in items if i.selected]
    return PortfolioSummary(
        total_selected=len(selected),
        total_effort=sum(i.effort_score for i in selected),
        total_npv=sum(i.npv for i in selected),
        justification=SELECTION_JUSTIFICATION,
    )
