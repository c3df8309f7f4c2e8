"""Tests for the near-term / long-term rollups and formatting helpers."""
from __future__ import annotations

import pytest

from roicanvas.calculations import calculate_metrics
from roicanvas.financials import (
    SELECTION_JUSTIFICATION,
    aggregate_financials,
    format_percent,
    round_amount,
    round_fixed,
    summarize_selection,
)
from roicanvas.models import EffortLevel, Horizon, RawInitiative


def _item(name, benefit, cost, horizon, selected=True, effort=EffortLevel.LOW):
    item = calculate_metrics(RawInitiative(
        id=name, name=name, benefit_low=benefit, benefit_high=benefit,
        cost_low=cost, cost_high=cost, effort=effort,
    ))
    item.selected = selected
    item.horizon = horizon if selected else Horizon.NA
    return item


class TestFormatting:
    @pytest.mark.parametrize("ratio,text", [
        (1.0, "100.0%"), (0.0, "0.0%"), (-0.5, "-50.0%"), (0.12345, "12.3%"), (2.5, "250.0%"),
        (0.0025, "0.3%"), (-0.0025, "-0.3%"),
    ])
    def test_format_percent(self, ratio, text):
        assert format_percent(ratio) == text

    @pytest.mark.parametrize("value,rounded", [
        (2.5, 3), (-2.5, -2), (198_685.4, 198_685), (0.49, 0), (-0.6, -1),
    ])
    def test_round_amount_rounds_halves_up(self, value, rounded):
        assert round_amount(value) == rounded

    @pytest.mark.parametrize("value,rounded", [
        (0.125, 0.13), (-0.125, -0.13), (0.5, 0.5), (178_816.5, 178_816.5), (1.005, 1.0), (2.675, 2.67),
    ])
    def test_round_fixed_rounds_exact_halves_away_from_zero(self, value, rounded):
        assert round_fixed(value) == rounded


class TestAggregateFinancials:
    def test_near_and_long_term_groups(self):
        items = [
            _item("q1", 100_000, 50_000, Horizon.Q1),
            _item("year", 20_000, 10_000, Horizon.ONE_YEAR),
            _item("three", 150_000, 200_000, Horizon.THREE_YEAR),
            _item("skipped", 1_000_000, 1, Horizon.NA, selected=False),
        ]
        fin = aggregate_financials(items)
        assert fin.near_term_cost == 60_000
        assert fin.near_term_benefits == 120_000
        assert fin.long_term_cost == 200_000
        assert fin.long_term_benefits == 150_000
        assert fin.total_costs == 260_000
        assert fin.total_benefits == 270_000
        assert fin.annual_maintenance == pytest.approx(52_000)
        assert fin.near_term_roi == pytest.approx(1.0)
        assert fin.long_term_roi == pytest.approx(-0.25)
        assert fin.total_roi == pytest.approx(10_000 / 260_000)

    def test_empty_groups_give_zero_roi(self):
        fin = aggregate_financials([_item("q1", 100, 0, Horizon.Q1)])
        assert fin.long_term_cost == fin.long_term_benefits == 0
        assert fin.long_term_roi == 0.0
        assert fin.near_term_roi == 0.0

    def test_no_selection(self):
        fin = aggregate_financials([_item("x", 10, 5, Horizon.NA, selected=False)])
        assert fin.total_costs == fin.total_benefits == fin.annual_maintenance == 0
        assert fin.total_roi == 0.0

    def test_values_stay_unrounded(self):
        fin = aggregate_financials([_item("q1", 100.4, 50.2, Horizon.Q1)])
        assert fin.near_term_benefits == pytest.approx(100.4)
        assert fin.annual_maintenance == pytest.approx(10.04)


class TestSummarizeSelection:
    def test_counts_selected_only(self):
        items = [
            _item("a", 100_000, 50_000, Horizon.Q1),
            _item("b", 10_000, 5_000, Horizon.THREE_YEAR, effort=EffortLevel.HIGH),
            _item("c", 999_999, 1, Horizon.NA, selected=False, effort=EffortLevel.MEDIUM),
        ]
        summary = summarize_selection(items)
        assert summary.total_selected == 2
        assert summary.total_effort == 4
        assert summary.total_npv == pytest.approx(items[0].npv + items[1].npv)
        assert summary.justification == SELECTION_JUSTIFICATION

    def test_justification_text(self):
        assert SELECTION_JUSTIFICATION == (
            "Selected based on highest Value Score within Effort constraint (Max 6)."
        )
