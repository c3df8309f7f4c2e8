"""Tests for the request schemas, the canvas document and its JSON export."""
from __future__ import annotations

import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from roicanvas.export import (
    EXPORT_ROOT_KEY,
    canvas_payload,
    canvas_to_json,
    load_canvas,
    parse_canvas,
    write_canvas,
)
from roicanvas.models import BusinessContext, CanvasInsights, EffortLevel, RawInitiative, RiskLevel
from roicanvas.pipeline import process_portfolio
from roicanvas.schemas import (
    GENERATING,
    InitiativeIn,
    PortfolioRequest,
    apply_insights,
    build_canvas,
)

NOW = datetime(2026, 10, 19)


@pytest.fixture()
def canvas():
    raws = [
        RawInitiative(
            id="uc-0", name="Invoice Triage", problem="Manual invoice routing", kpi="Cycle time",
            benefit_low=80_000, benefit_high=120_000, cost_low=40_000, cost_high=60_000,
            dependencies="none",
        ),
        RawInitiative(
            id="uc-1", name="Demand Forecast", benefit_low=500_000, benefit_high=700_000,
            cost_low=300_000, cost_high=500_000, effort=EffortLevel.HIGH, risk=RiskLevel.MEDIUM,
            dependencies="Legacy ERP",
        ),
    ]
    ctx = BusinessContext(
        author_name="R. Analyst", industry="Retail", objective="Grow margin",
        kpis="Gross margin", constraints="Budget", date="2026-10-19",
    )
    return build_canvas(process_portfolio(raws, ctx, now=NOW))


def _insights(**overrides) -> CanvasInsights:
    values = dict(
        strategic_focus="Win fast, scale later.", risks="- data quality", data_infra="- lake",
        org="- sponsor", resources="GPUs", personnel="Data scientists",
        external_support="Integrator", hard_benefits="Lower cost", soft_benefits="Morale",
        skills="ML engineering", technology="Vector DB",
    )
    values.update(overrides)
    return CanvasInsights(**values)


class TestInitiativeIn:
    def test_camel_case_and_coercion(self):
        uc = InitiativeIn.model_validate({
            "name": "Bot", "benefitLow": "$1,200", "benefitHigh": "abc",
            "costLow": None, "effort": "high", "risk": " medium ", "type": "augmentation",
        })
        assert uc.benefit_low == 1200
        assert uc.benefit_high == 0
        assert uc.cost_low == 0
        assert uc.effort == EffortLevel.HIGH
        assert uc.risk == RiskLevel.MEDIUM
        assert uc.type.value == "Augmentation"

    def test_invalid_tier_rejected(self):
        with pytest.raises(ValidationError, match="effort"):
            InitiativeIn.model_validate({"name": "Bot", "effort": "Extreme"})

    def test_to_raw_assigns_index_id(self):
        req = PortfolioRequest.model_validate({"useCases": [{"name": "a"}, {"name": "b", "id": "x"}]})
        assert [r.id for r in req.raw_initiatives()] == ["uc-0", "x"]

    def test_numeric_id_and_name_become_text(self):
        uc = InitiativeIn.model_validate({"id": 7, "name": 2026, "kpi": None})
        assert (uc.id, uc.name, uc.kpi) == ("7", "2026", "")
        assert uc.to_raw().id == "7"

    def test_context_alias(self):
        req = PortfolioRequest.model_validate({"context": {"authorName": "Sam", "industry": "Energy"}})
        ctx = req.context.to_context()
        assert ctx.author_name == "Sam"
        assert ctx.version == "1.0"


class TestBuildCanvas:
    def test_header_and_context(self, canvas):
        assert canvas.header.designed_by == "R. Analyst"
        assert canvas.header.designed_for == "Retail"
        assert canvas.header.date == "2026-10-19"
        assert canvas.business_context.objective == "Grow margin"

    def test_use_case_fields(self, canvas):
        triage = next(u for u in canvas.use_cases if u.name == "Invoice Triage")
        assert triage.roi == "100.0%"
        assert triage.npv_3yr_10pct == 198_685
        assert triage.payback_years == 0.5
        assert triage.value_score == 178_816.5
        assert triage.selected_for_portfolio == "Yes"
        assert triage.roadmap_timeline == "Q1"
        assert triage.start_date == "Nov 19, 2026"
        assert triage.milestone == "MVP / Pilot Complete"

    def test_use_cases_in_rank_order(self, canvas):
        scores = [u.value_score for u in canvas.use_cases]
        assert scores == sorted(scores, reverse=True)

    def test_narrative_is_pending(self, canvas):
        assert canvas.business_context.strategic_focus == GENERATING
        assert canvas.inputs.resources == GENERATING
        assert canvas.final_notes.risks_and_mitigations == GENERATING

    def test_financials_are_whole_units(self, canvas):
        fin = canvas.financials
        assert fin.near_term_cost == 50_000
        assert fin.long_term_cost == 400_000
        assert fin.total_costs == 450_000
        assert fin.annual_maintenance == 90_000
        assert fin.total_portfolio_roi == "55.6%"

    def test_roadmap_buckets(self, canvas):
        assert [i.name for i in canvas.roadmap.q1] == ["Invoice Triage"]
        assert canvas.roadmap.one_year == []
        assert [i.name for i in canvas.roadmap.three_year] == ["Demand Forecast"]

    def test_insights_at_build_time(self):
        ctx = BusinessContext()
        result = process_portfolio([RawInitiative(id="a", name="a")], ctx, now=NOW)
        canvas = build_canvas(result, insights=_insights())
        assert canvas.business_context.strategic_focus == "Win fast, scale later."

    def test_two_decimal_fields_round_halves_up(self):
        raw = RawInitiative(id="a", name="a", benefit_low=8, benefit_high=8, cost_low=1, cost_high=1)
        canvas = build_canvas(process_portfolio([raw], BusinessContext(), now=NOW))
        assert canvas.use_cases[0].payback_years == 0.13
        assert canvas.use_cases[0].roi == "700.0%"


class TestApplyInsights:
    def test_fills_narrative_and_keeps_numbers(self, canvas):
        enriched = apply_insights(canvas, _insights())
        assert enriched.business_context.strategic_focus == "Win fast, scale later."
        assert enriched.business_context.objective == "Grow margin"
        assert enriched.inputs.personnel == "Data scientists"
        assert enriched.capabilities.technology == "Vector DB"
        assert enriched.final_notes.organizational_considerations == "- sponsor"
        assert enriched.use_cases == canvas.use_cases
        assert enriched.financials == canvas.financials

    def test_original_is_untouched(self, canvas):
        apply_insights(canvas, _insights())
        assert canvas.business_context.strategic_focus == GENERATING


class TestExport:
    def test_key_schema(self, canvas):
        payload = canvas_payload(canvas)
        doc = payload[EXPORT_ROOT_KEY]
        assert list(doc) == [
            "Header", "Business_Context", "Inputs", "Impacts", "Capabilities", "Use_Cases",
            "Selected_Portfolio_Summary", "Aggregated_Financials", "Roadmap", "Final_Notes",
        ]
        assert set(doc["Roadmap"]) == {"Q1", "1_year", "3_year"}
        assert set(doc["Use_Cases"][0]) == {
            "Name", "Problem", "KPI", "Benefit_midpoint", "Cost_midpoint", "ROI", "NPV_3yr_10pct",
            "Payback_Years", "Effort_Level", "Risk_Level", "Value_Score", "Dependencies",
            "Automation_or_Augmentation", "Selected_for_Portfolio", "Roadmap_Timeline",
            "Start_Date", "End_Date", "Milestone",
        }
        assert doc["Selected_Portfolio_Summary"]["Total_Effort"] == 4

    def test_json_round_trip(self, canvas):
        assert parse_canvas(canvas_to_json(canvas)) == canvas

    def test_parse_bare_document(self, canvas):
        bare = json.dumps(canvas_payload(canvas)[EXPORT_ROOT_KEY])
        assert parse_canvas(bare) == canvas

    def test_write_and_load(self, canvas, tmp_path):
        path = write_canvas(canvas, tmp_path / "out" / "canvas.json")
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))[EXPORT_ROOT_KEY]["Header"]["DesignedFor"] == "Retail"
        assert load_canvas(path) == canvas

    def test_invalid_document(self):
        with pytest.raises(ValueError):
            parse_canvas('{"AI_ROI_Roadmap_Canvas": {"Header": {}}}')
