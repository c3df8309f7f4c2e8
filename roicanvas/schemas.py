"""Pydantic schemas: API request bodies and the canvas document.

The canvas document keeps the exported key schema (``Header``,
``Business_Context``, ``Use_Cases``, ...) through field aliases; Python code
uses the snake_case names. Dump with ``by_alias=True``.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roicanvas.financials import format_percent, round_amount, round_fixed
from roicanvas.models import (
    BusinessContext,
    CanvasInsights,
    EffortLevel,
    Horizon,
    PortfolioResult,
    RawInitiative,
    RiskLevel,
    RoadmapEntry,
    UseCaseType,
)
from roicanvas.utils import coerce_number, coerce_text, parse_enum

GENERATING = "Generating..."
DEFAULT_TITLE = "AI ROI & Roadmap Canvas"


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class InitiativeIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str
    problem: str = ""
    kpi: str = ""
    benefit_low: float = Field(0.0, alias="benefitLow")
    benefit_high: float = Field(0.0, alias="benefitHigh")
    cost_low: float = Field(0.0, alias="costLow")
    cost_high: float = Field(0.0, alias="costHigh")
    effort: EffortLevel = EffortLevel.LOW
    risk: RiskLevel = RiskLevel.LOW
    dependencies: str = ""
    type: UseCaseType = UseCaseType.AUTOMATION

    @field_validator("benefit_low", "benefit_high", "cost_low", "cost_high", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float:
        return coerce_number(v)

    @field_validator("effort", mode="before")
    @classmethod
    def normalize_effort(cls, v: Any) -> EffortLevel:
        return parse_enum(EffortLevel, v, "effort")

    @field_validator("risk", mode="before")
    @classmethod
    def normalize_risk(cls, v: Any) -> RiskLevel:
        return parse_enum(RiskLevel, v, "risk")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> UseCaseType:
        return parse_enum(UseCaseType, v, "type")

    @field_validator("id", "name", "problem", "kpi", "dependencies", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return coerce_text(v)

    def to_raw(self, index: int = 0) -> RawInitiative:
        return RawInitiative(
            id=self.id or f"uc-{index}",
            name=self.name,
            problem=self.problem,
            kpi=self.kpi,
            benefit_low=self.benefit_low,
            benefit_high=self.benefit_high,
            cost_low=self.cost_low,
            cost_high=self.cost_high,
            effort=self.effort,
            risk=self.risk,
            dependencies=self.dependencies,
            type=self.type,
        )


class ContextIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    author_name: str = Field("", alias="authorName")
    industry: str = ""
    objective: str = ""
    kpis: str = ""
    constraints: str = ""
    date: str = ""
    version: str = "1.0"

    def to_context(self) -> BusinessContext:
        return BusinessContext(**self.model_dump())


class PortfolioRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    context: ContextIn = Field(default_factory=ContextIn)
    use_cases: list[InitiativeIn] = Field(default_factory=list, alias="useCases")
    force: bool = False

    def raw_initiatives(self) -> list[RawInitiative]:
        return [uc.to_raw(idx) for idx, uc in enumerate(self.use_cases)]


# ---------------------------------------------------------------------------
# Canvas document
# ---------------------------------------------------------------------------


class _CanvasModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CanvasHeader(_CanvasModel):
    title: str = Field(DEFAULT_TITLE, alias="Title")
    designed_by: str = Field("", alias="DesignedBy")
    designed_for: str = Field("", alias="DesignedFor")
    date: str = Field("", alias="Date")
    version: str = Field("", alias="Version")


class CanvasBusinessContext(_CanvasModel):
    objective: str = Field("", alias="Objective")
    strategic_focus: str = Field(GENERATING, alias="StrategicFocus")
    kpis: str = Field("", alias="KPIs")
    constraints: str = Field("", alias="Constraints")


class CanvasInputs(_CanvasModel):
    resources: str = Field(GENERATING, alias="Resources")
    personnel: str = Field(GENERATING, alias="Personnel")
    external_support: str = Field(GENERATING, alias="ExternalSupport")


class CanvasImpacts(_CanvasModel):
    hard_benefits: str = Field(GENERATING, alias="HardBenefits")
    soft_benefits: str = Field(GENERATING, alias="SoftBenefits")


class CanvasCapabilities(_CanvasModel):
    skills: str = Field(GENERATING, alias="Skills")
    technology: str = Field(GENERATING, alias="Technology")


class CanvasUseCase(_CanvasModel):
    name: str = Field(alias="Name")
    problem: str = Field("", alias="Problem")
    kpi: str = Field("", alias="KPI")
    benefit_midpoint: float = Field(alias="Benefit_midpoint")
    cost_midpoint: float = Field(alias="Cost_midpoint")
    roi: str = Field(alias="ROI")
    npv_3yr_10pct: int = Field(alias="NPV_3yr_10pct")
    payback_years: float = Field(alias="Payback_Years")
    effort_level: str = Field(alias="Effort_Level")
    risk_level: str = Field(alias="Risk_Level")
    value_score: float = Field(alias="Value_Score")
    dependencies: str = Field("", alias="Dependencies")
    automation_or_augmentation: str = Field(alias="Automation_or_Augmentation")
    selected_for_portfolio: str = Field(alias="Selected_for_Portfolio")
    roadmap_timeline: str = Field(alias="Roadmap_Timeline")
    start_date: str = Field(alias="Start_Date")
    end_date: str = Field(alias="End_Date")
    milestone: str = Field(alias="Milestone")


class CanvasSummary(_CanvasModel):
    total_use_cases_selected: int = Field(alias="Total_Use_Cases_Selected")
    primary_justification: str = Field(alias="Primary_Justification")
    total_effort: int = Field(alias="Total_Effort")
    total_portfolio_npv: int = Field(alias="Total_Portfolio_NPV")


class CanvasFinancials(_CanvasModel):
    near_term_cost: int = Field(alias="Near_Term_Cost")
    long_term_cost: int = Field(alias="Long_Term_Cost")
    annual_maintenance: int = Field(alias="Annual_Maintenance")
    near_term_benefits: int = Field(alias="Near_Term_Benefits")
    long_term_benefits: int = Field(alias="Long_Term_Benefits")
    total_costs: int = Field(alias="Total_Costs")
    total_benefits: int = Field(alias="Total_Benefits")
    near_term_roi: str = Field(alias="Near_Term_ROI")
    long_term_roi: str = Field(alias="Long_Term_ROI")
    total_portfolio_roi: str = Field(alias="Total_Portfolio_ROI")


class CanvasRoadmapItem(_CanvasModel):
    name: str
    start: str
    end: str
    milestone: str


class CanvasRoadmap(_CanvasModel):
    q1: list[CanvasRoadmapItem] = Field(default_factory=list, alias="Q1")
    one_year: list[CanvasRoadmapItem] = Field(default_factory=list, alias="1_year")
    three_year: list[CanvasRoadmapItem] = Field(default_factory=list, alias="3_year")


class CanvasFinalNotes(_CanvasModel):
    risks_and_mitigations: str = Field(GENERATING, alias="Risks_and_Mitigations")
    data_and_infra_requirements: str = Field(GENERATING, alias="Data_and_Infra_Requirements")
    organizational_considerations: str = Field(GENERATING, alias="Organizational_Considerations")


class CanvasDocument(_CanvasModel):
    header: CanvasHeader = Field(alias="Header")
    business_context: CanvasBusinessContext = Field(alias="Business_Context")
    inputs: CanvasInputs = Field(default_factory=CanvasInputs, alias="Inputs")
    impacts: CanvasImpacts = Field(default_factory=CanvasImpacts, alias="Impacts")
    capabilities: CanvasCapabilities = Field(default_factory=CanvasCapabilities, alias="Capabilities")
    use_cases: list[CanvasUseCase] = Field(default_factory=list, alias="Use_Cases")
    summary: CanvasSummary = Field(alias="Selected_Portfolio_Summary")
    financials: CanvasFinancials = Field(alias="Aggregated_Financials")
    roadmap: CanvasRoadmap = Field(default_factory=CanvasRoadmap, alias="Roadmap")
    final_notes: CanvasFinalNotes = Field(default_factory=CanvasFinalNotes, alias="Final_Notes")

    def selected_use_cases(self) -> list[CanvasUseCase]:
        return [u for u in self.use_cases if u.selected_for_portfolio == "Yes"]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _roadmap_items(entries: list[RoadmapEntry]) -> list[CanvasRoadmapItem]:
    return [CanvasRoadmapItem(name=e.name, start=e.start, end=e.end, milestone=e.milestone) for e in entries]


def build_canvas(
    result: PortfolioResult, insights: CanvasInsights | None = None, title: str = DEFAULT_TITLE,
) -> CanvasDocument:
    """Shape a pipeline result into the canvas document.

    Narrative sections hold ``"Generating..."`` until *insights* are supplied
    (here or later through :func:`apply_insights`).
    """
    ctx = result.context
    fin = result.financials
    canvas = CanvasDocument(
        header=CanvasHeader(
            title=title, designed_by=ctx.author_name, designed_for=ctx.industry,
            date=ctx.date, version=ctx.version,
        ),
        business_context=CanvasBusinessContext(
            objective=ctx.objective, kpis=ctx.kpis, constraints=ctx.constraints,
        ),
        use_cases=[
            CanvasUseCase(
                name=u.name,
                problem=u.raw.problem,
                kpi=u.raw.kpi,
                benefit_midpoint=u.benefit_mid,
                cost_midpoint=u.cost_mid,
                roi=format_percent(u.roi),
                npv_3yr_10pct=round_amount(u.npv),
                payback_years=round_fixed(u.payback),
                effort_level=u.effort.value,
                risk_level=u.risk.value,
                value_score=round_fixed(u.value_score),
                dependencies=u.dependencies,
                automation_or_augmentation=u.raw.type.value,
                selected_for_portfolio="Yes" if u.selected else "No",
                roadmap_timeline=u.horizon.value,
                start_date=u.start_date,
                end_date=u.end_date,
                milestone=u.milestone,
            )
            for u in result.initiatives
        ],
        summary=CanvasSummary(
            total_use_cases_selected=result.summary.total_selected,
            primary_justification=result.summary.justification,
            total_effort=result.summary.total_effort,
            total_portfolio_npv=round_amount(result.summary.total_npv),
        ),
        financials=CanvasFinancials(
            near_term_cost=round_amount(fin.near_term_cost),
            long_term_cost=round_amount(fin.long_term_cost),
            annual_maintenance=round_amount(fin.annual_maintenance),
            near_term_benefits=round_amount(fin.near_term_benefits),
            long_term_benefits=round_amount(fin.long_term_benefits),
            total_costs=round_amount(fin.total_costs),
            total_benefits=round_amount(fin.total_benefits),
            near_term_roi=format_percent(fin.near_term_roi),
            long_term_roi=format_percent(fin.long_term_roi),
            total_portfolio_roi=format_percent(fin.total_roi),
        ),
        roadmap=CanvasRoadmap(
            q1=_roadmap_items(result.bucket(Horizon.Q1)),
            one_year=_roadmap_items(result.bucket(Horizon.ONE_YEAR)),
            three_year=_roadmap_items(result.bucket(Horizon.THREE_YEAR)),
        ),
    )
    if insights is not None:
        canvas = apply_insights(canvas, insights)
    return canvas


def apply_insights(canvas: CanvasDocument, insights: CanvasInsights) -> CanvasDocument:
    """Return a copy of *canvas* with its narrative sections filled in."""
    return canvas.model_copy(update={
        "business_context": canvas.business_context.model_copy(
            update={"strategic_focus": insights.strategic_focus},
        ),
        "inputs": CanvasInputs(
            resources=insights.resources, personnel=insights.personnel,
            external_support=insights.external_support,
        ),
        "impacts": CanvasImpacts(
            hard_benefits=insights.hard_benefits, soft_benefits=insights.soft_benefits,
        ),
        "capabilities": CanvasCapabilities(skills=insights.skills, technology=insights.technology),
        "final_notes": CanvasFinalNotes(
            risks_and_mitigations=insights.risks,
            data_and_infra_requirements=insights.data_infra,
            organizational_considerations=insights.org,
        ),
    })
