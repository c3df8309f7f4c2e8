from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EffortLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class UseCaseType(str, Enum):
    AUTOMATION = "Automation"
    AUGMENTATION = "Augmentation"


class Horizon(str, Enum):
    Q1 = "Q1"
    ONE_YEAR = "1-year"
    THREE_YEAR = "3-year"
    NA = "N/A"


SCHEDULED_HORIZONS: tuple[Horizon, ...] = (Horizon.Q1, Horizon.ONE_YEAR, Horizon.THREE_YEAR)

PLACEHOLDER = "-"


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BusinessContext:
    """Labels for the canvas header. Never read by the scoring logic."""
    author_name: str = ""
    industry: str = ""
    objective: str = ""
    kpis: str = ""
    constraints: str = ""
    date: str = ""
    version: str = "1.0"


@dataclass(frozen=True)
class RawInitiative:
    id: str
    name: str
    problem: str = ""
    kpi: str = ""
    benefit_low: float = 0.0
    benefit_high: float = 0.0
    cost_low: float = 0.0
    cost_high: float = 0.0
    effort: EffortLevel = EffortLevel.LOW
    risk: RiskLevel = RiskLevel.LOW
    dependencies: str = ""
    type: UseCaseType = UseCaseType.AUTOMATION


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------


@dataclass
class ComputedInitiative:
    """A raw initiative plus its metrics and, after the pipeline, its schedule.

    Selection and schedule fields start unset and are filled by the
    selector and scheduler stages.
    """
    raw: RawInitiative
    benefit_mid: float
    cost_mid: float
    roi: float
    npv: float
    payback: float
    effort_score: int
    risk_multiplier: float
    value_score: float
    selected: bool = False
    horizon: Horizon = Horizon.NA
    start_date: str = ""
    end_date: str = ""
    milestone: str = ""

    @property
    def id(self) -> str:
        return self.raw.id

    @property
    def name(self) -> str:
        return self.raw.name

    @property
    def effort(self) -> EffortLevel:
        return self.raw.effort

    @property
    def risk(self) -> RiskLevel:
        return self.raw.risk

    @property
    def dependencies(self) -> str:
        return self.raw.dependencies


@dataclass(frozen=True)
class RoadmapEntry:
    name: str
    start: str
    end: str
    milestone: str


@dataclass(frozen=True)
class PortfolioSummary:
    total_selected: int
    total_effort: int
    total_npv: float
    justification: str


@dataclass(frozen=True)
class AggregatedFinancials:
    """Unrounded rollups over the selected initiatives."""
    near_term_cost: float
    long_term_cost: float
    near_term_benefits: float
    long_term_benefits: float
    annual_maintenance: float
    near_term_roi: float
    long_term_roi: float
    total_roi: float

    @property
    def total_costs(self) -> float:
        return self.near_term_cost + self.long_term_cost

    @property
    def total_benefits(self) -> float:
        return self.near_term_benefits + self.long_term_benefits


@dataclass
class PortfolioResult:
    initiatives: list[ComputedInitiative]
    summary: PortfolioSummary
    financials: AggregatedFinancials
    roadmap: dict[Horizon, list[RoadmapEntry]]
    context: BusinessContext
    generated_at: datetime
    budget: int = 6

    @property
    def selected(self) -> list[ComputedInitiative]:
        return [i for i in self.initiatives if i.selected]

    def bucket(self, horizon: Horizon) -> list[RoadmapEntry]:
        return self.roadmap.get(horizon, [])


@dataclass
class CanvasInsights:
    """Narrative text produced by the enrichment collaborator."""
    strategic_focus: str
    risks: str
    data_infra: str
    org: str
    resources: str
    personnel: str
    external_support: str
    hard_benefits: str
    soft_benefits: str
    skills: str
    technology: str
    source: str = "llm"
