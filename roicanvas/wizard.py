"""Step-by-step collection of the business context and use cases.

The session is a small state machine::

    WELCOME -> CONTEXT_ENTRY -> USE_CASE_COLLECTION -> CONFIRMATION -> COMPUTING -> RESULTS
                                        ^                      |
                                        +------ add_more ------+

Each use-case question is one of three kinds (text, range, choice) and carries
a typed setter that writes its answer into an :class:`InitiativeDraft`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Union

from roicanvas.models import (
    BusinessContext,
    EffortLevel,
    PortfolioResult,
    RawInitiative,
    RiskLevel,
    UseCaseType,
)
from roicanvas.pipeline import process_portfolio
from roicanvas.utils import coerce_number, parse_enum

log = logging.getLogger(__name__)


class Step(str, Enum):
    WELCOME = "WELCOME"
    CONTEXT_ENTRY = "CONTEXT_ENTRY"
    USE_CASE_COLLECTION = "USE_CASE_COLLECTION"
    CONFIRMATION = "CONFIRMATION"
    COMPUTING = "COMPUTING"
    RESULTS = "RESULTS"


TRANSITIONS: dict[Step, frozenset[Step]] = {
    Step.WELCOME: frozenset({Step.CONTEXT_ENTRY}),
    Step.CONTEXT_ENTRY: frozenset({Step.USE_CASE_COLLECTION}),
    Step.USE_CASE_COLLECTION: frozenset({Step.CONFIRMATION}),
    Step.CONFIRMATION: frozenset({Step.USE_CASE_COLLECTION, Step.COMPUTING}),
    Step.COMPUTING: frozenset({Step.RESULTS}),
    Step.RESULTS: frozenset(),
}


class WizardStateError(RuntimeError):
    """An action was attempted from a step that does not allow it."""


# ---------------------------------------------------------------------------
# Draft and questions
# ---------------------------------------------------------------------------


@dataclass
class InitiativeDraft:
    name: str = ""
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

    def to_raw(self, initiative_id: str) -> RawInitiative:
        return RawInitiative(
            id=initiative_id, name=self.name, problem=self.problem, kpi=self.kpi,
            benefit_low=self.benefit_low, benefit_high=self.benefit_high,
            cost_low=self.cost_low, cost_high=self.cost_high,
            effort=self.effort, risk=self.risk,
            dependencies=self.dependencies, type=self.type,
        )


@dataclass(frozen=True)
class TextQuestion:
    id: str
    label: str
    set: Callable[[InitiativeDraft, str], None]
    placeholder: str = ""
    multiline: bool = False
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class RangeQuestion:
    id: str
    label: str
    set: Callable[[InitiativeDraft, float, float], None]
    sub_labels: tuple[str, str] = ("Low Estimate", "High Estimate")
    kind: Literal["range"] = "range"


@dataclass(frozen=True)
class ChoiceQuestion:
    id: str
    label: str
    options: tuple[str, ...]
    set: Callable[[InitiativeDraft, str], None]
    kind: Literal["choice"] = "choice"

    @property
    def default(self) -> str:
        return self.options[0]


Question = Union[TextQuestion, RangeQuestion, ChoiceQuestion]


def _set_name(d: InitiativeDraft, v: str) -> None:
    d.name = v


def _set_problem(d: InitiativeDraft, v: str) -> None:
    d.problem = v


def _set_kpi(d: InitiativeDraft, v: str) -> None:
    d.kpi = v


def _set_benefit(d: InitiativeDraft, low: float, high: float) -> None:
    d.benefit_low, d.benefit_high = low, high


def _set_cost(d: InitiativeDraft, low: float, high: float) -> None:
    d.cost_low, d.cost_high = low, high


def _set_effort(d: InitiativeDraft, v: str) -> None:
    d.effort = parse_enum(EffortLevel, v, "effort")


def _set_risk(d: InitiativeDraft, v: str) -> None:
    d.risk = parse_enum(RiskLevel, v, "risk")


def _set_dependencies(d: InitiativeDraft, v: str) -> None:
    d.dependencies = v


def _set_type(d: InitiativeDraft, v: str) -> None:
    d.type = parse_enum(UseCaseType, v, "type")


USE_CASE_QUESTIONS: tuple[Question, ...] = (
    TextQuestion("name", "Use Case Name?", _set_name, placeholder="e.g., Predictive Maintenance"),
    TextQuestion("problem", "What business problem does it solve?", _set_problem,
                 placeholder="Current downtime costs $1M/year...", multiline=True),
    TextQuestion("kpi", "What KPI does it improve?", _set_kpi, placeholder="e.g., Uptime %"),
    RangeQuestion("benefit", "Estimated annual benefit range ($)?", _set_benefit),
    RangeQuestion("cost", "Estimated implementation cost range ($)?", _set_cost),
    ChoiceQuestion("effort", "Effort level?", tuple(e.value for e in EffortLevel), _set_effort),
    ChoiceQuestion("risk", "Risk level?", tuple(r.value for r in RiskLevel), _set_risk),
    TextQuestion("dependencies", "Any major dependencies or prerequisites?", _set_dependencies,
                 placeholder="e.g., Data Lake migration"),
    ChoiceQuestion("type", "Is this Automation or Augmentation?",
                   tuple(t.value for t in UseCaseType), _set_type),
)


def question_schema(q: Question) -> dict:
    """Plain-dict description of a question for API clients."""
    data = {"id": q.id, "label": q.label, "kind": q.kind}
    if isinstance(q, TextQuestion):
        data.update(placeholder=q.placeholder, multiline=q.multiline)
    elif isinstance(q, RangeQuestion):
        data["sub_labels"] = list(q.sub_labels)
    else:
        data["options"] = list(q.options)
    return data


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class WizardSession:
    min_use_cases: int = 5
    step: Step = Step.WELCOME
    context: BusinessContext | None = None
    use_cases: list[RawInitiative] = field(default_factory=list)
    draft: InitiativeDraft = field(default_factory=InitiativeDraft)
    question_index: int = 0
    result: PortfolioResult | None = None

    def _go(self, target: Step) -> None:
        if target not in TRANSITIONS[self.step]:
            raise WizardStateError(f"Cannot move from {self.step.value} to {target.value}")
        log.debug("Wizard: %s -> %s", self.step.value, target.value)
        self.step = target

    def _require(self, step: Step) -> None:
        if self.step != step:
            raise WizardStateError(f"Expected step {step.value}, currently {self.step.value}")

    # -- transitions --------------------------------------------------------

    def start(self) -> None:
        self._go(Step.CONTEXT_ENTRY)

    def submit_context(self, context: BusinessContext) -> None:
        self._require(Step.CONTEXT_ENTRY)
        self.context = context
        self._go(Step.USE_CASE_COLLECTION)

    def add_more(self) -> None:
        self._go(Step.USE_CASE_COLLECTION)

    def compute(self, now: datetime | None = None) -> PortfolioResult:
        """Run the pipeline over the collected use cases and land on RESULTS."""
        self._go(Step.COMPUTING)
        self.result = process_portfolio(self.use_cases, self.context or BusinessContext(), now=now)
        self._go(Step.RESULTS)
        return self.result

    # -- question flow ------------------------------------------------------

    @property
    def current_question(self) -> Question:
        self._require(Step.USE_CASE_COLLECTION)
        return USE_CASE_QUESTIONS[self.question_index]

    @property
    def progress(self) -> str:
        return f"Question {self.question_index + 1} of {len(USE_CASE_QUESTIONS)}"

    def answer(self, value: str | tuple[object, object]) -> RawInitiative | None:
        """Record the answer to the current question.

        Text and choice questions take a string; range questions take a
        ``(low, high)`` pair, each coerced to a number (blank or invalid is 0).
        Returns the finished use case after the last question, else ``None``.
        """
        q = self.current_question
        if isinstance(q, RangeQuestion):
            if not isinstance(value, tuple) or len(value) != 2:
                raise TypeError(f"Question {q.id!r} expects a (low, high) pair")
            q.set(self.draft, coerce_number(value[0]), coerce_number(value[1]))
        elif isinstance(value, str):
            q.set(self.draft, value.strip() if isinstance(q, TextQuestion) else value or q.default)
        else:
            raise TypeError(f"Question {q.id!r} expects a string answer")

        if self.question_index < len(USE_CASE_QUESTIONS) - 1:
            self.question_index += 1
            return None
        return self._finish_use_case()

    def _finish_use_case(self) -> RawInitiative:
        raw = self.draft.to_raw(f"uc-{len(self.use_cases)}")
        self.use_cases.append(raw)
        self.draft = InitiativeDraft()
        self.question_index = 0
        log.info("Collected use case %d: %s", len(self.use_cases), raw.name)
        if len(self.use_cases) >= self.min_use_cases:
            self._go(Step.CONFIRMATION)
        return raw
