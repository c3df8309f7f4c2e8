"""Roadmap scheduling: horizon assignment, delivery windows, milestones.

Horizon rules, first match wins:

- **Q1**: low effort, risk not high, and a trivial dependency note
- **3-year**: high effort, high risk, or a heavy dependency keyword
- **1-year**: everything else

Dependency notes are matched with plain substring checks. The rule tables
below are the only place the keywords live.
"""
from __future__ import annotations

import calendar
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from roicanvas.models import (
    PLACEHOLDER,
    SCHEDULED_HORIZONS,
    ComputedInitiative,
    EffortLevel,
    Horizon,
    RiskLevel,
    RoadmapEntry,
)

# ---------------------------------------------------------------------------
# Dependency keyword rules
# ---------------------------------------------------------------------------

# Each rule receives the lower-cased dependency note.
TRIVIAL_DEPENDENCY_RULES: list[tuple[str, Callable[[str], bool]]] = [
    ("mentions none", lambda deps: "none" in deps),
    ("empty", lambda deps: deps == ""),
    ("shorter than 5 characters", lambda deps: len(deps) < 5),
]

HEAVY_DEPENDENCY_KEYWORDS: list[str] = ["migration", "legacy", "transform"]


def is_trivial_dependency(dependencies: str) -> bool:
    deps = dependencies.lower()
    return any(rule(deps) for _, rule in TRIVIAL_DEPENDENCY_RULES)


def is_heavy_dependency(dependencies: str) -> bool:
    deps = dependencies.lower()
    return any(keyword in deps for keyword in HEAVY_DEPENDENCY_KEYWORDS)


# ---------------------------------------------------------------------------
# Horizon classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HorizonWindow:
    start_months: int
    end_months: int
    milestone: str


HORIZON_WINDOWS: dict[Horizon, HorizonWindow] = {
    Horizon.Q1: HorizonWindow(1, 4, "MVP / Pilot Complete"),
    Horizon.ONE_YEAR: HorizonWindow(1, 12, "Production Deployment"),
    Horizon.THREE_YEAR: HorizonWindow(12, 36, "Enterprise Scaling"),
}


def qualifies_for_q1(item: ComputedInitiative) -> bool:
    return (
        item.effort == EffortLevel.LOW
        and is_trivial_dependency(item.dependencies)
        and item.risk != RiskLevel.HIGH
    )


def qualifies_for_three_year(item: ComputedInitiative) -> bool:
    return (
        item.effort == EffortLevel.HIGH
        or item.risk == RiskLevel.HIGH
        or is_heavy_dependency(item.dependencies)
    )


def classify_horizon(item: ComputedInitiative) -> Horizon:
    """Pick the delivery horizon for a selected initiative."""
    if qualifies_for_q1(item):
        return Horizon.Q1
    if qualifies_for_three_year(item):
        return Horizon.THREE_YEAR
    return Horizon.ONE_YEAR


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def add_months(moment: datetime, months: int) -> datetime:
    """Shift *moment* by whole calendar months.

    A day that does not exist in the target month rolls over into the next
    month (Jan 31 + 1 month is Mar 3 in a common year). Time of day is kept.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    first = moment.replace(year=year, month=month, day=1)
    return first + timedelta(days=moment.day - 1)


def format_date(moment: datetime) -> str:
    """Render as ``Oct 19, 2026``."""
    return f"{calendar.month_abbr[moment.month]} {moment.day}, {moment.year}"


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


def schedule_initiative(item: ComputedInitiative, now: datetime) -> ComputedInitiative:
    """Fill horizon, window dates and milestone in place."""
    if not item.selected:
        item.horizon = Horizon.NA
        item.start_date = item.end_date = item.milestone = PLACEHOLDER
        return item

    horizon = classify_horizon(item)
    window = HORIZON_WINDOWS[horizon]
    item.horizon = horizon
    item.start_date = format_date(add_months(now, window.start_months))
    item.end_date = format_date(add_months(now, window.end_months))
    item.milestone = window.milestone
    return item


def schedule_portfolio(items: Iterable[ComputedInitiative], now: datetime) -> list[ComputedInitiative]:
    return [schedule_initiative(item, now) for item in items]


def build_roadmap(items: Iterable[ComputedInitiative]) -> dict[Horizon, list[RoadmapEntry]]:
    """Group scheduled initiatives into the three horizon buckets, in rank order."""
    roadmap: dict[Horizon, list[RoadmapEntry]] = {h: [] for h in SCHEDULED_HORIZONS}
    for item in items:
        if item.horizon not in roadmap:
            continue
        roadmap[item.horizon].append(RoadmapEntry(
            name=item.name, start=item.start_date, end=item.end_date, milestone=item.milestone,
        ))
    return roadmap
