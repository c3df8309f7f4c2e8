from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from roicanvas import services
from roicanvas.calculations import calculate_metrics
from roicanvas.export import canvas_payload, parse_canvas
from roicanvas.scheduler import HORIZON_WINDOWS, classify_horizon
from roicanvas.schemas import InitiativeIn, PortfolioRequest
from roicanvas.selector import EFFORT_BUDGET
from roicanvas.wizard import USE_CASE_QUESTIONS, question_schema

log = logging.getLogger(__name__)


mcp = FastMCP(
    "ROI Canvas",
    instructions=(
        "ROI Canvas turns a batch of AI use-case estimates into a ranked portfolio, "
        "a Q1 / 1-year / 3-year roadmap and an AI ROI & Roadmap Canvas. "
        "Read roicanvas://overview first, use score_initiative() to check a single "
        "use case, then compute_portfolio() with the full batch."
    ),
    json_response=True,
)


def _anchor(now: str | None) -> datetime | None:
    return datetime.fromisoformat(now) if now else None


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("roicanvas://overview")
def roicanvas_overview() -> str:
    """Overview of the portfolio rules: metrics, selection, horizons."""
    return json.dumps({
        "system": "ROI Canvas: AI initiative portfolio engine",
        "metrics": {
            "benefit_mid": "(benefit_low + benefit_high) / 2",
            "cost_mid": "(cost_low + cost_high) / 2",
            "roi": "(benefit_mid - cost_mid) / cost_mid, 0 when cost_mid is 0",
            "npv": "benefit_mid * 2.48685 - cost_mid (3 years at 10%)",
            "payback": "cost_mid / benefit_mid in years, 0 when benefit_mid is 0",
            "value_score": "npv * risk_multiplier / effort_score",
        },
        "tiers": {
            "effort_score": {"Low": 1, "Medium": 2, "High": 3},
            "risk_multiplier": {"Low": 0.9, "Medium": 1.0, "High": 1.2},
        },
        "selection": (
            f"Greedy by value score (descending) within an effort budget of {EFFORT_BUDGET}; "
            "the top-ranked initiative is always selected."
        ),
        "horizons": {
            h.value: {"start_month": w.start_months, "end_month": w.end_months, "milestone": w.milestone}
            for h, w in HORIZON_WINDOWS.items()
        },
        "workflow": [
            "1. list_questions() to see which fields each use case needs.",
            "2. score_initiative(...) to preview one use case.",
            "3. compute_portfolio(use_cases, context) for the ranked portfolio and canvas.",
            "4. enrich_canvas(canvas_json) to fill the narrative sections (needs an LLM key).",
        ],
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_questions() -> list[dict]:
    """The questions asked for every use case, with their kinds and options."""
    return [question_schema(q) for q in USE_CASE_QUESTIONS]


@mcp.tool()
def score_initiative(
    name: str,
    benefit_low: float = 0, benefit_high: float = 0,
    cost_low: float = 0, cost_high: float = 0,
    effort: str = "Low", risk: str = "Low",
    dependencies: str = "", type: str = "Automation",
) -> dict:
    """Compute the metrics for one use case and the horizon it would get if selected.

    Args:
        effort: Low, Medium or High.
        risk: Low, Medium or High.
        dependencies: Free text. "none", blank or very short text counts as no dependency.
        type: Automation or Augmentation.
    """
    try:
        raw = InitiativeIn(
            name=name, benefit_low=benefit_low, benefit_high=benefit_high,
            cost_low=cost_low, cost_high=cost_high, effort=effort, risk=risk,
            dependencies=dependencies, type=type,
        ).to_raw()
    except ValidationError as exc:
        return {"error": str(exc)}
    item = calculate_metrics(raw)
    return {
        "name": item.name,
        "benefit_mid": item.benefit_mid,
        "cost_mid": item.cost_mid,
        "roi": item.roi,
        "npv": item.npv,
        "payback_years": item.payback,
        "effort_score": item.effort_score,
        "risk_multiplier": item.risk_multiplier,
        "value_score": item.value_score,
        "horizon_if_selected": classify_horizon(item).value,
    }


@mcp.tool()
def compute_portfolio(
    use_cases: list[dict[str, Any]],
    context: dict[str, Any] | None = None,
    now: str | None = None,
    force: bool = False,
) -> dict:
    """Rank, select and schedule a batch of use cases and return the canvas.

    Args:
        use_cases: Objects with name, problem, kpi, benefitLow, benefitHigh,
                   costLow, costHigh, effort, risk, dependencies, type.
        context: Optional authorName, industry, objective, kpis, constraints, date, version.
        now: Schedule anchor as an ISO date (YYYY-MM-DD); defaults to today.
        force: Compute even when fewer than the minimum number of use cases is given.
    """
    try:
        body = PortfolioRequest.model_validate(
            {"context": context or {}, "use_cases": use_cases, "force": force}
        )
        _, canvas = services.run_portfolio(
            body.raw_initiatives(), body.context.to_context(), now=_anchor(now), force=body.force,
        )
    except (services.BatchTooSmallError, ValueError) as exc:
        return {"error": str(exc)}
    return canvas_payload(canvas)


@mcp.tool()
async def enrich_canvas(canvas_json: str) -> dict:
    """Fill the narrative sections of an exported canvas using the configured LLM."""
    try:
        canvas = parse_canvas(canvas_json)
    except ValueError as exc:
        return {"error": f"Not a canvas document: {exc}"}
    return canvas_payload(await services.run_enrichment(canvas))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the ROI Canvas MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
