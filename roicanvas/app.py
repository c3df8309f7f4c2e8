from __future__ import annotations

import logging
import tempfile
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from roicanvas import __version__, services
from roicanvas.config import get_settings
from roicanvas.export import EXPORT_ROOT_KEY, canvas_payload
from roicanvas.importer import load_batch
from roicanvas.models import PortfolioResult
from roicanvas.schemas import CanvasDocument, PortfolioRequest
from roicanvas.wizard import USE_CASE_QUESTIONS, question_schema

log = logging.getLogger(__name__)


app = FastAPI(
    title="ROI Canvas",
    version=__version__,
    description=(
        "AI initiative portfolio API. Scores a batch of AI use cases, selects a "
        "portfolio within a fixed effort budget, schedules a Q1 / 1-year / 3-year "
        "roadmap and shapes the AI ROI & Roadmap Canvas. "
        "All endpoints return JSON. No authentication required."
    ),
    openapi_tags=[
        {"name": "Portfolio", "description": "Compute ranked portfolios and canvases."},
        {"name": "Enrichment", "description": "LLM-written canvas narrative. Requires an LLM API key."},
        {"name": "Import", "description": "Compute a portfolio from an uploaded XLSX workbook."},
        {"name": "Wizard", "description": "Question definitions for interactive clients."},
        {"name": "Admin", "description": "Health and version."},
    ],
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _anchor(now: date | None) -> datetime | None:
    return datetime.combine(now, datetime.min.time()) if now else None


def _canvas_response(canvas: CanvasDocument) -> JSONResponse:
    filename = get_settings().export_filename
    return JSONResponse(
        canvas_payload(canvas),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _result_summary(result: PortfolioResult) -> dict[str, Any]:
    fin = result.financials
    return {
        "generated_at": result.generated_at.isoformat(),
        "budget": result.budget,
        "initiatives": [
            {
                "id": u.id,
                "name": u.name,
                "rank": idx + 1,
                "benefit_mid": u.benefit_mid,
                "cost_mid": u.cost_mid,
                "roi": u.roi,
                "npv": u.npv,
                "payback": u.payback,
                "effort_score": u.effort_score,
                "risk_multiplier": u.risk_multiplier,
                "value_score": u.value_score,
                "selected": u.selected,
                "horizon": u.horizon.value,
                "start_date": u.start_date,
                "end_date": u.end_date,
                "milestone": u.milestone,
            }
            for idx, u in enumerate(result.initiatives)
        ],
        "summary": {
            "total_selected": result.summary.total_selected,
            "total_effort": result.summary.total_effort,
            "total_npv": result.summary.total_npv,
            "justification": result.summary.justification,
        },
        "financials": {
            "near_term_cost": fin.near_term_cost,
            "long_term_cost": fin.long_term_cost,
            "near_term_benefits": fin.near_term_benefits,
            "long_term_benefits": fin.long_term_benefits,
            "annual_maintenance": fin.annual_maintenance,
            "near_term_roi": fin.near_term_roi,
            "long_term_roi": fin.long_term_roi,
            "total_roi": fin.total_roi,
        },
        "roadmap": {
            h.value: [asdict(e) for e in entries] for h, entries in result.roadmap.items()
        },
    }


def _run(body: PortfolioRequest, now: date | None):
    try:
        return services.run_portfolio(
            body.raw_initiatives(), body.context.to_context(), now=_anchor(now), force=body.force,
        )
    except services.BatchTooSmallError as exc:
        raise HTTPException(400, str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc


NOW_QUERY = Query(None, description="Schedule anchor date (YYYY-MM-DD). Defaults to today.")


# ---------------------------------------------------------------------------
# Routes: Portfolio
# ---------------------------------------------------------------------------


@app.post("/api/portfolio", tags=["Portfolio"],
          summary="Compute metrics, selection, schedule and rollups for a batch of use cases")
async def compute_portfolio(body: PortfolioRequest, now: date | None = NOW_QUERY):
    result, _ = _run(body, now)
    return _result_summary(result)


@app.post("/api/portfolio/canvas", tags=["Portfolio"],
          summary="Compute the portfolio and return the canvas document (narrative not yet generated)")
async def compute_canvas(body: PortfolioRequest, now: date | None = NOW_QUERY):
    _, canvas = _run(body, now)
    return _canvas_response(canvas)


@app.post("/api/portfolio/enrich", tags=["Enrichment", "Portfolio"],
          summary="Compute the canvas and fill its narrative sections with the LLM")
async def compute_enriched_canvas(body: PortfolioRequest, now: date | None = NOW_QUERY):
    _, canvas = _run(body, now)
    canvas = await services.run_enrichment(canvas)
    return _canvas_response(canvas)


class EnrichCanvasRequest(BaseModel):
    canvas: dict[str, Any]


@app.post("/api/canvas/enrich", tags=["Enrichment"],
          summary="Fill the narrative sections of an exported canvas")
async def enrich_canvas(body: EnrichCanvasRequest):
    data = body.canvas.get(EXPORT_ROOT_KEY, body.canvas)
    try:
        canvas = CanvasDocument.model_validate(data)
    except ValueError as exc:
        raise HTTPException(422, f"Not a canvas document: {exc}") from exc
    canvas = await services.run_enrichment(canvas)
    return _canvas_response(canvas)


# ---------------------------------------------------------------------------
# Routes: Import
# ---------------------------------------------------------------------------


@app.post("/api/import", tags=["Import", "Portfolio"],
          summary="Compute the canvas from an XLSX workbook (UseCases and Context sheets)")
async def import_file(
    file: UploadFile = File(...),
    force: bool = Query(False, description="Compute even below the minimum use-case count."),
    now: date | None = NOW_QUERY,
):
    if not file.filename or not file.filename.endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx files are supported")
    content = await file.read()
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as f:
            tmp_path = Path(f.name)
            f.write(content)
        context, initiatives = load_batch(tmp_path)
        _, canvas = services.run_portfolio(initiatives, context, now=_anchor(now), force=force)
    except services.BatchTooSmallError as exc:
        raise HTTPException(400, str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc
    finally:
        if tmp_path:
            tmp_path.unlink(missing_ok=True)
    return _canvas_response(canvas)


# ---------------------------------------------------------------------------
# Routes: Wizard & Admin
# ---------------------------------------------------------------------------


@app.get("/api/questions", tags=["Wizard"], summary="Questions asked for every use case")
async def list_questions():
    return [question_schema(q) for q in USE_CASE_QUESTIONS]


@app.get("/api/health", tags=["Admin"], summary="Liveness check")
async def health():
    return {"ok": True, "version": __version__}


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("roicanvas.app:app", host="127.0.0.1", port=8001, reload=True)


if __name__ == "__main__":
    main()
