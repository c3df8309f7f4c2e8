"""Shared business logic for the CLI, the API and the MCP server."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from roicanvas.config import get_settings
from roicanvas.enricher import LLMClient, generate_insights
from roicanvas.models import BusinessContext, PortfolioResult, RawInitiative
from roicanvas.pipeline import process_portfolio
from roicanvas.schemas import CanvasDocument, apply_insights, build_canvas

log = logging.getLogger(__name__)


class BatchTooSmallError(Exception):
    """Fewer use cases were supplied than the configured minimum."""
    def __init__(self, count: int, minimum: int):
        super().__init__(
            f"Need at least {minimum} use cases to compute a portfolio, got {count}"
        )
        self.count = count
        self.minimum = minimum


def check_batch_size(count: int, minimum: int | None = None, force: bool = False) -> None:
    minimum = get_settings().min_use_cases if minimum is None else minimum
    if count < minimum:
        if force:
            log.warning("Computing a portfolio from %d use cases (minimum %d)", count, minimum)
            return
        raise BatchTooSmallError(count, minimum)


def run_portfolio(
    raw_items: Sequence[RawInitiative],
    context: BusinessContext,
    now: datetime | None = None,
    force: bool = False,
) -> tuple[PortfolioResult, CanvasDocument]:
    """Gate the batch size, run the pipeline and shape the canvas."""
    check_batch_size(len(raw_items), force=force)
    result = process_portfolio(raw_items, context, now=now)
    canvas = build_canvas(result, title=get_settings().canvas_title)
    return result, canvas


async def run_enrichment(
    canvas: CanvasDocument, client: LLMClient | None = None,
) -> CanvasDocument:
    """Fill the canvas narrative. Failures come back as marked fallback text."""
    insights = await generate_insights(canvas, client=client)
    log.info("Canvas enrichment finished (source=%s)", insights.source)
    return apply_insights(canvas, insights)
