from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import NoReturn

import typer
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from roicanvas.config import get_settings
from roicanvas.export import canvas_payload, load_canvas, write_canvas
from roicanvas.importer import load_batch
from roicanvas.models import BusinessContext
from roicanvas.schemas import CanvasDocument, CanvasRoadmapItem, build_canvas
from roicanvas.services import BatchTooSmallError, run_enrichment, run_portfolio
from roicanvas.wizard import ChoiceQuestion, RangeQuestion, Step, TextQuestion, WizardSession

app = typer.Typer(help="AI initiative portfolio: ROI metrics, selection, roadmap and canvas")
console = Console()


def _configure_logging(*, verbose: int, json_output: bool) -> None:
    if verbose <= 0:
        level = logging.ERROR
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers: list[logging.Handler]
    if json_output:
        handlers = [logging.StreamHandler()]
        fmt = "%(levelname)s: %(message)s"
    else:
        handlers = [RichHandler(console=console, show_time=False, show_path=False, markup=True)]
        fmt = "%(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON for scripting."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity."),
) -> None:
    ctx.obj = {"json_output": json_output, "verbose": verbose}
    _configure_logging(verbose=verbose, json_output=json_output)


def _wants_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json_output"))


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=1)


def _parse_optional_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.combine(date.fromisoformat(value), datetime.min.time())
    except ValueError as exc:  # noqa: B904
        raise typer.BadParameter("Date must be YYYY-MM-DD") from exc


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _roadmap_rows(label: str, items: list[CanvasRoadmapItem]) -> list[tuple[str, ...]]:
    return [(label, i.name, i.start, i.end, i.milestone) for i in items]


def render_canvas(canvas: CanvasDocument) -> None:
    h = canvas.header
    ctx = canvas.business_context
    console.print(Panel(
        f"[bold]{h.designed_for or '-'}[/bold] · {h.designed_by or '-'} · {h.date or '-'} · v{h.version}\n"
        f"[dim]Objective:[/dim] {ctx.objective or '-'}\n"
        f"[dim]Strategic focus:[/dim] {ctx.strategic_focus}",
        title=h.title, border_style="cyan",
    ))

    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Use case", style="bold")
    table.add_column("ROI", justify="right")
    table.add_column("NPV", justify="right")
    table.add_column("Payback", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Effort")
    table.add_column("Risk")
    table.add_column("Selected", justify="center")
    table.add_column("Horizon")
    for u in canvas.use_cases:
        selected = u.selected_for_portfolio == "Yes"
        table.add_row(
            u.name,
            u.roi,
            f"{u.npv_3yr_10pct:,}",
            f"{u.payback_years:.2f}y",
            f"{u.value_score:,.2f}",
            u.effort_level,
            u.risk_level,
            "[green]Yes[/green]" if selected else "[dim]No[/dim]",
            u.roadmap_timeline,
        )
    console.print(Panel(table, title="Use cases (ranked)", border_style="cyan"))

    s = canvas.summary
    f = canvas.financials
    fin = Table(show_header=True, header_style="bold green", box=ROUNDED)
    fin.add_column("Metric", style="bold")
    fin.add_column("Near term", justify="right")
    fin.add_column("Long term", justify="right")
    fin.add_column("Total", justify="right")
    fin.add_row("Costs", f"{f.near_term_cost:,}", f"{f.long_term_cost:,}", f"{f.total_costs:,}")
    fin.add_row("Benefits", f"{f.near_term_benefits:,}", f"{f.long_term_benefits:,}", f"{f.total_benefits:,}")
    fin.add_row("ROI", f.near_term_roi, f.long_term_roi, f.total_portfolio_roi)
    fin.add_row("Annual maintenance", "", "", f"{f.annual_maintenance:,}")
    console.print(Panel(
        fin,
        title=f"Portfolio · {s.total_use_cases_selected} selected · effort {s.total_effort} · "
              f"NPV {s.total_portfolio_npv:,}",
        border_style="green",
    ))

    roadmap = Table(show_header=True, header_style="bold magenta", box=ROUNDED)
    for col in ("Horizon", "Initiative", "Start", "End", "Milestone"):
        roadmap.add_column(col)
    for row in (
        _roadmap_rows("Q1", canvas.roadmap.q1)
        + _roadmap_rows("1-year", canvas.roadmap.one_year)
        + _roadmap_rows("3-year", canvas.roadmap.three_year)
    ):
        roadmap.add_row(*row)
    console.print(Panel(roadmap, title="Roadmap", border_style="magenta"))

    notes = canvas.final_notes
    console.print(Panel(
        f"[bold]Risks & mitigations[/bold]\n{notes.risks_and_mitigations}\n\n"
        f"[bold]Data & infra[/bold]\n{notes.data_and_infra_requirements}\n\n"
        f"[bold]Organization[/bold]\n{notes.organizational_considerations}",
        title="Final notes", border_style="yellow",
    ))


def _emit(ctx: typer.Context, canvas: CanvasDocument, out: Path | None) -> None:
    if out is not None:
        write_canvas(canvas, out)
    if _wants_json(ctx):
        typer.echo(json.dumps(canvas_payload(canvas), indent=2, ensure_ascii=False))
        return
    render_canvas(canvas)
    if out is not None:
        console.print(f"[green]✓[/green] Canvas written to {out}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("compute")
def compute_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Batch file (.json, .yaml, .xlsx)."),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write the canvas JSON here."),
    now: str | None = typer.Option(None, "--now", help="Schedule anchor date (YYYY-MM-DD)."),
    allow_small_batch: bool = typer.Option(
        False, "--allow-small-batch", help="Compute even below the minimum use-case count.",
    ),
    enrich: bool = typer.Option(False, "--enrich", help="Fill the narrative sections with the LLM."),
) -> None:
    anchor = _parse_optional_date(now)
    try:
        context, initiatives = load_batch(file)
        _, canvas = run_portfolio(initiatives, context, now=anchor, force=allow_small_batch)
    except (BatchTooSmallError, ValueError) as exc:
        _fail(str(exc))
    if enrich:
        canvas = asyncio.run(run_enrichment(canvas))
    _emit(ctx, canvas, out)


@app.command("enrich")
def enrich_command(
    ctx: typer.Context,
    canvas_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported canvas JSON."),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write the enriched canvas here."),
) -> None:
    try:
        canvas = load_canvas(canvas_file)
    except ValueError as exc:
        _fail(f"{canvas_file.name} is not a canvas document: {exc}")
    canvas = asyncio.run(run_enrichment(canvas))
    _emit(ctx, canvas, out)


@app.command("show")
def show_command(
    ctx: typer.Context,
    canvas_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported canvas JSON."),
) -> None:
    try:
        canvas = load_canvas(canvas_file)
    except ValueError as exc:
        _fail(f"{canvas_file.name} is not a canvas document: {exc}")
    _emit(ctx, canvas, None)


def _ask(q: TextQuestion | RangeQuestion | ChoiceQuestion) -> str | tuple[str, str]:
    if isinstance(q, RangeQuestion):
        low = typer.prompt(f"{q.label} {q.sub_labels[0]}", default="0")
        high = typer.prompt(f"{q.label} {q.sub_labels[1]}", default="0")
        return low, high
    if isinstance(q, ChoiceQuestion):
        return typer.prompt(f"{q.label} [{'/'.join(q.options)}]", default=q.default)
    return typer.prompt(q.label, default="", show_default=False)


@app.command("wizard")
def wizard_command(
    ctx: typer.Context,
    out: Path | None = typer.Option(None, "--out", "-o", help="Write the canvas JSON here."),
    now: str | None = typer.Option(None, "--now", help="Schedule anchor date (YYYY-MM-DD)."),
    enrich: bool = typer.Option(False, "--enrich", help="Fill the narrative sections with the LLM."),
) -> None:
    """Answer the questions one by one, then compute the portfolio."""
    settings = get_settings()
    session = WizardSession(min_use_cases=settings.min_use_cases)
    console.print(Panel(
        f"Describe your business context, then at least {settings.min_use_cases} AI use cases.",
        title=settings.canvas_title, border_style="cyan",
    ))
    session.start()
    session.submit_context(BusinessContext(
        author_name=typer.prompt("Your name", default="", show_default=False),
        industry=typer.prompt("Industry", default="", show_default=False),
        objective=typer.prompt("Business objective", default="", show_default=False),
        kpis=typer.prompt("Key KPIs", default="", show_default=False),
        constraints=typer.prompt("Constraints", default="", show_default=False),
        date=date.today().isoformat(),
    ))

    while session.step != Step.RESULTS:
        if session.step == Step.CONFIRMATION:
            console.print(f"[green]✓[/green] {len(session.use_cases)} use cases collected.")
            if typer.confirm("Add another use case?", default=False):
                session.add_more()
                continue
            session.compute(now=_parse_optional_date(now))
            break
        console.print(f"[bold cyan]Use case {len(session.use_cases) + 1}[/bold cyan] · {session.progress}")
        q = session.current_question
        try:
            session.answer(_ask(q))
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")

    canvas = build_canvas(session.result, title=settings.canvas_title)
    if enrich:
        canvas = asyncio.run(run_enrichment(canvas))
    _emit(ctx, canvas, out)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
