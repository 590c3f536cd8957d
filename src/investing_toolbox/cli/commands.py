"""CLI command definitions for the scoring and valuation toolbox."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from investing_toolbox.domain.models.financials import CompanySnapshot, RawFact, ValuationInput
from investing_toolbox.domain.services.screener import ScreenCriteria, Screener
from investing_toolbox.domain.services.valuation import (
    calculate_margin_percentage,
    calculate_payback_time,
    calculate_upside,
    calculate_valuation,
    get_recommendation,
)
from investing_toolbox.infrastructure.data_providers.edgar_client import parse_company_facts
from investing_toolbox.settings.config import Config
from investing_toolbox.settings.loader import load_settings
from investing_toolbox.utils.logging import configure_logging
from investing_toolbox.workflows.graph import CompanyRequest, ScoringWorkflow
from investing_toolbox.workflows.state import ScoringState

console = Console()
app = typer.Typer(help="Score and value companies from SEC financial statements in the terminal.")


@dataclass
class AppContext:
    """Holds reusable process-wide objects for CLI commands."""

    config: Config
    workflows: Dict[bool, ScoringWorkflow] = field(default_factory=dict)

    def get_workflow(self, *, use_edgar: bool = True) -> ScoringWorkflow:
        # One workflow per provider mode; an offline workflow never reaches EDGAR.
        if use_edgar not in self.workflows:
            self.workflows[use_edgar] = ScoringWorkflow(config=self.config, use_edgar=use_edgar)
        return self.workflows[use_edgar]


def _init_context(debug_override: Optional[bool] = None) -> AppContext:
    """Create a context with configuration and logging; the workflow is built on demand."""
    config = load_settings(debug_override)
    configure_logging(debug=config.debug)
    return AppContext(config=config)


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
) -> None:
    """Attach the application context to Typer."""
    ctx.obj = _init_context(debug_override=debug)


@app.command()
def score(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL"),
    facts: Optional[Path] = typer.Option(
        None,
        "--facts",
        exists=True,
        dir_okay=False,
        help="SEC companyfacts JSON file to score instead of cached or downloaded data.",
    ),
    price: Optional[float] = typer.Option(None, "--price", help="Current share price for payback and recommendation."),
    name: Optional[str] = typer.Option(None, "--name", help="Optional company display name."),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached statements and refetch."),
    offline: bool = typer.Option(False, "--offline", help="Never contact SEC EDGAR."),
    emit_json: bool = typer.Option(False, "--json", help="Persist the workflow state to JSON."),
) -> None:
    """Run the scoring workflow for a single ticker and present the outcome."""
    if ctx.obj is None:
        raise typer.Exit(code=1)
    if price is not None and price <= 0:
        raise typer.BadParameter("price must be positive", param_hint="--price")

    context: AppContext = ctx.obj
    raw_facts = _load_facts_file(facts) if facts is not None else None
    workflow = context.get_workflow(use_edgar=not offline)
    console.rule(f"Scoring {ticker.upper()}")

    with console.status("[bold cyan]Running workflow..."):
        result: ScoringState = workflow.run(
            ticker,
            raw_facts=raw_facts,
            company_name=name,
            current_price=price,
            refresh=refresh,
        )

    _print_run_summary(result)

    if emit_json:
        target = context.config.output_dir / f"{ticker.upper()}_state.json"
        workflow.persist_state(result, target)
        console.print(f"State saved to {target}")

    if result.get("errors"):
        console.print("[bold red]Workflow completed with errors:[/bold red]")
        for issue in result["errors"]:
            console.print(f"- {issue}")
        raise typer.Exit(code=1)
    console.print("[bold green]Workflow completed successfully.[/bold green]")


@app.command()
def screen(
    ctx: typer.Context,
    files: Optional[List[Path]] = typer.Argument(
        None,
        exists=True,
        dir_okay=False,
        help="companyfacts JSON files named <TICKER>.json; omit to screen stored scores.",
    ),
    min_value_score: Optional[float] = typer.Option(None, "--min-value-score"),
    max_value_score: Optional[float] = typer.Option(None, "--max-value-score"),
    min_roic_score: Optional[float] = typer.Option(None, "--min-roic-score"),
    min_moat_score: Optional[float] = typer.Option(None, "--min-moat-score"),
    min_debt_score: Optional[float] = typer.Option(None, "--min-debt-score"),
    max_payback_time: Optional[float] = typer.Option(None, "--max-payback-time"),
    sort_by: str = typer.Option("value_score", "--sort-by", help="value_score, roic_score, moat_score, debt_score, payback_time or market_cap"),
    sort_order: str = typer.Option("desc", "--sort-order", help="asc or desc"),
    page: int = typer.Option(1, "--page"),
    limit: int = typer.Option(25, "--limit"),
) -> None:
    """Score several companies concurrently (or reuse stored scores) and rank them."""
    if ctx.obj is None:
        raise typer.Exit(code=1)
    context: AppContext = ctx.obj
    criteria = ScreenCriteria(
        min_value_score=min_value_score,
        max_value_score=max_value_score,
        min_roic_score=min_roic_score,
        min_moat_score=min_moat_score,
        min_debt_score=min_debt_score,
        max_payback_time=max_payback_time,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    try:
        criteria.validated()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    failures: List[str] = []
    if files:
        workflow = context.get_workflow(use_edgar=False)
        requests = [CompanyRequest(ticker=path.stem.upper(), raw_facts=_load_facts_file(path)) for path in files]
        with console.status(f"[bold cyan]Scoring {len(requests)} companies..."):
            results = workflow.run_batch(requests)
        snapshots = []
        for ticker, state in results.items():
            snapshot = _snapshot_from_state(state)
            if snapshot is None:
                failures.append(f"{ticker}: {'; '.join(state.get('errors') or ['no scores'])}")
            else:
                snapshots.append(snapshot)
    else:
        repository = context.get_workflow(use_edgar=False).context.repository
        snapshots = repository.fetch_latest_snapshots() if repository is not None else []

    result = Screener(snapshots).screen(criteria)
    table = Table(title=f"Screener (page {result.page}/{max(result.total_pages, 1)}, {result.total} matches)")
    for column in ("Ticker", "Value", "ROIC", "Moat", "Debt", "Sticker", "MOS", "Payback"):
        table.add_column(column, justify="left" if column == "Ticker" else "right")
    for snap in result.items:
        scores = snap.scores
        table.add_row(
            snap.ticker,
            str(scores.value_score),
            str(scores.roic_score),
            str(scores.moat_score),
            str(scores.debt_score),
            _fmt_money(scores.sticker_price),
            _fmt_money(scores.mos_price),
            str(scores.payback_time) if scores.payback_time is not None else "N/A",
        )
    console.print(table)

    if failures:
        console.print("[yellow]Some companies could not be scored:[/yellow]")
        for failure in failures:
            console.print(f"- {failure}")
        raise typer.Exit(code=1)


@app.command()
def leaderboard(
    ctx: typer.Context,
    limit: int = typer.Option(50, "--limit", help="Maximum rows (capped at 100)."),
) -> None:
    """Rank stored companies that are predictable and score at least 70."""
    if ctx.obj is None:
        raise typer.Exit(code=1)
    context: AppContext = ctx.obj
    repository = context.get_workflow(use_edgar=False).context.repository
    snapshots = repository.fetch_latest_snapshots() if repository is not None else []

    table = Table(title="Leaderboard")
    table.add_column("Rank", justify="right")
    table.add_column("Ticker")
    table.add_column("Name")
    table.add_column("Value", justify="right")
    table.add_column("MOS", justify="right")
    for entry in Screener(snapshots).leaderboard(limit):
        snap = entry.snapshot
        table.add_row(
            str(entry.rank),
            snap.ticker,
            snap.name or "",
            str(snap.scores.value_score),
            _fmt_money(snap.scores.mos_price),
        )
    console.print(table)


@app.command()
def value(
    eps: float = typer.Option(..., "--eps", help="Current earnings per share (must be positive)."),
    growth: float = typer.Option(10.0, "--growth", help="Expected annual EPS growth in percent."),
    future_pe: float = typer.Option(20.0, "--pe", help="Future price/earnings multiple."),
    min_return: float = typer.Option(15.0, "--min-return", help="Minimum acceptable annual return in percent."),
    years: int = typer.Option(10, "--years", help="Projection horizon in years."),
    price: Optional[float] = typer.Option(None, "--price", help="Current share price to compare against."),
) -> None:
    """Sticker price calculator with optional payback and recommendation."""
    try:
        assumptions = ValuationInput(
            current_eps=eps,
            growth_rate=growth,
            future_pe=future_pe,
            min_return_rate=min_return,
            years=years,
        ).validated()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    result = calculate_valuation(assumptions)
    table = Table(title="Sticker Price", show_header=True, header_style="bold magenta")
    table.add_column("Key")
    table.add_column("Value", justify="right")
    table.add_row("Future EPS", _fmt_money(result.future_eps))
    table.add_row("Future Price", _fmt_money(result.future_price))
    table.add_row("Sticker Price", _fmt_money(result.sticker_price))
    table.add_row("MOS Price", _fmt_money(result.mos_price))
    if price is not None and price > 0:
        table.add_row("Current Price", _fmt_money(price))
        table.add_row("Vs. Sticker", f"{calculate_margin_percentage(price, result.sticker_price):+.2f}%")
        table.add_row("Upside to MOS", f"{calculate_upside(price, result.mos_price):+.2f}%")
        table.add_row("Payback Time", f"{calculate_payback_time(price, eps, growth / 100)} years")
        table.add_row(
            "Recommendation",
            get_recommendation(price, result.mos_price, result.sticker_price).value,
        )
    console.print(table)


@app.command()
def plan(ctx: typer.Context) -> None:
    """Display the high-level workflow path for quick operator reference."""
    if ctx.obj is None:
        raise typer.Exit(code=1)

    context: AppContext = ctx.obj
    table = Table(title="Workflow Stages")
    table.add_column("Step", style="cyan")
    table.add_column("Description")

    for idx, step in enumerate(context.get_workflow(use_edgar=False).describe_stages(), start=1):
        table.add_row(str(idx), step)

    console.print(table)


def _load_facts_file(path: Path) -> List[RawFact]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"{path} is not a readable companyfacts JSON file: {exc}") from exc
    return parse_company_facts(payload)


def _snapshot_from_state(state: ScoringState) -> Optional[CompanySnapshot]:
    scores = state.get("scores")
    if scores is None:
        return None
    return CompanySnapshot(
        ticker=state["ticker"],
        scores=scores,
        metrics=state.get("big_five"),
        name=state.get("company_name"),
        current_price=state.get("current_price"),
        calculated_at=state.get("calculated_at"),
    )


def _fmt_money(value: Optional[float]) -> str:
    return f"{value:,.2f}" if value is not None else "N/A"


def _fmt_pct(value: Optional[float]) -> str:
    return f"{value:.1f}%" if value is not None else "N/A"


def _print_run_summary(state: ScoringState) -> None:
    """Pretty-print a short run summary for operators."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Key")
    table.add_column("Value")

    metrics = state.get("big_five")
    scores = state.get("scores")
    valuation = state.get("valuation")

    table.add_row("Ticker", state.get("ticker", "?"))
    table.add_row("Company", state.get("company_name") or "N/A")
    table.add_row("Source", state.get("source") or "N/A")
    table.add_row("Years of Data", str(metrics.years_of_data) if metrics else "0")
    if metrics is not None:
        table.add_row("ROIC 1/5/10y", " / ".join(_fmt_pct(v) for v in (metrics.roic_1_year, metrics.roic_5_year, metrics.roic_10_year)))
        table.add_row(
            "EPS Growth 1/5/10y",
            " / ".join(_fmt_pct(v) for v in (metrics.eps_growth_1_year, metrics.eps_growth_5_year, metrics.eps_growth_10_year)),
        )
        table.add_row("Predictable", "yes" if metrics.is_predictable else "no")
    if scores is not None:
        table.add_row("Value Score", str(scores.value_score))
        table.add_row("ROIC / Moat / Debt / Mgmt", f"{scores.roic_score} / {scores.moat_score} / {scores.debt_score} / {scores.management_score}")
    if valuation is not None:
        table.add_row("Growth / Future PE", f"{valuation.estimated_growth_rate:.1f}% / {valuation.estimated_future_pe:.1f}")
        table.add_row("Sticker / MOS", f"{_fmt_money(valuation.result.sticker_price)} / {_fmt_money(valuation.result.mos_price)}")
        if valuation.recommendation is not None:
            table.add_row("Recommendation", valuation.recommendation.value)
            table.add_row("Payback Time", f"{valuation.payback_time} years")
            table.add_row("Upside to MOS", _fmt_pct(valuation.upside))
        for warning in valuation.warnings:
            table.add_row("Warning", warning)
    table.add_row("Errors", str(len(state.get("errors", []))))

    console.print(table)
