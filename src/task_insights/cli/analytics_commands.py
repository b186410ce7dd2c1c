"""CLI commands for productivity scores, progress reports and forecasts."""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import parsedatetime
import tabulate
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..access import AllowAllPolicy, Caller, MembershipPolicy
from ..config import ConfigModel, load_config, save_config
from ..domain import EntityType, Period, PeriodMode
from ..errors import AccessDenied, AnalyticsError, DataUnavailable, NotFound
from ..services import ReportOrchestrator, SqliteTrendStore, TrendComparator
from ..services.report import ReportResult
from ..storage import SnapshotError, SnapshotRepository
from ..utils.datetime import end_of_day, ensure_aware, now_utc, start_of_day

logger = logging.getLogger(__name__)

RISK_STYLES = {"low": "green", "medium": "yellow", "high": "red"}
TREND_ARROWS = {"up": "↑", "down": "↓", "neutral": "→"}


def get_console() -> Console:
    return Console()


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    get_console().print(f"[red]❌ {escape(message)}[/red]")
    sys.exit(1)


def parse_when(text: str) -> datetime:
    """Parse an ISO date or a natural-language one ("last monday")."""
    try:
        return ensure_aware(datetime.fromisoformat(text))
    except ValueError:
        pass

    time_struct, parse_status = parsedatetime.Calendar().parse(text)
    if parse_status == 0:
        raise click.BadParameter(f"Cannot understand date '{text}'")
    return ensure_aware(datetime(*time_struct[:6]))


def resolve_scope(project: Optional[int], user: Optional[int],
                  team: Optional[int]) -> Tuple[EntityType, Optional[int]]:
    chosen = [(t, i) for t, i in (
        (EntityType.PROJECT, project),
        (EntityType.USER, user),
        (EntityType.TEAM, team),
    ) if i is not None]
    if len(chosen) > 1:
        raise click.UsageError("Use only one of --project, --user, --team")
    return chosen[0] if chosen else (EntityType.GLOBAL, None)


def resolve_period(config: ConfigModel, mode: Optional[str],
                   start: Optional[str], end: Optional[str]) -> Period:
    if start or end:
        if not (start and end):
            raise click.UsageError("--start and --end must be given together")
        return Period(start_of_day(parse_when(start)), end_of_day(parse_when(end)))
    mode = PeriodMode(mode or config.default_period)
    return Period.from_mode(mode, week_starts_on=config.week_starts_on)


def build_orchestrator(obj: Dict[str, Any], track: bool = False) -> ReportOrchestrator:
    config: ConfigModel = obj["config"]
    snapshot = obj.get("snapshot") or config.snapshot_path
    if not snapshot:
        raise click.UsageError("No task snapshot given (use --snapshot or set snapshot_path)")

    repo = SnapshotRepository.from_file(Path(snapshot))
    caller_id = obj.get("as_user")
    if caller_id is None:
        policy = AllowAllPolicy()
        obj["caller"] = Caller(user_id=None, role="admin")
    else:
        policy = MembershipPolicy(repo)
        obj["caller"] = Caller(user_id=caller_id, role=repo.user_role(caller_id))

    trends = TrendComparator(SqliteTrendStore(config.get_trend_db_path())) if track else None
    return ReportOrchestrator(
        repo,
        access_policy=policy,
        directory=repo,
        trend_comparator=trends,
        final_statuses=config.final_statuses,
        urgent_priority=config.urgent_priority,
    )


def run_engine(coro):
    """Run an engine coroutine, mapping engine errors to CLI failures."""
    try:
        return asyncio.run(coro)
    except AccessDenied:
        fail("Forbidden: you do not have access to this entity")
    except NotFound as e:
        fail(str(e))
    except DataUnavailable:
        fail("Task data unavailable")
    except AnalyticsError as e:
        fail(str(e))


def format_table(data: List[Dict[str, Any]], tablefmt: str = "grid") -> str:
    """Format rows as a plain-text table"""
    if not data:
        return "No data available"
    return tabulate.tabulate(data, headers="keys", tablefmt=tablefmt)


def emit(payload: Dict[str, Any], output_format: str, rows: List[Dict[str, Any]],
         render_rich) -> None:
    if output_format == "json":
        click.echo(json.dumps(payload, indent=2, default=str))
    elif output_format == "plain":
        click.echo(format_table(rows))
    else:
        render_rich(get_console())


scope_options = [
    click.option("--project", "-p", type=int, help="Project id"),
    click.option("--user", "-u", type=int, help="User id"),
    click.option("--team", "-t", type=int, help="Team id"),
    click.option("--period", type=click.Choice([m.value for m in PeriodMode]),
                 help="Named week window"),
    click.option("--start", help="Period start (ISO or natural language)"),
    click.option("--end", help="Period end (ISO or natural language)"),
    click.option("--format", "-f", "output_format",
                 type=click.Choice(["text", "json", "plain"]), help="Output format"),
]


def with_scope(func):
    for option in reversed(scope_options):
        func = option(func)
    return func


@click.group(name="task-insights")
@click.option("--config", "config_path", type=click.Path(path_type=Path),
              help="Configuration file")
@click.option("--snapshot", "-s", type=click.Path(path_type=Path),
              help="Task snapshot (YAML or JSON)")
@click.option("--as-user", type=int, help="Evaluate access as this user id")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def analytics_cli(ctx, config_path, snapshot, as_user, verbose):
    """Productivity analytics over task snapshots"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path)
    ctx.obj["snapshot"] = snapshot
    ctx.obj["as_user"] = as_user


@analytics_cli.command(name="score")
@with_scope
@click.option("--track", is_flag=True, help="Record the score and show its trend")
@click.pass_obj
def score(obj, project, user, team, period, start, end, output_format, track):
    """Weighted productivity score for an entity"""
    config = obj["config"]
    output_format = output_format or config.output_format
    entity_type, entity_id = resolve_scope(project, user, team)
    window = resolve_period(config, period, start, end)

    try:
        engine = build_orchestrator(obj, track=track)
    except SnapshotError as e:
        fail(str(e))
    result = run_engine(engine.productivity(obj["caller"], entity_type, entity_id, window))
    trend = engine.stat_trend(entity_type, entity_id, "productivity_score", result.score) if track else None

    payload = result.to_dict()
    if trend is not None:
        payload["trend"] = trend.to_dict()
    rows = [{"metric": name, "value": value} for name, value in result.metrics.to_dict().items()]
    rows.append({"metric": "score", "value": result.score})

    def render(console):
        table = Table(title=f"Productivity {window.start.date()} → {window.end.date()}")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        for row in rows[:-1]:
            table.add_row(row["metric"], str(row["value"]))
        console.print(table)
        line = f"[bold]Score: {result.score}[/bold]"
        if trend is not None:
            line += f"  {TREND_ARROWS[trend.direction.value]} since last run"
        console.print(line)

    emit(payload, output_format, rows, render)


@analytics_cli.command(name="report")
@with_scope
@click.pass_obj
def report(obj, project, user, team, period, start, end, output_format):
    """Progress report: period comparison, causes and forecast"""
    config = obj["config"]
    output_format = output_format or config.output_format
    entity_type, entity_id = resolve_scope(project, user, team)
    window = resolve_period(config, period, start, end)

    try:
        engine = build_orchestrator(obj)
    except SnapshotError as e:
        fail(str(e))
    result: ReportResult = run_engine(
        engine.build_report(obj["caller"], entity_type, entity_id, window)
    )

    payload = result.to_dict()
    summary = payload["summary"]
    rows = [
        {"metric": name, "value": f"{data['value']} {data['unit']}",
         "delta": data["delta"], "change %": data["percentChange"], "trend": data["trend"]}
        for name, data in summary.items() if isinstance(data, dict)
    ]

    def render(console):
        table = Table(title=f"Progress {window.start.date()} → {window.end.date()}")
        for column in ("Metric", "Value", "Delta", "Change %", "Trend"):
            table.add_column(column)
        for row in rows:
            table.add_row(row["metric"], row["value"], str(row["delta"]),
                          str(row["change %"]), TREND_ARROWS[row["trend"]])
        console.print(table)

        for cause in result.causes:
            style = RISK_STYLES[cause.severity.value]
            console.print(f"[{style}]● {cause.name}[/{style}]: {cause.description}")

        forecast = result.forecast
        style = RISK_STYLES[forecast.risk_level.value]
        lines = [f"Risk: [{style}]{forecast.risk_level.value}[/{style}]",
                 f"Confidence: {forecast.confidence_score}"]
        if forecast.predicted_completion_date is not None:
            lines.append(f"Predicted completion: {forecast.predicted_completion_date.date()} "
                         f"({forecast.weeks_remaining} weeks)")
        lines.extend(f"- {factor}" for factor in forecast.risk_factors)
        console.print(Panel("\n".join(lines), title="Forecast"))

    emit(payload, output_format, rows, render)


@analytics_cli.command(name="forecast")
@click.argument("task_ids", nargs=-1, type=int, required=True)
@click.option("--format", "-f", "output_format",
              type=click.Choice(["text", "json", "plain"]), help="Output format")
@click.pass_obj
def forecast(obj, task_ids, output_format):
    """Predict completion dates for individual tasks"""
    config = obj["config"]
    output_format = output_format or config.output_format
    try:
        engine = build_orchestrator(obj)
    except SnapshotError as e:
        fail(str(e))
    predictions = run_engine(engine.forecast_tasks(obj["caller"], list(task_ids)))

    payload = {str(k): (v.to_dict() if v else None) for k, v in predictions.items()}
    rows = [
        {"task": task_id,
         "predicted": p.predicted_date.date().isoformat() if p else "unknown task",
         "risk": p.risk_level.value if p else "",
         "confidence": p.confidence if p else "",
         "why": p.explanation if p else ""}
        for task_id, p in predictions.items()
    ]

    def render(console):
        table = Table(title="Task forecasts")
        for column in ("Task", "Predicted", "Risk", "Confidence", "Why"):
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(row[key]) for key in ("task", "predicted", "risk", "confidence", "why")))
        console.print(table)

    emit(payload, output_format, rows, render)


@analytics_cli.command(name="trend")
@click.argument("entity_type", type=click.Choice([e.value for e in EntityType]))
@click.argument("stat_key")
@click.argument("value", type=float)
@click.option("--entity-id", type=int, help="Entity id (omit for global)")
@click.pass_obj
def trend(obj, entity_type, stat_key, value, entity_id):
    """Record a statistic and show its direction since the last recording"""
    config = obj["config"]
    comparator = TrendComparator(SqliteTrendStore(config.get_trend_db_path()))
    result = comparator.get_stat_trend(entity_type, entity_id, stat_key, value)
    if result.previous is None:
        click.echo(f"{stat_key}: {value} (first observation)")
    else:
        click.echo(f"{stat_key}: {result.previous} -> {value} "
                   f"{TREND_ARROWS[result.direction.value]} {result.percent_change}%")


@analytics_cli.command(name="init-config")
@click.option("--path", type=click.Path(path_type=Path), help="Where to write the file")
@click.pass_obj
def init_config(obj, path):
    """Write the current configuration to disk"""
    written = save_config(obj["config"], path)
    click.echo(f"Configuration written to {written}")
