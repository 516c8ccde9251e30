"""Click-based CLI for ipo-sentinel.

Thin wrapper around library modules. Every command delegates to the
sources, aggregation, scheduler, health or api packages.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console(stderr=True)

_STATUS_STYLES = {"healthy": "green", "degraded": "yellow", "down": "red"}
_SEVERITY_STYLES = {"critical": "red", "warning": "yellow", "info": "cyan"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call. Exits 2 on invalid config."""
    if "config" not in ctx.obj:
        from ipo_sentinel.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            console.print(f"[red]Invalid configuration:[/red] {e}")
            raise SystemExit(2) from e
    return ctx.obj["config"]


def _build_pipeline(config):
    """Health monitor, adapters and aggregator wired together."""
    from ipo_sentinel.aggregation import Aggregator
    from ipo_sentinel.health import HealthMonitor
    from ipo_sentinel.sources import build_adapters

    monitor = HealthMonitor(
        window_hours=config.health.stats_window_hours,
        status_window_hours=config.health.status_window_hours,
        retention_hours=config.health.retention_hours,
    )
    aggregator = Aggregator(build_adapters(config.sources, observer=monitor))
    return monitor, aggregator


def _fmt(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="IPO_SENTINEL_CONFIG",
    default=None,
    help="Path to ipo-sentinel.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose (DEBUG) logging.",
)
@click.version_option(package_name="ipo-sentinel")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """IPO Sentinel: multi-source IPO tracking with adaptive polling."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


@cli.command()
@click.argument(
    "kind",
    type=click.Choice(["listings", "subscriptions", "premiums"], case_sensitive=False),
)
@click.option(
    "--sources",
    "-s",
    type=str,
    default=None,
    help="Comma-separated sources (default: per-kind source list).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def fetch(ctx: click.Context, kind: str, sources: str | None, output_format: str) -> None:
    """Run one reconciliation pass and print the merged records."""
    config = _load_config(ctx)

    async def _run():
        from ipo_sentinel.core import ConfigError, OperationKind

        _, aggregator = _build_pipeline(config)
        selected = [s.strip() for s in sources.split(",") if s.strip()] if sources else None
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(f"Fetching {kind}...", total=None)
                result = await aggregator.aggregate(OperationKind(kind.lower()), selected)
        except ConfigError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(2) from e
        finally:
            await aggregator.close()

        if output_format == "json":
            click.echo(json.dumps(result.model_dump(mode="json"), indent=2, default=str))
        else:
            _output_aggregation_table(result)

    _run_async(_run())


_KIND_COLUMNS = {
    "listings": ["status", "open_date", "close_date", "price_max", "issue_size_crore"],
    "subscriptions": ["total", "qib", "nii", "retail"],
    "premiums": ["premium", "expected_listing", "premium_percent"],
}


def _output_aggregation_table(result) -> None:
    """Render an AggregationResult as a Rich table plus a source summary."""
    columns = _KIND_COLUMNS[str(result.kind)]
    table = Table(title=f"{str(result.kind).title()} ({len(result.data)})")
    table.add_column("Key", style="bold")
    table.add_column("Company")
    for column in columns:
        table.add_column(column, justify="right")
    table.add_column("Sources")
    table.add_column("Confidence")
    if result.kind == "premiums":
        table.add_column("Trend")

    for record in sorted(result.data, key=lambda r: r.key):
        row = [record.key, record.company_name]
        row.extend(_fmt(record.get(c)) for c in columns)
        row.extend([", ".join(record.sources), str(record.confidence)])
        if result.kind == "premiums":
            row.append(str(record.trend or "-"))
        table.add_row(*row)
    console.print(table)

    sources = Table(title="Sources")
    sources.add_column("Source", style="bold")
    sources.add_column("OK")
    sources.add_column("Records", justify="right")
    sources.add_column("Elapsed", justify="right")
    sources.add_column("Error")
    for outcome in result.source_outcomes:
        sources.add_row(
            outcome.source,
            "[green]✓[/green]" if outcome.success else "[red]✗[/red]",
            str(outcome.count),
            f"{outcome.elapsed_ms}ms",
            outcome.error or "",
        )
    console.print(sources)
    console.print(
        f"{result.successful_sources}/{result.total_sources_queried} sources succeeded"
    )


# ---------------------------------------------------------------------------
# poll
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--no-store", is_flag=True, default=False, help="Do not persist results.")
@click.pass_context
def poll(ctx: click.Context, no_store: bool) -> None:
    """Run a single poll cycle: aggregate, detect alerts, persist."""
    config = _load_config(ctx)

    async def _run():
        from ipo_sentinel.scheduler import PollScheduler
        from ipo_sentinel.storage import create_store

        _, aggregator = _build_pipeline(config)
        store = None if no_store else await create_store(config.storage)
        try:
            scheduler = PollScheduler(
                aggregator, store, config=config.scheduler, alerts_config=config.alerts
            )
            summary = await scheduler.trigger_manual_poll()
        finally:
            await aggregator.close()
            if store is not None:
                await store.close()

        console.print(
            f"[green]✓[/green] Poll complete: {len(summary.subscriptions)} subscriptions "
            f"({summary.subscription_sources} sources), {len(summary.premiums)} premiums "
            f"({summary.premium_sources} sources), {summary.persisted} persisted"
        )
        _output_alerts(summary.alerts)
        in_window = scheduler.window.contains(summary.finished_at)
        console.print(
            f"Trading window: {'[green]open[/green]' if in_window else 'closed'}; "
            f"next scheduled poll would be in {scheduler.next_delay() / 60:.0f} minutes"
        )

    _run_async(_run())


def _output_alerts(alerts) -> None:
    if not alerts:
        console.print("No alerts.")
        return
    table = Table(title=f"Alerts ({len(alerts)})")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Key", style="bold")
    table.add_column("Message")
    for alert in alerts:
        style = _SEVERITY_STYLES.get(str(alert.severity), "")
        table.add_row(
            f"[{style}]{alert.severity}[/{style}]" if style else str(alert.severity),
            str(alert.type),
            alert.key,
            alert.message,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# test-sources / health
# ---------------------------------------------------------------------------


@cli.command("test-sources")
@click.option("--source", "-s", type=str, default=None, help="Test a single source.")
@click.pass_context
def test_sources(ctx: click.Context, source: str | None) -> None:
    """Probe each source with one live request."""
    config = _load_config(ctx)

    async def _run():
        _, aggregator = _build_pipeline(config)
        try:
            if source:
                results = [await aggregator.test_connection(source)]
            else:
                results = await aggregator.test_all_connections()
        finally:
            await aggregator.close()

        table = Table(title="Source Connectivity")
        table.add_column("Source", style="bold")
        table.add_column("OK")
        table.add_column("Elapsed", justify="right")
        table.add_column("Error")
        for r in results:
            table.add_row(
                r.source,
                "[green]✓[/green]" if r.success else "[red]✗[/red]",
                f"{r.elapsed_ms}ms",
                r.error or "",
            )
        console.print(table)
        if not all(r.success for r in results):
            raise SystemExit(1)

    _run_async(_run())


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Probe every source, then report per-source health."""
    config = _load_config(ctx)

    async def _run():
        monitor, aggregator = _build_pipeline(config)
        try:
            await aggregator.test_all_connections()
        finally:
            await aggregator.close()

        report = monitor.health_report()
        stats = {s.source: s for s in monitor.source_stats()}

        table = Table(title="Source Health")
        table.add_column("Source", style="bold")
        table.add_column("Status")
        table.add_column("Calls", justify="right")
        table.add_column("Success", justify="right")
        table.add_column("Avg latency", justify="right")
        for entry in report.sources:
            s = stats.get(entry.name)
            style = _STATUS_STYLES[str(entry.status)]
            table.add_row(
                entry.name,
                f"[{style}]{entry.status}[/{style}]",
                str(s.calls) if s else "0",
                f"{s.success_rate}%" if s else "-",
                f"{s.avg_latency_ms}ms" if s else "-",
            )
        console.print(table)
        style = _STATUS_STYLES[str(report.overall)]
        console.print(f"Overall: [{style}]{report.overall}[/{style}]")

    _run_async(_run())


# ---------------------------------------------------------------------------
# config-check
# ---------------------------------------------------------------------------


@cli.command("config-check")
@click.pass_context
def config_check(ctx: click.Context) -> None:
    """Validate configuration and print the effective settings."""
    config = _load_config(ctx)

    table = Table(title="IPO Sentinel Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    window = config.scheduler.trading_window
    table.add_row("Sources", ", ".join(str(s) for s in config.sources.enabled))
    table.add_row("Timeout / retries", f"{config.sources.timeout_seconds}s / {config.sources.retries}")
    table.add_section()
    table.add_row(
        "Trading window",
        f"{window.start:%H:%M}-{window.end:%H:%M} {window.timezone}, weekdays {window.weekdays}",
    )
    table.add_row(
        "Poll delays",
        f"{config.scheduler.active_delay_seconds:.0f}s inside / "
        f"{config.scheduler.idle_delay_seconds:.0f}s outside",
    )
    table.add_row("Alert buffer cap", str(config.scheduler.alert_buffer_cap))
    table.add_row("Autostart", str(config.scheduler.autostart))
    table.add_section()
    table.add_row(
        "Alert thresholds",
        f"critical ≥{config.alerts.critical_total:g}x, warning ≥{config.alerts.warning_total:g}x, "
        f"momentum +{config.alerts.momentum_delta:g}x, premium ±{config.alerts.premium_change_percent:g}%",
    )
    table.add_row("Quota keys", str(len(config.quota.keys)))
    table.add_row("Database path", config.storage.sqlite_path)
    table.add_row("API", f"{config.api.host}:{config.api.port}")

    console.print(table)
    console.print("[green]✓[/green] Configuration is valid")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default: config api.host).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default: config api.port).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory loads config itself; point it at the same file
    if ctx.obj.get("config_path"):
        os.environ["IPO_SENTINEL_CONFIG"] = ctx.obj["config_path"]

    console.print(f"Starting ipo-sentinel API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "ipo_sentinel.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
