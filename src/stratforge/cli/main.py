"""
Rich CLI interface for StratForge.

Runs the strategy and contract pipelines with a live stage display and the
request queue's status underneath.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from stratforge import __version__
from stratforge.core.config import get_settings
from stratforge.core.models import CRYPTO_ASSETS
from stratforge.generation.service import GenerationService
from stratforge.pipeline import (
    PipelineOrchestrator,
    PipelineRun,
    PipelineStage,
    StageStatus,
    contract_pipeline,
    strategy_pipeline,
)
from stratforge.providers.base import ProviderError
from stratforge.queue import QueueStatus, format_duration
from stratforge.storage import CredentialStore
from stratforge.utils.logging import RunLogger, get_logger, setup_logging

app = typer.Typer(
    name="stratforge",
    help="StratForge - AI trading strategy and smart contract generator",
    no_args_is_help=True,
)
keys_app = typer.Typer(help="Manage saved API keys", no_args_is_help=True)
app.add_typer(keys_app, name="keys")

console = Console()
logger = get_logger(__name__)

STATUS_STYLE = {
    StageStatus.PENDING: ("○", "dim"),
    StageStatus.RUNNING: ("◐", "yellow"),
    StageStatus.COMPLETED: ("●", "green"),
    StageStatus.ERROR: ("✗", "red"),
}


@app.callback()
def _configure(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the log level"),
) -> None:
    setup_logging(level=log_level)


def _fail(message: str, title: str = "Error") -> NoReturn:
    console.print(Panel(f"[red]{message}[/red]", title=f"[bold red]{title}[/bold red]"))
    raise typer.Exit(1)


def _build_service(api_key: str | None) -> GenerationService:
    """Build a service from an explicit key, the environment, or the key store."""
    settings = get_settings()
    if api_key is None and not settings.providers.has_openrouter:
        api_key = CredentialStore().get("openrouter")
    try:
        return GenerationService.from_settings(api_key=api_key, settings=settings)
    except ProviderError as e:
        _fail(f"{e}\nRun 'stratforge keys set' or export OPENROUTER_API_KEY.", title="Missing API key")


def _stage_table(stages: list[PipelineStage]) -> Table:
    table = Table(show_header=True, header_style="bold magenta", expand=True)
    table.add_column("", width=2)
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Progress", overflow="ellipsis", no_wrap=True)

    for stage in stages:
        icon, style = STATUS_STYLE[stage.status]
        latest = ""
        if stage.status == StageStatus.ERROR:
            latest = stage.error or ""
        elif stage.content:
            latest = stage.content.strip().splitlines()[-1] if stage.content.strip() else ""
        table.add_row(
            Text(icon, style=style),
            stage.title,
            Text(stage.status.value, style=style),
            latest,
        )
    return table


def _queue_line(status: QueueStatus) -> Text:
    if not status.is_waiting:
        return Text("Queue idle", style="dim")
    parts = [f"{status.queue_length} queued"]
    if status.pending_retries:
        parts.append(f"{status.pending_retries} retrying")
    parts.append(f"{status.requests_in_window} requests this minute")
    if status.time_until_window_reset > 0:
        parts.append(f"window resets in {format_duration(status.time_until_window_reset)}")
    if status.has_queue:
        parts.append(f"~{format_duration(status.estimated_wait_time)} wait")
    return Text(" | ".join(parts), style="yellow")


async def _run_live(
    orchestrator: PipelineOrchestrator,
    service: GenerationService,
    data: dict[str, Any],
) -> PipelineRun:
    """Run a pipeline while rendering its stages and the queue status."""

    def render() -> Group:
        return Group(_stage_table(orchestrator.stages), _queue_line(service.queue.queue_status()))

    with Live(render(), console=console, refresh_per_second=4) as live:
        orchestrator.on_change = lambda stage: live.update(render())

        async def tick() -> None:
            while True:
                await asyncio.sleep(0.5)
                live.update(render())

        ticker = asyncio.create_task(tick())
        try:
            return await orchestrator.run(data)
        finally:
            ticker.cancel()
            live.update(render())


def _report(run: PipelineRun, artifact_stage: str, language: str, output: Path | None) -> None:
    if not run.success:
        _fail(run.error or "Unknown error", title=f"Stage '{run.failed_stage}' failed")

    code = run.data["code"]
    console.print(Panel(
        Syntax(code, language, line_numbers=True, word_wrap=True),
        title=f"[bold cyan]{run.stage(artifact_stage).title}[/bold cyan]",
    ))
    last = run.stages[-1]
    if last.content:
        console.print(Panel(Markdown(last.content), title=f"[bold cyan]{last.title}[/bold cyan]"))

    if output:
        output.write_text(code)
        console.print(f"[green]Saved to {output}[/green]")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]StratForge[/bold cyan] v{__version__}")


@app.command()
def strategy(
    asset: str = typer.Option("BTC", "--asset", "-a", help=f"Asset: {', '.join(CRYPTO_ASSETS)}"),
    brief: Optional[str] = typer.Option(None, "--brief", "-b", help="Custom strategy brief"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the script to a file"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="OpenRouter API key"),
):
    """Generate, validate and sandbox-test a Python trading strategy."""
    asset = asset.upper()
    if asset not in CRYPTO_ASSETS:
        _fail(f"Unsupported asset '{asset}'. Choose one of: {', '.join(CRYPTO_ASSETS)}")

    service = _build_service(api_key)

    async def run() -> PipelineRun:
        try:
            with RunLogger(logger, "strategy", asset=asset) as run_log:
                return run_log.record(await _run_live(
                    strategy_pipeline(service), service, {"asset": asset, "brief": brief}
                ))
        finally:
            await service.aclose()

    console.print(Panel(
        f"Generating a trading strategy for [bold cyan]{CRYPTO_ASSETS[asset]} ({asset})[/bold cyan]",
        title="StratForge",
    ))
    _report(asyncio.run(run()), "aggregation", "python", output)


@app.command()
def contract(
    request: str = typer.Argument(..., help="What the contract should do"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the contract to a file"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="OpenRouter API key"),
):
    """Generate and compile a Solidity smart contract."""
    if not request.strip():
        _fail("Describe the contract you want to generate.")

    service = _build_service(api_key)

    async def run() -> PipelineRun:
        try:
            with RunLogger(logger, "contract") as run_log:
                return run_log.record(
                    await _run_live(contract_pipeline(service), service, {"request": request})
                )
        finally:
            await service.aclose()

    console.print(Panel(f"[bold cyan]{request}[/bold cyan]", title="StratForge Contract"))
    _report(asyncio.run(run()), "contract", "solidity", output)


@app.command("test-connection")
def test_connection(
    api_key: Optional[str] = typer.Option(None, "--api-key", help="OpenRouter API key"),
):
    """Check that the configured API key works."""
    service = _build_service(api_key)

    async def run() -> bool:
        try:
            return await service.test_connection()
        finally:
            await service.aclose()

    with console.status("Contacting OpenRouter..."):
        ok = asyncio.run(run())

    if not ok:
        _fail("OpenRouter did not accept the request. Check the API key.", title="Connection failed")
    console.print("[green]✓[/green] Connection OK")


@keys_app.command("set")
def keys_set(
    openrouter: str = typer.Option(
        ..., "--openrouter", prompt="OpenRouter API key", hide_input=True, help="OpenRouter API key"
    ),
):
    """Save the OpenRouter API key."""
    store = CredentialStore()
    try:
        store.set("openrouter", openrouter)
    except ValueError as e:
        _fail(str(e))
    console.print(f"[green]✓[/green] Saved to {store.path}")


@keys_app.command("show")
def keys_show():
    """Show saved keys (masked)."""
    store = CredentialStore()
    masked = store.masked()
    if not masked:
        console.print("[dim]No saved keys.[/dim]")
        return

    table = Table(title="Saved API Keys", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Key", style="green")
    for name, value in masked.items():
        table.add_row(name, value)
    console.print(table)


@keys_app.command("clear")
def keys_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete all saved keys."""
    if not yes:
        typer.confirm("Delete all saved API keys?", abort=True)
    CredentialStore().clear()
    console.print("[green]✓[/green] Keys cleared")


@app.command()
def config():
    """Show current configuration."""
    settings = get_settings()

    table = Table(title="StratForge Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.environment)
    table.add_row("Debug", str(settings.debug))
    table.add_row("Log Level", settings.generation.log_level)
    table.add_row("Requests / Minute", str(settings.queue.requests_per_minute))
    table.add_row("Retry Delay", f"{settings.queue.retry_delay_seconds}s")
    table.add_row("Max Retries", str(settings.queue.max_retries))
    table.add_row("Research Model", settings.generation.research_model)
    table.add_row("Architect Model", settings.generation.architect_model)
    table.add_row("Implementer Model", settings.generation.implementer_model)
    table.add_row("Reviewer Model", settings.generation.reviewer_model)
    table.add_row("Compiler", settings.providers.compiler_url)
    table.add_row("Executor", settings.providers.executor_url)

    console.print(table)

    saved = CredentialStore().has_keys()
    if settings.providers.has_openrouter:
        console.print("\n[green]✓[/green] OpenRouter key from environment")
    elif saved:
        console.print("\n[green]✓[/green] OpenRouter key from key store")
    else:
        console.print("\n[red]✗[/red] No OpenRouter key configured")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
