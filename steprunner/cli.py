"""CLI entry point for the step runner."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from steprunner.errors import ProviderConnectionError
from steprunner.models.config import DEFAULT_CONFIG_FILE, ProviderConfig, RunnerConfig
from steprunner.models.report import SuiteResult
from steprunner.orchestrator import Orchestrator

console = Console()

STATUS_STYLES = {"PASSED": "green", "FAILED": "red", "ABORTED": "yellow"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    # Keep third-party transport chatter out of the default output.
    for noisy in ("httpx", "httpcore", "anthropic", "mcp"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_config(config: str | None) -> RunnerConfig:
    """Load an explicit config file, or the default one when present."""
    try:
        if config:
            return RunnerConfig.load(config)
        return RunnerConfig.load_or_default(DEFAULT_CONFIG_FILE)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'step-runner init' to create a default config.")
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid config file:[/red] {e}")
    sys.exit(1)


def _print_summary(result: SuiteResult) -> None:
    table = Table(title="Test Results")
    table.add_column("Test", style="bold")
    table.add_column("Status")
    table.add_column("Passed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Actions", justify="right")
    table.add_column("Duration", justify="right")
    for run in result.test_runs:
        style = STATUS_STYLES.get(run.status, "white")
        table.add_row(
            run.test_name,
            f"[{style}]{run.status}[/{style}]",
            str(run.passed_actions),
            str(run.failed_actions),
            str(run.total_actions),
            f"{run.duration_ms / 1000:.1f}s",
        )
    console.print(table)

    for run in result.test_runs:
        if run.error:
            console.print(f"  [yellow]{run.test_name}:[/yellow] {run.error}")
        for fmt, path in run.reports.items():
            console.print(f"  {run.test_name} {fmt.upper()} report: [blue]{path}[/blue]")

    console.print(
        f"\n{result.passed}/{result.total} passed, {result.failed} failed, "
        f"{result.aborted} aborted in {result.duration_seconds:.1f}s"
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Run natural-language browser tests through an AI planner and a tool provider."""
    setup_logging(verbose)


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--config", "-c", default=None, help=f"Config file path (default: {DEFAULT_CONFIG_FILE})")
def run(path: str, config: str | None) -> None:
    """Run a test file, or every test file in a directory."""
    cfg = _load_config(config)

    try:
        orchestrator = Orchestrator(cfg)
        result = orchestrator.run_suite(path)
    except (OSError, ValueError) as e:
        # Missing path, wrong file type, missing API key.
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if result.total == 0:
        console.print(f"[yellow]No test files found in {path}[/yellow]")
        sys.exit(1)

    _print_summary(result)
    sys.exit(0 if result.all_passed else 1)


@cli.command()
@click.option("--config", "-c", default=None, help=f"Config file path (default: {DEFAULT_CONFIG_FILE})")
def tools(config: str | None) -> None:
    """List the tools exposed by the configured provider."""
    cfg = _load_config(config)
    try:
        catalog = Orchestrator(cfg).list_tools()
    except ProviderConnectionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"{len(catalog)} tools ({cfg.provider.kind} provider)")
    table.add_column("Tool", style="bold")
    table.add_column("Required")
    table.add_column("Description")
    for tool in catalog:
        table.add_row(tool.name, ", ".join(tool.required_params), tool.description)
    console.print(table)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file to create")
@click.option("--provider", type=click.Choice(["mcp", "playwright"]), default="mcp",
              help="Tool provider to configure")
def init(config: str, provider: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = RunnerConfig(provider=ProviderConfig(kind=provider))
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nSet ANTHROPIC_API_KEY, then run:")
    console.print("  [blue]step-runner run tests/[/blue]")


if __name__ == "__main__":
    cli()
