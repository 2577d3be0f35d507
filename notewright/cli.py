"""Command line interface for Notewright."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from notewright.config import Settings, get_settings
from notewright.exceptions import NotewrightException, ValidationError
from notewright.logging_config import setup_logging
from notewright.registry import TemplateRegistry, build_registry

app = typer.Typer(
    name="notewright",
    help="Notewright - note templates and workflow runner",
    add_completion=False,
)

console = Console(soft_wrap=True)


def parse_vars(pairs: Optional[List[str]]) -> Dict[str, Any]:
    """Turn ``key=value`` pairs into a values map. Values are JSON-decoded when possible."""
    values: Dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got: {pair}", param_hint="--var")
        try:
            values[key] = json.loads(raw)
        except ValueError:
            values[key] = raw
    return values


def open_registry(ctx: typer.Context, require_snapshot: bool = True) -> TemplateRegistry:
    """Registry seeded according to settings plus the ``--snapshot`` file, if any."""
    settings: Settings = ctx.obj["settings"]
    snapshot: Optional[Path] = ctx.obj["snapshot"]
    registry = build_registry(settings)

    if snapshot is None:
        return registry
    if not snapshot.exists():
        if require_snapshot:
            console.print(f"[red]Snapshot {escape(str(snapshot))} does not exist[/red]")
            raise typer.Exit(code=1)
        return registry

    try:
        report = registry.import_snapshot(snapshot.read_text(encoding="utf-8"))
    except ValidationError as e:
        console.print(f"[red]Snapshot {escape(str(snapshot))} is invalid: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    for reason in report.skipped:
        console.print(f"[yellow]Skipped {escape(reason)}[/yellow]")
    return registry


@app.callback()
def main_callback(
    ctx: typer.Context,
    snapshot: Optional[Path] = typer.Option(None, "--snapshot", "-s", help="JSON snapshot to load"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """Render note templates and run note workflows."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    setup_logging(settings)

    if snapshot is None and settings.snapshot_path:
        snapshot = Path(settings.snapshot_path)
    ctx.obj = {"settings": settings, "snapshot": snapshot}


@app.command("version")
def version():
    """Show version information."""
    settings = get_settings()
    version_info = f"""
{settings.app_name} v{settings.app_version}
Note templates and workflow runner

Environment: {settings.environment}
Python: {sys.version}
"""
    console.print(
        Panel(
            version_info.strip(),
            title="Version Information",
            border_style="green",
        )
    )


@app.command("config")
def show_config(ctx: typer.Context):
    """Show current configuration."""
    settings: Settings = ctx.obj["settings"]
    config_table = Table(title="Notewright Configuration")

    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")

    config_items = [
        ("App Name", settings.app_name),
        ("Version", settings.app_version),
        ("Environment", settings.environment),
        ("Log Level", settings.log_level),
        ("Default Author", settings.default_author),
        ("Load Defaults", str(settings.load_defaults)),
        ("Max Loop Iterations", str(settings.max_loop_iterations)),
        ("Snapshot", str(ctx.obj["snapshot"] or "-")),
    ]

    for setting, value in config_items:
        config_table.add_row(setting, value)

    console.print(config_table)


@app.command("templates")
def list_templates(
    ctx: typer.Context,
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Filter by tag (any match)"),
):
    """List templates."""
    registry = open_registry(ctx)
    table = Table(title="Templates")

    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Category")
    table.add_column("Variables", justify="right")
    table.add_column("Uses", justify="right")
    table.add_column("Version", style="dim")

    for template in registry.get_templates(category=category, tags=tag or None):
        table.add_row(
            template.id,
            template.name,
            template.category,
            str(len(template.variables)),
            str(template.metadata.usage_count),
            template.metadata.version,
        )

    console.print(table)


@app.command("workflows")
def list_workflows(
    ctx: typer.Context,
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
):
    """List workflows."""
    registry = open_registry(ctx)
    table = Table(title="Workflows")

    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Steps", justify="right")
    table.add_column("Runs", justify="right")
    table.add_column("Success Rate", justify="right")
    table.add_column("Active")

    for workflow in registry.get_workflows(category=category):
        table.add_row(
            workflow.id,
            workflow.name,
            str(len(workflow.steps)),
            str(workflow.metadata.usage_count),
            f"{workflow.metadata.success_rate:.0%}",
            "yes" if workflow.metadata.is_active else "no",
        )

    console.print(table)


@app.command("render")
def render(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template ID"),
    var: Optional[List[str]] = typer.Option(None, "--var", "-v", help="Variable as key=value"),
):
    """Render a template with the given variables."""
    registry = open_registry(ctx)
    values = parse_vars(var)

    try:
        content = registry.use_template(template_id, values)
    except ValidationError as e:
        console.print("[red]Invalid variables:[/red]")
        for error in e.errors:
            console.print(f"  - {escape(error)}")
        raise typer.Exit(code=1)
    except NotewrightException as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    console.print(content, markup=False, highlight=False)


@app.command("run")
def run_workflow(
    ctx: typer.Context,
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    var: Optional[List[str]] = typer.Option(None, "--var", "-v", help="Initial variable as key=value"),
):
    """Execute a workflow."""
    registry = open_registry(ctx)
    values = parse_vars(var)

    try:
        result = asyncio.run(registry.execute_workflow(workflow_id, values))
    except NotewrightException as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Workflow {workflow_id}")
    table.add_column("Step", style="cyan")
    table.add_column("Output", style="dim")
    for step in result.results:
        table.add_row(step.step_id, escape(json.dumps(step.output, default=str)[:120]))
    console.print(table)

    for error in result.errors:
        console.print(f"[red]{escape(error)}[/red]")

    status = "[green]succeeded[/green]" if result.success else "[red]failed[/red]"
    console.print(f"Workflow {status} in {result.duration:.1f} ms")
    if not result.success:
        raise typer.Exit(code=1)


@app.command("export")
def export_snapshot(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
):
    """Export templates, categories and workflows as JSON."""
    registry = open_registry(ctx)
    data = registry.export_all()

    if output is None:
        console.print(data, markup=False, highlight=False)
        return
    output.write_text(data, encoding="utf-8")
    console.print(f"[green]Exported to {output}[/green]")


@app.command("import")
def import_snapshot(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Snapshot to import"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the merged snapshot here"),
):
    """Import a snapshot and optionally save the merged result."""
    registry = open_registry(ctx, require_snapshot=False)

    try:
        report = registry.import_snapshot(source.read_text(encoding="utf-8"))
    except ValidationError as e:
        console.print(f"[red]Import failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Import Report")
    table.add_column("Records", style="cyan")
    table.add_column("Imported", justify="right", style="green")
    table.add_row("Templates", str(report.templates))
    table.add_row("Categories", str(report.categories))
    table.add_row("Workflows", str(report.workflows))
    console.print(table)

    for reason in report.skipped:
        console.print(f"[yellow]Skipped {escape(reason)}[/yellow]")

    target = output or ctx.obj["snapshot"]
    if target is not None:
        target.write_text(registry.export_all(), encoding="utf-8")
        console.print(f"[green]Saved to {target}[/green]")


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
