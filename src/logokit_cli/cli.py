from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import ConfigError, resolve_config
from .errors import FatalError
from .gen.inkscape import check_tool
from .gen.source import load_source_bytes
from .pipeline import AssetGenerationOrchestrator
from .schema import SIZE_TABLE, RequestError, load_request
from .storage.registry import build_uploader

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

STATUS_STYLES = {"ok": "green", "failed": "red", "skipped": "yellow"}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def package(
    source: str = typer.Argument(..., help="Source PNG path, data: URL or http(s) URL"),
    request_yaml: Path = typer.Option(..., "--request", "-r", exists=True, dir_okay=False),
    out_dir: Path = typer.Option(Path("."), "--out-dir", "-o", help="Where package.json is written"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Overall deadline in seconds"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to logokit.toml"),
):
    """Generate the complete asset package for one source logo."""
    try:
        config = resolve_config(config_path)
        request = load_request(request_yaml)
        uploader = build_uploader(config.storage)
    except (ConfigError, RequestError) as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=2) from e

    orchestrator = AssetGenerationOrchestrator(uploader, config)
    try:
        data = load_source_bytes(source, config.source)
        result = asyncio.run(orchestrator.generate_complete_package(data, request, timeout))
    except FatalError as e:
        console.print(f"[bold red]Package generation failed:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1) from e
    finally:
        uploader.close()

    table = Table(title=f"Logo package: {request.brand_name}")
    table.add_column("Artifact")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for entry in result.manifest:
        style = STATUS_STYLES.get(entry.status.value, "white")
        table.add_row(
            entry.identity,
            f"[{style}]{entry.status.value}[/{style}]",
            escape(entry.url or entry.error or ""),
        )
    console.print(table)

    for w in result.warnings:
        console.print(f"[yellow]⚠ {escape(w)}[/yellow]")

    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / "package.json"
    out_path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    console.print(f"Wrote {out_path}")

    if result.zip_url:
        console.print(f"[bold green]Archive:[/bold green] {result.zip_url}")
    if result.is_near_empty:
        console.print("[bold yellow]Package is nearly empty; treat as failed[/bold yellow]")
        raise typer.Exit(code=1)


@app.command()
def sizes():
    """Show the size variant table."""
    table = Table(title="Size variants")
    table.add_column("Category")
    table.add_column("Sizes (px)")
    for category, dims in SIZE_TABLE.items():
        table.add_row(category.value, ", ".join(str(d) for d in dims))
    console.print(table)


@app.command("check-tools")
def check_tools(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to logokit.toml"),
):
    """Report whether the vector tool is available."""
    try:
        config = resolve_config(config_path)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=2) from e

    command = config.vector.command
    if not config.vector.enabled:
        console.print("[yellow]Vector conversion disabled[/yellow]")
        raise typer.Exit(code=0)
    if check_tool(command):
        console.print(f"[bold green]OK[/bold green] {command[0]}")
        raise typer.Exit(code=0)
    console.print(f"[bold red]Missing[/bold red] {command[0]}: vector formats will be failed/skipped")
    raise typer.Exit(code=3)


if __name__ == "__main__":
    app()
