"""
CLI for docscope.

Provides command-line interface for scanning scopes, searching and
running the HTTP server.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docscope.core.config import configure_logging, load_config
from docscope.core.crawler import ScanResult, ScanStatus
from docscope.core.models import SearchCriteria
from docscope.infrastructure.metadata_store import ScopeConflictError
from docscope.services import ScopeValidationError, ServicesContainer, create_services

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="docscope",
    help="docscope - Local document search with privacy redaction",
    add_completion=False,
)

_state: dict = {"config_path": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML or JSON configuration file"
    ),
):
    """Load .env and logging settings before any command runs."""
    load_dotenv()
    _state["config_path"] = config
    configure_logging(load_config(config).logging)


def get_services() -> ServicesContainer:
    """Initialize services from the configuration chosen on the command line."""
    return create_services(_state["config_path"])


def _print_scan_result(result: ScanResult) -> None:
    table = Table(title=f"Scan of scope {result.scope_id}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Status", result.status.value)
    for name, value in result.counters.to_dict().items():
        table.add_row(name.capitalize(), str(value))
    if result.pruned:
        table.add_row("Pruned", str(result.pruned))
    table.add_row("Elapsed", f"{result.elapsed_seconds:.2f}s")
    console.print(table)


@app.command()
def scan(
    path: Path = typer.Argument(..., help="Directory to register and scan"),
    owner: Optional[int] = typer.Option(None, "--owner", help="Owner id (default from config)"),
    name: Optional[str] = typer.Option(None, "--name", help="Display name for a new scope"),
):
    """Register a directory as a scope (if needed) and scan it once."""
    services = get_services()
    try:
        owner_id = owner if owner is not None else services.config.server.default_owner_id
        scope = services.metadata_store.get_scope_by_path(owner_id, str(path.resolve()))
        if scope is None:
            scope = services.scan_service.register_scope(owner_id, str(path), name)
            console.print(f"[bold blue]Registered[/bold blue] scope {scope.id}: {scope.root_path}")

        console.print(f"[bold blue]Scanning[/bold blue] {scope.root_path}...")
        result = asyncio.run(services.scan_service.run_scan(scope.id))
        _print_scan_result(result)
        if result.status == ScanStatus.FAILED:
            console.print(f"[bold red]Error:[/bold red] {result.error}")
            raise typer.Exit(1)
    except (ScopeValidationError, ScopeConflictError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    finally:
        services.close()


@app.command()
def search(
    content: str = typer.Argument("", help="Words to find in file content"),
    filename: str = typer.Option("", "--filename", "-f", help="Substring of the file name"),
    directory: str = typer.Option("", "--directory", "-d", help="Directory name in the path"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum results"),
    owner: Optional[int] = typer.Option(None, "--owner", help="Owner id (default from config)"),
):
    """Search indexed files by content, file name and directory."""
    criteria = SearchCriteria(filename=filename, content=content, directory=directory)
    if criteria.is_empty():
        console.print("[bold red]Error:[/bold red] Give content, --filename or --directory")
        raise typer.Exit(1)

    services = get_services()
    try:
        owner_id = owner if owner is not None else services.config.server.default_owner_id
        hits = services.search_service.search(owner_id, criteria, limit=limit)

        if not hits:
            console.print("[yellow]No results found.[/yellow]")
            return

        table = Table(title=f"{len(hits)} results", show_header=True)
        table.add_column("ID", justify="right", style="dim")
        table.add_column("Path", style="cyan")
        table.add_column("Snippet")
        for hit in hits:
            table.add_row(str(hit.file.id), hit.file.path, hit.snippet or "")
        console.print(table)
    finally:
        services.close()


@app.command()
def status(
    owner: Optional[int] = typer.Option(None, "--owner", help="Only show this owner's scopes"),
):
    """Show registered scopes and their file counts."""
    services = get_services()
    try:
        scopes = services.metadata_store.list_scopes(owner)
        grid = Table.grid(padding=1)
        grid.add_column(style="bold")
        grid.add_column()
        grid.add_row("Database:", services.metadata_store.db_path)
        grid.add_row("Scopes:", str(len(scopes)))
        grid.add_row("Total Files:", str(services.metadata_store.count_files()))
        console.print(Panel(grid, title="docscope Status", border_style="blue", expand=False))

        if scopes:
            table = Table(title="Scopes", box=None, show_header=True)
            table.add_column("ID", justify="right")
            table.add_column("Owner", justify="right")
            table.add_column("Name", style="cyan")
            table.add_column("Root")
            table.add_column("Files", justify="right")
            for scope in scopes:
                table.add_row(
                    str(scope.id),
                    str(scope.owner_id),
                    scope.display_name,
                    scope.root_path,
                    str(services.metadata_store.count_files(scope.id)),
                )
            console.print(Panel(table, border_style="blue", expand=False))
    finally:
        services.close()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="HTTP host (default from DOCSCOPE_SERVER_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="HTTP port (default from DOCSCOPE_SERVER_PORT)"),
):
    """Start the HTTP API server."""
    import uvicorn

    try:
        from docscope.http_server import create_app

        cfg = load_config(_state["config_path"])
        actual_host = host if host is not None else cfg.server.host
        actual_port = port if port is not None else cfg.server.port

        app_instance = create_app(services=create_services(config=cfg))
        console.print(f"[bold green]Starting API server at http://{actual_host}:{actual_port}[/bold green]")
        uvicorn.run(
            app_instance,
            host=actual_host,
            port=actual_port,
            reload=False,
            log_level=cfg.logging.level.lower(),
        )
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
