"""
crud-admin CLI.

POOL arguments are ``module:attribute`` paths to an AdminPool, or to a
callable returning one, e.g. ``myproject.admin:build_pool``.
"""

import importlib
import sys

import typer
from rich.console import Console
from rich.table import Table

from crud_admin.admin.pool import AdminPool

app = typer.Typer(
    name="crud-admin",
    help="CRUD admin CLI",
    add_completion=False,
)
console = Console()


def load_pool(path: str) -> AdminPool:
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected module:attribute, got {path!r}")

    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot load {path!r}: {e}") from e

    pool = target() if callable(target) and not isinstance(target, AdminPool) else target
    if not isinstance(pool, AdminPool):
        raise typer.BadParameter(f"{path!r} is not an AdminPool")
    return pool


# =============================================================================
# Inspection Commands
# =============================================================================

@app.command()
def routes(
    pool_path: str = typer.Argument(..., metavar="POOL", help="module:attribute of the admin pool"),
):
    """List every admin route."""
    pool = load_pool(pool_path)

    table = Table(title=f"{pool.title} routes")
    table.add_column("Admin", style="cyan")
    table.add_column("Route", style="green")
    table.add_column("Methods", style="yellow")
    table.add_column("Path")

    for admin in pool.get_admins():
        for route in admin.get_routes().values():
            table.add_row(admin.full_code, route.name, ", ".join(route.methods), admin.get_route_path(route.name))

    console.print(table)


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init(
    pool_path: str = typer.Argument(..., metavar="POOL", help="module:attribute of the admin pool"),
):
    """Create the tables of every mapped model (admin models, audit log, ACL entries)."""
    from crud_admin.models import Base
    from crud_shared.infrastructure.db import engine

    pool = load_pool(pool_path)
    console.print(f"[blue]Creating tables for {len(pool.get_admins())} admins[/blue]")

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓ Tables created[/green]")


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    pool_path: str = typer.Argument(..., metavar="POOL", help="module:attribute of the admin pool"),
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
):
    """Run the admin with uvicorn."""
    import uvicorn

    from crud_admin.main import create_app

    pool = load_pool(pool_path)
    console.print(f"[blue]Serving {pool.title} on http://{host}:{port}{pool.route_prefix}[/blue]")
    uvicorn.run(create_app(pool), host=host, port=port)


@app.command()
def version():
    """Show version information."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as package_version

    try:
        installed = package_version("crud-admin")
    except PackageNotFoundError:
        installed = "not installed"

    table = Table(title="crud-admin Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("crud-admin", installed)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
