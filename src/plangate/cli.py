"""Typer CLI for Plangate."""

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="plangate", help="Plangate: plan catalog and feature entitlements")
console = Console()


def _configure():
    from plangate.common.config import get_settings
    from plangate.common.logging import setup_logging

    settings = get_settings()
    setup_logging(settings.log_level)
    return settings


async def _with_session(fn):
    """Run ``fn(session)`` inside one committed session, then dispose the engine."""
    from plangate.deps import get_db

    db = get_db()
    await db.init()
    try:
        await db.create_all()
        async with db.get_session() as session:
            return await fn(session)
    finally:
        await db.close()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Plangate API server."""
    import uvicorn
    from plangate.app import create_app

    _configure()
    console.print(f"[bold green]Starting Plangate on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    settings = _configure()

    async def _noop(session):
        return None

    asyncio.run(_with_session(_noop))
    console.print(f"[bold green]Tables created[/bold green] — {settings.db_url}")


@app.command()
def seed():
    """Seed the default features, plans and grants (idempotent)."""
    from plangate.deps import get_catalog_service

    _configure()
    svc = get_catalog_service()
    counts = asyncio.run(_with_session(svc.seed_defaults))

    table = Table(title="Seeded")
    table.add_column("Kind")
    table.add_column("Created", justify="right")
    for kind, count in counts.items():
        table.add_row(kind, str(count))
    console.print(table)


@app.command("migrate-overrides")
def migrate_overrides():
    """Move legacy JSON overrides into audited override rows."""
    from plangate.deps import get_override_service

    _configure()
    svc = get_override_service()
    report = asyncio.run(_with_session(svc.migrate_legacy_overrides))

    console.print(
        f"[bold green]Migrated[/bold green] {report.users_migrated} users, "
        f"{report.rows_created} rows created, {report.rows_kept} existing rows kept"
    )
    for user_id, key in report.skipped:
        console.print(f"  [yellow]skipped[/yellow] {user_id}: {key}")


@app.command()
def resolve(
    user_id: str = typer.Argument(..., help="User id to resolve"),
    detail: bool = typer.Option(False, help="Show enabled and limit separately"),
):
    """Print a user's effective feature map."""
    from plangate.common.exceptions import PlangateError
    from plangate.deps import get_entitlement_service

    _configure()
    svc = get_entitlement_service()

    async def _resolve(session):
        return await svc.resolve_features(session, user_id)

    try:
        features = asyncio.run(_with_session(_resolve))
    except PlangateError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    source = "bypass" if features.bypass else f"plan {features.plan_name}"
    console.print(f"[bold]{user_id}[/bold] ({features.role}, {source})")
    payload = features.to_detail() if detail else features.to_public()
    console.print_json(json.dumps(payload))


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Plangate server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
