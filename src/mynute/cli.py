from __future__ import annotations

import logging
from typing import List, Optional

import typer
import uvicorn

from mynute import __version__
from mynute.config import get_settings

app = typer.Typer(add_completion=False, help="Mynute CLI")


def _configure_logging(level: Optional[str] = None) -> str:
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return level_name


def _split(raw: Optional[str]) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


@app.command()
def start(
    host: Optional[str] = typer.Option(None, help="Bind host"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on changes (dev)"),
) -> None:
    settings = get_settings()
    level_name = _configure_logging()
    uvicorn.run(
        "mynute.api.app:create_app",
        factory=True,
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=reload,
        log_level=level_name.lower(),
    )


@app.command()
def version() -> None:
    typer.echo(__version__)


@app.command()
def seed(
    demo: bool = typer.Option(False, "--demo", help="Also create fake companies and staff"),
) -> None:
    """
    Seed the authorization catalogue (resources, endpoints, policy rules).
    """
    _configure_logging()
    from mynute.database import SessionLocal, init_db
    from mynute.seeder import SeederRegistry

    init_db(create_tables=True)
    session = SessionLocal()
    try:
        SeederRegistry.run_all(session, include_demo=demo)
    finally:
        session.close()
    typer.echo("Seeding completed.")


@app.command("check-endpoints")
def check_endpoints() -> None:
    """
    Load the registries exactly like startup and report configuration problems.
    """
    _configure_logging("WARNING")
    from mynute.authz.endpoints import load_snapshot
    from mynute.controllers import build_controller_registry
    from mynute.database import get_db_session
    from mynute.exceptions import ConfigurationError

    controllers = build_controller_registry()
    try:
        with get_db_session() as session:
            snapshot = load_snapshot(session, retries=1)
        for endpoint in snapshot.endpoints:
            controllers.resolve(endpoint.controller_name)
    except ConfigurationError as exc:
        typer.echo(f"Configuration error [{exc.code}]: {exc.message}", err=True)
        raise typer.Exit(1)

    typer.echo(
        f"{len(snapshot.endpoints)} endpoints, {len(snapshot.resources)} resources, "
        f"{len(snapshot.policies)} policy rules"
    )
    unreachable = snapshot.endpoints.unreachable(snapshot.policies)
    for endpoint in unreachable:
        typer.echo(
            f"Unreachable: {endpoint.method} {endpoint.path} ({endpoint.controller_name}) "
            "is gated and has no policy rules"
        )
    if not unreachable:
        typer.echo("All gated endpoints have at least one policy rule.")


@app.command()
def token(
    subject_id: str = typer.Argument(..., help="Subject id (employee or client id)"),
    company: Optional[str] = typer.Option(None, "--company", help="Company id (employees)"),
    roles: str = typer.Option("", help="Comma-separated roles"),
    branches: str = typer.Option("", help="Comma-separated branch ids"),
    kind: str = typer.Option("employee", help="employee or client"),
    ttl: Optional[int] = typer.Option(None, help="Token TTL seconds"),
) -> None:
    """
    Print a signed access token (development helper).
    """
    from mynute.security.auth.jwt import build_access_token_payload, encode_hs256

    settings = get_settings()
    if kind not in {"employee", "client"}:
        typer.echo("Error: --kind must be 'employee' or 'client'", err=True)
        raise typer.Exit(2)
    if kind == "employee" and not company:
        typer.echo("Error: employee tokens need --company", err=True)
        raise typer.Exit(2)

    payload = build_access_token_payload(
        subject_id=subject_id,
        company_id=company if kind == "employee" else None,
        roles=_split(roles),
        branches=_split(branches),
        kind=kind,
        ttl_seconds=ttl or settings.JWT_ACCESS_TOKEN_TTL_SECONDS,
    )
    typer.echo(encode_hs256(payload, secret=settings.JWT_SECRET_KEY))


def main() -> None:
    app()
