"""``stockroom`` command line: serve the API and manage the database."""

from __future__ import annotations

from typing import Optional

import typer
import uvicorn
from sqlmodel import col, select

from stockroom.core.config import get_settings
from stockroom.core.logging_config import get_logger, setup_logging
from stockroom.db.session import init_db as create_tables
from stockroom.db.session import session_scope
from stockroom.models.base import Role, User
from stockroom.security import MIN_PASSWORD_LENGTH
from stockroom.services import bootstrap

app = typer.Typer(help="Stockroom inventory service.", no_args_is_help=True)
logger = get_logger(__name__)


def _fail(message: str) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.callback()
def prepare() -> None:
    """Configure logging and make sure the tables exist before any command runs."""

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    create_tables()


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Interface to bind, defaults to STOCKROOM_HOST"),
    port: Optional[int] = typer.Option(None, help="Port, defaults to STOCKROOM_PORT"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
) -> None:
    """Serve the API and web pages with uvicorn."""

    settings = get_settings()
    bind_host, bind_port = host or settings.host, port or settings.port
    logger.info("Serving %s on %s:%s", settings.app_name, bind_host, bind_port)
    uvicorn.run(
        "stockroom.main:create_application",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload or settings.reload,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create any missing tables."""

    typer.echo(f"Database initialised at {get_settings().database_url}")


@app.command()
def seed() -> None:
    """Create the default roles and the MAIN warehouse location."""

    with session_scope() as session:
        bootstrap.seed_defaults(session)
        names = session.exec(select(Role.name).order_by(col(Role.name))).all()
    typer.secho(f"Default data ready (roles: {', '.join(names)})", fg=typer.colors.GREEN)


@app.command("create-admin")
def create_admin(
    email: str = typer.Argument(..., help="Login email of the new administrator"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    name: str = typer.Option("Administrator", help="Display name"),
) -> None:
    """Create a user holding the Admin role."""

    if len(password) < MIN_PASSWORD_LENGTH:
        _fail(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    with session_scope() as session:
        try:
            user = bootstrap.create_admin(session, name=name, email=email, password=password)
        except bootstrap.DuplicateEmailError as exc:
            _fail(str(exc))
        typer.secho(f"Created administrator {user.email} (id={user.id})", fg=typer.colors.GREEN)


@app.command("list-users")
def list_users() -> None:
    """Print every user that has not been deleted."""

    statement = (
        select(User, Role)
        .join(Role, col(Role.id) == col(User.role_id))
        .where(col(User.deleted_at).is_(None))
        .order_by(col(User.id))
    )
    with session_scope() as session:
        rows = session.exec(statement).all()
        if not rows:
            typer.echo("No users found.")
            return
        for user, role in rows:
            state = "active" if user.is_active else "inactive"
            typer.echo(f"#{user.id} {user.email} | {user.name} | role={role.name} | {state}")


def main() -> None:
    app()
