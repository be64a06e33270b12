"""
TeamBeat CLI - command-line interface for running and administering TeamBeat.

Minimal CLI for server management and account administration.
For everything else, use the web UI.
"""

import typer
from rich.console import Console
from rich.table import Table

from teambeat.logging_config import setup_logging

app = typer.Typer(
    name="teambeat",
    help="TeamBeat - real-time team retrospective boards",
    no_args_is_help=True,
)

console = Console()


def _setup_cli_logging() -> None:
    # Fall back to console logging if the log directory is not writable
    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: TEAMBEAT_API_HOST)"),
    port: int = typer.Option(None, help="Port to bind to (default: TEAMBEAT_API_PORT)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.

    Runs the TeamBeat API and live-update streams.
    """
    import uvicorn

    from teambeat.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    reload = reload or settings.api_reload

    console.print("[bold green]Starting TeamBeat API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "teambeat.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db_command() -> None:
    """
    Create all tables.

    For managed deployments prefer `alembic upgrade head`.
    """
    from teambeat.config import settings
    from teambeat.db.connection import init_db

    _setup_cli_logging()
    console.print(f"[bold blue]Initializing database:[/bold blue] {settings.database_url}")
    try:
        init_db()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print("[green]✓ Database initialized[/green]")


@app.command("create-user")
def create_user(
    email: str = typer.Argument(..., help="Login email"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"
    ),
    name: str = typer.Option(None, help="Display name"),
    admin: bool = typer.Option(False, "--admin", help="Make the user a site admin"),
) -> None:
    """Create a user account."""
    from teambeat.auth.password import hash_password
    from teambeat.db.connection import db_session
    from teambeat.db.repositories import UserRepository

    _setup_cli_logging()
    if len(password) < 6:
        console.print("[bold red]Error:[/bold red] Password must be at least 6 characters")
        raise typer.Exit(1)

    with db_session() as session:
        users = UserRepository(session)
        if users.find_by_email(email) is not None:
            console.print(f"[bold red]Error:[/bold red] A user with email {email} already exists")
            raise typer.Exit(1)
        user = users.create_user(
            email=email, password_hash=hash_password(password), name=name, is_admin=admin
        )

        table = Table(title="User created")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("ID", user.id)
        table.add_row("Email", user.email)
        table.add_row("Name", user.name or "-")
        table.add_row("Admin", "yes" if user.is_admin else "no")
        console.print(table)


@app.command("reset-token")
def reset_token(email: str = typer.Argument(..., help="Email of the account")) -> None:
    """
    Print a password reset token and link for an account.

    The token stops working once the password changes or after
    TEAMBEAT_PASSWORD_RESET_TTL_MINUTES.
    """
    from teambeat.auth.tokens import generate_password_reset_token
    from teambeat.config import settings
    from teambeat.db.connection import db_session
    from teambeat.db.repositories import UserRepository

    _setup_cli_logging()
    with db_session() as session:
        user = UserRepository(session).find_by_email(email)
        if user is None:
            console.print(f"[bold red]Error:[/bold red] No user with email {email}")
            raise typer.Exit(1)
        token = generate_password_reset_token(user.id, user.password_hash)

    console.print(f"[bold]Token:[/bold] {token}")
    console.print(f"[bold]Link:[/bold] {settings.public_url}/reset-password?token={token}")
    console.print(
        f"[dim]Valid for {settings.password_reset_ttl_minutes} minutes[/dim]"
    )


if __name__ == "__main__":
    app()
