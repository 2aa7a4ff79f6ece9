import asyncio
import logging
import sys
if sys.platform == "win32":
    # asyncpg does not work with the default Proactor loop on Windows
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

import typer
import uvicorn
from pydantic import ValidationError

from pinshare import create_file_service
from pinshare.config import get_settings
from pinshare.exceptions import PinShareError
from pinshare.logging import configure as configure_logging
from pinshare.models import UserCreate
from pinshare.utils.cli_utils import get_rich_console

app = typer.Typer(help="CLI for the pinshare file sharing service.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(log_level: str = typer.Option(None, help="Overrides PINSHARE_LOG_LEVEL.")):
    configure_logging(log_level or get_settings().log_level)


@app.command()
def init():
    """
    Creates the database tables and the local staging directory.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    async def _init():
        service = create_file_service()
        try:
            await service.init_schema()
            console.log("[bold green]✔[/bold green] Database tables created successfully.")
            console.log(f"[bold green]✔[/bold green] Staging directory '{service.config.upload.staging_dir}' is ready.")
        finally:
            await service.aclose()

    with console.status("Creating tables...", spinner="dots"):
        try:
            asyncio.run(_init())
        except Exception as e:
            console.log(f"[bold red]✖[/bold red] Initialization FAILED: {e}")
            raise typer.Exit(code=1)

    console.print("\n[bold green]✅ All services initialized successfully![/bold green]")


@app.command()
def check():
    """Checks connectivity to the database and the Pinata gateway."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        service = create_file_service()
        try:
            return await service.check_connections()
        finally:
            await service.aclose()

    statuses = asyncio.run(_check())
    failed = False
    for name, label in (("database", "Database"), ("pinata", "Pinata")):
        state = statuses.get(name, "unknown error")
        if state == "ok":
            console.print(f"[bold green]✔[/bold green] {label} connection: OK")
        else:
            failed = True
            console.print(f"[bold red]✖[/bold red] {label} connection: FAILED ({state})")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def sweep():
    """Runs one retention sweep now and prints what was removed."""
    console.rule("[bold cyan]Retention Sweep[/bold cyan]")

    async def _sweep():
        service = create_file_service()
        try:
            return await service.sweep_expired()
        finally:
            await service.aclose()

    report = asyncio.run(_sweep())
    console.print(f"Examined: {report.examined}, deleted: {report.deleted}")
    for cid in report.unpin_failures:
        console.print(f"[yellow]![/yellow] Unpin failed for {cid}")
    for error in report.errors:
        console.print(f"[bold red]✖[/bold red] {error}")
    if report.errors:
        raise typer.Exit(code=1)


@app.command("create-user")
def create_user(
    username: str = typer.Argument(...),
    email: str = typer.Argument(...),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Registers an account from the terminal."""
    try:
        data = UserCreate(username=username, email=email, password=password)
    except ValidationError as e:
        console.print(f"[bold red]✖[/bold red] Invalid input: {e}")
        raise typer.Exit(code=1)

    async def _create():
        service = create_file_service()
        try:
            return await service.register_user(data)
        finally:
            await service.aclose()

    try:
        user = asyncio.run(_create())
    except PinShareError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✔[/bold green] Created user {user.username} ({user.id})")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(5000),
    reload: bool = typer.Option(False),
):
    """Runs the HTTP API with uvicorn."""
    uvicorn.run("pinshare.server.main:app_from_env", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
