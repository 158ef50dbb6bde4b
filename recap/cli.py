"""
Chat Recap CLI.

Usage:
    recap serve                   # Queue enabled chats and run the scheduler until Ctrl-C
    recap run --chat-id ID        # Run one recap for a chat right now
    recap status                  # Show enabled chats and their subscribers
    recap status --json           # Same, as JSON
    recap action '{"action": "toggle", "chat_id": ID, "enabled": true}'
    recap config                  # Verify configuration
"""

import json
import signal
import threading
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from recap import __version__
from recap.actions import apply_action, parse_action
from recap.app import build_scheduler, build_store, seed_options
from recap.config import XDG_CONFIG_PATH, ChatsConfig, Settings, get_settings
from recap.logging_config import setup_logging
from recap.models import RecapRunResult, RunOutcome

console = Console()


def _settings_problems(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or 'settings'}: {item['msg']}"
        for item in error.errors()
    ]


def _load_settings() -> Settings:
    """Load settings or exit with the fields that need fixing."""
    try:
        return get_settings()
    except ValidationError as e:
        console.print("[red]Recap settings are incomplete or invalid:[/red]")
        for problem in _settings_problems(e):
            console.print(f"  [red]✗[/red] {escape(problem)}")
        console.print("\n[dim]Set the missing values in .env and run 'recap config'.[/dim]")
        raise typer.Exit(code=1) from None


def version_callback(value: bool):
    if value:
        print(f"chat-recap {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="recap",
    help="Chat Recap - scheduled group chat recaps",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="markdown",
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
    version: bool | None = typer.Option(
        None, "--version", callback=version_callback, is_eager=True, help="Print the version and exit."
    ),
):
    """
    Chat Recap - scheduled group chat recaps
    """
    setup_logging("DEBUG" if verbose else "INFO")


def _print_result(result: RecapRunResult) -> None:
    colour = {
        RunOutcome.DELIVERED: "green",
        RunOutcome.FAILED: "red",
    }.get(result.outcome, "yellow")

    lines = [
        f"[bold]Outcome:[/bold] [{colour}]{result.outcome.value}[/{colour}]",
        f"[bold]Log id:[/bold] {result.log_id or '-'}",
        f"[bold]Duration:[/bold] {result.duration_seconds:.1f}s",
    ]
    if result.condensed:
        lines.append(f"[bold]Highlight:[/bold] {escape(result.condensed)}")
    if result.page_urls:
        lines.append("[bold]Pages:[/bold]")
        lines.extend(f"  • {url}" for url in result.page_urls)
    if result.targets:
        lines.append(f"[bold]Targets:[/bold] {len(result.targets)}")
    if result.sent_messages:
        lines.append(f"[bold]Messages sent:[/bold] {len(result.sent_messages)}")
    for error in result.errors:
        lines.append(f"[red]✗[/red] {escape(error)}")

    console.print(Panel("\n".join(lines), title=f"Recap for chat {result.chat_id}"))


@app.command()
def serve() -> None:
    """Queue every enabled chat and run the scheduler until interrupted."""
    settings = _load_settings()
    store = build_store(settings)
    seed_options(settings, store)

    scheduler = build_scheduler(settings, store)
    chat_ids = scheduler.bootstrap()
    scheduler.start()
    console.print(f"[green]Scheduler running[/green] for {len(chat_ids)} chats. Press Ctrl-C to stop.")

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        stop.wait()
    except KeyboardInterrupt:
        pass
    finally:
        console.print("\n[dim]Shutting down...[/dim]")
        scheduler.shutdown(wait=True)


@app.command()
def run(
    chat_id: int = typer.Option(..., "--chat-id", "-c", help="Chat to recap"),
    json_format: bool = typer.Option(False, "--json", help="Output result as JSON"),
) -> None:
    """Run one recap for a chat immediately."""
    settings = _load_settings()
    scheduler = build_scheduler(settings)
    try:
        result = scheduler.trigger(chat_id)
    finally:
        scheduler.shutdown(wait=False)

    if json_format:
        print(result.model_dump_json(indent=2))
    else:
        _print_result(result)

    if result.outcome == RunOutcome.FAILED:
        raise typer.Exit(code=1)


@app.command()
def status(
    json_format: bool = typer.Option(False, "--json", help="Output status as JSON"),
) -> None:
    """Show enabled chats and their subscribers."""
    settings = _load_settings()

    if not settings.db_path.exists():
        if json_format:
            print(json.dumps({"error": "Database not found"}))
        else:
            console.print("[yellow]No database found. Run 'recap serve' first.[/yellow]")
        return

    store = build_store(settings)
    chats = []
    for chat_id in store.enabled_chat_ids():
        options = store.find_options(chat_id)
        chats.append({
            "chat_id": chat_id,
            "send_mode": options.send_mode.name.lower() if options else "publicly",
            "rates_per_day": options.rates_per_day if options else None,
            "window_hours": options.window_hours if options else None,
            "pin": options.pin_enabled if options else False,
            "subscribers": len(store.find_subscribers(chat_id)),
        })

    if json_format:
        print(json.dumps({"enabled_chats": chats}, indent=2))
        return

    table = Table(title="Enabled Chats")
    table.add_column("Chat", style="cyan")
    table.add_column("Mode")
    table.add_column("Every", style="green")
    table.add_column("Pin")
    table.add_column("Subscribers", style="green")
    for chat in chats:
        table.add_row(
            str(chat["chat_id"]),
            chat["send_mode"],
            f"{chat['window_hours']}h",
            "yes" if chat["pin"] else "no",
            str(chat["subscribers"]),
        )
    console.print(table)
    if not chats:
        console.print("[dim]No chats have recaps enabled.[/dim]")


@app.command("action")
def action_cmd(
    payload: str = typer.Argument(..., help="Action payload as JSON"),
) -> None:
    """Apply a recap configuration action."""
    settings = _load_settings()
    try:
        action = parse_action(payload)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid action:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from None

    store = build_store(settings)
    scheduler = build_scheduler(settings, store)
    try:
        options = apply_action(store, scheduler, action)
    finally:
        scheduler.shutdown(wait=False)

    console.print(f"[green]✓[/green] Applied {action.action} to chat {action.chat_id}")
    if options is not None:
        console.print(f"  {options.model_dump(mode='json')}")


def _mask(secret: str, keep: int = 6) -> str:
    return f"{secret[:keep]}..." if secret else "[red]not set[/red]"


@app.command()
def config() -> None:
    """Check credentials, page limits and chats.yaml."""
    env_files = [XDG_CONFIG_PATH / "config.env", Path(".env").absolute()]
    console.print("[dim]Settings are read from the environment, then:[/dim]")
    for path in env_files:
        found = "[green]found[/green]" if path.exists() else "[dim]missing[/dim]"
        console.print(f"  {path} ({found})")
    console.print()

    try:
        settings = get_settings()
    except ValidationError as e:
        for problem in _settings_problems(e):
            console.print(f"[red]✗[/red] {escape(problem)}")
        raise typer.Exit(code=1) from None

    problems: list[str] = []
    table = Table(title="Recap configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("LLM", f"{settings.llm_provider} / {settings.llm_model} (key {_mask(settings.llm_api_key)})")
    bot_id = settings.telegram_bot_token.split(":")[0]
    table.add_row("Telegram bot", f"{settings.telegram_api_url} (bot {bot_id})")
    table.add_row("Telegraph", f"{settings.telegraph_api_url} (token {_mask(settings.telegraph_access_token)})")
    if not settings.telegraph_access_token:
        problems.append("TELEGRAPH_ACCESS_TOKEN is not set, so recap pages cannot be published")
    table.add_row(
        "Page budget",
        f"{settings.page_size_limit - settings.page_safety_buffer} bytes "
        f"({settings.page_size_limit} minus {settings.page_safety_buffer} buffer)",
    )
    table.add_row("Sends per second", str(settings.send_rate_per_second))
    table.add_row("Worker pool", str(settings.max_concurrent_runs))

    chats_file = settings.config_dir / "chats.yaml"
    try:
        seeded = ChatsConfig(chats_file).get_chat_ids()
        table.add_row("Seeded chats", f"{len(seeded)} in {chats_file}")
    except ValueError as e:
        problems.append(str(e))
    table.add_row("Database", str(settings.db_path))
    console.print(table)

    if problems:
        for problem in problems:
            console.print(f"[red]✗[/red] {escape(problem)}")
        raise typer.Exit(code=1)
    console.print("[green]✓ Ready to run recaps[/green]")


def cli() -> None:
    """Entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        raise SystemExit(130) from None
    except Exception as e:
        console.print(f"\n[red]Recap failed:[/red] {escape(str(e))}")
        console.print("[dim]Re-run with --verbose for the full log.[/dim]")
        raise SystemExit(1) from e


if __name__ == "__main__":
    cli()
