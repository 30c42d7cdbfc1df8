"""Crosscut CLI application."""

from __future__ import annotations

import logging
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint

import crosscut as crosscut_pkg


class OutputFormat(StrEnum):
    """Output format for CLI commands."""

    human = "human"
    json = "json"


class LogLevel(StrEnum):
    """Log verbosity."""

    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"


app = typer.Typer(
    name="crosscut",
    help="DSM-5 Level-1 cross-cutting symptom interview engine.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        rprint(f"crosscut {crosscut_pkg.__version__}")
        raise typer.Exit()


def configure_logging(level: LogLevel) -> None:
    """Route log records through rich on stderr."""
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=level.value.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Log verbosity."),
    ] = LogLevel.warning,
) -> None:
    """Crosscut: run adaptive DSM-5 Level-1 screening interviews."""
    from dotenv import load_dotenv

    load_dotenv()
    configure_logging(log_level)


FormatOption = Annotated[
    OutputFormat,
    typer.Option("--format", "-f", help="Output format"),
]
DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Session database (default: $CROSSCUT_DB_PATH or .crosscut/)"),
]
ModelOption = Annotated[
    str | None,
    typer.Option("--model", "-m", help="AI model, e.g. openai:gpt-4o-mini (auto-detected)"),
]
ConversationArg = Annotated[str, typer.Argument(help="Conversation id owning the session")]


@app.command("items")
def items(format: FormatOption = OutputFormat.human) -> None:
    """List the 23 screening items."""
    from crosscut.interview.cli import items_command

    raise typer.Exit(items_command(format=format.value))


session_app = typer.Typer(help="Run and inspect interview sessions.")
app.add_typer(session_app, name="session")


@session_app.callback(invoke_without_command=True)
def session(ctx: typer.Context) -> None:
    """Run and inspect interview sessions."""
    if ctx.invoked_subcommand is None:
        rprint("Use [bold]crosscut session start[/bold] to begin an interview.")
        rprint("Run [bold]crosscut session --help[/bold] for details.")
        raise typer.Exit(0)


@session_app.command("start")
def session_start(
    conversation_id: ConversationArg,
    db: DbOption = None,
    model: ModelOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Create a session and print the first question."""
    from crosscut.interview.cli import start_command

    raise typer.Exit(
        start_command(conversation_id, db_path=db, model=model, format=format.value)
    )


@session_app.command("show")
def session_show(
    conversation_id: ConversationArg,
    db: DbOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Show session status, phase, progress and risk flags."""
    from crosscut.interview.cli import show_command

    raise typer.Exit(show_command(conversation_id, db_path=db, format=format.value))


@session_app.command("next")
def session_next(
    conversation_id: ConversationArg,
    db: DbOption = None,
    model: ModelOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Print the question to ask next."""
    from crosscut.interview.cli import next_command

    raise typer.Exit(next_command(conversation_id, db_path=db, model=model, format=format.value))


@session_app.command("respond")
def session_respond(
    conversation_id: ConversationArg,
    text: Annotated[str, typer.Argument(help="The patient's message")],
    item: Annotated[
        str | None,
        typer.Option("--item", "-i", help="Item the message answers (default: current item)"),
    ] = None,
    also: Annotated[
        list[str] | None,
        typer.Option("--also", "-a", help="Other items the message also answered"),
    ] = None,
    db: DbOption = None,
    model: ModelOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Submit a patient message: safety check, scoring, next question."""
    from crosscut.interview.cli import respond_command

    raise typer.Exit(
        respond_command(
            conversation_id,
            text,
            item_id=item,
            also=also,
            db_path=db,
            model=model,
            format=format.value,
        )
    )


@session_app.command("complete")
def session_complete(
    conversation_id: ConversationArg,
    db: DbOption = None,
    model: ModelOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Mark the report as delivered and finish the interview."""
    from crosscut.interview.cli import complete_command

    raise typer.Exit(
        complete_command(conversation_id, db_path=db, model=model, format=format.value)
    )


@session_app.command("integrity")
def session_integrity(
    conversation_id: ConversationArg,
    db: DbOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Evidence-integrity score, leak count and protocol audit."""
    from crosscut.interview.cli import integrity_command

    raise typer.Exit(integrity_command(conversation_id, db_path=db, format=format.value))


@session_app.command("events")
def session_events(
    conversation_id: ConversationArg,
    db: DbOption = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Print the session's decision log."""
    from crosscut.interview.cli import events_command

    raise typer.Exit(events_command(conversation_id, db_path=db, format=format.value))
