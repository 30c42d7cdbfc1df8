"""CLI commands for running and inspecting interview sessions."""

import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from crosscut.config import EngineConfig
from crosscut.errors import CrosscutError
from crosscut.interview.audit import audit_session
from crosscut.interview.engine import InterviewEngine, QuestionPrompt, TurnAction, TurnResult
from crosscut.interview.evidence import score_evidence_integrity
from crosscut.interview.models import Session
from crosscut.interview.selector import interview_progress
from crosscut.oracles import (
    ItemScorer,
    SafetyClassifier,
    build_item_scorer,
    build_safety_classifier,
)
from crosscut.providers.config import ModelRoster, resolve_default_model
from crosscut.registry import ITEMS, SCORING_ANCHORS
from crosscut.storage import SQLiteStore

console = Console()


def build_oracles(model: str | None = None) -> tuple[SafetyClassifier, ItemScorer]:
    """Safety classifier and item scorer for a model (auto-detected when None)."""
    roster = ModelRoster.from_model(model or resolve_default_model())
    return (
        build_safety_classifier(roster.safety.model_string),
        build_item_scorer(roster.scoring.model_string),
    )


def _config(db_path: Path | None) -> EngineConfig:
    config = EngineConfig.from_env()
    if db_path is not None:
        config = config.model_copy(update={"db_path": db_path})
    return config


def _open_engine(config: EngineConfig, model: str | None) -> tuple[InterviewEngine, SQLiteStore]:
    store = SQLiteStore(config.db_path)
    try:
        safety, scorer = build_oracles(model)
    except Exception:
        store.close()
        raise
    return InterviewEngine(store, safety, scorer, config=config), store


def _error(e: Exception, format: str) -> int:
    message = e.message if isinstance(e, CrosscutError) else str(e)
    if format == "human":
        console.print(f"[red]Error:[/red] {message}")
    else:
        print(json.dumps({"error": message, "type": type(e).__name__}))
    return 1


def _print_question(question: QuestionPrompt | None) -> None:
    if question is None:
        console.print("[yellow]No question to ask.[/yellow]")
        return
    if question.is_follow_up:
        label = "Follow-up"
    else:
        label = f"Item {question.item_number}/{question.total_items}"
    console.print(
        Panel(
            f"{question.text}\n\n[dim]{question.domain}[/dim]",
            title=f"{label}: {question.item_id}",
            border_style="cyan",
        )
    )


def _print_session(session: Session) -> None:
    qs = session.question_state
    progress = interview_progress(qs.pending_items, qs.completed_items)
    flags = [name for name, value in session.risk_flags.model_dump().items() if value]
    console.print(
        Panel(
            f"Conversation: {session.conversation_id}\n"
            f"Status: {session.status.value}\n"
            f"Phase: {session.state.value}\n"
            f"Current item: {qs.current_item_id or '-'}\n"
            f"Progress: {progress.completed_items}/{progress.total_items} "
            f"({progress.percent_complete:.0f}%)\n"
            f"Risk flags: {', '.join(flags) if flags else 'none'}",
            title=f"Session {session.id}",
            border_style="red" if session.is_safety_stopped else "green",
        )
    )


def items_command(format: str = "human") -> int:
    """List the 23 registry items.

    Args:
        format: Output format: "human" or "json".

    Returns:
        Exit code (always 0).
    """
    if format == "json":
        print(json.dumps([item.model_dump(mode="json") for item in ITEMS], indent=2))
        return 0

    table = Table(title="DSM-5 Level-1 Cross-Cutting Items")
    table.add_column("ID", style="bold")
    table.add_column("Domain")
    table.add_column("Question")
    for item in ITEMS:
        table.add_row(item.item_id, item.domain.value, item.text)
    console.print(table)
    console.print(
        "Scale: " + ", ".join(f"{score} = {label}" for score, label in SCORING_ANCHORS.items())
    )
    return 0


async def _start(engine: InterviewEngine, conversation_id: str) -> QuestionPrompt | None:
    await engine.start_session(conversation_id)
    return await engine.next_question(conversation_id)


def start_command(
    conversation_id: str,
    db_path: Path | None = None,
    model: str | None = None,
    format: str = "human",
) -> int:
    """Create (or reopen) the session for a conversation and print the first question.

    Returns:
        Exit code (0 = ok, 1 = error).
    """
    try:
        engine, store = _open_engine(_config(db_path), model)
        with store:
            question = asyncio.run(_start(engine, conversation_id))
            session = engine.get_session(conversation_id)
    except Exception as e:
        return _error(e, format)

    if format == "human":
        _print_session(session)
        _print_question(question)
    else:
        print(
            json.dumps(
                {
                    "session": session.model_dump(mode="json"),
                    "question": question.model_dump(mode="json") if question else None,
                }
            )
        )
    return 0


def show_command(conversation_id: str, db_path: Path | None = None, format: str = "human") -> int:
    """Show a session's status, phase, progress and risk flags.

    Returns:
        Exit code (0 = found, 1 = missing or error).
    """
    try:
        with SQLiteStore(_config(db_path).db_path) as store:
            session = store.require_session(conversation_id)
    except Exception as e:
        return _error(e, format)

    if format == "human":
        _print_session(session)
    else:
        print(session.model_dump_json())
    return 0


def next_command(
    conversation_id: str,
    db_path: Path | None = None,
    model: str | None = None,
    format: str = "human",
) -> int:
    """Print the item to ask next, selecting one if needed.

    Returns:
        Exit code (0 = ok, 1 = error).
    """
    try:
        engine, store = _open_engine(_config(db_path), model)
        with store:
            question = asyncio.run(engine.next_question(conversation_id))
            state = engine.get_session(conversation_id).state
    except Exception as e:
        return _error(e, format)

    if format == "human":
        _print_question(question)
        if question is None:
            console.print(f"Phase: {state.value}")
    else:
        print(
            json.dumps(
                {
                    "state": state.value,
                    "question": question.model_dump(mode="json") if question else None,
                }
            )
        )
    return 0


def _print_turn(result: TurnResult) -> None:
    if result.safety.degraded:
        console.print("[yellow]Safety check degraded: classifier unavailable[/yellow]")
    if result.scoring is not None:
        for response in result.scoring.item_responses:
            console.print(
                f"Scored [bold]{response.item_id}[/bold]: {response.score} "
                f"({SCORING_ANCHORS[response.score]}), ambiguity {response.ambiguity}, "
                f"evidence {response.evidence.type.value if response.evidence else 'none'}"
            )
    if result.action == TurnAction.SAFETY_STOP:
        console.print(
            Panel(result.escalation_script or "", title="Safety stop", border_style="red")
        )
    elif result.action in (TurnAction.ASK_ITEM, TurnAction.ASK_FOLLOW_UP):
        _print_question(result.question)
    elif result.action == TurnAction.GENERATE_REPORT:
        console.print("[green]All items answered.[/green] Ready for the report.")
    else:
        console.print("[green]Interview complete.[/green]")


def respond_command(
    conversation_id: str,
    text: str,
    item_id: str | None = None,
    also: list[str] | None = None,
    db_path: Path | None = None,
    model: str | None = None,
    format: str = "human",
) -> int:
    """Submit a patient message and print the resulting action.

    Returns:
        Exit code (0 = ok, 1 = error, 2 = safety stop).
    """
    try:
        engine, store = _open_engine(_config(db_path), model)
        with store:
            result = asyncio.run(
                engine.handle_patient_message(
                    conversation_id, text, item_id=item_id, additional_item_ids=also or ()
                )
            )
    except Exception as e:
        return _error(e, format)

    if format == "human":
        _print_turn(result)
    else:
        print(result.model_dump_json(exclude={"scoring": {"session"}}))
    return 2 if result.action == TurnAction.SAFETY_STOP else 0


def complete_command(
    conversation_id: str,
    db_path: Path | None = None,
    model: str | None = None,
    format: str = "human",
) -> int:
    """Mark the report as delivered, finishing the interview.

    Returns:
        Exit code (0 = ok, 1 = error).
    """
    try:
        engine, store = _open_engine(_config(db_path), model)
        with store:
            session = asyncio.run(engine.complete_report(conversation_id))
    except Exception as e:
        return _error(e, format)

    if format == "human":
        _print_session(session)
    else:
        print(session.model_dump_json())
    return 0


def integrity_command(
    conversation_id: str, db_path: Path | None = None, format: str = "human"
) -> int:
    """Print the evidence-integrity score and leak count.

    Returns:
        Exit code (0 = no leaks, 1 = leaks found or error).
    """
    try:
        with SQLiteStore(_config(db_path).db_path) as store:
            session = store.require_session(conversation_id)
            responses = store.get_item_responses(session.id)
            report = score_evidence_integrity(responses, session.transcript)
            audit = audit_session(store.get_events(session.id), responses)
    except Exception as e:
        return _error(e, format)

    if format == "human":
        details = report.details
        table = Table(title=f"Evidence integrity: {report.score:.2f}")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        for name, value in details.model_dump().items():
            table.add_row(name.replace("_", " "), str(value))
        table.add_row("coverage", f"{audit.rate:.0%}")
        table.add_row("follow-up violations", str(audit.follow_up_violations))
        table.add_row("repeat violations", str(audit.repeat_violations))
        console.print(table)
        for issue in [*report.issues, *audit.issues]:
            console.print(f"[yellow]![/yellow] {issue}")
    else:
        print(json.dumps({"integrity": report.model_dump(), "audit": audit.model_dump()}))
    return 1 if report.details.leak_count else 0


def events_command(conversation_id: str, db_path: Path | None = None, format: str = "human") -> int:
    """Print the session's decision log.

    Returns:
        Exit code (0 = ok, 1 = error).
    """
    try:
        with SQLiteStore(_config(db_path).db_path) as store:
            session = store.require_session(conversation_id)
            events = store.get_events(session.id)
    except Exception as e:
        return _error(e, format)

    if format == "human":
        table = Table(title=f"Events for {conversation_id}")
        table.add_column("Time")
        table.add_column("Kind", style="bold")
        table.add_column("Phase")
        table.add_column("Item")
        table.add_column("Detail")
        for event in events:
            table.add_row(
                event.timestamp.strftime("%H:%M:%S"),
                event.kind.value,
                event.phase.value,
                event.item_id or "",
                json.dumps(event.detail, default=str) if event.detail else "",
            )
        console.print(table)
    else:
        for event in events:
            print(event.model_dump_json())
    return 0
