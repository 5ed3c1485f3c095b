from datetime import UTC, datetime

import typer
import uvicorn
from dotenv import load_dotenv

from interview_coach.api.auth import build_jwt_service
from interview_coach.core.aggregation import AggregationEngine, TimeWindow
from interview_coach.core.config import Settings
from interview_coach.core.constants import CLI_USER_ID, DEFAULT_HISTORY_LIMIT
from interview_coach.core.errors import InterviewError
from interview_coach.core.logging import get_logger, init_logging, log_event, set_run_id, set_trace_id
from interview_coach.core.models import InterviewExhausted, Role
from interview_coach.core.services import EvaluatorGateway, InterviewSessionEngine
from interview_coach.core.storage import DatabaseManager
from interview_coach.providers.base import Provider

app = typer.Typer(help="Interview Coach - AI-assisted mock interviews.")


def _init_logging_from_cli(
    log_level: str | None = None,
    log_file: str | None = None,
    log_format: str = "text",
    log_mask: bool = False,
) -> None:
    init_logging(level=log_level, fmt=log_format, file_path=log_file, mask=log_mask)
    # Fresh run id for each CLI invocation; also the initial trace id
    _rid = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")[-12:]
    set_run_id(_rid)
    set_trace_id(_rid)
    log_event(
        "cli.start",
        component="cli",
        operation="start",
        log_level=log_level or "INFO",
        log_file=log_file or "stdout",
        log_format=log_format,
    )


def _load_settings(database_url: str | None, model: str | None) -> Settings:
    load_dotenv()
    settings = Settings.from_env()
    if database_url:
        settings.database_url = database_url
    if model:
        settings.model_id = model
    return settings


def _build_engine(settings: Settings) -> InterviewSessionEngine:
    provider = Provider.from_id(settings.model_id, timeout=settings.gateway.request_timeout_seconds)
    return InterviewSessionEngine(
        DatabaseManager(settings.database_url),
        EvaluatorGateway(provider, settings.gateway),
        settings=settings.engine,
        logger=get_logger(),
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind the server to"),
    port: int = typer.Option(8080, help="Port to bind the server to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_format: str = typer.Option("json", help="Log format: json|text"),
):
    """
    Runs the HTTP API with uvicorn.
    """
    load_dotenv()
    _init_logging_from_cli(log_level, None, log_format)
    typer.echo(f"Starting Interview Coach API server on {host}:{port}")
    typer.echo(f"API Documentation: http://{host}:{port}/docs")
    uvicorn.run("interview_coach.api.main:app", host=host, port=port, reload=reload, log_level="info")


@app.command()
def practice(
    role: Role = typer.Option(Role.BACKEND, help="Interview role"),
    level: int = typer.Option(1, min=0, max=4, help="Experience level, 0 (Fresher) to 4 (Expert)"),
    user_id: str = typer.Option(CLI_USER_ID, help="Owner id to record the interview under"),
    model: str | None = typer.Option(None, help="Provider:model identifier"),
    database_url: str | None = typer.Option(None, help="SQLAlchemy database URL"),
    log_level: str | None = typer.Option("WARNING", help="Log level (DEBUG, INFO, ...)"),
    log_file: str | None = typer.Option(None, help="Log file path (default stdout)"),
    log_format: str = typer.Option("text", help="Log format: json|text"),
    log_mask: bool = typer.Option(True, help="Mask answer text in logs"),
):
    """
    Runs a full interview in the terminal and prints the final report.
    """
    _init_logging_from_cli(log_level, log_file, log_format, log_mask)
    engine = _build_engine(_load_settings(database_url, model))

    try:
        started = engine.start_interview(user_id, role, level)
        typer.echo(
            f"Interview {started.interview_id}: {started.total_questions} questions, "
            f"about {started.estimated_minutes} minutes"
        )
        question, number = started.question, 1

        while True:
            typer.echo(f"\nQuestion {number}/{started.total_questions} [{question.difficulty.value}, {question.category}]")
            typer.echo(question.text)
            asked_at = datetime.now(UTC)
            answer = typer.prompt("Your answer")
            spent = int((datetime.now(UTC) - asked_at).total_seconds())

            submitted = engine.submit_answer(started.interview_id, user_id, question.id, answer, spent)
            typer.echo(f"Score: {submitted.evaluation.score:g}/10 - {submitted.evaluation.feedback}")

            outcome = engine.get_next_question(started.interview_id, user_id)
            if isinstance(outcome, InterviewExhausted):
                break
            if not typer.confirm("Continue to the next question?", default=True):
                break
            question, number = outcome.question, outcome.question_number

        report = engine.complete_interview(started.interview_id, user_id)
    except InterviewError as e:
        typer.echo(f"Error ({e.kind.value}): {e.message}", err=True)
        raise typer.Exit(1)

    typer.echo("\n" + "=" * 60)
    typer.echo(f"Overall score: {report.overall_score_percent}% ({'passed' if report.passed else 'not passed'})")
    typer.echo(report.summary)
    for label, items in (
        ("Strengths", report.strengths),
        ("Weak areas", report.weak_areas),
        ("Improvements", report.improvements),
    ):
        if items:
            typer.echo(f"\n{label}:")
            for item in items:
                typer.echo(f"  - {item}")


@app.command()
def history(
    user_id: str = typer.Option(CLI_USER_ID, help="Owner id"),
    status: str = typer.Option("completed", help="completed|in-progress|abandoned|passed|all"),
    page: int = typer.Option(1, help="Page number"),
    limit: int = typer.Option(DEFAULT_HISTORY_LIMIT, help="Page size"),
    database_url: str | None = typer.Option(None, help="SQLAlchemy database URL"),
    log_level: str | None = typer.Option("WARNING", help="Log level (DEBUG, INFO, ...)"),
):
    """
    Lists a user's interviews.
    """
    _init_logging_from_cli(log_level)
    settings = _load_settings(database_url, None)
    engine = InterviewSessionEngine(DatabaseManager(settings.database_url), gateway=None, logger=get_logger())

    try:
        result = engine.get_history(user_id, status_filter=status, page=page, limit=limit)
    except InterviewError as e:
        typer.echo(f"Error ({e.kind.value}): {e.message}", err=True)
        raise typer.Exit(1)

    if not result.items:
        typer.echo("No interviews found.")
        return

    typer.echo(f"Page {result.page}/{result.pages} ({result.total} interviews)")
    typer.echo("-" * 80)
    for item in result.items:
        when = (item.completed_at or item.started_at).strftime("%Y-%m-%d %H:%M")
        typer.echo(
            f"{item.interview_id} | {item.role.value:<9} | L{item.experience_level} | "
            f"{item.status.value:<11} | {item.score:>3}% | {when}"
        )


@app.command()
def stats(
    user_id: str = typer.Option(CLI_USER_ID, help="Owner id"),
    window: TimeWindow = typer.Option(TimeWindow.ALL, help="today|week|month|all"),
    database_url: str | None = typer.Option(None, help="SQLAlchemy database URL"),
    log_level: str | None = typer.Option("WARNING", help="Log level (DEBUG, INFO, ...)"),
):
    """
    Prints dashboard statistics for a user.
    """
    _init_logging_from_cli(log_level)
    settings = _load_settings(database_url, None)
    dashboard = AggregationEngine(DatabaseManager(settings.database_url)).dashboard(user_id, window=window)

    windowed = dashboard.windowed
    typer.echo(f"Completed ({window.value}): {windowed.total_completed}")
    typer.echo(f"Average score: {windowed.average_score}%")
    typer.echo(f"Best / worst: {windowed.highest_score}% / {windowed.lowest_score}%")
    typer.echo(f"Pass rate: {windowed.pass_rate:.0%}")
    typer.echo(f"Practice time: {windowed.total_duration // 60} minutes")
    if dashboard.by_role:
        typer.echo("\nBy role:")
        for row in dashboard.by_role:
            typer.echo(f"  {row.role.value:<9} {row.count:>3} interviews, avg {row.average_score}%")


@app.command()
def token(
    user_id: str = typer.Option(..., "--user-id", help="Subject of the token"),
    email: str | None = typer.Option(None, help="Optional email claim"),
):
    """
    Prints a bearer token for local development.
    """
    load_dotenv()
    try:
        jwt_service = build_jwt_service(Settings.from_env())
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    typer.echo(jwt_service.create_access_token(user_id, email))


if __name__ == "__main__":
    app()
