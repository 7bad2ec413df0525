"""CLI commands for bloomtrack.

Registry:
- init-db, add-student, students, add-class, enroll, add-subject, add-topic

Mastery:
- record: Record assessment results from a JSON file
- mastery: Per-topic mastery of a student
- report: Student analytics (gaps, growth, recommendations)
- class-report: Class analytics
- leaderboard: Ranked students for a class, subject, topic or globally
- decay: Apply time-based decay to stored masteries

Server:
- serve: Run the Web API with uvicorn
"""

import json
from pathlib import Path

import structlog
import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bloomtrack.config.app_config import ConfigError, load_app_config
from bloomtrack.core import mastery_service
from bloomtrack.core.blooms import BLOOMS_LEVEL_METADATA, BLOOMS_LEVEL_ORDER
from bloomtrack.core.mastery_calculator import (
    AssessmentResult,
    MasteryLevel,
    get_mastery_level,
)
from bloomtrack.db import init_db
from bloomtrack.db import registry_repository as registry
from bloomtrack.db.registry_repository import DuplicateEntityError, EntityNotFoundError
from bloomtrack.utils.validators import (
    AmbiguousReferenceError,
    ReferenceNotFoundError,
    resolve_reference,
    validate_email,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="bloom",
    help="Bloom's Taxonomy mastery tracking for schools.",
    no_args_is_help=True,
)

console = Console()

LEVEL_COLORS = {
    MasteryLevel.EXPERT: "green",
    MasteryLevel.ADVANCED: "cyan",
    MasteryLevel.PROFICIENT: "blue",
    MasteryLevel.DEVELOPING: "yellow",
    MasteryLevel.NOVICE: "red",
}


def _open_db() -> None:
    """Initialize the configured database, or exit on bad config."""
    try:
        config = load_app_config()
    except ConfigError as e:
        console.print(f"[red]✗ Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)
    init_db(config.db_path)


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


def _resolve_student_or_exit(ref: str) -> str:
    """Resolve a student ID or name prefix, or exit with helpful error."""
    candidates = {s.student_id: s.name for s in registry.list_students()}
    try:
        return resolve_reference(ref, candidates)
    except (ReferenceNotFoundError, AmbiguousReferenceError) as e:
        _fail(str(e))


def _pct(value: float, thresholds: dict[str, float]) -> str:
    level = get_mastery_level(value, thresholds)
    color = LEVEL_COLORS[level]
    return f"[{color}]{value:.1f}%[/{color}]"


def _level_headers(table: Table) -> None:
    for level in BLOOMS_LEVEL_ORDER:
        table.add_column(BLOOMS_LEVEL_METADATA[level].name[:4], justify="right")


# =============================================================================
# REGISTRY COMMANDS
# =============================================================================


@app.command(name="init-db")
def init_database() -> None:
    """Create the database schema (idempotent)."""
    _open_db()
    console.print(f"[green]✓ Database ready:[/green] {load_app_config().db_path}")


@app.command(name="add-student")
def add_student(
    name: str = typer.Argument(..., help="Student name (unique)"),
    email: str = typer.Option("", "--email", "-e", help="Optional email"),
) -> None:
    """Register a student."""
    _open_db()
    if not validate_email(email):
        _fail(f"Invalid email format: {email}")
    try:
        student = registry.insert_student(name, email)
    except DuplicateEntityError as e:
        _fail(str(e))
    console.print(f"[green]✓ Student created:[/green] {student.student_id} ({student.name})")


@app.command(name="students")
def list_students() -> None:
    """List registered students."""
    _open_db()
    students = registry.list_students()

    if not students:
        console.print("[yellow]No students registered[/yellow]")
        console.print("  Use: bloom add-student <name>")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Email", style="dim")
    for s in students:
        table.add_row(s.student_id, s.name, s.email)
    console.print(table)


@app.command(name="add-class")
def add_class(name: str = typer.Argument(..., help="Class name")) -> None:
    """Create a class."""
    _open_db()
    record = registry.insert_class(name)
    console.print(f"[green]✓ Class created:[/green] {record.class_id} ({record.name})")


@app.command()
def enroll(
    class_id: str = typer.Argument(..., help="Class ID (e.g., 'cls001')"),
    student: str = typer.Argument(..., help="Student ID or name"),
) -> None:
    """Enroll a student into a class."""
    _open_db()
    student_id = _resolve_student_or_exit(student)
    try:
        enrolled = registry.enroll_student(class_id, student_id)
    except EntityNotFoundError as e:
        _fail(str(e))

    if enrolled:
        console.print(f"[green]✓ Enrolled {student_id} in {class_id}[/green]")
    else:
        console.print(f"[yellow]⚠ {student_id} is already enrolled in {class_id}[/yellow]")


@app.command(name="add-subject")
def add_subject(name: str = typer.Argument(..., help="Subject name")) -> None:
    """Create a subject."""
    _open_db()
    record = registry.insert_subject(name)
    console.print(f"[green]✓ Subject created:[/green] {record.subject_id} ({record.name})")


@app.command(name="add-topic")
def add_topic(
    subject_id: str = typer.Argument(..., help="Subject ID (e.g., 'sub001')"),
    title: str = typer.Argument(..., help="Topic title"),
) -> None:
    """Create a topic under a subject."""
    _open_db()
    try:
        record = registry.insert_topic(subject_id, title)
    except EntityNotFoundError as e:
        _fail(str(e))
    console.print(f"[green]✓ Topic created:[/green] {record.topic_id} ({record.title})")


# =============================================================================
# MASTERY COMMANDS
# =============================================================================


@app.command()
def record(
    results_file: Path = typer.Argument(
        ..., help="JSON file with one result object or a list of them"
    ),
) -> None:
    """Record assessment results and update topic mastery.

    Each result looks like:
    {"student_id": "stu001", "topic_id": "top001", "assessment_id": "quiz-1",
     "completed_at": "2026-03-01T10:00:00+00:00",
     "level_results": {"REMEMBER": {"score": 8, "max_score": 10}}}
    """
    _open_db()

    if not results_file.exists():
        _fail(f"File not found: {results_file}")

    try:
        data = json.loads(results_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {results_file}: {e}")

    items = data if isinstance(data, list) else [data]
    if not all(isinstance(item, dict) for item in items):
        _fail("Invalid result: each result must be a JSON object")

    try:
        results = [AssessmentResult.from_dict(item) for item in items]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        _fail(f"Invalid result: {e}")

    thresholds = load_app_config().mastery.level_thresholds
    for result in results:
        try:
            mastery = mastery_service.record_assessment_result(result)
        except EntityNotFoundError as e:
            _fail(str(e))
        console.print(
            f"[green]✓[/green] {mastery.student_id} / {mastery.topic_id}: "
            f"{_pct(mastery.overall_mastery, thresholds)} "
            f"[dim]({mastery.assessment_count} assessments)[/dim]"
        )

    console.print(f"\n[bold]{len(results)} result(s) recorded[/bold]")


@app.command()
def mastery(student: str = typer.Argument(..., help="Student ID or name")) -> None:
    """Show a student's mastery per topic and Bloom's level."""
    _open_db()
    student_id = _resolve_student_or_exit(student)
    thresholds = load_app_config().mastery.level_thresholds

    masteries = mastery_service.get_student_mastery(student_id)
    if not masteries:
        console.print(f"[yellow]No mastery data for {student_id}[/yellow]")
        return

    topic_names = registry.get_topic_names()
    table = Table(show_header=True, header_style="bold", title=f"Mastery: {student_id}")
    table.add_column("Topic", style="cyan")
    _level_headers(table)
    table.add_column("Overall", justify="right")
    table.add_column("Level", justify="center")

    for m in masteries:
        level = get_mastery_level(m.overall_mastery, thresholds)
        table.add_row(
            topic_names.get(m.topic_id, m.topic_id),
            *(f"{m.levels.get(lvl, 0.0):.0f}" for lvl in BLOOMS_LEVEL_ORDER),
            _pct(m.overall_mastery, thresholds),
            f"[{LEVEL_COLORS[level]}]{level.value}[/{LEVEL_COLORS[level]}]",
        )

    console.print(table)


@app.command()
def report(
    student: str = typer.Argument(..., help="Student ID or name"),
    growth_days: int = typer.Option(30, "--growth-days", help="Growth period in days"),
) -> None:
    """Show a student's mastery analytics."""
    _open_db()
    student_id = _resolve_student_or_exit(student)
    analytics = mastery_service.get_student_analytics(
        student_id, growth_period_days=growth_days
    )
    thresholds = load_app_config().mastery.level_thresholds

    header = (
        f"[bold]{analytics.overall_mastery:.1f}%[/bold] overall - {analytics.mastery_level.value}\n"
        f"Topics mastered: {analytics.mastered_topics}/{analytics.total_topics}"
    )
    if analytics.growth is not None:
        growth = analytics.growth
        sign = "+" if growth.overall > 0 else ""
        header += (
            f"\nGrowth (past {growth.period_days} days, {growth.topic_count} topics): "
            f"{sign}{growth.overall}%"
        )
    console.print(Panel(header, title=f"[bold]{student_id}[/bold]", expand=False))

    levels = Table(show_header=True, header_style="bold", title="Bloom's levels")
    levels.add_column("Level", style="cyan")
    levels.add_column("Mastery", justify="right")
    for level in BLOOMS_LEVEL_ORDER:
        levels.add_row(
            BLOOMS_LEVEL_METADATA[level].name, _pct(analytics.blooms_levels[level], thresholds)
        )
    console.print(levels)

    if analytics.mastery_gaps:
        console.print("\n[bold]Gaps:[/bold]")
        for gap in analytics.mastery_gaps:
            lagging = ", ".join(BLOOMS_LEVEL_METADATA[lvl].name for lvl in gap.level_gaps)
            console.print(f"  - {gap.topic_name}: {_pct(gap.overall_mastery, thresholds)} [dim]({lagging})[/dim]")

    if analytics.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for rec in analytics.recommendations:
            console.print(f"  • {rec}")


@app.command(name="class-report")
def class_report(class_id: str = typer.Argument(..., help="Class ID")) -> None:
    """Show mastery analytics for a class."""
    _open_db()
    try:
        analytics = mastery_service.get_class_analytics(class_id)
    except EntityNotFoundError as e:
        _fail(str(e))
    thresholds = load_app_config().mastery.level_thresholds

    distribution = " | ".join(
        f"{level.value}: {count}" for level, count in analytics.mastery_distribution.items()
    )
    header = (
        f"[bold]{analytics.overall_mastery:.1f}%[/bold] class average - "
        f"{analytics.student_count} students\n{distribution}"
    )
    console.print(Panel(header, title=f"[bold]{class_id}[/bold]", expand=False))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Student", style="cyan")
    _level_headers(table)
    table.add_column("Overall", justify="right")
    for s in analytics.student_mastery:
        table.add_row(
            s.student_name,
            *(f"{s.blooms_levels.get(lvl, 0.0):.0f}" for lvl in BLOOMS_LEVEL_ORDER),
            _pct(s.overall_mastery, thresholds),
        )
    console.print(table)

    for gap in analytics.mastery_gaps:
        students = ", ".join(s.student_name for s in gap.struggling_students)
        console.print(
            f"[yellow]⚠ {gap.topic_name}[/yellow] {_pct(gap.average_mastery, thresholds)} "
            f"[dim]struggling: {students or '-'}[/dim]"
        )


@app.command()
def leaderboard(
    partition: str = typer.Option(
        "global", "--partition", "-p", help="class | subject | topic | global"
    ),
    partition_id: str = typer.Option(None, "--id", help="Class, subject or topic ID"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of entries"),
) -> None:
    """Show the mastery leaderboard."""
    _open_db()
    try:
        board = mastery_service.get_leaderboard(partition, partition_id, limit)
    except (EntityNotFoundError, ValueError) as e:
        _fail(str(e))
    thresholds = load_app_config().mastery.level_thresholds

    if not board.entries:
        console.print("[yellow]No mastery data yet[/yellow]")
        return

    title = f"Leaderboard ({board.partition_type}"
    title += f" {board.partition_id})" if board.partition_id else ")"
    table = Table(show_header=True, header_style="bold", title=title)
    table.add_column("#", justify="right")
    table.add_column("Student", style="cyan")
    table.add_column("Mastery", justify="right")
    table.add_column("Level", justify="center")
    table.add_column("Topics", justify="right")
    for entry in board.entries:
        table.add_row(
            str(entry.rank),
            entry.student_name,
            _pct(entry.overall_mastery, thresholds),
            entry.mastery_level.value,
            str(entry.topic_count),
        )
    console.print(table)


@app.command()
def decay() -> None:
    """Apply time-based decay to every stored mastery."""
    _open_db()
    changed = mastery_service.apply_decay_to_all()
    console.print(f"[green]✓ Decay applied[/green] ({changed} masteries changed)")


# =============================================================================
# SERVER
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the Web API."""
    _open_db()
    console.print(f"[green]✓ Serving API on http://{host}:{port}[/green]")
    logger.info("cli.serve", host=host, port=port)
    uvicorn.run("bloomtrack.web.api:app", host=host, port=port, reload=reload)
