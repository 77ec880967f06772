"""Taaltuig CLI: queue inspection, grading, interactive study and settings."""

import asyncio
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer

from taaltuig.application.config import resolve_config
from taaltuig.application.session import ReviewSession, SessionPhase, should_hold
from taaltuig.domain.errors import TaaltuigError
from taaltuig.domain.models import Grade, ReviewItem, utcnow
from taaltuig.interface._common import _resolve_with_overrides, open_service

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="taaltuig: spaced-repetition scheduling for two-sided cards.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

settings_app = typer.Typer(help="Show or change the scheduling settings.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")

config_app = typer.Typer(help="Manage taaltuig configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

DataFileOption = Annotated[
    Path | None, typer.Option("--data-file", help="JSON data file. Defaults to config.")
]
UserOption = Annotated[str | None, typer.Option("--user", help="User id. Defaults to config.")]


def _run(coro):
    """Run a coroutine, turning domain errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except TaaltuigError as e:
        logger.debug(f"Command failed: {e}", exc_info=True)
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _item_line(item: ReviewItem) -> str:
    due = item.due_at.strftime("%Y-%m-%d %H:%M")
    category = f" [{item.category}]" if item.category else ""
    return (
        f"{item.review_item_id}  {item.state.value:<10} {item.direction.value:<7} "
        f"due {due}  {item.front}{category}"
    )


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for taaltuig."""
    verbose = max(verbose, resolve_config().verbose)
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    front: Annotated[str, typer.Argument(help="Front side of the card.")],
    back: Annotated[str, typer.Argument(help="Back side of the card.")],
    explanation: Annotated[str | None, typer.Option(help="Optional explanation.")] = None,
    category: Annotated[
        str | None, typer.Option(help="Category, e.g. 'Dutch Basics/Verbs'.")
    ] = None,
    data_file: DataFileOption = None,
    user: UserOption = None,
):
    """[bold green]Add[/bold green] a card (creates its forward and reverse items)."""
    config = _resolve_with_overrides(data_file=data_file, user_id=user)

    async def run():
        async with open_service(config) as service:
            return await service.add_card(
                config.user_id, front, back, explanation=explanation, category=category
            )

    forward, reverse = _run(run())
    typer.echo(f"Added card {forward.card_id}")
    typer.echo(f"  forward: {forward.review_item_id}")
    typer.echo(f"  reverse: {reverse.review_item_id}")


@app.command()
def queue(
    extra_new: Annotated[
        int, typer.Option("--extra-new", min=0, help="NEW items beyond today's budget.")
    ] = 0,
    show_all: Annotated[
        bool, typer.Option("--all", help="List every item instead of today's queue.")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
    data_file: DataFileOption = None,
    user: UserOption = None,
):
    """Show today's review queue."""
    config = _resolve_with_overrides(data_file=data_file, user_id=user)

    async def run():
        async with open_service(config) as service:
            if show_all:
                return await service.list_all(config.user_id)
            return await service.build_queue(config.user_id, extra_new=extra_new)

    result = _run(run())

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "queue": [item.to_dict() for item in result.items],
                    "stats": result.stats.to_dict(),
                },
                indent=2,
            )
        )
        return

    stats = result.stats
    typer.echo(
        f"Due: {stats.due_count}  Learning: {stats.learning_count}  "
        f"New: {stats.new_count}  Total: {stats.total_count}  "
        f"New remaining today: {stats.new_remaining_today}"
    )
    for item in result.items:
        typer.echo(_item_line(item))


@app.command()
def review(
    review_item_id: Annotated[str, typer.Argument(help="Item to grade.")],
    grade: Annotated[str, typer.Argument(help="again, hard, good, easy (or 0, 2, 3, 4).")],
    duration_ms: Annotated[
        int, typer.Option("--duration-ms", min=0, help="Time spent on the item.")
    ] = 0,
    data_file: DataFileOption = None,
    user: UserOption = None,
):
    """Grade one item and print its next due time."""
    try:
        parsed = Grade.parse(grade)
    except ValueError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(2) from e

    config = _resolve_with_overrides(data_file=data_file, user_id=user)

    async def run():
        async with open_service(config) as service:
            return await service.submit_review(
                config.user_id, review_item_id, parsed, duration_ms=duration_ms
            )

    outcome = _run(run())
    result = outcome.result
    typer.echo(
        f"{outcome.before.state.value} -> {result.state.value}  "
        f"interval {result.interval:.4f}d  ease {result.ease_factor:.2f}  "
        f"due {result.due_at.isoformat()}"
    )


@app.command()
def study(
    extra_new: Annotated[
        int, typer.Option("--extra-new", min=0, help="NEW items beyond today's budget.")
    ] = 0,
    data_file: DataFileOption = None,
    user: UserOption = None,
):
    """[bold green]Study[/bold green] today's queue interactively."""
    config = _resolve_with_overrides(data_file=data_file, user_id=user)
    horizon = timedelta(hours=config.hold_horizon_hours)

    async def run() -> ReviewSession:
        async with open_service(config) as service:
            session = ReviewSession()
            initial = await service.build_queue(config.user_id, extra_new=extra_new)
            session.init_queue(initial.items)

            while True:
                session.release_due()

                if session.phase == SessionPhase.REVIEWING and session.current is not None:
                    item = session.current
                    typer.secho(f"\n{item.front}", bold=True)
                    typer.prompt("(enter to reveal)", default="", show_default=False)
                    session.reveal_answer()
                    typer.echo(item.back)
                    if item.explanation:
                        typer.echo(item.explanation)

                    answer = typer.prompt("Grade [again/hard/good/easy/quit]")
                    if answer.strip().lower() in ("q", "quit"):
                        break
                    try:
                        grade = Grade.parse(answer)
                    except ValueError:
                        typer.secho("Unknown grade.", fg="yellow")
                        continue

                    duration_ms = int((utcnow() - session.started_at).total_seconds() * 1000)
                    graded = session.grade(grade)
                    outcome = await service.submit_review(
                        config.user_id, graded.review_item_id, grade, duration_ms=duration_ms
                    )
                    due_at = outcome.result.due_at
                    if should_hold(due_at, outcome.graded_at, horizon):
                        session.schedule_return(outcome.after, due_at, grade == Grade.AGAIN)
                    else:
                        session.decline_return()

                elif session.phase == SessionPhase.WAITING:
                    wait = (session.next_waiting_time - utcnow()).total_seconds()
                    typer.echo(f"Next item returns in {max(0, int(wait))}s ...")
                    await asyncio.sleep(max(0.0, wait))

                else:
                    more = typer.prompt(
                        "Session complete. Add more new items? (0 to finish)", default=0, type=int
                    )
                    if more <= 0:
                        break
                    session.set_loading_extra(more)
                    try:
                        extra = await service.build_queue(config.user_id, extra_new=more)
                    except Exception:
                        session.set_loading_extra(None)
                        raise
                    fresh = [i for i in extra.items if not session.contains(i.review_item_id)]
                    if not fresh:
                        session.set_loading_extra(None)
                        typer.secho("No more items available.", fg="yellow")
                        break
                    session.extend(fresh)

            return session

    session = _run(run())
    typer.echo(
        f"\nReviewed {session.reviewed_count} ({session.again_count} again, "
        f"{session.again_reviewed} re-reviewed). Remaining in session: {session.cards_remaining}"
    )


@app.command("reset-today")
def reset_today(
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
    data_file: DataFileOption = None,
    user: UserOption = None,
):
    """Undo today's reviews (items back to NEW, today's history deleted)."""
    if not force:
        typer.confirm("Reset every item reviewed today back to NEW?", abort=True)

    config = _resolve_with_overrides(data_file=data_file, user_id=user)

    async def run():
        async with open_service(config) as service:
            return await service.reset_daily_reviews(config.user_id)

    deleted = _run(run())
    typer.secho(f"Deleted {deleted} review history entries.", fg="green")


@app.command()
def serve(
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    config = _resolve_with_overrides(host=host, port=port)
    uvicorn.run("taaltuig.server:app", host=config.host, port=config.port, reload=reload)


# ---------------------------------------------------------------------------
# Settings subgroup
# ---------------------------------------------------------------------------


@settings_app.command("show")
def settings_show(data_file: DataFileOption = None, user: UserOption = None):
    """Display the user's scheduling settings as JSON."""
    config = _resolve_with_overrides(data_file=data_file, user_id=user)

    async def run():
        async with open_service(config) as service:
            return await service.get_settings(config.user_id)

    settings = _run(run())
    typer.echo(json.dumps(settings.model_dump(), indent=2))


@settings_app.command("set")
def settings_set(
    key: Annotated[str, typer.Argument(help="Setting name, e.g. new_cards_per_day.")],
    value: Annotated[str, typer.Argument(help="New value (JSON, e.g. 15 or '[1, 10]').")],
    data_file: DataFileOption = None,
    user: UserOption = None,
):
    """Change one scheduling setting."""
    from pydantic import ValidationError

    from taaltuig.domain.settings import SchedulingConfig

    if key not in SchedulingConfig.model_fields:
        typer.secho(f"Unknown setting: {key}", fg="red", err=True)
        raise typer.Exit(2)

    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value

    config = _resolve_with_overrides(data_file=data_file, user_id=user)

    async def run():
        async with open_service(config) as service:
            return await service.update_settings(config.user_id, {key: parsed})

    try:
        settings = _run(run())
    except ValidationError as e:
        typer.secho(f"Invalid value for {key}: {e.errors()[0]['msg']}", fg="red", err=True)
        raise typer.Exit(1) from e
    typer.echo(json.dumps({key: settings.model_dump()[key]}))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
