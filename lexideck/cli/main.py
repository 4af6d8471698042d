"""Command line interface for a local lexideck card store."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from lexideck.core.scheduler import CardSchedulingState, format_interval, preview, schedule
from lexideck.core.session import SessionSummary
from lexideck.core.session_manager import SessionConfig, SessionManager
from lexideck.domain.analytics.services.progress_analytics import (
    Bucket,
    ProgressAnalytics,
)
from lexideck.domain.learning.services.schedule_card import (
    ScheduleCard,
    ScheduleCardRequest,
)
from lexideck.domain.shared.models import Rating, Timeframe
from lexideck.domain.shared.services import DomainServiceError
from lexideck.infrastructure.config.settings import Settings, get_settings
from lexideck.infrastructure.database.database import DatabaseManager
from lexideck.infrastructure.messaging.event_bus import EventBus

logger = logging.getLogger(__name__)
console = Console()


def configure_logging(settings: Settings) -> None:
    """Route log records through rich, plus a log file when configured."""
    handlers: list[logging.Handler] = [RichHandler(rich_tracebacks=True)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
    )


def parse_rating(value: str) -> int:
    """Accept a rating name (again/hard/good/easy) or a number."""
    try:
        return int(Rating[value.strip().upper()])
    except KeyError:
        pass
    try:
        return int(value)
    except ValueError as e:
        raise click.BadParameter(
            f"{value!r} is not one of again, hard, good, easy or 0-5"
        ) from e


def _bucket_table(title: str, buckets: list[Bucket]) -> Table:
    table = Table(title=title)
    table.add_column("Range", style="cyan")
    table.add_column("Cards", justify="right")
    table.add_column("%", justify="right")
    for bucket in buckets:
        table.add_row(bucket.label, str(bucket.count), f"{bucket.percentage:.1f}")
    return table


@click.group()
@click.option("--db", "db_path", default=None, help="SQLite database path")
@click.pass_context
def cli(ctx: click.Context, db_path: str | None) -> None:
    """Spaced-repetition vocabulary decks."""
    settings = get_settings()
    configure_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["db_path"] = db_path or settings.database_path


def _db(ctx: click.Context) -> DatabaseManager:
    return DatabaseManager(ctx.obj["db_path"])


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database tables."""
    db = _db(ctx)
    console.print(f"[green]Database ready at {db.db_path}[/green]")


@cli.command("add-deck")
@click.argument("name")
@click.option("--description", default=None, help="Deck description")
@click.pass_context
def add_deck(ctx: click.Context, name: str, description: str | None) -> None:
    """Create a deck."""
    deck_id = _db(ctx).create_deck(
        name, description, user_id=ctx.obj["settings"].default_user_id
    )
    console.print(f"[green]Created deck {deck_id}: {name}[/green]")


@cli.command("add-card")
@click.argument("deck_id", type=int)
@click.argument("word")
@click.argument("definition")
@click.option("--pronunciation", default=None)
@click.option("--example", "examples", multiple=True, help="Example sentence")
@click.pass_context
def add_card(
    ctx: click.Context,
    deck_id: int,
    word: str,
    definition: str,
    pronunciation: str | None,
    examples: tuple[str, ...],
) -> None:
    """Add a card to a deck; it is due immediately."""
    db = _db(ctx)
    if db.get_deck(deck_id) is None:
        console.print(f"[red]Deck {deck_id} not found[/red]")
        ctx.exit(1)
    card_id = db.create_card(
        deck_id,
        word,
        definition,
        pronunciation=pronunciation,
        examples=list(examples),
        user_id=ctx.obj["settings"].default_user_id,
    )
    console.print(f"[green]Created card {card_id}: {word}[/green]")


@cli.command()
@click.option("--limit", type=int, default=None, help="Maximum cards to list")
@click.option("--deck-id", type=int, default=None)
@click.pass_context
def due(ctx: click.Context, limit: int | None, deck_id: int | None) -> None:
    """List cards due for review."""
    settings: Settings = ctx.obj["settings"]
    cards = _db(ctx).get_due_cards(
        now=datetime.now(UTC),
        user_id=settings.default_user_id,
        limit=limit or settings.due_card_limit,
        deck_id=deck_id,
    )
    if not cards:
        console.print("[yellow]No cards due[/yellow]")
        return

    table = Table(title=f"Due cards ({len(cards)})")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Word", style="green")
    table.add_column("Interval", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Due")
    for card in cards:
        table.add_row(
            str(card.card_id),
            card.word,
            format_interval(card.interval_days),
            str(card.review_count),
            card.due_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@cli.command()
@click.argument("card_id", type=int)
@click.argument("rating")
@click.option("--response-time-ms", type=int, default=0)
@click.pass_context
def review(ctx: click.Context, card_id: int, rating: str, response_time_ms: int) -> None:
    """Rate a card: again, hard, good, easy or a number 0-5."""
    quality = parse_rating(rating)
    service = ScheduleCard(_db(ctx), EventBus())
    result = asyncio.run(
        service.call(
            ScheduleCardRequest(
                card_id=card_id, quality=quality, response_time_ms=response_time_ms
            )
        )
    )
    if not result.success:
        console.print(f"[red]{result.error_code}: {result.error_message}[/red]")
        ctx.exit(1)

    state = result.state_after
    console.print(
        f"[green]Card {card_id} scheduled in {format_interval(state.interval_days)}"
        f" (due {state.due_at:%Y-%m-%d}), easiness {state.easiness_factor:.2f}[/green]"
    )


async def _run_study_session(
    db: DatabaseManager, settings: Settings, config: SessionConfig
) -> SessionSummary:
    event_bus = EventBus()
    manager = SessionManager(db, ScheduleCard(db, event_bus), event_bus)
    session_id, card_ids = await manager.start_session(
        config, user_id=settings.default_user_id
    )

    for number, card_id in enumerate(card_ids, 1):
        card = db.get_card(card_id)
        console.print(f"\n[bold cyan]{number}/{len(card_ids)}[/bold cyan] {card.word}")
        click.prompt("Press enter to show the answer", default="", show_default=False)
        console.print(f"[green]{card.definition}[/green]")

        quality = click.prompt(
            "Rating (again/hard/good/easy)", value_proc=parse_rating
        )
        try:
            result = await manager.submit_review(session_id, card_id, quality)
        except DomainServiceError as e:
            console.print(f"[red]{e}[/red]")
            break
        if result.success:
            console.print(
                f"Next review in {format_interval(result.state_after.interval_days)}"
            )
        else:
            console.print(f"[red]{result.error_code}: {result.error_message}[/red]")

    return await manager.end_session(session_id)


@cli.command()
@click.option("--deck-id", type=int, default=None)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum reviews in this session",
)
@click.pass_context
def study(ctx: click.Context, deck_id: int | None, limit: int | None) -> None:
    """Review due cards one by one as a study session."""
    settings: Settings = ctx.obj["settings"]
    db = _db(ctx)
    if not db.get_due_cards(
        now=datetime.now(UTC),
        user_id=settings.default_user_id,
        limit=1,
        deck_id=deck_id,
    ):
        console.print("[yellow]No cards due[/yellow]")
        return

    config = SessionConfig(
        max_reviews=limit or settings.max_reviews_per_session, deck_id=deck_id
    )
    summary = asyncio.run(_run_study_session(db, settings, config))
    console.print(
        f"\n[bold]Session complete: {summary.cards_correct}/"
        f"{summary.cards_reviewed} correct[/bold] "
        f"(average quality {summary.average_quality:.1f})"
    )


@cli.command("preview")
@click.argument("card_id", type=int)
@click.pass_context
def preview_card(ctx: click.Context, card_id: int) -> None:
    """Show the next interval behind each rating button."""
    loaded = _db(ctx).get_card_state(card_id)
    if loaded is None:
        console.print(f"[red]Card {card_id} not found[/red]")
        ctx.exit(1)

    state, _ = loaded
    table = Table(title=f"Card {card_id}")
    table.add_column("Rating", style="cyan")
    table.add_column("Next review", style="green")
    for rating, outcome in preview(state, datetime.now(UTC)).items():
        table.add_row(rating.label, format_interval(outcome.interval_days))
    console.print(table)


@cli.command()
@click.option(
    "--ratings",
    required=True,
    help="Comma separated ratings, e.g. good,good,again or 4,4,0",
)
@click.pass_context
def simulate(ctx: click.Context, ratings: str) -> None:
    """Run a new card through a rating sequence without storing anything."""
    now = datetime.now(UTC)
    state = CardSchedulingState.new(now)

    table = Table(title="Simulated schedule")
    table.add_column("#", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Easiness", justify="right")
    table.add_column("Interval", justify="right", style="green")
    table.add_column("Streak", justify="right")

    for number, value in enumerate(ratings.split(","), 1):
        quality = parse_rating(value)
        try:
            state = schedule(state, quality, state.due_at if number > 1 else now)
        except DomainServiceError as e:
            console.print(f"[red]{e}[/red]")
            ctx.exit(1)
        table.add_row(
            str(number),
            str(quality),
            f"{state.easiness_factor:.2f}",
            str(state.interval_days),
            str(state.repetition_count),
        )
    console.print(table)


@cli.command()
@click.option(
    "--timeframe",
    type=click.Choice([t.value for t in Timeframe]),
    default=Timeframe.WEEK.value,
)
@click.option("--deck-id", type=int, default=None)
@click.pass_context
def stats(ctx: click.Context, timeframe: str, deck_id: int | None) -> None:
    """Show streaks, progress and card distributions."""
    settings: Settings = ctx.obj["settings"]
    analytics = ProgressAnalytics(_db(ctx), settings.mastery_repetitions)
    overview = analytics.get_overview(
        datetime.now(UTC),
        user_id=settings.default_user_id,
        timeframe=timeframe,
        deck_id=deck_id,
    )

    console.print("[bold cyan]Learning statistics[/bold cyan]")
    console.print(
        f"Current streak: {overview.streak.current_streak} days "
        f"(longest {overview.streak.longest_streak})"
    )
    progress = overview.progress
    console.print(
        f"Last {timeframe}: {progress.total_sessions} sessions, "
        f"{progress.total_cards_reviewed} cards, {progress.accuracy:.1f}% correct"
    )
    mastery = overview.mastery
    console.print(
        f"Cards: {mastery.total_cards} total, {mastery.cards_due} due, "
        f"{mastery.new_cards} new, {mastery.mastered_cards} mastered "
        f"({mastery.mastery_percentage:.1f}%)"
    )
    console.print(_bucket_table("Easiness", overview.easiness))
    console.print(_bucket_table("Intervals", overview.intervals))


if __name__ == "__main__":
    cli()
