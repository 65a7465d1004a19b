"""tempo CLI: scheduling, pattern analysis and study queues over JSON exports."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from tempo.application.config import resolve_config
from tempo.domain.exceptions import TempoError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="tempo: Adaptive spaced-repetition scheduling engine.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage tempo configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _fail(e: TempoError) -> None:
    typer.secho(f"Error: {e}", fg="red", err=True)
    raise typer.Exit(1)


def _pick_user(loaded, user: str | None) -> str:
    users = loaded.user_ids
    if user is not None:
        if user not in users:
            raise typer.BadParameter(f"User {user!r} not found in export")
        return user
    if len(users) != 1:
        raise typer.BadParameter(f"Export has {len(users)} users; pass --user")
    return users[0]


def _clock_for(now: int | None):
    from tempo.application.utils.clock import fixed_clock, system_clock

    return fixed_clock(now) if now is not None else system_clock


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity."),
    ] = 0,
):
    """Global settings for tempo."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def schedule(
    quality: Annotated[int, typer.Option("--quality", "-q", help="Recall quality, 0-5.")],
    repetition: Annotated[int, typer.Option(help="Current repetition count.")] = 0,
    ease: Annotated[float, typer.Option(help="Current ease factor.")] = 2.5,
    interval: Annotated[int, typer.Option(help="Current interval in days.")] = 1,
    now: Annotated[int | None, typer.Option(help="Epoch ms to schedule from.")] = None,
):
    """[bold green]Schedule[/bold green] one review with plain SM-2."""
    from tempo.application.scheduling.sm2 import Sm2Scheduler
    from tempo.domain.scheduling.models import CardSchedulingState

    clock = _clock_for(now)
    state = CardSchedulingState(
        repetition=repetition, ease_factor=ease, interval=interval, due_date=clock()
    )
    try:
        result = Sm2Scheduler(clock=clock).advance(quality, state)
    except TempoError as e:
        _fail(e)
    _emit({"state": asdict(result.state), "confidence": result.confidence})


@app.command()
def analyze(
    export: Annotated[Path, typer.Argument(help="JSON export with decks, cards and reviews.")],
    user: Annotated[str | None, typer.Option(help="User to analyze.")] = None,
    now: Annotated[int | None, typer.Option(help="Epoch ms to analyze at.")] = None,
):
    """Compute the [bold]learning pattern[/bold], concept mastery and insights."""
    from tempo.application.factory import build_engine
    from tempo.application.insights import build_insights
    from tempo.infrastructure.export_loader import load_export

    async def run():
        loaded = load_export(export)
        user_id = _pick_user(loaded, user)
        engine = build_engine(
            resolve_config(), cards=loaded.cards, reviews=loaded.reviews, clock=_clock_for(now)
        )
        result = await engine.patterns.recompute(user_id)
        masteries = await engine.mastery.get_masteries(user_id)
        insights = build_insights(result.pattern, masteries)
        return {
            "user_id": user_id,
            "reviews_analyzed": result.reviews_analyzed,
            "skipped_reason": result.skipped_reason,
            "pattern": result.pattern.model_dump(mode="json") if result.pattern else None,
            "concepts": {k: asdict(v) for k, v in sorted(masteries.items())},
            "insights": asdict(insights),
        }

    try:
        _emit(asyncio.run(run()))
    except TempoError as e:
        _fail(e)


@app.command("queue")
def queue(
    export: Annotated[Path, typer.Argument(help="JSON export with decks, cards and reviews.")],
    deck: Annotated[str, typer.Option(help="Deck id to build the queue for.")],
    max_cards: Annotated[int | None, typer.Option(help="Queue length.")] = None,
    now: Annotated[int | None, typer.Option(help="Epoch ms to build the queue at.")] = None,
):
    """Build the prioritized [bold]study queue[/bold] for a deck."""
    from tempo.application.factory import build_engine
    from tempo.infrastructure.export_loader import load_export

    async def run():
        loaded = load_export(export)
        owner = next((d.user_id for d in loaded.export.decks if d.id == deck), None)
        if owner is None:
            raise typer.BadParameter(f"Deck {deck!r} not found in export")
        engine = build_engine(
            resolve_config(), cards=loaded.cards, reviews=loaded.reviews, clock=_clock_for(now)
        )
        return await engine.queue.get_queue(owner, deck, max_cards=max_cards)

    try:
        queued = asyncio.run(run())
    except TempoError as e:
        _fail(e)

    if not queued:
        typer.secho("No cards to study.", fg="yellow")
        return
    for position, item in enumerate(queued, start=1):
        typer.echo(f"{position:>3}. {item.card_id}  {item.score:.3f}  {item.reasoning}")


@app.command()
def review(
    export: Annotated[Path, typer.Argument(help="JSON export with decks, cards and reviews.")],
    card: Annotated[str, typer.Option(help="Card id to review.")],
    quality: Annotated[int, typer.Option("--quality", "-q", help="Recall quality, 0-5.")],
    response_time_ms: Annotated[int | None, typer.Option(help="Answer time in ms.")] = None,
    now: Annotated[int | None, typer.Option(help="Epoch ms of the review.")] = None,
):
    """Submit a review against an export and show the adaptive schedule."""
    from tempo.application.factory import build_engine
    from tempo.application.review_service import ReviewSubmission
    from tempo.infrastructure.export_loader import load_export

    async def run():
        loaded = load_export(export)
        target = next((c for c in loaded.export.cards if c.id == card), None)
        if target is None:
            raise typer.BadParameter(f"Card {card!r} not found in export")
        engine = build_engine(
            resolve_config(), cards=loaded.cards, reviews=loaded.reviews, clock=_clock_for(now)
        )
        outcome = await engine.reviewer.submit_review(
            target.user_id,
            ReviewSubmission(card_id=card, quality=quality, response_time_ms=response_time_ms),
        )
        await engine.tasks.close()
        return outcome

    try:
        outcome = asyncio.run(run())
    except TempoError as e:
        _fail(e)
    _emit(asdict(outcome))


@app.command()
def version():
    """Print the tempo version."""
    from tempo import __version__

    typer.echo(__version__)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    app()
