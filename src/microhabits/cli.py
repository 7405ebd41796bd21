"""Command-line interface for MicroHabits."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .domain.errors import HabitError
from .logging_config import setup_logging
from .models.habit import Habit
from .services import users
from .services.clock import FixedClock


def _parse_instant(ctx, param, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter(f"expected an ISO-8601 timestamp, got {value!r}") from exc


def _format_habit(habit: Habit) -> str:
    mark = "x" if habit.completed else " "
    label = f"{habit.emoji} {habit.name}" if habit.emoji else habit.name
    days = "day" if habit.streak == 1 else "days"
    return f"[{mark}] {habit.id}. {label} ({habit.streak} {days})"


@click.group()
@click.option("--user", "username", default=None, help="Profile name (defaults to MICROHABITS_USER).")
@click.option(
    "--at",
    "at",
    callback=_parse_instant,
    default=None,
    help="Evaluate as if it were this ISO-8601 instant.",
)
@click.pass_context
def cli(ctx: click.Context, username: Optional[str], at: Optional[datetime]) -> None:
    """Track small daily habits and their streaks."""

    config = BaseConfig()
    setup_logging(config)
    clock = FixedClock(at) if at is not None else None
    app = create_app_context(config, clock=clock, username=username)
    ctx.obj = app
    ctx.call_on_close(app.close)


@cli.command("list")
@click.pass_obj
def list_habits(app: AppContext) -> None:
    """Show habits in the order they were added."""

    uid = app.require_user_id()
    habits = app.habit_service.list_habits(user_id=uid)
    if not habits:
        click.echo("No habits added yet.")
        return
    for habit in habits:
        click.echo(_format_habit(habit))
    if not app.habit_service.can_add_habit(user_id=uid):
        click.echo(f"Free plan limited to {app.config.FREE_HABIT_LIMIT} habits.")


@cli.command("add")
@click.argument("name")
@click.option("--emoji", default=None, help="Optional emoji shown next to the habit.")
@click.pass_obj
def add_habit(app: AppContext, name: str, emoji: Optional[str]) -> None:
    """Add a new habit."""

    try:
        habit = app.habit_service.add_habit(name, emoji, user_id=app.require_user_id())
    except (HabitError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Added {_format_habit(habit)}")


@cli.command("toggle")
@click.argument("habit_id", type=int)
@click.pass_obj
def toggle_habit(app: AppContext, habit_id: int) -> None:
    """Mark a habit done for today, or undo today's check-in."""

    try:
        habit = app.habit_service.toggle_habit(habit_id, user_id=app.require_user_id())
    except HabitError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(_format_habit(habit))


@cli.command("rename")
@click.argument("habit_id", type=int)
@click.argument("name")
@click.option("--emoji", default=None, help="Replacement emoji (omit to clear).")
@click.pass_obj
def rename_habit(app: AppContext, habit_id: int, name: str, emoji: Optional[str]) -> None:
    """Change a habit's name or emoji."""

    try:
        habit = app.habit_service.rename_habit(habit_id, name, emoji, user_id=app.require_user_id())
    except (HabitError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(_format_habit(habit))


@cli.command("delete")
@click.argument("habit_id", type=int)
@click.option("--yes", is_flag=True, default=False, help="Skip the confirmation prompt.")
@click.pass_obj
def delete_habit(app: AppContext, habit_id: int, yes: bool) -> None:
    """Delete a habit and its streak."""

    if not yes:
        click.confirm(f"Delete habit {habit_id}?", abort=True)
    try:
        app.habit_service.delete_habit(habit_id, user_id=app.require_user_id())
    except HabitError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted habit {habit_id}")


@cli.command("reconcile")
@click.pass_obj
def reconcile(app: AppContext) -> None:
    """Reset completion flags left over from previous days."""

    try:
        cleared = app.habit_service.reconcile(user_id=app.require_user_id())
    except HabitError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Reset {len(cleared)} habit(s)")


@cli.command("upgrade")
@click.option("--off", "downgrade", is_flag=True, default=False, help="Return to the free plan.")
@click.pass_obj
def upgrade(app: AppContext, downgrade: bool) -> None:
    """Toggle Pro (unlimited habits) for the current profile."""

    uid = app.require_user_id()
    if downgrade:
        users.downgrade(uid, app.user_repo)
        click.echo("Free plan active")
    else:
        users.upgrade_to_pro(uid, app.user_repo)
        click.echo("Pro active: unlimited habits")


@cli.command("watch")
@click.pass_obj
def watch(app: AppContext) -> None:
    """Keep completion flags in step with midnight until interrupted."""

    stop = threading.Event()
    with app.scheduler.session(app.require_user_id()) as handle:
        click.echo(
            f"Reconciling every {app.scheduler.interval_seconds}s "
            f"(reset {len(handle.last_cleared)} on start). Press Ctrl+C to stop."
        )
        try:
            stop.wait()
        except KeyboardInterrupt:
            click.echo("Stopping")


def main() -> None:
    cli(prog_name="microhabits")


if __name__ == "__main__":  # pragma: no cover
    main()
