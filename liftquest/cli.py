from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer

from .catalog import categories_for_focus, iter_categories
from .config import as_dict as config_as_dict, get_config
from .env import get_env
from .ledger import ProgressionLedger, RecordResult
from .leveling import DEFAULT_LADDER
from .models import FOCUS_GROUPS, STAT_NAMES, ValidationError, parse_timestamp, validate_focus_group
from .reports import export_history_csv, history_to_dataframe, render_summary_table, weekly_summary
from .storage import StorageError, load_snapshot, snapshot_file, try_save_snapshot

app = typer.Typer(help="Turn logged workouts into levels, stats, loot and quests.")


def _fail(message: str, *, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _configure_logging() -> None:
    level_name = (get_env("LOG_LEVEL") or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_ledger() -> ProgressionLedger:
    config = get_config()
    try:
        payload = load_snapshot()
    except StorageError as exc:
        _fail(f"Could not load progress: {exc}")
    if payload is None:
        return ProgressionLedger.from_config(config)
    try:
        return ProgressionLedger.from_snapshot(
            payload,
            seed=config.random_seed,
            default_bodyweight_kg=config.bodyweight_kg,
        )
    except (KeyError, ValueError) as exc:
        _fail(f"Snapshot at {snapshot_file()} is unreadable: {exc}")


def _persist(ledger: ProgressionLedger) -> None:
    if not try_save_snapshot(ledger.snapshot()):
        typer.secho(
            "Warning: progress could not be saved; changes are kept for this run only.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_level(level: int) -> str:
    stars = DEFAULT_LADDER.prestige_stars(level)
    display = DEFAULT_LADDER.display_level(level)
    return f"{display}" + (f" {'*' * stars}" if stars else "")


@app.callback()
def _main_callback() -> None:
    _configure_logging()


@app.command()
def log(
    category: str = typer.Argument(..., help="Exercise category id (see `liftquest catalog`)."),
    reps: Optional[float] = typer.Option(None, "--reps", "-r", help="Repetitions performed."),
    weight_kg: Optional[float] = typer.Option(None, "--weight", "-w", help="External load in kilograms."),
    duration_min: Optional[float] = typer.Option(None, "--duration", "-m", help="Duration in minutes."),
    distance_km: Optional[float] = typer.Option(None, "--distance", "-k", help="Distance in kilometres."),
    when: Optional[str] = typer.Option(
        None,
        "--date",
        "-d",
        help="ISO date or timestamp (defaults to now). Back-dated entries trigger a replay.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show stats, chests and quest detail."),
) -> None:
    """
    Log a workout.

    Examples:
        liftquest log bench_press --weight 80 --reps 5
        liftquest log running --distance 5 --duration 25
    """
    ledger = _load_ledger()
    try:
        result: RecordResult = ledger.record_workout(
            category,
            reps=reps,
            weight_kg=weight_kg,
            duration_min=duration_min,
            distance_km=distance_km,
            timestamp=when,
        )
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    _persist(ledger)
    typer.echo(result.confirmation)
    for message in result.messages:
        typer.secho(f" ! {message}", fg=typer.colors.YELLOW)
    if result.chests:
        typer.echo(f" + {len(result.chests)} treasure chest(s) earned; run `liftquest chests`.")
    if verbose and result.verbose_tokens:
        typer.echo(" • " + "; ".join(result.verbose_tokens))


@app.command()
def edit(
    entry_id: str = typer.Argument(..., help="Workout id from `liftquest history`."),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="New exercise category."),
    reps: Optional[float] = typer.Option(None, "--reps", "-r"),
    weight_kg: Optional[float] = typer.Option(None, "--weight", "-w"),
    duration_min: Optional[float] = typer.Option(None, "--duration", "-m"),
    distance_km: Optional[float] = typer.Option(None, "--distance", "-k"),
    when: Optional[str] = typer.Option(None, "--date", "-d"),
) -> None:
    """
    Change a past workout and rebuild progression from the full history.
    """
    ledger = _load_ledger()
    try:
        entry = ledger.get_entry(entry_id)
        updated = replace(
            entry,
            category=category or entry.category,
            reps=int(reps) if reps is not None else entry.reps,
            weight_kg=weight_kg if weight_kg is not None else entry.weight_kg,
            duration_min=duration_min if duration_min is not None else entry.duration_min,
            distance_km=distance_km if distance_km is not None else entry.distance_km,
            timestamp=parse_timestamp(when) if when else entry.timestamp,
        )
        ledger.edit_workout(updated)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    _persist(ledger)
    typer.echo(f"Updated {entry_id}; level {_format_level(ledger.profile.level)}.")


@app.command()
def delete(
    entry_id: str = typer.Argument(..., help="Workout id from `liftquest history`."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """
    Delete a workout and rebuild progression from the remaining history.
    """
    ledger = _load_ledger()
    if not yes:
        typer.confirm(f"Delete workout {entry_id}?", abort=True)
    try:
        ledger.delete_workout(entry_id)
    except ValidationError as exc:
        _fail(str(exc))
    _persist(ledger)
    typer.echo(f"Deleted {entry_id}; level {_format_level(ledger.profile.level)}.")


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of most recent workouts to show."),
) -> None:
    """
    List recent workouts, newest last.
    """
    ledger = _load_ledger()
    if not ledger.history:
        typer.echo("No workouts logged yet.")
        return
    for entry in ledger.history[-limit:]:
        detail = f"{entry.timestamp.date().isoformat()}  {entry.category:<20} +{entry.exp_gained:5.1f} XP"
        if entry.est_1rm is not None:
            detail += f"  1RM {entry.est_1rm:.1f} kg"
        if entry.new_level != entry.prev_level:
            detail += f"  level {entry.prev_level} -> {entry.new_level}"
        typer.echo(f"{entry.id}  {detail}")


@app.command()
def profile() -> None:
    """
    Show level, attributes, ranks and personal bests.
    """
    ledger = _load_ledger()
    user = ledger.profile
    typer.echo(
        f"Level {_format_level(user.level)} (overall {user.level}) "
        f"{user.xp:.1f}/{user.next_level_xp:.1f} XP  coins {user.coins}  class {user.active_class}"
    )
    stats = user.stats.to_dict()
    typer.echo("Stats: " + ", ".join(f"{name} {stats[name]:.1f}" for name in STAT_NAMES))
    typer.echo("Ranks: " + ", ".join(f"{focus} {user.ranks.get(focus, 1)}" for focus in FOCUS_GROUPS))
    if user.best_1rm:
        typer.echo("Best 1RM: " + ", ".join(f"{key} {value:.1f} kg" for key, value in sorted(user.best_1rm.items())))
    if user.inventory:
        typer.echo("Inventory: " + ", ".join(str(item.get("name")) for item in user.inventory))


@app.command()
def chests(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include opened chests."),
) -> None:
    """
    List earned treasure chests.
    """
    ledger = _load_ledger()
    listed = [chest for chest in ledger.profile.treasure_chests if show_all or not chest.is_opened]
    if not listed:
        typer.echo("No chests to show.")
        return
    for chest in listed:
        state = "opened" if chest.is_opened else "sealed"
        typer.echo(f"{chest.id[:8]}  {chest.tier:<9} level {chest.earned_at_level:<3} {state}")


@app.command("open-chest")
def open_chest(chest_id: str = typer.Argument(..., help="Chest id (a unique prefix is enough).")) -> None:
    """
    Open a chest and bank its rewards.
    """
    ledger = _load_ledger()
    matches = [chest.id for chest in ledger.profile.treasure_chests if chest.id.startswith(chest_id)]
    if len(matches) != 1:
        _fail(f"No unique chest matches {chest_id!r}.")
    try:
        rewards = ledger.open_chest(matches[0])
    except ValidationError as exc:
        _fail(str(exc))
    if not rewards:
        typer.echo("That chest is already open.")
        return
    _persist(ledger)
    for reward in rewards:
        typer.echo(f" + {reward.description}")


@app.command()
def challenges() -> None:
    """
    Show today's and this week's challenges (generating new ones when due).
    """
    ledger = _load_ledger()
    ledger.refresh_challenges()
    _persist(ledger)
    if not ledger.profile.challenges:
        typer.echo("No active challenges.")
        return
    for challenge in ledger.profile.challenges:
        state = "done" if challenge.is_completed else f"{challenge.progress:g}/{challenge.target_amount:g}"
        typer.echo(
            f"{challenge.period:<6} {challenge.target_focus:<11} {challenge.kind:<7} "
            f"{state:>9} {challenge.unit:<9} +{challenge.exp_reward:.0f} XP"
        )


@app.command()
def prefer(
    focus: str = typer.Argument(..., help=f"Focus group ({', '.join(FOCUS_GROUPS)})."),
    unit: str = typer.Argument(..., help="Challenge unit (sets, reps, time, distance, frequency)."),
) -> None:
    """
    Set the unit used for future challenges of a focus group.
    """
    ledger = _load_ledger()
    try:
        ledger.set_challenge_preference(focus, unit)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _persist(ledger)
    typer.echo(f"Future {focus.lower()} challenges will use {unit.lower()}.")


@app.command("class")
def choose_class(name: str = typer.Argument(..., help="Character class name.")) -> None:
    """
    Switch character class; new challenges follow its focus groups.
    """
    ledger = _load_ledger()
    try:
        ledger.set_active_class(name)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _persist(ledger)
    typer.echo(f"Class set to {ledger.profile.active_class} ({', '.join(ledger.profile.focus_groups)}).")


@app.command()
def bodyweight(kg: float = typer.Argument(..., help="Bodyweight in kilograms.")) -> None:
    """
    Update bodyweight and rebuild progression with it.
    """
    ledger = _load_ledger()
    try:
        ledger.set_bodyweight(kg)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _persist(ledger)
    typer.echo(f"Bodyweight set to {kg:g} kg; level {_format_level(ledger.profile.level)}.")


@app.command()
def replay() -> None:
    """
    Rebuild level, stats, baselines and ranks from the full history.
    """
    ledger = _load_ledger()
    ledger.recalculate_stats_and_xp()
    _persist(ledger)
    typer.echo(f"Replayed {len(ledger.history)} workouts; level {_format_level(ledger.profile.level)}.")


@app.command()
def summary() -> None:
    """
    Weekly totals of sessions, XP, stat growth, PRs and level-ups.
    """
    ledger = _load_ledger()
    table = weekly_summary(history_to_dataframe(ledger.history))
    if table.empty:
        typer.echo("No workouts logged yet.")
        return
    typer.echo(render_summary_table(table))


@app.command()
def export(
    output: Path = typer.Argument(Path("liftquest_history.csv"), help="Destination CSV path."),
) -> None:
    """
    Export workout history to CSV.
    """
    ledger = _load_ledger()
    try:
        target = export_history_csv(ledger.history, output.expanduser())
    except OSError as exc:
        _fail(f"Could not export history: {exc}")
    typer.echo(f"Exported {len(ledger.history)} workouts to {target}")


@app.command()
def catalog(
    focus: Optional[str] = typer.Option(None, "--focus", "-f", help="Only list one focus group."),
) -> None:
    """
    List exercise categories.
    """
    if focus:
        try:
            categories = categories_for_focus(validate_focus_group(focus))
        except ValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc
    else:
        categories = list(iter_categories())
    for category in categories:
        typer.echo(f"{category.id:<22} {category.focus:<11} {category.name}")


@app.command("config")
def config_show() -> None:
    """
    Show the effective configuration.
    """
    config = config_as_dict()
    typer.echo(f"Config source: {config.get('source')}")
    typer.echo(f"Bodyweight: {config.get('bodyweight_kg')} kg")
    typer.echo(f"Class: {config.get('active_class')} ({', '.join(config.get('focus_groups', []))})")
    typer.echo(f"Random seed: {config.get('random_seed')}")
    preferences = config.get("challenge_preferences", {})
    typer.echo("Challenge units: " + ", ".join(f"{key}={value}" for key, value in preferences.items()))
    typer.echo(f"Snapshot: {snapshot_file()}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
