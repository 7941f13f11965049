#!/usr/bin/env python3
"""
ride-progression CLI.

Track zone progression levels and training load for cycling workouts.

Usage:
    ride-progression status                    # Loads, levels and insights
    ride-progression zones                     # Power ranges at current FTP
    ride-progression log --zone threshold --level 4.5 --rpe 7 --duration 60 --np 228
    ride-progression history --limit 20
    ride-progression classify <id> --zone endurance --level 3 --rpe 4
    ride-progression delete <id>
    ride-progression set-ftp 250
    ride-progression import-json backup.json
    ride-progression import-csv activities.csv
    ride-progression export out.json
    ride-progression sync-icu                  # Import rides from intervals.icu
    ride-progression sync-drive                # Back up / restore via Google Drive
    ride-progression report                    # Markdown summary for analysis
"""

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich.text import Text

from .analysis.insights import InsightSeverity
from .analysis.report import build_analysis_report
from .config import Settings, get_settings
from .exceptions import RideProgressionError, StorageError
from .importers.csv_import import parse_csv
from .importers.json_import import read_snapshot_file
from .integrations.base import AuthenticationError, IntegrationError
from .integrations.drive import DriveClient
from .integrations.intervals import IntervalsClient
from .metrics.progression import describe_change
from .metrics.zones import ZONES, get_zone_name, power_range, progression_zones
from .services.importer import ActivityImportService
from .services.store import TrainingStore
from .services.sync import SyncCoordinator
from .utils.atomic_write import atomic_write
from .utils.log_sanitizer import configure_logging

console = Console()

SEVERITY_COLORS = {
    InsightSeverity.INFO: "blue",
    InsightSeverity.CAUTION: "yellow",
    InsightSeverity.WARNING: "red",
    InsightSeverity.POSITIVE: "green",
}


def format_tsb_rich(tsb: float) -> Text:
    """Format TSB with rich colors."""
    if tsb > 5:
        return Text(f"{tsb:+.1f} (Fresh)", style="green")
    if tsb < -30:
        return Text(f"{tsb:+.1f} (Very Fatigued)", style="red")
    if tsb < -10:
        return Text(f"{tsb:+.1f} (Fatigued)", style="yellow")
    return Text(f"{tsb:+.1f} (Neutral)", style="white")


def format_change_rich(change: Optional[float]) -> Text:
    if change is None:
        return Text("-", style="dim")
    if change > 0:
        return Text(f"+{change:.2f}", style="green")
    if change < 0:
        return Text(f"{change:.2f}", style="red")
    return Text("0.00", style="dim")


def cmd_status(args, store: TrainingStore):
    """Show training loads, levels and insights."""
    console.print()
    console.print(Panel("[bold]Ride Progression - Status[/bold]"))
    console.print()

    loads = store.training_loads()
    status_text = Text()
    status_text.append(f"Fitness (CTL):  {loads.ctl:.1f}\n")
    status_text.append(f"Fatigue (ATL):  {loads.atl:.1f}\n")
    status_text.append("Form (TSB):     ")
    status_text.append_text(format_tsb_rich(loads.tsb))
    status_text.append(f"\nThis week TSS: {loads.weekly_tss:.0f}  (last week {loads.prev_weekly_tss:.0f})")
    console.print(Panel(status_text, title=f"FTP {store.ftp}W", box=box.ROUNDED))
    console.print()

    levels = store.levels
    changes = store.recent_changes()
    table = Table(title="Zone Levels", box=box.ROUNDED)
    table.add_column("Zone", style="cyan")
    table.add_column("Power", justify="right")
    table.add_column("Level", justify="right", style="bold")
    table.add_column("Last change", justify="right")
    for zone in progression_zones():
        change = changes.get(zone.id, {}).get("change")
        table.add_row(
            zone.name,
            power_range(zone.id, store.ftp).format(),
            f"{levels[zone.id]:.1f}",
            format_change_rich(change),
        )
    console.print(table)
    console.print()

    pending = store.unclassified()
    if pending:
        console.print(f"[yellow]{len(pending)} imported rides waiting to be classified.[/yellow]")
        console.print("Run 'ride-progression history --unclassified' to see them.")
        console.print()

    for insight in store.insights():
        color = SEVERITY_COLORS.get(insight.severity, "white")
        console.print(f"[{color}]- {insight.message}[/{color}]")
    console.print()


def cmd_zones(args, store: TrainingStore):
    """Show zone power ranges at the current FTP."""
    table = Table(title=f"Power Zones (FTP {store.ftp}W)", box=box.ROUNDED)
    table.add_column("Zone", style="cyan")
    table.add_column("% FTP", justify="right")
    table.add_column("Watts", justify="right")
    for zone in ZONES:
        upper = f"{zone.max_fraction * 100:.0f}%" if zone.max_fraction is not None else "+"
        table.add_row(
            zone.name,
            f"{zone.min_fraction * 100:.0f}% - {upper}",
            power_range(zone.id, store.ftp).format(),
        )
    console.print()
    console.print(table)
    console.print()


def cmd_log(args, store: TrainingStore):
    """Log a completed or failed workout."""
    record = store.log_workout(
        workout_date=args.date or date.today().isoformat(),
        zone=args.zone,
        workout_level=args.level,
        rpe=args.rpe,
        completed=not args.failed,
        duration=args.duration,
        normalized_power=args.np,
        notes=args.notes or "",
    )
    console.print()
    console.print(f"[green]Logged {get_zone_name(record.zone)} workout ({record.tss:.0f} TSS).[/green]")
    if record.progression is not None:
        progression = record.progression
        console.print(
            f"Level {progression.previous_level:.1f} -> {progression.new_level:.1f} "
            f"({describe_change(progression.change)})"
        )
    console.print(f"Id: {record.id}")
    console.print()


def cmd_history(args, store: TrainingStore):
    """List recent workouts."""
    records = store.unclassified() if args.unclassified else store.history
    if not records:
        console.print("No workouts recorded.")
        return

    table = Table(title="Workout History", box=box.ROUNDED)
    table.add_column("Date", no_wrap=True)
    table.add_column("Zone", style="cyan")
    table.add_column("Dur", justify="right")
    table.add_column("NP", justify="right")
    table.add_column("TSS", justify="right")
    table.add_column("RPE", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Id", style="dim", overflow="fold")
    for record in records[: args.limit]:
        change = record.progression.change if record.progression else None
        table.add_row(
            record.date,
            get_zone_name(record.zone),
            f"{record.duration}m",
            f"{record.normalized_power:.0f}W" if record.normalized_power else "-",
            f"{record.tss:.0f}" if record.tss is not None else "-",
            str(record.rpe) if record.rpe is not None else "-",
            format_change_rich(change),
            record.id,
        )
    console.print()
    console.print(table)
    console.print()


def cmd_classify(args, store: TrainingStore):
    """Assign a zone to an imported ride."""
    completed = None
    if args.failed:
        completed = False
    record = store.classify_workout(args.id, args.zone, args.level, args.rpe, completed)
    console.print(f"[green]Classified {record.date} ride as {get_zone_name(record.zone)}.[/green]")
    if record.progression is not None:
        console.print(describe_change(record.progression.change))


def cmd_delete(args, store: TrainingStore):
    record = store.delete_workout(args.id)
    console.print(f"Deleted {record.date} workout {record.id}.")


def cmd_set_ftp(args, store: TrainingStore):
    store.set_ftp(args.ftp)
    console.print(f"[green]FTP set to {store.ftp}W.[/green]")


def cmd_import_json(args, store: TrainingStore):
    """Replace local data with an exported snapshot."""
    snapshot = read_snapshot_file(args.path, default_ftp=store.ftp)
    if store.history and not args.yes:
        console.print(
            f"[yellow]This replaces {len(store.history)} local rides with "
            f"{snapshot.ride_count} from {args.path}. Re-run with --yes to confirm.[/yellow]"
        )
        return
    store.replace_from_snapshot(snapshot)
    console.print(f"[green]Imported {snapshot.ride_count} rides.[/green]")


def cmd_import_csv(args, store: TrainingStore):
    """Stage rides from a CSV export as unclassified records."""
    try:
        text = Path(args.path).read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Could not read {args.path}: {e}", path=args.path) from e
    parsed = parse_csv(text)
    result = ActivityImportService(store).import_candidates(parsed.candidates)
    if parsed.missing_columns:
        console.print(f"[yellow]No column found for: {', '.join(parsed.missing_columns)}.[/yellow]")
    if parsed.skipped_rows:
        console.print(f"[yellow]{parsed.skipped_rows} rows had no date, power or load.[/yellow]")
    console.print(result.summary())


def cmd_export(args, store: TrainingStore):
    """Write the full snapshot as JSON."""
    data = store.to_snapshot().to_dict()
    if args.path == "-":
        console.print_json(json.dumps(data))
        return
    try:
        with atomic_write(Path(args.path)) as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        raise StorageError(f"Could not write {args.path}: {e}", path=args.path) from e
    console.print(f"[green]Exported {len(store.history)} rides to {args.path}.[/green]")


def cmd_report(args, store: TrainingStore):
    """Print the markdown analysis report."""
    history = store.history
    report = build_analysis_report(store.training_loads(), store.levels, history, store.insights())
    # Plain print so the markdown can be piped or copied as-is
    print(report)


async def _sync_icu(args, store: TrainingStore, settings: Settings):
    client = IntervalsClient(
        athlete_id=settings.intervals_athlete_id,
        api_key=settings.intervals_api_key,
        base_url=settings.intervals_base_url,
        timeout=settings.http_timeout_seconds,
        max_retries=settings.max_retries,
        max_backoff=settings.max_backoff_seconds,
    )
    service = ActivityImportService(store)
    async with client:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Fetching activities", total=None)

            def on_progress(done: int, total: int) -> None:
                progress.update(task, completed=done, total=total)

            return await service.import_from_intervals(
                client,
                oldest=args.oldest or settings.intervals_oldest,
                progress=on_progress,
            )


def cmd_sync_icu(args, store: TrainingStore, settings: Settings):
    """Import rides from intervals.icu."""
    console.print()
    console.print(Panel("[bold]Ride Progression - intervals.icu Import[/bold]"))
    console.print()
    result = asyncio.run(_sync_icu(args, store, settings))
    console.print(result.summary())
    if result.suggested_ftp:
        console.print(f"Run 'ride-progression set-ftp {result.suggested_ftp}' to use it.")
    console.print()


def _drive_token_provider(settings: Settings):
    async def provide() -> str:
        if not settings.drive_access_token:
            raise AuthenticationError(
                "Set RIDE_PROGRESSION_DRIVE_ACCESS_TOKEN to a Google Drive OAuth token",
                "google_drive",
            )
        return settings.drive_access_token

    return provide


async def _sync_drive(store: TrainingStore, settings: Settings):
    drive = DriveClient(
        _drive_token_provider(settings),
        filename=settings.drive_backup_filename,
        timeout=settings.http_timeout_seconds,
    )
    async with drive:
        return await SyncCoordinator(drive).sync_store(store)


def cmd_sync_drive(args, store: TrainingStore, settings: Settings):
    """Back up to or restore from Google Drive."""
    result = asyncio.run(_sync_drive(store, settings))
    if result.success:
        console.print(f"[green]{result.message}[/green]")
    else:
        console.print(f"[red]Sync failed: {result.message}[/red]")
        if result.rate_limited and result.retry_after:
            console.print(f"Retry in about {result.retry_after}s.")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ride-progression",
        description="Zone progression levels and training load for cycling",
    )
    parser.add_argument("--data", type=Path, help="Data file (default from settings)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at INFO level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("status", help="Show loads, levels and insights")
    subparsers.add_parser("zones", help="Show power zones at current FTP")

    log_p = subparsers.add_parser("log", help="Log a workout")
    log_p.add_argument("--zone", "-z", required=True, help="Zone id (e.g. threshold)")
    log_p.add_argument("--level", "-l", type=float, required=True, help="Workout level (1-10)")
    log_p.add_argument("--rpe", "-r", type=int, required=True, help="Perceived effort (1-10)")
    log_p.add_argument("--duration", "-d", type=int, required=True, help="Duration in minutes")
    log_p.add_argument("--np", type=float, required=True, help="Normalized power in watts")
    log_p.add_argument("--date", help="Workout date (YYYY-MM-DD, default today)")
    log_p.add_argument("--failed", action="store_true", help="Workout was not completed")
    log_p.add_argument("--notes", help="Free-text notes")

    history_p = subparsers.add_parser("history", help="List workouts")
    history_p.add_argument("--limit", "-n", type=int, default=20, help="Rows to show")
    history_p.add_argument("--unclassified", action="store_true", help="Only imported rides without a zone")

    classify_p = subparsers.add_parser("classify", help="Assign a zone to an imported ride")
    classify_p.add_argument("id", help="Workout id")
    classify_p.add_argument("--zone", "-z", required=True)
    classify_p.add_argument("--level", "-l", type=float, required=True)
    classify_p.add_argument("--rpe", "-r", type=int, required=True)
    classify_p.add_argument("--failed", action="store_true")

    delete_p = subparsers.add_parser("delete", help="Delete a workout")
    delete_p.add_argument("id", help="Workout id")

    ftp_p = subparsers.add_parser("set-ftp", help="Set functional threshold power")
    ftp_p.add_argument("ftp", type=int)

    json_p = subparsers.add_parser("import-json", help="Replace data with an exported snapshot")
    json_p.add_argument("path")
    json_p.add_argument("--yes", "-y", action="store_true", help="Overwrite existing rides")

    csv_p = subparsers.add_parser("import-csv", help="Import rides from a CSV export")
    csv_p.add_argument("path")

    export_p = subparsers.add_parser("export", help="Export all data as JSON")
    export_p.add_argument("path", nargs="?", default="-", help="Output file ('-' for stdout)")

    icu_p = subparsers.add_parser("sync-icu", help="Import rides from intervals.icu")
    icu_p.add_argument("--oldest", help="Earliest date to import (YYYY-MM-DD)")

    subparsers.add_parser("sync-drive", help="Sync with the Google Drive backup")
    subparsers.add_parser("report", help="Print a markdown analysis report")
    return parser


COMMANDS = {
    "status": cmd_status,
    "zones": cmd_zones,
    "log": cmd_log,
    "history": cmd_history,
    "classify": cmd_classify,
    "delete": cmd_delete,
    "set-ftp": cmd_set_ftp,
    "import-json": cmd_import_json,
    "import-csv": cmd_import_csv,
    "export": cmd_export,
    "report": cmd_report,
}

NETWORK_COMMANDS = {
    "sync-icu": cmd_sync_icu,
    "sync-drive": cmd_sync_drive,
}


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging("INFO" if args.verbose else settings.log_level)

    if args.command is None:
        parser.print_help()
        return

    try:
        store = TrainingStore.load(args.data or settings.data_path, default_ftp=settings.default_ftp)
        if args.command in NETWORK_COMMANDS:
            NETWORK_COMMANDS[args.command](args, store, settings)
        else:
            COMMANDS[args.command](args, store)
    except RideProgressionError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)
    except IntegrationError as e:
        console.print(f"[red]{e.provider or 'Integration'} error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
