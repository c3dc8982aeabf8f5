"""
Composition root: builds the stores once at start-up and hands them to the
taskpad and the background scheduler.
"""

import argparse
import asyncio
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from .analytics import Analytics
from .backup import AutoBackup
from .clock import Clock, SystemClock
from .config import Settings, load_settings
from .errors import DeskpadError, LoggingErrorReporter
from .export import Dashboard, export_filename, export_json, import_bundle
from .history import HistoryStack
from .links import LinkStore
from .logger import setup_logger
from .persistence import FileAdapter, PersistenceAdapter, WriteCoalescer
from .preferences import Preferences, RetirementTimer
from .scheduler import Scheduler
from .store import NoteStore, ProjectStore, TaskStore
from .tags import TagColors

BACKUP_CHECK_INTERVAL = 60 * 60


@dataclass
class Services:
    adapter: PersistenceAdapter
    reporter: LoggingErrorReporter
    coalescer: WriteCoalescer
    tasks: TaskStore
    notes: NoteStore
    projects: ProjectStore
    links: LinkStore
    tag_colors: TagColors
    preferences: Preferences
    timer: RetirementTimer
    analytics: Analytics
    dashboard: Dashboard
    backup: AutoBackup
    scheduler: Scheduler


def build_services(settings: Settings, adapter: Optional[PersistenceAdapter] = None,
                   clock: Optional[Clock] = None) -> Services:
    adapter = adapter or FileAdapter(settings.data_dir)
    clock = clock or SystemClock()
    reporter = LoggingErrorReporter()
    coalescer = WriteCoalescer(settings.write_delay)

    def store_kwargs():
        return dict(clock=clock, reporter=reporter, history=HistoryStack(), coalescer=coalescer)

    tasks = TaskStore(adapter, **store_kwargs())
    notes = NoteStore(adapter, **store_kwargs())
    projects = ProjectStore(adapter, **store_kwargs())
    links = LinkStore(adapter, reporter=reporter, history=HistoryStack(), coalescer=coalescer)
    preferences = Preferences(adapter, reporter=reporter)
    timer = RetirementTimer(adapter, clock=clock, reporter=reporter)
    dashboard = Dashboard(links=links, tasks=tasks, preferences=preferences, timer=timer, notes=notes)
    backup = AutoBackup(adapter, dashboard, clock=clock, reporter=reporter)

    scheduler = Scheduler()
    scheduler.register("links_backup", settings.backup_interval or 300, backup.snapshot_links)
    scheduler.register("auto_backup", BACKUP_CHECK_INTERVAL, backup.run_if_due)

    return Services(
        adapter=adapter,
        reporter=reporter,
        coalescer=coalescer,
        tasks=tasks,
        notes=notes,
        projects=projects,
        links=links,
        tag_colors=TagColors(adapter, reporter=reporter),
        preferences=preferences,
        timer=timer,
        analytics=Analytics(tasks, projects, clock),
        dashboard=dashboard,
        backup=backup,
        scheduler=scheduler,
    )


def attach_to_loop(services: Services) -> None:
    """Hand timer work to the running event loop so stores stay single-threaded."""
    loop = asyncio.get_running_loop()
    services.coalescer.dispatch = loop.call_soon_threadsafe
    services.scheduler.dispatch = loop.call_soon_threadsafe
    services.scheduler.start()


def run_shell(services: Services) -> None:
    from .app import Taskpad

    if services.backup.run_if_due():
        print("Automatic backup completed")
    if services.backup.needs_reminder():
        print("It's been a while since your last backup. Run `deskpad export` to create one.")
        services.backup.mark_reminded()
    try:
        Taskpad(
            services.tasks,
            services.notes,
            links=services.links,
            preferences=services.preferences,
            tag_colors=services.tag_colors,
            reporter=services.reporter,
            projects=services.projects,
        ).run(pre_run=lambda: attach_to_loop(services))
    finally:
        services.scheduler.shutdown()
        services.scheduler.dispatch = None
        services.coalescer.dispatch = None
        services.coalescer.flush()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="deskpad", description="Local-first tasks, notes and bookmarks")
    parser.add_argument("--env-file", help="Read settings from this .env file")
    sub = parser.add_subparsers(dest="command")
    export_parser = sub.add_parser("export", help="Write all data to a JSON bundle")
    export_parser.add_argument("path", nargs="?", help="Output file (default: timestamped name)")
    import_parser = sub.add_parser("import", help="Replace data with a JSON bundle")
    import_parser.add_argument("path")
    sub.add_parser("stats", help="Print productivity statistics")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.env_file)
    except RuntimeError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logger = setup_logger(settings.log_dir, settings.log_level)
    logger.info(f"Starting deskpad with data in {settings.data_dir}")
    if args.command is not None:
        # One-shot commands have no event loop; write straight through
        settings = replace(settings, write_delay=0)
    services = build_services(settings)

    try:
        if args.command == "export":
            path = Path(args.path or export_filename(SystemClock().now()))
            path.write_text(export_json(services.dashboard, services.adapter), encoding="utf-8")
            print(f"Exported to {path}")
        elif args.command == "import":
            result = import_bundle(Path(args.path).read_text(encoding="utf-8"), services.dashboard)
            print(f"Imported {', '.join(result.imported)} ({result.format})")
        elif args.command == "stats":
            summary = services.analytics.summary()
            for name, value in summary.items():
                if name != "trend":
                    print(f"{name}: {value}")
        else:
            run_shell(services)
    except (DeskpadError, OSError) as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        services.coalescer.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
