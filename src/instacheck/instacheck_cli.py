#!/usr/bin/env python3
"""
InstaCheck-CLI - Command Line Interface
Batch username availability checks with rich terminal feedback.
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from instacheck.config import (
    APP_NAME, APP_VERSION, APP_DESCRIPTION, DEFAULT_LOG_LEVEL, DEFAULT_SERVICE, DEFAULT_KEY_COLUMN, DEFAULT_RECENT_RESULTS,
    DEFAULT_CONCURRENCY, MAX_CONCURRENCY, MAX_RETRIES, REQUEST_TIMEOUT, INITIAL_DELAY_MS, MAX_DELAY_MS,
    OUTPUT_FORMATS, DEFAULT_OUTPUT_DIR, STATUS_MESSAGES, STATUS_STYLES, ERROR_MESSAGES, SUCCESS_MESSAGES,
    RunSettings,
)
from instacheck.core.errors import ExportError, InputError
from instacheck.core.models import RunSnapshot, RunStats
from instacheck.operations.check_session import CheckSession, RunHandle
from instacheck.operations.input_loader import LoadedInput, load_records, parse_usernames
from instacheck.services import (
    SERVICE_CONFIGURATIONS,
    available_services,
    create_probe,
    get_descriptor_source,
    get_duplicate_warnings,
    resolve_service_key,
)
from instacheck.utils import format_duration
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich import box
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn, TimeRemainingColumn


console = Console()


class ConsoleUI:
    """Rich-based console UI for the CLI."""

    @staticmethod
    def print_banner():
        console.print(Panel.fit(f"[bold cyan]{APP_NAME}[/] CLI v{APP_VERSION}\n[dim]{APP_DESCRIPTION}[/]", border_style="cyan"))

    @staticmethod
    def print_service_info(services: List[str]):
        table = Table(title="Available Services", box=box.SIMPLE_HEAD, expand=False)
        table.add_column("Key", style="bold")
        table.add_column("Service")
        table.add_column("Concurrency", justify="right")
        table.add_column("Timeout (s)", justify="right")
        table.add_column("Descriptor")
        table.add_column("Notes", overflow="fold")
        for service_key in services:
            config = SERVICE_CONFIGURATIONS.get(service_key)
            if not config:
                continue
            src = get_descriptor_source(service_key) or {}
            table.add_row(
                service_key,
                config['name'],
                str(config.get('recommended_concurrency') or ''),
                str(config.get('request_timeout') or ''),
                src.get('selected_file') or config.get('descriptor_file', ''),
                config.get('description', ''),
            )
        console.print(table)

    @staticmethod
    def print_duplicate_warnings():
        dup_warnings = get_duplicate_warnings()
        if dup_warnings:
            console.print("[yellow]\nNote: Multiple descriptor files detected for some services. JSON is preferred. Details:[/]")
            for w in dup_warnings:
                console.print(f"[yellow]- {w}[/]")

    @staticmethod
    def print_summary(stats: RunStats, elapsed_time: int, cancelled: bool):
        title = "Cancelled" if cancelled else "Summary"
        border = "yellow" if cancelled else "green"
        console.print(Panel.fit(
            f"Total: [bold]{stats.total:,}[/] | Processed: [bold]{stats.processed:,}[/] | "
            f"Active: [bold green]{stats.active:,}[/] | Available: [bold blue]{stats.available:,}[/] | "
            f"Errors: [bold red]{stats.error:,}[/] | Cancelled: [bold yellow]{stats.cancelled:,}[/] | "
            f"Elapsed: [bold]{format_duration(elapsed_time)}[/]",
            title=title,
            border_style=border,
        ))

    @staticmethod
    def print_recent_results(snapshot: RunSnapshot, limit: int):
        if limit <= 0 or not snapshot.results:
            return
        table = Table(title="Recent Results", box=box.SIMPLE_HEAD)
        table.add_column("", justify="center")
        table.add_column("Status")
        table.add_column("Result", overflow="fold")
        table.add_column("When")
        for event in snapshot.results[:limit]:
            style = STATUS_STYLES.get(event.status, "")
            when = time.strftime('%H:%M:%S', time.localtime(event.timestamp))
            table.add_row(
                STATUS_MESSAGES.get(event.status, ''),
                f"[{style}]{event.status}[/]" if style else event.status,
                event.message,
                when,
            )
        console.print(table)


def _progress_description(snapshot: RunSnapshot) -> str:
    stats = snapshot.stats
    return f"Checking usernames • Active: {stats.active} • Errors: {stats.error}"


def watch_run(handle: RunHandle) -> RunSnapshot:
    """Render live progress until the run is over.

    Ctrl-C requests cooperative cancellation; further Ctrl-C presses while
    in-flight lookups drain are ignored.
    """
    # Temporarily suppress INFO/DEBUG logs so they don't break the live progress area
    prev_disabled = logging.root.manager.disable
    logging.disable(logging.INFO)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
            transient=True,
            refresh_per_second=10,
            console=console,
            disable=not console.is_terminal,
        ) as progress:
            task = progress.add_task("Checking usernames", total=handle.total)
            while True:
                try:
                    finished = handle.wait(0.2)
                    snapshot = handle.snapshot()
                    progress.update(task, completed=snapshot.stats.settled, description=_progress_description(snapshot))
                    if finished:
                        return snapshot
                except KeyboardInterrupt:
                    if handle.cancel():
                        progress.console.print(f"\n{ERROR_MESSAGES['interrupted']}")
    finally:
        logging.disable(prev_disabled)


def setup_logging(verbose: bool = False):
    """Setup logging configuration.
    Default to WARNING to avoid flooding the live progress. Use --verbose for DEBUG.
    Route logs through Rich so live progress isn't broken.
    """
    level = logging.DEBUG if verbose else DEFAULT_LOG_LEVEL
    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # Quiet noisy libraries unless verbose
    for name in ("urllib3", "requests", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING if not verbose else logging.INFO)
    logging.getLogger("instacheck").setLevel(level)


def build_settings(args) -> RunSettings:
    """RunSettings from parsed arguments; raises ValueError on bad values."""
    return RunSettings(
        concurrency=args.concurrency,
        max_retries=args.max_retries,
        probe_timeout=args.timeout,
        initial_delay_ms=args.initial_delay_ms,
        max_delay_ms=args.max_delay_ms,
        retry_unparsable=args.retry_unparsable,
    )


def load_input(args) -> LoadedInput:
    """Records from the input file, or from --usernames when no file is given."""
    if args.input:
        return load_records(args.input, key_column=args.key_column)
    loaded = parse_usernames(args.usernames or "", key_column=args.key_column)
    if loaded is None:
        raise InputError(ERROR_MESSAGES['no_usernames'])
    return loaded


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.show_services:
        ConsoleUI.print_service_info(available_services())
        ConsoleUI.print_duplicate_warnings()
        return 0

    if not args.input and not args.usernames:
        parser.error("an INPUT file or --usernames is required (unless using --show-services)")

    try:
        return run_check(args)
    except KeyboardInterrupt:
        console.print("\n⚠️  Interrupted")
        return 130
    except Exception as e:
        console.print(f"❌ Unexpected error: {e}")
        if args.verbose:
            console.print_exception()
        return 1


def run_check(args) -> int:
    """Load input, run the batch with live progress, then summarize and export."""
    service_key = resolve_service_key(args.service)
    if service_key is None:
        console.print(ERROR_MESSAGES['unknown_service'].format(
            service=args.service, available=', '.join(available_services()) or 'none'))
        return 1

    try:
        settings = build_settings(args)
    except ValueError as e:
        console.print(f"[red]Invalid settings:[/] {e}")
        return 1

    try:
        loaded = load_input(args)
    except InputError as e:
        console.print(f"[red]{e}[/]")
        return 1

    if not args.no_banner:
        ConsoleUI.print_banner()
        ConsoleUI.print_service_info([service_key])
        ConsoleUI.print_duplicate_warnings()

    console.print(SUCCESS_MESSAGES['rows_loaded'].format(count=len(loaded.records), source=loaded.source))
    if loaded.key_column_defaulted:
        console.print(SUCCESS_MESSAGES['key_column_defaulted'].format(column=args.key_column))
    if loaded.skipped_rows:
        console.print(f"[dim]Skipped {loaded.skipped_rows} rows with an empty username[/]")
    console.print(f"🧵 Using concurrency: {settings.concurrency}, max retries: {settings.max_retries}")

    with create_probe(service_key, timeout=settings.probe_timeout) as probe:
        session = CheckSession(probe, settings, source=loaded.source)
        handle = session.start(loaded.records)
        snapshot = watch_run(handle)

        elapsed_time = int(handle.elapsed)
        if handle.error is not None:
            console.print(ERROR_MESSAGES['processing_error'].format(error=handle.error))
            ConsoleUI.print_summary(snapshot.stats, elapsed_time, handle.cancelled)
            return 1

        stats = snapshot.stats
        ConsoleUI.print_summary(stats, elapsed_time, handle.cancelled)
        ConsoleUI.print_recent_results(snapshot, args.recent)
        if handle.cancelled:
            console.print(SUCCESS_MESSAGES['check_cancelled'].format(cancelled=stats.cancelled))
        else:
            console.print(SUCCESS_MESSAGES['check_complete'].format(active=stats.active))

        if not args.no_export:
            if not stats.active:
                console.print(ERROR_MESSAGES['no_active'])
            else:
                try:
                    path = session.download_found(
                        args.output, output_dir=args.output_dir, output_format=args.format)
                except ExportError as e:
                    console.print(f"[red]{e}[/]")
                    return 1
                console.print(SUCCESS_MESSAGES['results_saved'].format(path=path, count=stats.active))

    return 130 if handle.cancelled else 0


def create_argument_parser():
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="instacheck",
        description=f"{APP_NAME} CLI - {APP_DESCRIPTION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check every username in a spreadsheet
  %(prog)s accounts.xlsx

  # Use a differently named key column and more parallel lookups
  %(prog)s accounts.csv --key-column handle -c 10

  # Quick check without an input file
  %(prog)s --usernames "alice, bob carol"

  # Save active accounts as CSV to a specific file
  %(prog)s accounts.xlsx --output active.csv

  # Show service information
  %(prog)s --show-services
        """
    )

    parser.add_argument("input", nargs="?", metavar="INPUT", help="Spreadsheet or text file with usernames (.xlsx, .xls, .csv, .txt)")
    parser.add_argument("--usernames", "-u", help="Usernames to check, separated by spaces or commas (instead of INPUT)")
    parser.add_argument("--key-column", "-k", default=DEFAULT_KEY_COLUMN, help=f"Header of the username column (default: {DEFAULT_KEY_COLUMN}; falls back to the first column)")
    parser.add_argument("--service", "-s", default=DEFAULT_SERVICE, help=f"Lookup service to use (default: {DEFAULT_SERVICE})")
    parser.add_argument("--concurrency", "-c", type=int, default=DEFAULT_CONCURRENCY, help=f"Maximum lookups in flight (1-{MAX_CONCURRENCY}, default: {DEFAULT_CONCURRENCY})")
    parser.add_argument("--max-retries", type=int, default=MAX_RETRIES, help=f"Retryable failures allowed per username (default: {MAX_RETRIES})")
    parser.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT, help=f"Per-lookup timeout in seconds (default: {REQUEST_TIMEOUT})")
    parser.add_argument("--initial-delay-ms", type=int, default=INITIAL_DELAY_MS, help=f"Backoff starting delay in ms (default: {INITIAL_DELAY_MS})")
    parser.add_argument("--max-delay-ms", type=int, default=MAX_DELAY_MS, help=f"Backoff ceiling in ms (default: {MAX_DELAY_MS})")
    parser.add_argument("--retry-unparsable", action="store_true", help="Retry unreadable responses instead of marking them as errors")
    parser.add_argument("--output", "-o", help="Save active accounts to this file (format inferred by extension)")
    parser.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, help=f"Directory for generated export files (default: {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("--format", choices=OUTPUT_FORMATS, default=None, help="Export format (default: from --output extension, else xlsx)")
    parser.add_argument("--no-export", action="store_true", help="Don't save active accounts after the run")
    parser.add_argument("--recent", type=int, default=DEFAULT_RECENT_RESULTS, help=f"Number of recent results to show (default: {DEFAULT_RECENT_RESULTS})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--no-banner", action="store_true", help="Don't show application banner")
    parser.add_argument("--show-services", action="store_true", help="Show service information and exit")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} CLI v{APP_VERSION}")

    return parser


if __name__ == "__main__":
    sys.exit(main())
