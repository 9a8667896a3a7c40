"""
Command-line interface for mediasort.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import Config, PlacementConfig
from .constants import PROGRAM, get_console, get_logger
from .core import MediaSorter
from .exceptions import FatalConfigError, WatchSetupError


def non_negative_seconds(value: str) -> float:
    """Parse a non-negative number of seconds."""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number of seconds: {value}")
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"Seconds must not be negative: {value}")
    return seconds


def add_shared_arguments(parser: argparse.ArgumentParser) -> None:
    """Options common to the once and monitor commands."""
    parser.add_argument(
        "--source", "-s", required=True,
        help="Source directory containing media files"
    )
    parser.add_argument(
        "--destination", "-d", required=True,
        help="Destination directory for organized files"
    )
    parser.add_argument(
        "--use-modified", "-u", action="store_true",
        help="Without embedded capture time, use the file's last modified time "
             "(default: creation time, which most Linux filesystems do not report; "
             "such files get the current time instead)"
    )
    parser.add_argument(
        "--no-camera-model", action="store_true",
        help="Do not organize by camera model"
    )
    parser.add_argument(
        "--camera-model-prefix", action="store_true",
        help="Put the camera model before the date (Camera/YYYY/MM/DD) "
             "instead of after it (YYYY/MM/DD/Camera)"
    )
    parser.add_argument(
        "--manual-camera-model", metavar="MODEL",
        help="Use this camera model for every file"
    )
    parser.add_argument(
        "--copy", "-c", action="store_true",
        help="Copy files instead of moving them"
    )
    parser.add_argument(
        "--keep-names", "-k", action="store_true",
        help="Keep original filenames instead of renaming to the capture time"
    )
    parser.add_argument(
        "--timezone", "--tz", metavar="TIMEZONE",
        help="Timezone for dates taken from file timestamps (default: system local)"
    )
    parser.add_argument(
        "--move-unknown", action="store_true",
        help="In move mode, also move non-media files to <destination>/unknown"
    )


def create_parser(config: Config) -> argparse.ArgumentParser:
    """Create argument parser with monitor defaults from config."""
    from . import __version__

    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Organize photos and videos into date and camera folders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {PROGRAM} once -s ~/Camera -d ~/Pictures
  {PROGRAM} monitor -s ~/Inbox -d ~/Pictures --copy --keep-names
        """
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--version", "-V", action="version", version=f"{PROGRAM} {__version__}",
        help=f"Display the version number of {PROGRAM} and exit"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    once = subparsers.add_parser(
        "once", help="Process files once without monitoring")
    add_shared_arguments(once)

    monitor = subparsers.add_parser(
        "monitor", help="Monitor source directory and automatically process new files")
    add_shared_arguments(monitor)
    settle = config.get_settle_seconds()
    quiet = config.get_quiet_seconds()
    monitor.add_argument(
        "--settle-seconds", type=non_negative_seconds, default=settle, metavar="SECONDS",
        help=f"How long a file must stay unchanged before it is processed (default: {settle})"
    )
    monitor.add_argument(
        "--quiet-seconds", type=non_negative_seconds, default=quiet, metavar="SECONDS",
        help=f"Process a file after this long without events (default: {quiet})"
    )

    return parser


def setup_logging(verbose: bool, console: Console) -> None:
    """Route the program logger through rich."""
    logger = get_logger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def show_processing_plan(command: str, source: Path, dest: Path,
                         placement: PlacementConfig, console: Console) -> None:
    """Display the processing plan before execution."""
    if placement.manual_camera_model:
        camera = f"{placement.manual_camera_model} (manual)"
    elif placement.use_camera_model:
        camera = "from metadata"
    else:
        camera = "off"

    console.print(f"\n[bold]Processing Plan ({command}):[/bold]")
    console.print(f"  Source:          [blue]{source}[/blue]")
    console.print(f"  Destination:     [blue]{dest}[/blue]")
    console.print(f"  Processing Mode: [cyan]{placement.transfer_mode.value.upper()}[/cyan]")
    console.print(f"  Camera Model:    [cyan]{camera}[/cyan]"
                  f"{' as prefix' if placement.camera_model_prefix and camera != 'off' else ''}")
    console.print(f"  Filenames:       [cyan]{placement.naming.value}[/cyan]")
    console.print(f"  Fallback Time:   [cyan]{placement.fallback_timestamp.value}[/cyan]")
    console.print(f"  Timezone:        [cyan]{placement.timezone or 'system local'}[/cyan]")
    console.print()


def install_stop_handlers(stop_event: threading.Event) -> dict:
    """Turn SIGINT/SIGTERM into a graceful stop. Returns previous handlers."""
    def request_stop(signum, frame):
        get_logger().info("Shutdown requested, finishing current file...")
        stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, request_stop)
    return previous


def main(argv: Optional[List[str]] = None, config_path: Optional[Path] = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])
        config_path: Optional path to config file (for testing)
    """
    config = Config(config_path=config_path)
    parser = create_parser(config)
    args = parser.parse_args(argv)

    console = get_console()
    setup_logging(args.verbose, console)
    logger = get_logger()

    timezone = args.timezone or config.get_timezone()
    try:
        placement = PlacementConfig.from_flags(
            use_modified=args.use_modified,
            no_camera_model=args.no_camera_model,
            camera_model_prefix=args.camera_model_prefix,
            manual_camera_model=args.manual_camera_model,
            copy=args.copy,
            keep_names=args.keep_names,
            timezone=timezone,
            move_unknown=args.move_unknown,
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    source = Path(args.source).expanduser().resolve()
    dest = Path(args.destination).expanduser().resolve()
    sorter = MediaSorter(source=source, dest=dest, config=placement)

    try:
        sorter.validate()
    except FatalConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    config.update_paths(str(source), str(dest))
    if args.timezone:
        config.update_timezone(args.timezone)

    show_processing_plan(args.command, source, dest, placement, console)

    try:
        if args.command == "once":
            sorter.run_once()
            sorter.print_summary()
        else:
            stop_event = threading.Event()
            previous = install_stop_handlers(stop_event)
            try:
                sorter.run_monitor(stop_event,
                                   settle_seconds=args.settle_seconds,
                                   quiet_seconds=args.quiet_seconds)
            finally:
                for signum, handler in previous.items():
                    signal.signal(signum, handler)
            sorter.print_summary()
    except (FatalConfigError, WatchSetupError) as e:
        logger.error(str(e))
        console.print(f"\n[red]Fatal error: {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1

    console.print("\n[green]✓ Processing completed successfully![/green]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
