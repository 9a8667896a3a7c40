"""
Core media sorting functionality.

MediaSorter drives discovery (one scan, or the stability monitor) into the
per-file pipeline: metadata extraction, destination path building and
placement. Per-file problems are logged and counted; only fatal conditions
escape.
"""

import os
import threading
from pathlib import Path
from typing import Callable, List, Optional

from rich.progress import Progress

from .config import PlacementConfig
from .constants import (DEFAULT_POLL_INTERVAL, DEFAULT_QUIET_SECONDS, DEFAULT_SETTLE_SECONDS,
                        NUISANCE_NAMES, UNKNOWN_DIR_NAME, get_console, get_logger, is_media_file)
from .exceptions import DestinationUnavailableError, FatalConfigError, PlacementIoError
from .file_operations import FileOperations, PlacementOutcome, PlacementResult
from .metadata import MetadataExtractor
from .monitor import InFlightSet, StabilityMonitor
from .paths import DestinationPath, build_destination
from .progress import ProgressContext
from .scanner import CandidateFile, scan, scan_unknown
from .stats import StatsManager


class MediaSorter:
    """Main class for organizing photos and videos."""

    def __init__(self, source: Path, dest: Path, config: PlacementConfig,
                 extractor: Optional[MetadataExtractor] = None,
                 in_flight: Optional[InFlightSet] = None):
        self.source = source
        self.dest = dest
        self.config = config
        self.logger = get_logger()
        self.console = get_console()
        self.stats_manager = StatsManager()
        self.in_flight = in_flight if in_flight is not None else InFlightSet()
        self.extractor = extractor or MetadataExtractor(config)
        self.file_ops = FileOperations(dest_root=dest, move_files=config.move_files,
                                       source_root=source)

    def validate(self) -> None:
        """Check the fatal startup conditions. Raises FatalConfigError."""
        if not self.source.exists():
            raise FatalConfigError(f"Source directory does not exist: {self.source}")
        if not self.source.is_dir():
            raise FatalConfigError(f"Source is not a directory: {self.source}")

        if (self.source == self.dest or self.source in self.dest.parents
                or self.dest in self.source.parents):
            raise FatalConfigError(
                f"Identical or overlapping source/dest folders: {self.source} and {self.dest}")

        try:
            self.dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalConfigError(f"Cannot create destination directory {self.dest}: {e}") from e
        if not self.dest.is_dir():
            raise FatalConfigError(f"Destination is not a directory: {self.dest}")
        if not os.access(self.dest, os.W_OK | os.X_OK):
            raise FatalConfigError(f"Destination directory is not writable: {self.dest}")

    @property
    def sweeps_unknown(self) -> bool:
        return self.config.move_unknown and self.config.move_files

    def accepts(self, path: Path) -> bool:
        """Whether a discovered path should go through the pipeline at all."""
        if is_media_file(path.name):
            return True
        return self.sweeps_unknown and path.name.lower() not in NUISANCE_NAMES

    def get_destination(self, candidate: CandidateFile) -> DestinationPath:
        """Derive the destination for a media file from its metadata."""
        metadata = self.extractor.extract(candidate.path)
        return build_destination(metadata, self.config, candidate.path.name)

    def process_candidate(self, candidate: CandidateFile) -> Optional[PlacementResult]:
        """Run one file through the pipeline. Returns None if the file is gone."""
        file_path = candidate.path
        if not file_path.exists():
            self.logger.debug(f"Skipping {file_path} - file no longer exists (already processed)")
            return None

        try:
            if is_media_file(file_path.name):
                destination = self.get_destination(candidate)
            else:
                destination = DestinationPath((UNKNOWN_DIR_NAME,), file_path.name)
            result = self.file_ops.place(file_path, destination)
        except FatalConfigError:
            raise
        except Exception as e:
            error = e if isinstance(e, PlacementIoError) else None
            result = PlacementResult(PlacementOutcome.FAILED, file_path, error=error)
            self.logger.warning(f"Failed to process {file_path}: {e}",
                                extra={"source_path": str(file_path), "reason": str(e)})
            self.stats_manager.increment_failed(io_error=error is not None)
            self._check_destination_health()
            return result

        self._record(candidate, result)
        return result

    def _record(self, candidate: CandidateFile, result: PlacementResult) -> None:
        if result.placed:
            if is_media_file(candidate.path.name):
                self.stats_manager.record_successful_file(candidate.path, candidate.size)
            else:
                self.stats_manager.increment_unknown()
        elif result.skipped:
            self.stats_manager.increment_duplicates()
        else:
            self.logger.warning(f"Failed to process {candidate.path}: {result.reason}",
                                extra={"source_path": str(candidate.path), "reason": result.reason})
            self.stats_manager.increment_failed(io_error=True)
            self._check_destination_health()
            return

        if self.config.move_files:
            self.file_ops.prune_empty_parents(candidate.path.parent)

    def _check_destination_health(self) -> None:
        """After a failed placement, give up if the destination root itself is gone."""
        if not self.dest.is_dir():
            raise DestinationUnavailableError(
                f"Destination directory is no longer available: {self.dest}")
        if not os.access(self.dest, os.W_OK | os.X_OK):
            raise DestinationUnavailableError(
                f"Destination directory is no longer writable: {self.dest}")

    def find_source_files(self) -> List[CandidateFile]:
        """Media files first, then (when sweeping) unknown files."""
        candidates = list(scan(self.source))
        if self.sweeps_unknown:
            candidates.extend(scan_unknown(self.source))
        return candidates

    def run_once(self, show_progress: bool = True) -> StatsManager:
        """Process everything currently in the source tree, then return."""
        self.logger.info(f"Processing directory: {self.source}")
        candidates = self.find_source_files()
        self.logger.info(f"Found {len(candidates)} files to process")

        if show_progress and candidates:
            with Progress(console=self.console, transient=True) as progress:
                task = progress.add_task("Processing files...", total=len(candidates))
                self._process_all(candidates, ProgressContext(progress, task))
        else:
            self._process_all(candidates, ProgressContext())

        stats = self.stats_manager
        if stats.get_attempted() and stats.get_io_failures() == stats.get_attempted():
            raise DestinationUnavailableError(
                f"Every placement into {self.dest} failed ({stats.get_io_failures()} files)")

        self.file_ops.cleanup_source_directory(self.source)
        self.logger.info("Directory processing complete")
        return stats

    def _process_all(self, candidates: List[CandidateFile], progress_ctx: ProgressContext) -> None:
        for candidate in candidates:
            progress_ctx.update(f"Processing: {candidate.path.name}")
            self.process_candidate(candidate)
            progress_ctx.advance()

    def _process_tracked(self, candidate: CandidateFile) -> None:
        """Process a file already accepted into the in-flight set."""
        self.in_flight.begin(candidate.path)
        failed = True
        try:
            result = self.process_candidate(candidate)
            failed = result is not None and result.failed
        finally:
            self.in_flight.release(candidate.path, failed=failed)

    def run_monitor(self, stop_event: threading.Event,
                    settle_seconds: float = DEFAULT_SETTLE_SECONDS,
                    quiet_seconds: float = DEFAULT_QUIET_SECONDS,
                    poll_interval: float = DEFAULT_POLL_INTERVAL,
                    monitor_factory: Callable[..., StabilityMonitor] = StabilityMonitor) -> StatsManager:
        """Process existing files, then ready files as they arrive, until ``stop_event``."""
        self.logger.info(f"Starting to monitor directory: {self.source}")
        monitor = monitor_factory(self.source, self.in_flight,
                                  settle_seconds=settle_seconds, quiet_seconds=quiet_seconds,
                                  poll_interval=poll_interval, accept=self.accepts)
        # Subscribe before the initial pass so files arriving during it are not missed
        monitor.start()
        try:
            for candidate in self.find_source_files():
                if stop_event.is_set():
                    break
                if monitor.tracker.is_pending(candidate.path):
                    self.logger.debug(f"Leaving {candidate.path} to the monitor: still changing")
                    continue
                if not self.in_flight.add(candidate.path):
                    continue
                self._process_tracked(candidate)

            self.logger.info("Watching for changes...")
            while not stop_event.is_set():
                candidate = monitor.get(timeout=poll_interval)
                if candidate is not None:
                    self._process_tracked(candidate)
        finally:
            monitor.stop()

        self.logger.info("Monitoring stopped")
        return self.stats_manager

    def print_summary(self) -> None:
        """Print processing summary."""
        self.console.print(self.stats_manager.summary_table())
        if self.stats_manager.has_errors():
            self.console.print(
                f"[yellow]{self.stats_manager.get_failed()} files could not be placed "
                f"and were left in {self.source}[/yellow]")
