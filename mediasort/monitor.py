"""
Continuous monitoring of the source tree.

The watchdog observer thread only records events. A stabilizer thread samples
each pending file's size and mtime and, once a file has stopped changing,
hands it to a bounded queue that the orchestrator consumes. The InFlightSet
shared with the orchestrator guarantees a path is never queued twice while it
is waiting for or undergoing processing.

Per-path lifecycle: UNSEEN -> PENDING -> READY -> IN_FLIGHT -> DONE | FAILED.
New write activity sends a PENDING path back to the start of its stability
window; activity on a READY or IN_FLIGHT path is coalesced into a fresh
PENDING entry that is only evaluated once the current attempt is released.
"""

import os
import queue
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .constants import (DEFAULT_POLL_INTERVAL, DEFAULT_QUEUE_SIZE, DEFAULT_QUIET_SECONDS,
                        DEFAULT_SETTLE_SECONDS, get_logger, is_media_file, is_temp_file)
from .exceptions import WatchSetupError
from .scanner import CandidateFile
from .watcher import EventKind, FileEvent, WatchdogEventSource


logger = get_logger("mediasort.monitor")

Sample = Tuple[int, float]


class PathState(str, Enum):
    UNSEEN = "unseen"
    PENDING = "pending"
    READY = "ready"
    IN_FLIGHT = "in-flight"
    DONE = "done"
    FAILED = "failed"


def canonical(path: Path) -> Path:
    return Path(os.path.realpath(path))


def sample_file(path: Path) -> Optional[Sample]:
    """(size, mtime) of a regular file, or None if it is gone."""
    try:
        stat = path.stat()
    except OSError:
        return None
    if not path.is_file():
        return None
    return stat.st_size, stat.st_mtime


class InFlightSet:
    """Canonical paths accepted for processing and not yet finished.

    Thread-safe: the stabilizer thread adds, the orchestrator releases.
    Recently finished paths keep their final state for inspection.
    """

    def __init__(self, history_size: int = 1024):
        self._lock = threading.Lock()
        self._active: Dict[Path, PathState] = {}
        self._finished: "OrderedDict[Path, PathState]" = OrderedDict()
        self._history_size = history_size

    def add(self, path: Path) -> bool:
        """Accept a path as READY. Returns False if it is already in flight."""
        key = canonical(path)
        with self._lock:
            if key in self._active:
                return False
            self._active[key] = PathState.READY
            self._finished.pop(key, None)
            return True

    def begin(self, path: Path) -> None:
        with self._lock:
            self._active[canonical(path)] = PathState.IN_FLIGHT

    def release(self, path: Path, failed: bool = False) -> None:
        key = canonical(path)
        with self._lock:
            self._active.pop(key, None)
            self._finished[key] = PathState.FAILED if failed else PathState.DONE
            while len(self._finished) > self._history_size:
                self._finished.popitem(last=False)

    def state(self, path: Path) -> PathState:
        key = canonical(path)
        with self._lock:
            if key in self._active:
                return self._active[key]
            return self._finished.get(key, PathState.UNSEEN)

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return canonical(path) in self._active

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)


@dataclass
class _Pending:
    last_event: float
    sample: Optional[Sample] = None
    stable_since: Optional[float] = None


class StabilityTracker:
    """Decides when files that received write events have stopped changing.

    A pending file becomes ready when its (size, mtime) sample has stayed the
    same for ``settle_seconds`` with no event in that window, or when
    ``quiet_seconds`` passed since its last event and two consecutive samples
    agree. Time comes from the caller so the logic can run on any clock.
    """

    def __init__(self, in_flight: InFlightSet,
                 settle_seconds: float = DEFAULT_SETTLE_SECONDS,
                 quiet_seconds: float = DEFAULT_QUIET_SECONDS,
                 accept: Callable[[Path], bool] = lambda p: is_media_file(p.name),
                 sampler: Callable[[Path], Optional[Sample]] = sample_file):
        self.in_flight = in_flight
        self.settle_seconds = settle_seconds
        self.quiet_seconds = quiet_seconds
        self.accept = accept
        self.sampler = sampler
        self._lock = threading.Lock()
        # Insertion order is event-arrival order
        self._pending: Dict[Path, _Pending] = {}

    def observe(self, event: FileEvent, now: float) -> None:
        path = canonical(event.path)
        if not event.kind.is_write_activity:
            with self._lock:
                if self._pending.pop(path, None) is not None:
                    logger.debug(f"Stopped tracking {path} ({event.kind.value})")
            return

        if is_temp_file(path.name) or not self.accept(path):
            return

        with self._lock:
            entry = self._pending.get(path)
            if entry is None:
                self._pending[path] = _Pending(last_event=now)
                logger.debug(f"Tracking {path} ({event.kind.value})")
            else:
                entry.last_event = now

    def is_pending(self, path: Path) -> bool:
        with self._lock:
            return canonical(path) in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def poll(self, now: float) -> List[Path]:
        """Sample pending files; return newly ready paths, already added to in-flight."""
        with self._lock:
            paths = list(self._pending)

        ready = []
        for path in paths:
            if path in self.in_flight:
                continue
            sample = self.sampler(path)
            with self._lock:
                entry = self._pending.get(path)
                if entry is None:
                    continue
                if sample is None:
                    del self._pending[path]
                    logger.debug(f"Stopped tracking {path}: no longer a file")
                    continue
                if not self._is_stable(entry, sample, now):
                    continue
                if not self.in_flight.add(path):
                    continue
                del self._pending[path]
            ready.append(path)
        return ready

    def _is_stable(self, entry: _Pending, sample: Sample, now: float) -> bool:
        if sample != entry.sample:
            entry.sample = sample
            entry.stable_since = now
            return False

        quiet_for = now - entry.last_event
        if quiet_for >= self.settle_seconds and now - entry.stable_since >= self.settle_seconds:
            return True
        return quiet_for >= self.quiet_seconds


class StabilityMonitor:
    """Turns filesystem events under ``source_root`` into a queue of ready files."""

    def __init__(self, source_root: Path, in_flight: InFlightSet,
                 settle_seconds: float = DEFAULT_SETTLE_SECONDS,
                 quiet_seconds: float = DEFAULT_QUIET_SECONDS,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 queue_size: int = DEFAULT_QUEUE_SIZE,
                 accept: Callable[[Path], bool] = lambda p: is_media_file(p.name),
                 event_source_factory: Callable = WatchdogEventSource,
                 clock: Callable[[], float] = time.monotonic):
        self.source_root = source_root
        self.in_flight = in_flight
        self.poll_interval = poll_interval
        self.clock = clock
        self.tracker = StabilityTracker(in_flight, settle_seconds, quiet_seconds, accept)
        self.ready_queue: "queue.Queue[CandidateFile]" = queue.Queue(maxsize=queue_size)
        self.event_source = event_source_factory(source_root, self._on_event)
        self.error: Optional[WatchSetupError] = None
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Subscribe to events and start stabilizing. Raises WatchSetupError."""
        self.event_source.start()
        self._thread = threading.Thread(target=self._stabilize_loop,
                                        name="mediasort-stabilizer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop accepting events and release anything still queued."""
        self._stopping.set()
        self.event_source.stop()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        for candidate in self.drain():
            self.in_flight.release(candidate.path)

    def drain(self) -> List[CandidateFile]:
        drained = []
        while True:
            try:
                drained.append(self.ready_queue.get_nowait())
            except queue.Empty:
                return drained

    def get(self, timeout: Optional[float] = None) -> Optional[CandidateFile]:
        """Next ready file, or None on timeout. Raises a recorded WatchSetupError."""
        if self.error is not None:
            raise self.error
        try:
            return self.ready_queue.get(timeout=timeout)
        except queue.Empty:
            if self.error is not None:
                raise self.error
            return None

    def _on_event(self, event: FileEvent) -> None:
        if not self._stopping.is_set():
            self.tracker.observe(event, self.clock())

    def _stabilize_loop(self) -> None:
        while not self._stopping.wait(self.poll_interval):
            if not self.source_root.is_dir():
                self.error = WatchSetupError(f"Source directory disappeared: {self.source_root}")
                logger.error(str(self.error))
                return
            if not self.event_source.is_alive:
                self.error = WatchSetupError(f"Event subscription for {self.source_root} stopped")
                logger.error(str(self.error))
                return

            for path in self.tracker.poll(self.clock()):
                self._enqueue(path)

    def _enqueue(self, path: Path) -> None:
        try:
            candidate = CandidateFile.from_path(path)
        except OSError as e:
            logger.debug(f"Ready file vanished before queueing: {path}: {e}")
            self.in_flight.release(path, failed=True)
            return

        logger.debug(f"Ready: {path}")
        # Blocks only this thread when the orchestrator falls behind
        while not self._stopping.is_set():
            try:
                self.ready_queue.put(candidate, timeout=self.poll_interval)
                return
            except queue.Full:
                continue
        self.in_flight.release(path)
