"""
Filesystem-event subscription.

watchdog's platform-specific observers are wrapped here and their events are
reduced to a uniform FileEvent(path, kind), so the stability tracking in
mediasort.monitor never deals with platform differences.
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .constants import get_logger
from .exceptions import WatchSetupError


logger = get_logger("mediasort.watcher")


class EventKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    CLOSED = "closed"
    MOVED_IN = "moved-in"
    DELETED = "deleted"
    MOVED_OUT = "moved-out"

    @property
    def is_write_activity(self) -> bool:
        return self in (EventKind.CREATED, EventKind.MODIFIED,
                        EventKind.CLOSED, EventKind.MOVED_IN)


@dataclass(frozen=True)
class FileEvent:
    path: Path
    kind: EventKind


EventCallback = Callable[[FileEvent], None]

_KIND_BY_TYPE = {
    "created": EventKind.CREATED,
    "modified": EventKind.MODIFIED,
    "closed": EventKind.CLOSED,
    "deleted": EventKind.DELETED,
}


def normalize_event(event: FileSystemEvent, root: Path) -> List[FileEvent]:
    """Translate one watchdog event into zero or more FileEvents."""
    # Directory events are covered by the per-file events watchdog emits
    if event.is_directory:
        return []

    src = Path(os.fsdecode(event.src_path))
    if event.event_type == "moved":
        dest = Path(os.fsdecode(event.dest_path))
        events = [FileEvent(src, EventKind.MOVED_OUT)]
        if dest == root or root in dest.parents:
            events.append(FileEvent(dest, EventKind.MOVED_IN))
        return events

    kind = _KIND_BY_TYPE.get(event.event_type)
    if kind is None:
        # opened / closed_no_write carry no write activity
        return []
    return [FileEvent(src, kind)]


class _ForwardingHandler(FileSystemEventHandler):
    """Forwards normalized events to a callback from the observer thread."""

    def __init__(self, root: Path, callback: EventCallback):
        super().__init__()
        self.root = root
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        for file_event in normalize_event(event, self.root):
            self.callback(file_event)


class WatchdogEventSource:
    """Recursive event subscription for one source root."""

    def __init__(self, root: Path, callback: EventCallback,
                 observer_factory: Callable = Observer):
        self.root = root
        self.callback = callback
        self.observer_factory = observer_factory
        self.observer: Optional[Observer] = None

    def start(self) -> None:
        if not self.root.is_dir():
            raise WatchSetupError(f"Cannot watch {self.root}: not a directory")

        observer = self.observer_factory()
        try:
            observer.schedule(_ForwardingHandler(self.root, self.callback),
                              str(self.root), recursive=True)
            observer.start()
        except OSError as e:
            raise WatchSetupError(f"Cannot watch {self.root}: {e}") from e

        self.observer = observer
        logger.debug(f"Watching {self.root}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join(timeout)
        self.observer = None

    @property
    def is_alive(self) -> bool:
        return self.observer is not None and self.observer.is_alive()
