"""
Exception hierarchy for mediasort.

Per-file errors (PlacementIoError and its variants) are contained by the
orchestrator and never stop a run. Fatal errors abort the run before, or
instead of, touching further files.
"""

from pathlib import Path
from typing import Optional


class MediaSortError(Exception):
    """Base exception for all mediasort errors."""
    pass


class PlacementIoError(MediaSortError):
    """Raised when a file cannot be placed at its destination."""

    def __init__(self, message: str, source: Optional[Path] = None,
                 dest: Optional[Path] = None):
        super().__init__(message)
        self.source = source
        self.dest = dest


class CollisionUnresolvedError(PlacementIoError):
    """Raised when no free or identical filename is found for a collision."""
    pass


class FatalConfigError(MediaSortError):
    """Raised for startup conditions that prevent a run from proceeding."""
    pass


class DestinationUnavailableError(FatalConfigError):
    """Raised when placements keep failing against the destination root."""
    pass


class WatchSetupError(MediaSortError):
    """Raised when the filesystem-event subscription cannot be kept alive."""
    pass
