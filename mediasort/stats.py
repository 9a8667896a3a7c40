"""
Statistics tracking for media sorting runs.
"""

from pathlib import Path
from typing import Dict

from rich.table import Table

from .constants import MOVIE_EXTENSIONS


class StatsManager:
    """Encapsulates statistics tracking for media sorting runs."""

    def __init__(self):
        self._stats = {
            'photos': 0,
            'videos': 0,
            'unknown': 0,
            'duplicates': 0,
            'failed': 0,
            'io_failures': 0,
            'total_size': 0,
        }

    def increment_duplicates(self) -> None:
        """Increment duplicate count when a file already exists at its destination."""
        self._stats['duplicates'] += 1

    def increment_failed(self, io_error: bool = False) -> None:
        """Increment failure count; ``io_error`` marks destination placement failures."""
        self._stats['failed'] += 1
        if io_error:
            self._stats['io_failures'] += 1

    def increment_unknown(self) -> None:
        """Increment count of non-media files moved to the unknown folder."""
        self._stats['unknown'] += 1

    def record_successful_file(self, file_path: Path, file_size: int) -> None:
        """Record a successfully placed media file, updating both count and size."""
        if file_path.suffix.lower() in MOVIE_EXTENSIONS:
            self._stats['videos'] += 1
        else:
            self._stats['photos'] += 1
        self._stats['total_size'] += file_size

    def get_stats(self) -> Dict[str, int]:
        """Get a copy of current statistics."""
        return self._stats.copy()

    def get_placed(self) -> int:
        """Count of media files placed at a new destination."""
        return self._stats['photos'] + self._stats['videos']

    def get_attempted(self) -> int:
        return (self.get_placed() + self._stats['unknown'] +
                self._stats['duplicates'] + self._stats['failed'])

    def get_total_size_mb(self) -> float:
        return self._stats['total_size'] / (1024 * 1024)

    def has_errors(self) -> bool:
        return self._stats['failed'] > 0

    def get_photos(self) -> int:
        return self._stats['photos']

    def get_videos(self) -> int:
        return self._stats['videos']

    def get_unknown(self) -> int:
        return self._stats['unknown']

    def get_duplicates(self) -> int:
        return self._stats['duplicates']

    def get_failed(self) -> int:
        return self._stats['failed']

    def get_io_failures(self) -> int:
        return self._stats['io_failures']

    def summary_table(self) -> Table:
        """Render the run summary as a rich table."""
        table = Table(title="Processing Summary")
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green")

        table.add_row("Photos", str(self.get_photos()))
        table.add_row("Videos", str(self.get_videos()))
        table.add_row("Unknown Files", str(self.get_unknown()))
        table.add_row("Duplicates Skipped", str(self.get_duplicates()))
        table.add_row("Failed", str(self.get_failed()))

        size_mb = self.get_total_size_mb()
        if size_mb > 1024:
            size_str = f"{size_mb/1024:.1f} GB"
        else:
            size_str = f"{size_mb:.1f} MB"
        table.add_row("Total Size", size_str)
        return table
