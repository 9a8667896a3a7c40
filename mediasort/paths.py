"""
Destination path derivation.

Everything here is a pure function of the resolved metadata, the placement
configuration and the source filename; nothing touches the filesystem.
"""

import re
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Tuple

from .config import PlacementConfig
from .metadata import Metadata


# Path separators, control characters and characters Windows rejects
_UNSAFE_SEGMENT_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')


@dataclass(frozen=True)
class DestinationPath:
    """Directory segments below the destination root plus the final filename."""
    directories: Tuple[str, ...]
    filename: str

    @property
    def relative(self) -> PurePath:
        return PurePath(*self.directories, self.filename)

    def resolve(self, root: Path) -> Path:
        """Join onto a destination root."""
        return root.joinpath(*self.directories, self.filename)

    def __str__(self) -> str:
        return str(self.relative)


def sanitize_segment(name: str) -> Optional[str]:
    """Make a camera model safe to use as one directory name."""
    cleaned = _UNSAFE_SEGMENT_CHARS.sub("_", name).strip().strip(".").strip()
    return cleaned or None


def date_segments(metadata: Metadata) -> Tuple[str, str, str]:
    captured_at = metadata.captured_at
    return (f"{captured_at.year:04d}", f"{captured_at.month:02d}", f"{captured_at.day:02d}")


def build_filename(metadata: Metadata, config: PlacementConfig, source_name: str) -> str:
    """Original name verbatim, or the capture time with the original extension."""
    if config.keep_names:
        return source_name

    captured_at = metadata.captured_at
    # Years below 1000 stay four digits wide
    timestamp = (f"{captured_at.year:04d}-{captured_at.month:02d}-{captured_at.day:02d}"
                 f"T{captured_at.hour:02d}-{captured_at.minute:02d}-{captured_at.second:02d}")
    # Only the last suffix is kept, with its case untouched
    suffix = PurePath(source_name).suffix
    return f"{timestamp}{suffix}"


def build_destination(metadata: Metadata, config: PlacementConfig,
                      source_name: str) -> DestinationPath:
    """Compute the destination for a file; identical inputs give identical output."""
    directories = list(date_segments(metadata))

    camera = sanitize_segment(metadata.camera_model) if metadata.camera_model else None
    if camera:
        if config.camera_model_prefix:
            directories.insert(0, camera)
        else:
            directories.append(camera)

    return DestinationPath(
        directories=tuple(directories),
        filename=build_filename(metadata, config, source_name),
    )
