"""
One-shot discovery of files in the source tree.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .constants import NUISANCE_NAMES, get_logger, is_media_file, is_temp_file


logger = get_logger("mediasort.scanner")


@dataclass(frozen=True)
class CandidateFile:
    """A discovered source file, consumed once by the orchestrator."""
    path: Path
    size: int
    mtime: float

    @classmethod
    def from_path(cls, path: Path) -> "CandidateFile":
        """Stat ``path``; raises OSError if it vanished."""
        stat = path.stat()
        return cls(path=path, size=stat.st_size, mtime=stat.st_mtime)


def _walk_files(source_root: Path) -> Iterator[Path]:
    """Yield regular files below ``source_root`` in sorted order."""
    def on_error(error: OSError) -> None:
        logger.warning(f"Cannot read {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(source_root, onerror=on_error):
        dirnames.sort()
        for name in sorted(filenames):
            file_path = Path(dirpath) / name
            if is_temp_file(name) or file_path.is_symlink() or not file_path.is_file():
                continue
            yield file_path


def scan(source_root: Path) -> Iterator[CandidateFile]:
    """Single recursive pass yielding media files."""
    for file_path in _walk_files(source_root):
        if not is_media_file(file_path.name):
            continue
        try:
            yield CandidateFile.from_path(file_path)
        except OSError as e:
            logger.warning(f"Skipping {file_path}: {e}")


def scan_unknown(source_root: Path) -> Iterator[CandidateFile]:
    """Single recursive pass yielding non-media files, nuisance files excluded."""
    for file_path in _walk_files(source_root):
        if is_media_file(file_path.name) or file_path.name.lower() in NUISANCE_NAMES:
            continue
        try:
            yield CandidateFile.from_path(file_path)
        except OSError as e:
            logger.warning(f"Skipping {file_path}: {e}")
