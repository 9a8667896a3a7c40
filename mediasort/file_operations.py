"""
Collision-safe placement of files into the destination tree.
"""

import errno
import hashlib
import os
import shutil
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple

from .constants import (HASH_CHUNK_SIZE, MAX_COLLISION_ATTEMPTS, NUISANCE_NAMES,
                        TEMP_PREFIX, TEMP_SUFFIX, get_logger)
from .exceptions import CollisionUnresolvedError, PlacementIoError
from .paths import DestinationPath


class PlacementOutcome(str, Enum):
    PLACED = "placed"
    SKIPPED_DUPLICATE = "skipped-duplicate"
    FAILED = "failed"


@dataclass
class PlacementResult:
    """Outcome of placing one file."""
    outcome: PlacementOutcome
    source: Path
    dest: Optional[Path] = None
    error: Optional[PlacementIoError] = None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error else None

    @property
    def placed(self) -> bool:
        return self.outcome is PlacementOutcome.PLACED

    @property
    def skipped(self) -> bool:
        return self.outcome is PlacementOutcome.SKIPPED_DUPLICATE

    @property
    def failed(self) -> bool:
        return self.outcome is PlacementOutcome.FAILED


class FileOperations:
    """Places files under the destination root with move or copy semantics."""

    def __init__(self, dest_root: Path, move_files: bool = True,
                 source_root: Optional[Path] = None):
        self.dest_root = dest_root
        self.move_files = move_files
        self.source_root = source_root
        self.logger = get_logger("mediasort.placement")

    @staticmethod
    def fingerprint(file_path: Path) -> str:
        """SHA-256 digest of the full file content."""
        digest = hashlib.sha256()
        with open(file_path, 'rb') as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b''):
                digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def is_duplicate(source_file: Path, dest_file: Path,
                     fingerprints: Optional[Dict[Path, str]] = None) -> bool:
        """Check if files are duplicates based on size and content.

        ``fingerprints`` caches digests across repeated comparisons of the
        same source file.
        """
        if not dest_file.exists():
            return False

        # Quick size check
        if source_file.stat().st_size != dest_file.stat().st_size:
            return False

        cache = fingerprints if fingerprints is not None else {}
        if source_file not in cache:
            cache[source_file] = FileOperations.fingerprint(source_file)
        return cache[source_file] == FileOperations.fingerprint(dest_file)

    @staticmethod
    def numbered_path(path: Path, counter: int) -> Path:
        return path.with_name(f"{path.stem}_{counter}{path.suffix}")

    def resolve_collision(self, source: Path, target: Path) -> Tuple[Path, bool]:
        """Find a free or content-identical slot. Returns (path, is_duplicate)."""
        fingerprints: Dict[Path, str] = {}
        candidate = target
        counter = 0
        while candidate.exists():
            if self.is_duplicate(source, candidate, fingerprints):
                return candidate, True

            counter += 1
            if counter > MAX_COLLISION_ATTEMPTS:
                raise CollisionUnresolvedError(
                    f"No free filename after {MAX_COLLISION_ATTEMPTS} attempts for {target}",
                    source=source, dest=target)
            candidate = self.numbered_path(target, counter)

        if counter:
            self.logger.debug(f"{target.name} already taken, using {candidate.name}")
        return candidate, False

    def place(self, source: Path, destination: DestinationPath) -> PlacementResult:
        """Move or copy ``source`` to ``destination`` under the destination root."""
        target = destination.resolve(self.dest_root)
        try:
            self.ensure_directory(target.parent)
            final_path, is_dupe = self.resolve_collision(source, target)

            if is_dupe:
                if self.move_files:
                    self.delete_safely(source)
                self.logger.info(f"Duplicate of {final_path}, skipped: {source}")
                return PlacementResult(PlacementOutcome.SKIPPED_DUPLICATE, source, final_path)

            self.transfer(source, final_path)
        except PlacementIoError as e:
            return PlacementResult(PlacementOutcome.FAILED, source, error=e)
        except OSError as e:
            error = PlacementIoError(f"Failed to place {source} -> {target}: {e}",
                                     source=source, dest=target)
            return PlacementResult(PlacementOutcome.FAILED, source, error=error)

        self.logger.info(f"{source} -> {final_path}")
        return PlacementResult(PlacementOutcome.PLACED, source, final_path)

    def transfer(self, source: Path, dest: Path) -> None:
        """Move (rename, or copy then delete across volumes) or copy a file."""
        if not self.move_files:
            self.copy_via_temp(source, dest)
            return

        try:
            os.rename(source, dest)
            return
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise PlacementIoError(f"Failed to move {source} -> {dest}: {e}",
                                       source=source, dest=dest) from e

        self.logger.debug(f"Cross-device move, copying {source} -> {dest}")
        self.copy_via_temp(source, dest)
        if not self.delete_safely(source):
            self.logger.warning(f"Copied {source} but could not remove the original")

    def copy_via_temp(self, source: Path, dest: Path) -> None:
        """Copy under a temporary name, then rename into place once complete."""
        temp_path = dest.with_name(f"{TEMP_PREFIX}{dest.name}.{uuid.uuid4().hex[:8]}{TEMP_SUFFIX}")
        try:
            shutil.copy2(source, temp_path)
            with open(temp_path, 'rb+') as f:
                os.fsync(f.fileno())

            expected = source.stat().st_size
            written = temp_path.stat().st_size
            if written != expected:
                raise PlacementIoError(
                    f"Incomplete copy of {source}: {written} of {expected} bytes",
                    source=source, dest=dest)

            os.replace(temp_path, dest)
        except PlacementIoError:
            self._remove_temp(temp_path)
            raise
        except OSError as e:
            self._remove_temp(temp_path)
            raise PlacementIoError(f"Failed to copy {source} -> {dest}: {e}",
                                   source=source, dest=dest) from e

    def _remove_temp(self, temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove temporary file {temp_path}: {e}")

    def ensure_directory(self, directory: Path) -> None:
        """Create directory and parents if needed."""
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PlacementIoError(f"Cannot create directory {directory}: {e}",
                                   dest=directory) from e

    def delete_safely(self, file_to_delete: Path) -> bool:
        """Unlink a source file, never in COPY mode. Returns success."""
        if not self.move_files:
            return False

        try:
            file_to_delete.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            self.logger.warning(f"Could not remove {file_to_delete}: {e}")
            return False
        return True

    def prune_empty_parents(self, start: Path) -> None:
        """Remove empty directories from ``start`` up to the source root."""
        if not self.move_files or self.source_root is None:
            return

        directory = start
        while directory != self.source_root and self.source_root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                break
            self.logger.debug(f"Removed empty folder {directory}")
            directory = directory.parent

    def cleanup_source_directory(self, source: Path) -> None:
        """Prune folders left empty (or holding only nuisance files) in MOVE mode."""
        if not self.move_files or not source.is_dir():
            return

        for thisdir, subdirs, files in os.walk(source, topdown=False):
            for thissubdir in subdirs:
                subdir = Path(thisdir) / thissubdir
                try:
                    leftovers = list(subdir.iterdir())
                except OSError:
                    continue
                if leftovers and all(p.is_file() and p.name.lower() in NUISANCE_NAMES
                                     for p in leftovers):
                    for nuisance in leftovers:
                        self.delete_safely(nuisance)
                try:
                    os.rmdir(subdir)
                    self.logger.debug(f"Removed empty folder {subdir}")
                except OSError:
                    pass
