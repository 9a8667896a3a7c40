"""
pytest configuration and fixtures for mediasort tests.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from mediasort.config import PlacementConfig


# EXIF tag ids written into IFD0 of generated images
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003


@dataclass
class CliResult:
    """Result from running CLI command."""
    exit_code: int
    output: str


@pytest.fixture
def source_dir(tmp_path):
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def dest_dir(tmp_path):
    return tmp_path / "dest"


@pytest.fixture
def test_config_path(tmp_path):
    """Isolated config path so tests never touch ~/.mediasort."""
    path = tmp_path / "config" / "config.yml"
    path.parent.mkdir()
    return path


@pytest.fixture
def placement_config():
    """Build a PlacementConfig from command-line style flags."""
    def build(**flags) -> PlacementConfig:
        return PlacementConfig.from_flags(**flags)
    return build


@pytest.fixture
def make_jpeg():
    """Create a real JPEG carrying EXIF capture date and camera tags."""

    def create(path: Path, date: Optional[str] = "2023:06:15 10:22:00",
               model: Optional[str] = "Pixel 7", make: Optional[str] = None,
               date_tag: int = TAG_DATETIME_ORIGINAL,
               color=(200, 30, 30)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        exif = Image.Exif()
        if date is not None:
            exif[date_tag] = date
        if model is not None:
            exif[TAG_MODEL] = model
        if make is not None:
            exif[TAG_MAKE] = make
        Image.new("RGB", (16, 16), color).save(path, "JPEG", exif=exif)
        return path

    return create


@pytest.fixture
def write_file():
    """Create a plain file with given content and optional modification time."""

    def create(path: Path, content: bytes = b"test file content",
               mtime: Optional[datetime] = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        if mtime is not None:
            stamp = mtime.timestamp()
            os.utime(path, (stamp, stamp))
        return path

    return create


@pytest.fixture
def cli_runner(capsys, test_config_path):
    """Run the mediasort CLI in-process and capture its output."""

    def run_cli(*args) -> CliResult:
        from mediasort.cli import main

        try:
            exit_code = main([str(a) for a in args], config_path=test_config_path)
        except SystemExit as e:
            exit_code = e.code if e.code is not None else 0
        captured = capsys.readouterr()
        return CliResult(exit_code=exit_code, output=captured.out + captured.err)

    return run_cli


@pytest.fixture
def assert_file_structure():
    """Helper to assert expected file structure."""

    def check_structure(base_path: Path, expected_structure: dict):
        """Assert that directory has expected structure.

        Args:
            base_path: Root directory to check
            expected_structure: Dict describing expected structure
                e.g., {"2023": {"06": {"15": ["a.jpg"]}}}
        """
        def check_level(path: Path, structure: dict):
            for name, value in structure.items():
                item_path = path / name
                assert item_path.exists(), f"Expected {item_path} to exist"
                assert item_path.is_dir(), f"Expected {item_path} to be a directory"

                if isinstance(value, dict):
                    check_level(item_path, value)
                else:
                    actual_files = sorted(f.name for f in item_path.iterdir() if f.is_file())
                    assert actual_files == sorted(value), \
                        f"Expected files {sorted(value)} in {item_path}, got {actual_files}"

        check_level(base_path, expected_structure)

    return check_structure


@pytest.fixture(autouse=True)
def reset_program_logger():
    """Undo CLI logging setup so caplog sees mediasort records in every test."""
    yield
    logger = logging.getLogger("mediasort")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
