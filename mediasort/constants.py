"""
File extension constants and shared settings for media organization.
"""

import logging
import shutil
from functools import lru_cache

from rich.console import Console


PROGRAM = "mediasort"

# File extension constants
JPG_EXTENSIONS = (".jpg", ".jpeg", ".jpe")
RAW_EXTENSIONS = (
    ".3fr", ".3pr", ".arw", ".ce1", ".ce2", ".cib", ".cmt", ".cr2", ".cr3",
    ".craw", ".crw", ".dc2", ".dcr", ".dng", ".erf", ".exf", ".fff", ".fpx",
    ".gray", ".grey", ".gry", ".heic", ".heif", ".iiq", ".kc2", ".kdc",
    ".mdc", ".mef", ".mfw", ".mos", ".mrw", ".ndd", ".nef", ".nop", ".nrw",
    ".nwb", ".orf", ".pcd", ".pef", ".ptx", ".ra2", ".raf", ".raw", ".rw2",
    ".rwl", ".rwz", ".sd0", ".sd1", ".sr2", ".srf", ".srw", ".x3f",
)
IMAGE_EXTENSIONS = (
    ".png", ".gif", ".bmp", ".tif", ".tiff", ".webp", ".avif",
)
PHOTO_EXTENSIONS = JPG_EXTENSIONS + RAW_EXTENSIONS + IMAGE_EXTENSIONS
MOVIE_EXTENSIONS = (
    ".3g2", ".3gp", ".asf", ".avi", ".flv", ".m2ts", ".m4v", ".mkv", ".mod",
    ".mov", ".mp4", ".mpeg", ".mpg", ".mts", ".mxf", ".ogv", ".tod", ".ts",
    ".vob", ".webm", ".wmv",
)
NUISANCE_NAMES = (
    ".ds_store", "thumbs.db", "desktop.ini"
)
VALID_EXTENSIONS = PHOTO_EXTENSIONS + MOVIE_EXTENSIONS

# In-progress transfers are written under this prefix and suffix
TEMP_PREFIX = f".{PROGRAM}-"
TEMP_SUFFIX = ".part"

# Camera models and unknown files
UNKNOWN_DIR_NAME = "unknown"

# Collision handling
MAX_COLLISION_ATTEMPTS = 9999
HASH_CHUNK_SIZE = 64 * 1024

# Monitor timing defaults (seconds)
DEFAULT_SETTLE_SECONDS = 2.0
DEFAULT_QUIET_SECONDS = 30.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_QUEUE_SIZE = 256


def is_media_file(name: str) -> bool:
    """Check whether a filename carries a known photo or video extension."""
    return name.lower().endswith(VALID_EXTENSIONS)


def is_temp_file(name: str) -> bool:
    """Check whether a filename belongs to an in-progress transfer."""
    return name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX)


def check_tool_availability(cmd: str) -> bool:
    """Check if an external command is available on PATH."""
    return shutil.which(cmd) is not None


def ffprobe_available() -> bool:
    return check_tool_availability("ffprobe")


@lru_cache(maxsize=None)
def get_console() -> Console:
    """Shared rich console for log and status output."""
    return Console()


def get_logger(name: str = PROGRAM) -> logging.Logger:
    return logging.getLogger(name)
