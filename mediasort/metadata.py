"""
Capture-time and camera-model extraction.

Capture time is resolved by an ordered chain of resolvers, each of which
returns a datetime or None; the first result wins. Missing or corrupt
embedded metadata is never an error, the chain simply moves on to the
filesystem timestamp and finally to the wall clock.
"""

import json
import os
import re
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from PIL import Image
from PIL.ExifTags import TAGS

from .config import PlacementConfig
from .constants import MOVIE_EXTENSIONS, PHOTO_EXTENSIONS, ffprobe_available, get_logger


logger = get_logger("mediasort.metadata")

# Pointer from IFD0 to the Exif sub-IFD holding DateTimeOriginal and friends
EXIF_IFD_POINTER = 0x8769

# Embedded capture-time tags in priority order
EXIF_DATE_TAGS = ("DateTimeOriginal", "DateTime", "DateTimeDigitized")
EXIF_CAMERA_TAGS = ("Model", "Make")

# Video container tags reported by ffprobe, in priority order
VIDEO_DATE_TAGS = ("com.apple.quicktime.creationdate", "creation_time")
VIDEO_CAMERA_TAGS = ("com.apple.quicktime.model", "com.apple.quicktime.make")


@dataclass(frozen=True)
class Metadata:
    """Resolved capture information for one file."""
    captured_at: datetime
    camera_model: Optional[str] = None
    timestamp_source: str = "exif"

    @property
    def degraded(self) -> bool:
        """True when no embedded capture time was found."""
        return self.timestamp_source not in ("exif", "video")


@dataclass
class EmbeddedTags:
    """Embedded metadata read once per file and shared by all resolvers."""
    exif: Dict[str, Any] = field(default_factory=dict)
    video: Dict[str, str] = field(default_factory=dict)


Resolver = Callable[[Path, EmbeddedTags], Optional[datetime]]


def read_exif_tags(image_path: Path) -> Dict[str, Any]:
    """Read IFD0 and Exif sub-IFD tags by name. Returns {} for unreadable files."""
    try:
        with Image.open(image_path) as image:
            exif = image.getexif()
            if not exif:
                return {}
            tags = {TAGS.get(tag_id, tag_id): value for tag_id, value in exif.items()}
            for tag_id, value in exif.get_ifd(EXIF_IFD_POINTER).items():
                tags.setdefault(TAGS.get(tag_id, tag_id), value)
            return tags
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        logger.debug(f"No EXIF data for {image_path}: {e}")
        return {}


def read_video_tags(file_path: Path) -> Dict[str, str]:
    """Read container format tags with ffprobe. Returns {} when unavailable."""
    if not ffprobe_available():
        return {}

    try:
        result = subprocess.run([
            "ffprobe", "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            str(file_path)
        ], capture_output=True, text=True, check=True)
        data = json.loads(result.stdout)
    except subprocess.CalledProcessError as e:
        logger.debug(f"ffprobe failed for {file_path}: {e}")
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Could not read ffprobe output for {file_path}: {e}")
        return {}

    tags = data.get("format", {}).get("tags", {})
    if not tags:
        logger.debug(f"No format metadata tags found for {file_path}")
    return {str(k).lower(): str(v) for k, v in tags.items()}


def clean_tag_text(value: Any) -> Optional[str]:
    """Normalize an ASCII tag value, dropping NUL padding and whitespace."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if value is None:
        return None
    text = str(value).replace("\x00", "").strip()
    return text or None


def parse_exif_datetime(value: Any) -> Optional[datetime]:
    """Parse an EXIF 'YYYY:MM:DD HH:MM:SS' value into a naive datetime."""
    text = clean_tag_text(value)
    if not text or len(text) < 19:
        return None
    try:
        return datetime.strptime(text[:19], "%Y:%m:%d %H:%M:%S")
    except ValueError:
        return None


def parse_iso8601_datetime(timestamp_str: str,
                           tz: Optional[timezone] = None) -> Optional[datetime]:
    """Parse ISO 8601 or EXIF date-time string with timezone awareness.

    Handles both ISO 8601 (2025-05-06T19:41:34.000000Z) and raw EXIF
    (2025:05:06 19:41:34.745-04:00) date formats. Values without an offset
    are taken as UTC. The result is converted to ``tz`` (system local when
    None) and returned naive.
    """
    pattern = r'(\d{4}[-:]\d{2}[-:]\d{2})[T ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:?\d{2})?'
    match = re.match(pattern, timestamp_str.strip())
    if not match:
        return None

    date_part = match.group(1).replace(':', '-')
    time_part = match.group(2)
    fractional_part = match.group(3)
    timezone_part = match.group(4)

    try:
        base_dt = datetime.strptime(f"{date_part} {time_part}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    if fractional_part:
        base_dt = base_dt.replace(microsecond=int(fractional_part.ljust(6, '0')[:6]))

    try:
        if timezone_part and timezone_part != 'Z':
            tz_str = timezone_part.replace(':', '')
            sign = 1 if tz_str[0] == '+' else -1
            offset = timedelta(hours=int(tz_str[1:3]), minutes=int(tz_str[3:5]))
            aware_dt = base_dt.replace(tzinfo=timezone(sign * offset))
        else:
            aware_dt = base_dt.replace(tzinfo=timezone.utc)
        return aware_dt.astimezone(tz).replace(tzinfo=None)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Unusable timestamp {timestamp_str!r}: {e}")
        return None


def filesystem_timestamp(file_path: Path, use_modified: bool) -> Optional[float]:
    """Return the selected filesystem timestamp, or None if the platform lacks it."""
    try:
        stat = file_path.stat()
    except OSError as e:
        logger.debug(f"Could not stat {file_path}: {e}")
        return None

    if use_modified:
        return stat.st_mtime

    created = getattr(stat, "st_birthtime", None)
    if created is None and os.name == "nt":
        created = stat.st_ctime
    return created


def epoch_to_local(timestamp: float, tz=None) -> Optional[datetime]:
    """Convert an epoch timestamp to a naive datetime in ``tz`` (local if None)."""
    try:
        return datetime.fromtimestamp(timestamp, tz).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None


class MetadataExtractor:
    """Resolves capture time and camera model for media files."""

    def __init__(self, config: PlacementConfig,
                 clock: Callable[..., datetime] = datetime.now):
        self.config = config
        self.clock = clock
        self.tz = config.tzinfo
        self.resolvers: List[Tuple[str, Resolver]] = [
            ("exif", self._from_exif),
            ("video", self._from_video),
            (config.fallback_timestamp.value, self._from_filesystem),
        ]

    def read_embedded(self, file_path: Path) -> EmbeddedTags:
        ext = file_path.suffix.lower()
        tags = EmbeddedTags()
        if ext in PHOTO_EXTENSIONS:
            tags.exif = read_exif_tags(file_path)
        elif ext in MOVIE_EXTENSIONS:
            tags.video = read_video_tags(file_path)
        return tags

    def extract(self, file_path: Path) -> Metadata:
        """Resolve capture time and camera model. Never raises for bad metadata."""
        tags = self.read_embedded(file_path)
        captured_at, source = self.resolve_timestamp(file_path, tags)
        return Metadata(
            captured_at=captured_at,
            camera_model=self.resolve_camera_model(tags),
            timestamp_source=source,
        )

    def resolve_timestamp(self, file_path: Path, tags: EmbeddedTags) -> Tuple[datetime, str]:
        for name, resolver in self.resolvers:
            captured_at = resolver(file_path, tags)
            if captured_at is not None:
                logger.debug(f"Capture time for {file_path} from {name}: {captured_at}")
                return captured_at, name

        now = self.clock(self.tz).replace(tzinfo=None)
        logger.warning(f"No usable timestamp for {file_path}, using current time {now}")
        return now, "clock"

    def resolve_camera_model(self, tags: EmbeddedTags) -> Optional[str]:
        if self.config.manual_camera_model:
            return self.config.manual_camera_model
        if not self.config.use_camera_model:
            return None

        for tag in EXIF_CAMERA_TAGS:
            model = clean_tag_text(tags.exif.get(tag))
            if model:
                return model
        for tag in VIDEO_CAMERA_TAGS:
            model = clean_tag_text(tags.video.get(tag))
            if model:
                return model
        return None

    def _from_exif(self, file_path: Path, tags: EmbeddedTags) -> Optional[datetime]:
        for tag in EXIF_DATE_TAGS:
            if tag not in tags.exif:
                continue
            captured_at = parse_exif_datetime(tags.exif[tag])
            if captured_at:
                return captured_at
            logger.debug(f"Ignoring invalid {tag} in {file_path}: {tags.exif[tag]!r}")
        return None

    def _from_video(self, file_path: Path, tags: EmbeddedTags) -> Optional[datetime]:
        for tag in VIDEO_DATE_TAGS:
            value = tags.video.get(tag)
            if value:
                captured_at = parse_iso8601_datetime(value, self.tz)
                if captured_at:
                    return captured_at
        return None

    def _from_filesystem(self, file_path: Path, tags: EmbeddedTags) -> Optional[datetime]:
        timestamp = filesystem_timestamp(file_path, self.config.use_modified)
        if timestamp is None:
            return None
        return epoch_to_local(timestamp, self.tz)
