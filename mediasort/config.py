"""
Configuration management for mediasort.

Two layers: the YAML user settings file (remembered paths and timing
defaults) and the immutable PlacementConfig snapshot that a run is built
around.
"""

import logging
import zoneinfo
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import DEFAULT_QUIET_SECONDS, DEFAULT_SETTLE_SECONDS, PROGRAM


class CameraPosition(str, Enum):
    PREFIX = "prefix"
    SUFFIX = "suffix"


class TransferMode(str, Enum):
    MOVE = "move"
    COPY = "copy"


class NamingMode(str, Enum):
    KEEP_ORIGINAL = "keep-original"
    ISO8601 = "iso8601"


class FallbackTimestamp(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"


@dataclass(frozen=True)
class PlacementConfig:
    """Read-only placement settings shared by every stage of a run."""

    use_camera_model: bool = True
    camera_model_position: CameraPosition = CameraPosition.SUFFIX
    manual_camera_model: Optional[str] = None
    fallback_timestamp: FallbackTimestamp = FallbackTimestamp.CREATED
    transfer_mode: TransferMode = TransferMode.MOVE
    naming: NamingMode = NamingMode.ISO8601
    timezone: Optional[str] = None
    move_unknown: bool = False

    def __post_init__(self):
        if self.timezone is not None:
            try:
                zoneinfo.ZoneInfo(self.timezone)
            except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"Unknown timezone: {self.timezone}") from e

    @property
    def move_files(self) -> bool:
        return self.transfer_mode is TransferMode.MOVE

    @property
    def camera_model_prefix(self) -> bool:
        return self.camera_model_position is CameraPosition.PREFIX

    @property
    def keep_names(self) -> bool:
        return self.naming is NamingMode.KEEP_ORIGINAL

    @property
    def use_modified(self) -> bool:
        return self.fallback_timestamp is FallbackTimestamp.MODIFIED

    @property
    def tzinfo(self) -> Optional[zoneinfo.ZoneInfo]:
        """Zone that capture times are expressed in; None means system local."""
        if self.timezone is None:
            return None
        return zoneinfo.ZoneInfo(self.timezone)

    @classmethod
    def from_flags(cls, use_modified: bool = False, no_camera_model: bool = False,
                   camera_model_prefix: bool = False,
                   manual_camera_model: Optional[str] = None,
                   copy: bool = False, keep_names: bool = False,
                   timezone: Optional[str] = None,
                   move_unknown: bool = False) -> "PlacementConfig":
        """Build a snapshot from command-line style flags."""
        return cls(
            use_camera_model=not no_camera_model,
            camera_model_position=(CameraPosition.PREFIX if camera_model_prefix
                                   else CameraPosition.SUFFIX),
            manual_camera_model=manual_camera_model or None,
            fallback_timestamp=(FallbackTimestamp.MODIFIED if use_modified
                                else FallbackTimestamp.CREATED),
            transfer_mode=TransferMode.COPY if copy else TransferMode.MOVE,
            naming=NamingMode.KEEP_ORIGINAL if keep_names else NamingMode.ISO8601,
            timezone=timezone or None,
            move_unknown=move_unknown,
        )


class Config:
    """Manages configuration file for storing user preferences."""

    def __init__(self, config_path: Optional[Path] = None):
        # Default config location: ~/.<PROGRAM>/config.yml
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = Path.home() / f".{PROGRAM}" / "config.yml"
        self.program_root = self.config_path.parent
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger(PROGRAM).warning(f"Could not load config: {e}")
            return {}

        if not isinstance(data, dict):
            logging.getLogger(PROGRAM).warning(
                f"Ignoring config {self.config_path}: expected a mapping")
            return {}
        return data

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            self.program_root.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self.data, f, default_flow_style=False)
        except OSError as e:
            logging.getLogger(PROGRAM).error(f"Could not save config: {e}")

    def get_last_source(self) -> Optional[str]:
        """Get the last used source directory."""
        return self.data.get('last_source')

    def get_last_dest(self) -> Optional[str]:
        """Get the last used destination directory."""
        return self.data.get('last_dest')

    def get_timezone(self) -> Optional[str]:
        """Get the saved timezone setting."""
        return self.data.get('timezone')

    def get_settle_seconds(self) -> float:
        return self._get_seconds('settle_seconds', DEFAULT_SETTLE_SECONDS)

    def get_quiet_seconds(self) -> float:
        return self._get_seconds('quiet_seconds', DEFAULT_QUIET_SECONDS)

    def _get_seconds(self, key: str, default: float) -> float:
        value = self.data.get(key, default)
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            logging.getLogger(PROGRAM).warning(
                f"Invalid {key} in config: {value!r}, using {default}")
            return default
        return seconds if seconds >= 0 else default

    def update_paths(self, source: str, dest: str) -> None:
        """Update and save the last used paths."""
        self.data['last_source'] = source
        self.data['last_dest'] = dest
        self.save_config()

    def update_timezone(self, timezone: str) -> None:
        """Update and save the timezone setting."""
        self.data['timezone'] = timezone
        self.save_config()
