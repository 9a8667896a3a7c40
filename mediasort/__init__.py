"""
mediasort - Organize photos and videos into date and camera folders.

Files are sorted into YYYY/MM/DD folders (optionally with a camera model
folder before or after the date) using embedded capture metadata, either in
a single pass or by continuously monitoring a source directory.
"""

__version__ = "1.0.0"


# Public API
from .cli import main
from .config import Config, PlacementConfig
from .core import MediaSorter
from .file_operations import FileOperations, PlacementResult
from .metadata import Metadata, MetadataExtractor
from .monitor import InFlightSet, StabilityMonitor
from .paths import DestinationPath, build_destination
from .scanner import CandidateFile, scan

__all__ = [ "main", "Config", "PlacementConfig", "MediaSorter", "FileOperations",
            "PlacementResult", "Metadata", "MetadataExtractor", "InFlightSet",
            "StabilityMonitor", "DestinationPath", "build_destination", "CandidateFile",
            "scan" ]
