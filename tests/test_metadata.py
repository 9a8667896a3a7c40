"""
Test capture-time and camera-model resolution.
"""

import logging
from datetime import datetime, timezone

import pytest

from mediasort.metadata import (MetadataExtractor, parse_exif_datetime,
                                parse_iso8601_datetime)


CREATED_EPOCH = datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc).timestamp()
MODIFIED_EPOCH = datetime(2021, 7, 8, 9, 10, 11, tzinfo=timezone.utc).timestamp()

# IFD0 DateTime, used when DateTimeOriginal is absent
EXIF_DATETIME = 0x0132


@pytest.fixture
def fake_filesystem_times(monkeypatch):
    """Distinct creation and modification times for every file."""
    def fake(file_path, use_modified):
        return MODIFIED_EPOCH if use_modified else CREATED_EPOCH
    monkeypatch.setattr("mediasort.metadata.filesystem_timestamp", fake)


class TestEmbeddedMetadata:
    """Test metadata read from EXIF tags."""

    def test_exif_date_and_model(self, tmp_path, make_jpeg, placement_config):
        photo = make_jpeg(tmp_path / "IMG_0001.jpg")

        metadata = MetadataExtractor(placement_config()).extract(photo)

        assert metadata.captured_at == datetime(2023, 6, 15, 10, 22, 0)
        assert metadata.camera_model == "Pixel 7"
        assert metadata.timestamp_source == "exif"
        assert not metadata.degraded

    def test_datetime_tag_used_without_original(self, tmp_path, make_jpeg, placement_config):
        photo = make_jpeg(tmp_path / "a.jpg", date="2019:12:31 23:59:58", date_tag=EXIF_DATETIME)

        metadata = MetadataExtractor(placement_config()).extract(photo)

        assert metadata.captured_at == datetime(2019, 12, 31, 23, 59, 58)

    def test_make_used_when_model_missing(self, tmp_path, make_jpeg, placement_config):
        photo = make_jpeg(tmp_path / "a.jpg", model=None, make="Canon")

        metadata = MetadataExtractor(placement_config()).extract(photo)

        assert metadata.camera_model == "Canon"

    def test_missing_model_leaves_camera_unset(self, tmp_path, make_jpeg, placement_config):
        photo = make_jpeg(tmp_path / "a.jpg", model=None)

        metadata = MetadataExtractor(placement_config()).extract(photo)

        assert metadata.camera_model is None

    def test_manual_model_overrides_exif(self, tmp_path, make_jpeg, placement_config):
        photo = make_jpeg(tmp_path / "a.jpg")
        config = placement_config(manual_camera_model="Drone")

        assert MetadataExtractor(config).extract(photo).camera_model == "Drone"

    def test_manual_model_applies_without_camera_organization(self, tmp_path, make_jpeg,
                                                              placement_config):
        photo = make_jpeg(tmp_path / "a.jpg")
        config = placement_config(no_camera_model=True, manual_camera_model="Drone")

        assert MetadataExtractor(config).extract(photo).camera_model == "Drone"

    def test_camera_model_disabled(self, tmp_path, make_jpeg, placement_config):
        photo = make_jpeg(tmp_path / "a.jpg")
        config = placement_config(no_camera_model=True)

        assert MetadataExtractor(config).extract(photo).camera_model is None

    def test_video_container_tags(self, tmp_path, write_file, placement_config, monkeypatch):
        clip = write_file(tmp_path / "clip.mov", b"not really a movie")
        monkeypatch.setattr("mediasort.metadata.read_video_tags", lambda path: {
            "creation_time": "2023-06-15T10:22:00.000000Z",
            "com.apple.quicktime.model": "iPhone 15",
        })

        metadata = MetadataExtractor(placement_config(timezone="UTC")).extract(clip)

        assert metadata.captured_at == datetime(2023, 6, 15, 10, 22, 0)
        assert metadata.camera_model == "iPhone 15"
        assert metadata.timestamp_source == "video"


class TestFallbackChain:
    """Test the filesystem and clock fallbacks."""

    def test_creation_time_by_default(self, tmp_path, write_file, placement_config,
                                      fake_filesystem_times):
        photo = write_file(tmp_path / "photo.jpg", b"not a jpeg")

        metadata = MetadataExtractor(placement_config(timezone="UTC")).extract(photo)

        assert metadata.captured_at == datetime(2020, 1, 2, 3, 4, 5)
        assert metadata.timestamp_source == "created"
        assert metadata.degraded

    def test_modified_time_when_requested(self, tmp_path, write_file, placement_config,
                                          fake_filesystem_times):
        photo = write_file(tmp_path / "photo.jpg", b"not a jpeg")
        config = placement_config(use_modified=True, timezone="UTC")

        metadata = MetadataExtractor(config).extract(photo)

        assert metadata.captured_at == datetime(2021, 7, 8, 9, 10, 11)
        assert metadata.timestamp_source == "modified"

    def test_invalid_exif_date_falls_back(self, tmp_path, make_jpeg, placement_config,
                                          fake_filesystem_times):
        photo = make_jpeg(tmp_path / "a.jpg", date="0000:00:00 00:00:00")

        metadata = MetadataExtractor(placement_config(timezone="UTC")).extract(photo)

        assert metadata.timestamp_source == "created"
        # Camera model resolution is independent of the timestamp outcome
        assert metadata.camera_model == "Pixel 7"

    @pytest.mark.parametrize("value", [
        "2023-06-15T10:22:00+99:00",
        "9999-12-31T23:59:59-05:00",
    ])
    def test_corrupt_video_tag_falls_back(self, tmp_path, write_file, placement_config,
                                          fake_filesystem_times, monkeypatch, value):
        clip = write_file(tmp_path / "clip.mp4", b"not really a movie")
        monkeypatch.setattr("mediasort.metadata.read_video_tags",
                            lambda path: {"creation_time": value})

        metadata = MetadataExtractor(placement_config(timezone="UTC")).extract(clip)

        assert metadata.captured_at == datetime(2020, 1, 2, 3, 4, 5)
        assert metadata.timestamp_source == "created"

    def test_real_modified_time(self, tmp_path, write_file, placement_config):
        mtime = datetime(2022, 3, 4, 5, 6, 7)
        photo = write_file(tmp_path / "photo.png", b"not a png", mtime=mtime)

        metadata = MetadataExtractor(placement_config(use_modified=True)).extract(photo)

        assert metadata.captured_at == mtime

    def test_unavailable_timestamp_uses_clock(self, tmp_path, write_file, placement_config,
                                              monkeypatch, caplog):
        photo = write_file(tmp_path / "photo.jpg", b"not a jpeg")
        monkeypatch.setattr("mediasort.metadata.filesystem_timestamp",
                            lambda path, use_modified: None)
        now = datetime(2024, 2, 29, 12, 0, 0)
        extractor = MetadataExtractor(placement_config(), clock=lambda tz: now)

        with caplog.at_level(logging.WARNING, logger="mediasort"):
            metadata = extractor.extract(photo)

        assert metadata.captured_at == now
        assert metadata.timestamp_source == "clock"
        assert "No usable timestamp" in caplog.text

    def test_creation_never_mixed_with_modified(self, tmp_path, write_file, placement_config,
                                                monkeypatch):
        """Without a creation time the modified time is not used as a substitute."""
        photo = write_file(tmp_path / "photo.jpg", b"not a jpeg")
        monkeypatch.setattr("mediasort.metadata.filesystem_timestamp",
                            lambda path, use_modified: MODIFIED_EPOCH if use_modified else None)
        now = datetime(2024, 2, 29, 12, 0, 0)

        metadata = MetadataExtractor(placement_config(), clock=lambda tz: now).extract(photo)

        assert metadata.captured_at == now


class TestDateParsing:
    """Test date-time string parsing helpers."""

    def test_exif_datetime(self):
        assert parse_exif_datetime(b"2023:06:15 10:22:00\x00") == datetime(2023, 6, 15, 10, 22)

    @pytest.mark.parametrize("value", ["2023:02:30 10:00:00", "    :  :     :  :  ", "", None])
    def test_exif_datetime_invalid(self, value):
        assert parse_exif_datetime(value) is None

    def test_iso8601_with_offset(self):
        parsed = parse_iso8601_datetime("2025:05:06 19:41:34.745-04:00", timezone.utc)
        assert parsed == datetime(2025, 5, 6, 23, 41, 34, 745000)

    def test_iso8601_compact_offset(self):
        parsed = parse_iso8601_datetime("2025-05-06T19:41:34-0400", timezone.utc)
        assert parsed == datetime(2025, 5, 6, 23, 41, 34)

    def test_iso8601_without_offset_is_utc(self):
        parsed = parse_iso8601_datetime("2025-05-06T19:41:34", timezone.utc)
        assert parsed == datetime(2025, 5, 6, 19, 41, 34)

    def test_iso8601_garbage(self):
        assert parse_iso8601_datetime("yesterday") is None

    @pytest.mark.parametrize("value", [
        "2023-06-15T10:22:00+99:00",
        "9999-12-31T23:59:59-05:00",
    ])
    def test_iso8601_out_of_range(self, value):
        assert parse_iso8601_datetime(value, timezone.utc) is None
