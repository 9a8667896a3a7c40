"""
Test configuration: the YAML settings file and the placement snapshot.
"""

import pytest
import yaml

from mediasort.config import (CameraPosition, Config, FallbackTimestamp, NamingMode,
                              PlacementConfig, TransferMode)
from mediasort.constants import DEFAULT_QUIET_SECONDS, DEFAULT_SETTLE_SECONDS


class TestConfigFile:
    """Test the remembered settings file."""

    def test_missing_file_gives_defaults(self, test_config_path):
        config = Config(config_path=test_config_path)

        assert config.data == {}
        assert config.get_last_source() is None
        assert config.get_timezone() is None
        assert config.get_settle_seconds() == DEFAULT_SETTLE_SECONDS
        assert config.get_quiet_seconds() == DEFAULT_QUIET_SECONDS

    def test_update_paths_persists(self, test_config_path):
        config = Config(config_path=test_config_path)
        config.update_paths("/media/in", "/media/out")

        reloaded = Config(config_path=test_config_path)
        assert reloaded.get_last_source() == "/media/in"
        assert reloaded.get_last_dest() == "/media/out"

    def test_timezone_persists(self, test_config_path):
        Config(config_path=test_config_path).update_timezone("Europe/Berlin")

        with open(test_config_path) as f:
            assert yaml.safe_load(f)["timezone"] == "Europe/Berlin"

    def test_seconds_from_file(self, test_config_path):
        test_config_path.write_text("settle_seconds: 5\nquiet_seconds: 12.5\n")
        config = Config(config_path=test_config_path)

        assert config.get_settle_seconds() == 5.0
        assert config.get_quiet_seconds() == 12.5

    @pytest.mark.parametrize("value", ["soon", "-3", "[1, 2]"])
    def test_bad_seconds_fall_back(self, test_config_path, value):
        test_config_path.write_text(f"settle_seconds: {value}\n")

        assert Config(config_path=test_config_path).get_settle_seconds() == DEFAULT_SETTLE_SECONDS

    def test_invalid_yaml_is_ignored(self, test_config_path, caplog):
        test_config_path.write_text("last_source: [unclosed\n")

        config = Config(config_path=test_config_path)

        assert config.data == {}
        assert "Could not load config" in caplog.text

    def test_non_mapping_is_ignored(self, test_config_path):
        test_config_path.write_text("- just\n- a list\n")

        assert Config(config_path=test_config_path).data == {}


class TestPlacementConfig:
    """Test flag translation and validation of the placement snapshot."""

    def test_defaults(self):
        config = PlacementConfig.from_flags()

        assert config.use_camera_model
        assert config.camera_model_position is CameraPosition.SUFFIX
        assert config.fallback_timestamp is FallbackTimestamp.CREATED
        assert config.transfer_mode is TransferMode.MOVE
        assert config.naming is NamingMode.ISO8601
        assert config.move_files
        assert not config.keep_names
        assert config.tzinfo is None

    def test_all_flags(self):
        config = PlacementConfig.from_flags(
            use_modified=True, no_camera_model=True, camera_model_prefix=True,
            copy=True, keep_names=True, timezone="America/New_York", move_unknown=True)

        assert not config.use_camera_model
        assert config.camera_model_prefix
        assert config.use_modified
        assert not config.move_files
        assert config.keep_names
        assert config.move_unknown
        assert str(config.tzinfo) == "America/New_York"

    def test_empty_manual_model_means_none(self):
        assert PlacementConfig.from_flags(manual_camera_model="").manual_camera_model is None

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            PlacementConfig.from_flags(timezone="Mars/Olympus_Mons")

    def test_snapshot_is_immutable(self):
        config = PlacementConfig.from_flags()
        with pytest.raises(AttributeError):
            config.naming = NamingMode.KEEP_ORIGINAL
