"""Unit tests for caltempo.config."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from caltempo.config import TempoSettings, env_overrides, load_settings
from caltempo.transitions import HORIZON, get_transition_cache

pytestmark = pytest.mark.unit


class TestTempoSettings:
    """Tests for the settings model."""

    def test_defaults(self):
        settings = TempoSettings()

        assert settings.default_timezone == "UTC"
        assert settings.transition_horizon == HORIZON
        assert settings.lookahead_days == 7
        assert settings.max_occurrences == 1000
        assert settings.log_level == "INFO"

    def test_invalid_timezone_rejected(self):
        with pytest.raises(ValidationError, match="Invalid timezone"):
            TempoSettings(default_timezone="Mars/Olympus_Mons")

    def test_windows_timezone_accepted(self):
        settings = TempoSettings(default_timezone="Eastern Standard Time")

        assert settings.resolve_timezone().id == "America/New_York"

    def test_log_level_normalized(self):
        assert TempoSettings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            TempoSettings(log_level="chatty")

    @pytest.mark.parametrize("field", ["lookahead_days", "max_occurrences"])
    def test_counts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            TempoSettings(**{field: 0})

    def test_aware_horizon_made_naive(self):
        settings = TempoSettings(transition_horizon=datetime(2030, 1, 1, tzinfo=timezone.utc))

        assert settings.transition_horizon == datetime(2030, 1, 1)

    def test_unknown_keys_ignored(self):
        settings = TempoSettings(calendar_url="https://example.com/cal.ics")

        assert not hasattr(settings, "calendar_url")


class TestEnvOverrides:
    """Tests for reading CALTEMPO_* variables."""

    def test_reads_prefixed_fields(self):
        overrides = env_overrides(
            {"CALTEMPO_LOOKAHEAD_DAYS": "14", "CALTEMPO_DEFAULT_TIMEZONE": "Europe/Berlin", "TZ": "x"}
        )

        assert overrides == {"lookahead_days": "14", "default_timezone": "Europe/Berlin"}

    def test_empty_values_ignored(self):
        assert env_overrides({"CALTEMPO_LOG_LEVEL": ""}) == {}


class TestLoadSettings:
    """Tests for loading settings files."""

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.yaml")

        assert settings == TempoSettings()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "default_timezone: Europe/Berlin\nlookahead_days: 3\ntransition_horizon: 2030-01-01T00:00:00\n"
        )

        settings = load_settings(path)

        assert settings.default_timezone == "Europe/Berlin"
        assert settings.lookahead_days == 3
        assert settings.transition_horizon == datetime(2030, 1, 1)

    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"max_occurrences": 25}')

        assert load_settings(path).max_occurrences == 25

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_settings(path).lookahead_days == 7

    def test_environment_beats_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("lookahead_days: 3\n")
        monkeypatch.setenv("CALTEMPO_LOOKAHEAD_DAYS", "14")

        assert load_settings(path).lookahead_days == 14

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            load_settings(path)

    def test_invalid_value_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("lookahead_days: soon\n")

        with pytest.raises(ValidationError):
            load_settings(path)

    def test_horizon_feeds_transition_cache(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("transition_horizon: 2030-01-01T00:00:00\n")

        cache = get_transition_cache(load_settings(path))

        assert cache.horizon == datetime(2030, 1, 1)
