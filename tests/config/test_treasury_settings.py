"""Settings loading: packaged defaults, YAML overrides, environment overrides."""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from treasury_config import TreasurySettings, compute_checksum, get_settings, load_settings
from treasury_config.loader import parse_settings


def _write(tmp_path, data) -> Path:
    path = tmp_path / "treasury.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadSettings:

    def test_packaged_defaults(self):
        settings = load_settings(environ={})

        assert settings.database_url.startswith("postgresql://")
        assert settings.balance_tolerance == Decimal("0.50")
        assert settings.import_actor == "import-system"
        assert settings.log_level == "INFO"
        assert settings.source_path is None

    def test_file_overrides_defaults(self, tmp_path):
        path = _write(tmp_path, {"database_url": "sqlite:///treasury.db", "balance_tolerance": 1})

        settings = load_settings(path, environ={})

        assert settings.database_url == "sqlite:///treasury.db"
        assert settings.balance_tolerance == Decimal("1")
        assert settings.log_level == "INFO"

    def test_config_file_from_environment(self, tmp_path):
        path = _write(tmp_path, {"import_actor": "migration-2024"})

        settings = load_settings(environ={"TREASURY_CONFIG": str(path)})

        assert settings.import_actor == "migration-2024"

    def test_environment_beats_file(self, tmp_path):
        path = _write(tmp_path, {"database_url": "sqlite:///a.db", "log_level": "DEBUG"})

        settings = load_settings(
            path,
            environ={"TREASURY_DATABASE_URL": "sqlite:///b.db", "TREASURY_LOG_LEVEL": "warning"},
        )

        assert settings.database_url == "sqlite:///b.db"
        assert settings.log_level == "WARNING"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml", environ={})

    def test_get_settings_logs_checksum(self, tmp_path, monkeypatch, captured_logs):
        monkeypatch.delenv("TREASURY_CONFIG", raising=False)
        monkeypatch.delenv("TREASURY_DATABASE_URL", raising=False)
        monkeypatch.delenv("TREASURY_LOG_LEVEL", raising=False)

        settings = get_settings(_write(tmp_path, {"echo_sql": True}))

        record = next(r for r in captured_logs() if r["message"] == "treasury_config_loaded")
        assert record["checksum"] == settings.checksum
        assert settings.echo_sql is True


class TestParseSettings:

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="fail_fast"):
            parse_settings({"database_url": "sqlite://", "fail_fast": True})

    @pytest.mark.parametrize("tolerance", ["abc", True, "-1"])
    def test_bad_tolerance_rejected(self, tolerance):
        with pytest.raises(ValueError):
            parse_settings({"database_url": "sqlite://", "balance_tolerance": tolerance})

    def test_bad_log_level_rejected(self):
        with pytest.raises(ValueError):
            parse_settings({"database_url": "sqlite://", "log_level": "LOUD"})

    def test_database_url_required(self):
        with pytest.raises(KeyError):
            parse_settings({})
        with pytest.raises(ValueError):
            TreasurySettings(database_url="")

    def test_checksum_tracks_values(self):
        a = parse_settings({"database_url": "sqlite://"})
        b = parse_settings({"database_url": "sqlite://"})
        c = parse_settings({"database_url": "sqlite://", "balance_tolerance": "0.01"})

        assert a.checksum == b.checksum
        assert a.checksum != c.checksum
        assert a.checksum == compute_checksum(a.to_dict())
