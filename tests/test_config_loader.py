"""
Tests for settings validation and the JSON config loader.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from dropsync.domain.errors import ConfigurationError
from dropsync.domain.settings import CleanupSettings, ClassifierSettings, DropSyncSettings
from dropsync.infrastructure.config_loader import SMTP_PASSWORD_ENV, ConfigLoader


def write_config(config_dir, data, name="dropsync.json"):
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / name
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path


class TestSettings:

    def test_defaults(self):
        settings = DropSyncSettings()
        assert settings.sheets.source == "Source"
        assert settings.cleanup.chunk_size == 500
        assert settings.cleanup.max_passes == 5
        assert settings.cleanup.edit_protection_window.total_seconds() == 60
        assert settings.classifier.review_block_literal == "NED"

    def test_window_must_be_shorter_than_ttl(self):
        with pytest.raises(ValidationError):
            CleanupSettings(edit_protection_window_seconds=100, recent_edit_ttl_seconds=100)

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            CleanupSettings(chunk_size=0)

    def test_invalid_payment_pattern(self):
        with pytest.raises(ValidationError):
            ClassifierSettings(payment_header_pattern="payment(")


class TestConfigLoader:

    def test_minimal_config_uses_defaults(self, tmp_path):
        write_config(tmp_path / "config", {"workbook_path": "data/book.xlsx"})
        settings = ConfigLoader(tmp_path / "config").load_settings()
        assert settings.workbook_path == tmp_path / "data" / "book.xlsx"
        assert settings.state_db_path == tmp_path / "output" / "dropsync_state.db"
        assert settings.lock.wait_seconds == 30

    def test_absolute_paths_are_kept(self, tmp_path):
        book = tmp_path / "elsewhere" / "book.xlsx"
        write_config(tmp_path / "config", {"workbook_path": str(book)})
        assert ConfigLoader(tmp_path / "config").load_settings().workbook_path == book

    def test_nested_sections(self, tmp_path):
        write_config(tmp_path / "config", {
            "cleanup": {"chunk_size": 50, "max_passes": 3},
            "sheets": {"destination_b": "Relocation"},
            "notifications": {"recipients": ["a@example.com"]},
        })
        settings = ConfigLoader(tmp_path / "config").load_settings()
        assert settings.cleanup.chunk_size == 50
        assert settings.cleanup.max_passes == 3
        assert settings.sheets.destination_b == "Relocation"
        assert settings.notifications.recipients == ["a@example.com"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader(tmp_path).load_settings()

    def test_invalid_json(self, tmp_path):
        write_config(tmp_path, '{"workbook_path": ')
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            ConfigLoader(tmp_path).load_settings()

    def test_empty_file(self, tmp_path):
        write_config(tmp_path, "  ")
        with pytest.raises(ConfigurationError, match="empty"):
            ConfigLoader(tmp_path).load_settings()

    def test_invalid_values(self, tmp_path):
        write_config(tmp_path, {"cleanup": {"max_passes": 0}})
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            ConfigLoader(tmp_path).load_settings()
        assert not ConfigLoader(tmp_path).validate_config()

    def test_smtp_password_from_environment(self, tmp_path, monkeypatch):
        write_config(tmp_path, {"notifications": {"smtp_host": "mail", "smtp_password": "file"}})
        monkeypatch.setenv(SMTP_PASSWORD_ENV, "from-env")
        settings = ConfigLoader(tmp_path).load_settings()
        assert settings.notifications.smtp_password == "from-env"

    def test_example_config_is_valid(self):
        config_dir = Path(__file__).parents[1] / "config"
        assert ConfigLoader(config_dir).validate_config("dropsync.example.json")
