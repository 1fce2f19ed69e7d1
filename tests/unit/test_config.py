"""
Unit tests for settings loading.
"""
from device_gateway.config import ConnectionSettings, TCPServerSettings
from provisioning.config import AppSettings, DatabaseSettings, RegistrationSettings
from provisioning.domain.value_objects import DedupStrategy, ReplyFieldOrder


class TestDefaults:
    """Test default values."""

    def test_registration_defaults(self):
        """Test counter and reply defaults."""
        settings = RegistrationSettings()

        assert settings.counter_name == "serialNumberCounter"
        assert settings.serial_seed == 10000000
        assert settings.reply_field_order == ReplyFieldOrder.ID_SERIAL_TIMESTAMP
        assert settings.dedup_strategy == DedupStrategy.DEFAULT_DEVICE_ID
        assert settings.allocated_id_length == 6

    def test_gateway_defaults(self):
        """Test listener defaults."""
        assert TCPServerSettings().port == 8000
        assert ConnectionSettings().idle_timeout == 300.0

    def test_app_defaults(self):
        """Test HTTP port and app name."""
        settings = AppSettings()

        assert settings.http.port == 3030
        assert settings.app_name == "Device Provisioning Server"
        assert not settings.database.is_sqlite


class TestEnvironment:
    """Test environment overrides."""

    def test_registration_from_env(self, monkeypatch):
        """Test prefixed variables are read."""
        monkeypatch.setenv("REGISTRATION_SERIAL_SEED", "500")
        monkeypatch.setenv("REGISTRATION_REPLY_FIELD_ORDER", "id_timestamp_serial")
        monkeypatch.setenv("REGISTRATION_DEDUP_STRATEGY", "all_fields")

        settings = RegistrationSettings()

        assert settings.serial_seed == 500
        assert settings.reply_field_order == ReplyFieldOrder.ID_TIMESTAMP_SERIAL
        assert settings.dedup_strategy == DedupStrategy.ALL_FIELDS

    def test_gateway_from_env(self, monkeypatch):
        """Test listener and connection variables are read."""
        monkeypatch.setenv("TCP_PORT", "9100")
        monkeypatch.setenv("DEVICE_CONNECTION_IDLE_TIMEOUT", "30")

        assert TCPServerSettings().port == 9100
        assert ConnectionSettings().idle_timeout == 30.0

    def test_sqlite_url(self, monkeypatch):
        """Test SQLite detection."""
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///devices.db")

        assert DatabaseSettings().is_sqlite
