"""Tests for Settings.from_env()."""

import pytest

from user_api.settings import Settings

ENV_VARS = (
    "SERVICE_NAME",
    "APP_ENV",
    "HOST",
    "PORT",
    "LOG_LEVEL",
    "OTLP_ENABLED",
    "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
    "CONSOLE_EXPORTER_ENABLED",
    "ACTIVITY_LOG_PATH",
    "HTTP_INSTRUMENTATION_ENABLED",
    "DATABASE_PATH",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every setting; anything set during the test is undone afterwards."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return tmp_path / "no.env"


class TestSettingsFromEnv:
    """Tests for environment parsing."""

    def test_defaults(self, clean_env):
        settings = Settings.from_env(str(clean_env))

        assert settings == Settings()
        assert settings.service_name == "user-api"
        assert settings.port == 3000
        assert settings.otlp_endpoint == "http://localhost:4318/v1/traces"
        assert settings.otlp_enabled is True
        assert settings.console_exporter_enabled is True
        assert settings.activity_log_path is None
        assert settings.database_path == "user-api.db"

    def test_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("SERVICE_NAME", "users")
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("OTLP_ENABLED", "False")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "http://collector:4318/v1/traces")
        monkeypatch.setenv("CONSOLE_EXPORTER_ENABLED", "TRUE")
        monkeypatch.setenv("ACTIVITY_LOG_PATH", "logs/activity.log")
        monkeypatch.setenv("DATABASE_PATH", "/var/lib/users.db")

        settings = Settings.from_env(str(clean_env))

        assert settings.service_name == "users"
        assert settings.environment == "production"
        assert settings.port == 8080
        assert settings.log_level == "DEBUG"
        assert settings.otlp_enabled is False
        assert settings.otlp_endpoint == "http://collector:4318/v1/traces"
        assert settings.console_exporter_enabled is True
        assert settings.activity_log_path == "logs/activity.log"
        assert settings.database_path == "/var/lib/users.db"

    def test_empty_database_path_disables_component(self, clean_env, monkeypatch):
        monkeypatch.setenv("DATABASE_PATH", "")

        assert Settings.from_env(str(clean_env)).database_path is None

    def test_invalid_port(self, clean_env, monkeypatch):
        monkeypatch.setenv("PORT", "not-a-port")

        with pytest.raises(ValueError):
            Settings.from_env(str(clean_env))

    def test_reads_dotenv_file(self, clean_env):
        env_file = clean_env.parent / ".env"
        env_file.write_text("PORT=4000\nAPP_ENV=staging\n", encoding="utf-8")

        settings = Settings.from_env(str(env_file))

        assert settings.port == 4000
        assert settings.environment == "staging"

    def test_environment_wins_over_dotenv(self, clean_env, monkeypatch):
        env_file = clean_env.parent / ".env"
        env_file.write_text("PORT=4000\n", encoding="utf-8")
        monkeypatch.setenv("PORT", "5000")

        assert Settings.from_env(str(env_file)).port == 5000
