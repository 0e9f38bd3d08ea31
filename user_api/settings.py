import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (and `.env`)."""

    service_name: str = "user-api"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    otlp_enabled: bool = True
    otlp_endpoint: str = "http://localhost:4318/v1/traces"
    console_exporter_enabled: bool = True
    activity_log_path: Optional[str] = None
    http_instrumentation_enabled: bool = True

    # Empty disables the database health component.
    database_path: Optional[str] = "user-api.db"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)

        return cls(
            service_name=os.getenv("SERVICE_NAME", "user-api").strip(),
            environment=os.getenv("APP_ENV", "development").strip(),
            host=os.getenv("HOST", "0.0.0.0").strip(),
            port=int(os.getenv("PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
            otlp_enabled=_env_flag("OTLP_ENABLED", "true"),
            otlp_endpoint=os.getenv(
                "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
                "http://localhost:4318/v1/traces",
            ).strip(),
            console_exporter_enabled=_env_flag("CONSOLE_EXPORTER_ENABLED", "true"),
            activity_log_path=os.getenv("ACTIVITY_LOG_PATH") or None,
            http_instrumentation_enabled=_env_flag("HTTP_INSTRUMENTATION_ENABLED", "true"),
            database_path=os.getenv("DATABASE_PATH", "user-api.db").strip() or None,
        )
