from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("backoffice-approvals", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Organization reporting currency all monetary approvals are normalized into
    base_currency: str = Field("TRY", alias="BASE_CURRENCY")

    # Storage backend: "memory" (demo/tests) or "sqlite"
    approval_store_backend: str = Field("memory", alias="APPROVAL_STORE_BACKEND")
    approvals_db_path: str = Field("approvals.db", alias="APPROVALS_DB_PATH")

    # New-approval polling
    notifier_enabled: bool = Field(False, alias="NOTIFIER_ENABLED")
    notifier_poll_interval_seconds: float = Field(30.0, alias="NOTIFIER_POLL_INTERVAL_SECONDS")

    # Teams
    teams_webhook_url: str | None = Field(default=None, alias="TEAMS_WEBHOOK_URL")

    # API Base URL (for links in Teams cards)
    api_base_url: str = Field("http://127.0.0.1:8000", alias="API_BASE_URL")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    # Approval rules
    approval_high_value_threshold: float = Field(0.0, alias="APPROVAL_HIGH_VALUE_THRESHOLD")  # 0 = disabled

    # Decision events
    service_bus_connection_string: str | None = Field(default=None, alias="SERVICE_BUS_CONNECTION_STRING")
    service_bus_entity_name: str = Field("approval-events", alias="SERVICE_BUS_ENTITY_NAME")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "populate_by_name": True}

settings = Settings()
