# hikkoshi/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    port: int = 3000

    # Database
    expected_schema_version: str = "001_create_estimates.sql"  # Update on deploy when new migrations are added
    database_url: str | None = None
    pghost: str = "localhost"
    pgport: int = 5432
    pguser: str = "postgres"
    pgpassword: str = ""
    pgdatabase: str = "postgres"
    pg_pool_min: int = 1
    pg_pool_max: int = 10
    pg_connect_timeout: int = 5

    # LINE Messaging API
    line_channel_secret: str | None = None
    line_channel_access_token: str | None = None
    liff_id: str | None = None
    line_official_account_id: str = "@your_line_id"  # Fallback friend-add link when LIFF is not set

    # Distance provider
    # "google" - Google Maps Routes API (requires google_maps_api_key)
    # "mock"   - Simulated distances for development
    distance_provider: Literal["google", "mock"] = "google"
    google_maps_api_key: str | None = None
    distance_max_retries: int = 3
    distance_timeout_seconds: float = 10.0

    # Postal code lookup (zipcloud)
    postal_lookup_url: str = "https://zipcloud.ibsnet.co.jp/api/search"
    postal_timeout_seconds: float = 5.0

    # Pricing
    pricing_config_path: str | None = None  # Alternate pricing JSON; default ships with the package

    # Security
    allowed_origins: list[str] = ["*"]

    # Feature Flags
    require_webhook_validation: bool = True
    enable_request_logging: bool = True
    enable_metrics: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url

        return (
            f"postgresql://{self.pguser}:{self.pgpassword}"
            f"@{self.pghost}:{self.pgport}/{self.pgdatabase}"
        )

    @property
    def line_enabled(self) -> bool:
        """Check if LINE Messaging API credentials are configured"""
        return bool(self.line_channel_secret and self.line_channel_access_token)

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []

        required_fields = [
            ("line_channel_secret", self.line_channel_secret),
            ("line_channel_access_token", self.line_channel_access_token),
        ]
        if self.distance_provider == "google":
            required_fields.append(("google_maps_api_key", self.google_maps_api_key))

        for field_name, value in required_fields:
            if not value:
                missing.append(field_name)

        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if not s.line_enabled:
        warnings.append(
            "LINE credentials are not configured: /webhook accepts events but never replies."
        )

    if s.distance_provider == "google" and not s.google_maps_api_key:
        warnings.append(
            "distance_provider=google but google_maps_api_key is missing (mock distances will be used)."
        )

    if not s.liff_id:
        warnings.append("liff_id is not set (estimate links fall back to the friend-add URL).")

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")


settings = Settings()
validate_or_warn(settings)
