"""Entitlement-Engine configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
    "billing_service_token": "insecure-billing-token-change-me",
}


class EngineSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ENTITLEMENT_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/entitlements.db"

    # API
    api_title: str = "Entitlement-Engine"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Plans and quotas
    trial_days: int = 7
    default_sales_limit: int = 10
    near_limit_ratio: float = 0.8
    plan_cache_ttl: float = 30.0  # seconds, 0 disables the resolver cache

    # Reconciliation
    stale_request_days: int = 30

    # Remote billing gateway
    billing_base_url: str = "http://localhost:54321/functions/v1"
    billing_service_token: str = "insecure-billing-token-change-me"
    billing_timeout: float = 10.0  # seconds, single shot

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"ENTITLEMENT_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}."
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys — set ENTITLEMENT_API_KEY and "
                "ENTITLEMENT_BILLING_SERVICE_TOKEN for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> EngineSettings:
    settings = EngineSettings()
    settings.validate_for_production()
    return settings
