"""
Application Settings for Careerlyst Billing

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Stripe and Wiza keys are optional in development so the API can boot
    without third-party credentials; production requires the Stripe keys.
    """

    # Supabase Configuration
    supabase_url: str
    supabase_service_role_key: str
    supabase_jwt_secret: Optional[str] = None

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_subscription_list_limit: int = 10

    # Stripe price IDs per plan and billing cadence
    stripe_price_learn_monthly: Optional[str] = None
    stripe_price_learn_quarterly: Optional[str] = None
    stripe_price_learn_yearly: Optional[str] = None
    stripe_price_accelerate_monthly: Optional[str] = None
    stripe_price_accelerate_quarterly: Optional[str] = None
    stripe_price_accelerate_yearly: Optional[str] = None

    # Wiza Configuration
    wiza_api_key: Optional[str] = None
    wiza_api_base: str = "https://wiza.co/api"
    wiza_request_timeout: float = 30.0
    wiza_max_profiles: int = 10

    # Prospect list reservation (insert-or-conflict, then bounded poll)
    wiza_reservation_poll_interval: float = 0.2
    wiza_reservation_wait_timeout: float = 2.0
    wiza_reservation_stale_after: int = 300

    # Database Configuration (SQLModel/SQLAlchemy)
    supabase_password: Optional[str] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_billing_keys(self) -> "Settings":
        """Require Stripe credentials outside development."""
        if self.is_production:
            missing = [
                name for name in ("stripe_secret_key", "stripe_webhook_secret")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(m.upper() for m in missing)} required when ENVIRONMENT=production"
                )

        if self.wiza_reservation_poll_interval <= 0:
            raise ValueError("WIZA_RESERVATION_POLL_INTERVAL must be positive")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def stripe_price_id(self, plan: str, billing_cadence: str) -> Optional[str]:
        """Configured Stripe price for a plan/cadence pair, e.g. ``("learn", "yearly")``."""
        return getattr(self, f"stripe_price_{plan}_{billing_cadence}", None)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
