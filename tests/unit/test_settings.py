"""
Unit tests for Pydantic Settings configuration.

Tests settings loading and validation.
"""

import pytest
from pydantic import ValidationError

from careerlyst.config.settings import Settings


BASE = {
    "supabase_url": "https://testproject.supabase.co",
    "supabase_service_role_key": "service-role",
}


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_loads_from_env(self):
        """Settings should load from environment variables."""
        from careerlyst.config.settings import settings

        assert settings.supabase_url is not None
        assert settings.supabase_service_role_key is not None

    def test_reservation_defaults(self):
        """Prospect-list reservation waits 200ms between polls, 2s in total."""
        settings = Settings(_env_file=None, **BASE)

        assert settings.wiza_reservation_poll_interval == 0.2
        assert settings.wiza_reservation_wait_timeout == 2.0
        assert settings.wiza_reservation_stale_after == 300
        assert settings.wiza_max_profiles == 10

    def test_is_production_property(self):
        """is_production should follow ENVIRONMENT."""
        settings = Settings(_env_file=None, environment="development", **BASE)

        assert settings.is_production is False
        assert settings.is_development is True

    def test_production_requires_stripe_keys(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, environment="production", **BASE)

        assert "STRIPE_SECRET_KEY" in str(exc_info.value)
        assert "STRIPE_WEBHOOK_SECRET" in str(exc_info.value)

    def test_production_with_stripe_keys(self):
        settings = Settings(
            _env_file=None,
            environment="Production",
            stripe_secret_key="sk_live_x",
            stripe_webhook_secret="whsec_x",
            **BASE,
        )

        assert settings.is_production is True

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, wiza_reservation_poll_interval=0, **BASE)

    def test_allowed_origins_includes_localhost(self):
        """allowed_origins should include localhost for development."""
        settings = Settings(_env_file=None, **BASE)

        assert "http://localhost:3000" in settings.allowed_origins

    def test_stripe_price_lookup(self):
        settings = Settings(
            _env_file=None,
            stripe_price_learn_yearly="price_learn_yearly",
            **BASE,
        )

        assert settings.stripe_price_id("learn", "yearly") == "price_learn_yearly"
        assert settings.stripe_price_id("accelerate", "monthly") is None

    def test_unused_frontend_settings_are_not_declared(self):
        assert "supabase_anon_key" not in Settings.model_fields
        assert "frontend_url" not in Settings.model_fields
