"""
Payments Infrastructure Module

Stripe customer and subscription access for billing reconciliation.
"""

from careerlyst.infrastructure.payments.stripe_service import StripeService, get_stripe_service

__all__ = ["StripeService", "get_stripe_service"]
