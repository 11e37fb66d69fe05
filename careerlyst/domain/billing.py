"""
Billing Reconciliation Rules

Pure functions that turn a raw Stripe subscription object into the
internal subscription snapshot:

- Plan/cadence resolution from legacy hints, metadata and price interval
- Billing period extraction across classic and flexible billing shapes
- Cancellation-intent detection
- Status normalization and "most relevant subscription" selection

Nothing here performs I/O. Inputs may be ``stripe.StripeObject`` instances
or plain dicts (webhook payloads, tests); both are read through ``.get``.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from careerlyst.domain.subscription import (
    Plan,
    BillingCadence,
    SubscriptionStatus,
    SubscriptionSnapshot,
)
from careerlyst.infrastructure.exceptions import MissingPeriodError


logger = logging.getLogger(__name__)

# cancel_at within this many seconds of the period end means "cancel at period end"
CANCEL_AT_TOLERANCE_SECONDS = 86400

STATUS_PRIORITY = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PAST_DUE,
)

INTERVAL_CADENCE = {
    "month": BillingCadence.MONTHLY,
    "year": BillingCadence.YEARLY,
}


@dataclass(frozen=True)
class LegacyHint:
    """Plan and frequency labels carried over from the Bubble export."""
    plan_label: Optional[str] = None
    frequency_label: Optional[str] = None


@dataclass(frozen=True)
class PlanResolution:
    plan: Plan
    billing_cadence: BillingCadence


class PeriodSource(str, Enum):
    """Where the billing period was read from."""
    SUBSCRIPTION = "subscription"  # classic billing
    ITEM = "item"  # flexible billing, period lives on the line item


@dataclass(frozen=True)
class BillingPeriod:
    period_start: datetime
    period_end: datetime
    cancel_at_period_end: bool
    source: PeriodSource


# =============================================================================
# Field access
# =============================================================================

def stripe_field(obj: Any, key: str) -> Any:
    """Read ``key`` from a Stripe object, dict, or attribute-style object."""
    if obj is None:
        return None
    getter = getattr(obj, "get", None)
    if callable(getter):
        return getter(key)
    return getattr(obj, key, None)


def _first_item(subscription: Any) -> Any:
    items = stripe_field(subscription, "items")
    data = stripe_field(items, "data") or []
    return data[0] if len(data) > 0 else None


def _first_price(subscription: Any) -> Any:
    return stripe_field(_first_item(subscription), "price")


def first_price_id(subscription: Any) -> str:
    """Price ID of the first line item, or an empty string."""
    return stripe_field(_first_price(subscription), "id") or ""


def timestamp_to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a Unix timestamp (seconds) to an aware UTC datetime.

    Returns None for missing values, non-numeric values (booleans included),
    non-finite numbers and values outside the representable date range.
    """
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


# =============================================================================
# Status
# =============================================================================

def normalize_status(raw_status: Any) -> SubscriptionStatus:
    """Map a Stripe status onto our enum; unknown values become ``incomplete``."""
    try:
        return SubscriptionStatus(raw_status)
    except ValueError:
        if raw_status is not None:
            logger.warning(f"Unrecognized subscription status {raw_status!r}, storing as incomplete")
        return SubscriptionStatus.INCOMPLETE


def select_most_relevant_subscription(subscriptions: Sequence[Any]) -> Optional[Any]:
    """
    Pick the subscription to reconcile from a customer's list.

    Priority: active > trialing > past_due > first in list.
    """
    if not subscriptions:
        return None

    for status in STATUS_PRIORITY:
        for subscription in subscriptions:
            if stripe_field(subscription, "status") == status.value:
                return subscription

    return subscriptions[0]


# =============================================================================
# Plan / Cadence Resolution
# =============================================================================

def _parse_plan(value: Any) -> Optional[Plan]:
    if not isinstance(value, str):
        return None
    try:
        return Plan(value.strip().lower())
    except ValueError:
        return None


def _parse_cadence(value: Any) -> Optional[BillingCadence]:
    if not isinstance(value, str):
        return None
    try:
        return BillingCadence(value.strip().lower())
    except ValueError:
        return None


def _plan_from_label(label: Optional[str]) -> Plan:
    if label:
        lowered = label.lower()
        if "accelerate" in lowered or "pro" in lowered:
            return Plan.ACCELERATE
    return Plan.LEARN


def _cadence_from_label(label: Optional[str]) -> Optional[BillingCadence]:
    if not label:
        return None
    lowered = label.lower()
    cadence = None
    # Later matches win ("month" < "quarter" < "year")
    if "month" in lowered:
        cadence = BillingCadence.MONTHLY
    if "quarter" in lowered:
        cadence = BillingCadence.QUARTERLY
    if "year" in lowered:
        cadence = BillingCadence.YEARLY
    return cadence


def resolve_plan_and_cadence(
    subscription: Any,
    legacy_hint: Optional[LegacyHint] = None,
) -> PlanResolution:
    """
    Resolve ``(plan, billing_cadence)`` for a raw subscription.

    Plan: legacy label seed, overridden by ``metadata.plan``.
    Cadence: legacy frequency seed, overridden by ``metadata.billing_cadence``,
    otherwise inferred from the first price's recurring interval. Stripe has
    no quarterly interval, so quarterly only ever comes from metadata or the
    legacy label.

    Never raises; unrecognized values fall back to ``learn``/``monthly``.
    """
    metadata: Mapping[str, Any] = stripe_field(subscription, "metadata") or {}

    plan = _plan_from_label(legacy_hint.plan_label if legacy_hint else None)
    metadata_plan = _parse_plan(stripe_field(metadata, "plan"))
    if metadata_plan:
        plan = metadata_plan

    cadence = (
        _cadence_from_label(legacy_hint.frequency_label if legacy_hint else None)
        or BillingCadence.MONTHLY
    )
    metadata_cadence = _parse_cadence(stripe_field(metadata, "billing_cadence"))
    if metadata_cadence:
        cadence = metadata_cadence
    else:
        interval = stripe_field(stripe_field(_first_price(subscription), "recurring"), "interval")
        cadence = INTERVAL_CADENCE.get(interval, cadence)

    return PlanResolution(plan=plan, billing_cadence=cadence)


# =============================================================================
# Period & Cancellation Extraction
# =============================================================================

def _probe_period(subscription: Any) -> tuple[Any, Any, PeriodSource]:
    """
    Read the raw period pair, subscription level first.

    Classic subscriptions carry the pair on the subscription; flexible
    billing carries it on each line item. Any missing subscription-level
    field is filled from the first item.
    """
    start = stripe_field(subscription, "current_period_start")
    end = stripe_field(subscription, "current_period_end")
    if start is not None and end is not None:
        return start, end, PeriodSource.SUBSCRIPTION

    item = _first_item(subscription)
    item_start = stripe_field(item, "current_period_start")
    item_end = stripe_field(item, "current_period_end")
    return (
        item_start if item_start is not None else start,
        item_end if item_end is not None else end,
        PeriodSource.ITEM,
    )


def is_canceling_at_period_end(
    subscription: Any,
    period_end_timestamp: Any,
) -> bool:
    """
    True if the explicit flag is set, or if ``cancel_at`` falls within
    24 hours of the period end (flexible billing only exposes ``cancel_at``).
    """
    if stripe_field(subscription, "cancel_at_period_end"):
        return True

    cancel_at = stripe_field(subscription, "cancel_at")
    if timestamp_to_datetime(cancel_at) is None or timestamp_to_datetime(period_end_timestamp) is None:
        return False
    return abs(cancel_at - period_end_timestamp) < CANCEL_AT_TOLERANCE_SECONDS


def extract_billing_period(subscription: Any) -> BillingPeriod:
    """
    Derive the normalized billing period and cancellation intent.

    Raises:
        MissingPeriodError: if either period timestamp cannot be obtained.
    """
    raw_start, raw_end, source = _probe_period(subscription)
    period_start = timestamp_to_datetime(raw_start)
    period_end = timestamp_to_datetime(raw_end)
    subscription_id = stripe_field(subscription, "id")

    if period_start is None or period_end is None:
        logger.error(
            f"Missing required period dates for subscription {subscription_id}: "
            f"start={raw_start!r}, end={raw_end!r}, source={source.value}"
        )
        raise MissingPeriodError(subscription_id, raw_start, raw_end)

    if period_start >= period_end:
        logger.warning(
            f"Subscription {subscription_id} has a non-positive billing period "
            f"({period_start.isoformat()} -> {period_end.isoformat()})"
        )

    return BillingPeriod(
        period_start=period_start,
        period_end=period_end,
        cancel_at_period_end=is_canceling_at_period_end(subscription, raw_end),
        source=source,
    )


# =============================================================================
# Snapshot
# =============================================================================

def build_subscription_snapshot(
    subscription: Any,
    user_id: str,
    customer_id: str,
    legacy_hint: Optional[LegacyHint] = None,
    resolution: Optional[PlanResolution] = None,
    price_id: Optional[str] = None,
    transferred_at: Optional[datetime] = None,
) -> SubscriptionSnapshot:
    """
    Build the full snapshot to upsert for ``subscription``.

    ``resolution`` and ``price_id`` let callers keep previously stored values
    (e.g. when only the cancellation flag changed). ``transferred_at`` marks
    the snapshot as a Bubble migration.

    Raises:
        MissingPeriodError: propagated from :func:`extract_billing_period`.
    """
    period = extract_billing_period(subscription)
    resolved = resolution or resolve_plan_and_cadence(subscription, legacy_hint)

    return SubscriptionSnapshot(
        user_id=user_id,
        stripe_customer_id=customer_id,
        stripe_subscription_id=stripe_field(subscription, "id"),
        plan=resolved.plan,
        billing_cadence=resolved.billing_cadence,
        status=normalize_status(stripe_field(subscription, "status")),
        current_period_start=period.period_start,
        current_period_end=period.period_end,
        cancel_at_period_end=period.cancel_at_period_end,
        canceled_at=timestamp_to_datetime(stripe_field(subscription, "canceled_at")),
        trial_start=timestamp_to_datetime(stripe_field(subscription, "trial_start")),
        trial_end=timestamp_to_datetime(stripe_field(subscription, "trial_end")),
        stripe_price_id=price_id if price_id is not None else first_price_id(subscription),
        transferred_from_bubble=transferred_at is not None,
        transferred_at=transferred_at,
    )
