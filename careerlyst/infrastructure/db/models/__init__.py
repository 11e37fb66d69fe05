"""
SQLModel ORM Models for Careerlyst Billing

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from careerlyst.infrastructure.db.models.base import (
    TimestampMixin,
    TrackedRecord,
    UUIDMixin,
)
from careerlyst.infrastructure.db.models.subscription import SubscriptionModel
from careerlyst.infrastructure.db.models.legacy_user import LegacyUserModel
from careerlyst.infrastructure.db.models.portfolio import PortfolioModel
from careerlyst.infrastructure.db.models.company import CompanyModel
from careerlyst.infrastructure.db.models.wiza_request import (
    WizaRequestModel,
    WizaRequestStatus,
    ACTIVE_WIZA_STATUSES,
    NO_APPLICATION_KEY,
)


__all__ = [
    # Base
    "TimestampMixin",
    "TrackedRecord",
    "UUIDMixin",
    # Billing
    "SubscriptionModel",
    "LegacyUserModel",
    "PortfolioModel",
    # Prospecting
    "CompanyModel",
    "WizaRequestModel",
    "WizaRequestStatus",
    "ACTIVE_WIZA_STATUSES",
    "NO_APPLICATION_KEY",
]
