"""
Repository Layer for Careerlyst Billing

Exports all repository classes for dependency injection.
"""

from careerlyst.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    IReadRepository,
)
from careerlyst.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from careerlyst.infrastructure.db.repositories.legacy_user_repository import (
    LegacyUserRepository,
    get_legacy_user_repository,
)
from careerlyst.infrastructure.db.repositories.portfolio_repository import (
    PortfolioRepository,
    get_portfolio_repository,
)
from careerlyst.infrastructure.db.repositories.company_repository import (
    CompanyRepository,
)
from careerlyst.infrastructure.db.repositories.wiza_request_repository import (
    WizaRequestRepository,
    get_wiza_request_repository,
)


__all__ = [
    # Base
    "BaseRepository",
    "IReadRepository",
    # Billing
    "SubscriptionRepository",
    "get_subscription_repository",
    "LegacyUserRepository",
    "get_legacy_user_repository",
    "PortfolioRepository",
    "get_portfolio_repository",
    # Prospecting
    "CompanyRepository",
    "WizaRequestRepository",
    "get_wiza_request_repository",
]
