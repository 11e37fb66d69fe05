"""
Prospect List Service

Creates Wiza prospect lists for a tracked company, at most once per
(user, company, application) at a time.

The ``wiza_requests`` table doubles as the lock: a ``pending`` row is
committed before Wiza is called, and the partial unique index on active
rows turns a concurrent duplicate into a conflict. The loser polls for
the winner's list ID instead of creating a second list.
"""

import asyncio
import logging
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from careerlyst.config.settings import get_settings
from careerlyst.infrastructure.db.models.wiza_request import WizaRequestModel
from careerlyst.infrastructure.db.repositories.company_repository import CompanyRepository
from careerlyst.infrastructure.db.repositories.wiza_request_repository import (
    WizaRequestRepository,
    get_wiza_request_repository,
)
from careerlyst.infrastructure.exceptions import (
    ConflictError,
    NotFoundError,
    ReservationConflictError,
    ValidationError,
)
from careerlyst.infrastructure.services.wiza_client import (
    DEFAULT_JOB_TITLES,
    WizaClient,
    build_prospect_list_payload,
    get_wiza_client,
)


logger = logging.getLogger(__name__)


CREATED_MESSAGE = "Prospect list created. Use the list_id to fetch contacts when ready."
REUSED_MESSAGE = "Prospect list already requested. Use the list_id to fetch contacts when ready."


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateProspectListRequest(BaseModel):
    """Request DTO for prospect-list creation."""
    company_id: UUID
    company_name: Optional[str] = Field(default=None, description="Fallback search name")
    application_id: Optional[UUID] = None
    job_titles: Optional[List[str]] = Field(default=None, description="Defaults to product titles")


class ProspectListResult(BaseModel):
    """Response DTO for prospect-list creation."""
    list_id: str
    request_id: str
    status: str
    reused: bool = False
    message: str


# =============================================================================
# Service
# =============================================================================

class ProspectListService:
    """
    Reservation flow around :class:`WizaClient`.

    Args:
        companies: Request-scoped company repository
        requests: Reservation repository
        wiza: Wiza API client
        poll_interval: Seconds between polls for a concurrent winner
        wait_timeout: Total seconds to wait for a concurrent winner
        stale_after: Age in seconds after which a pending reservation is
            considered abandoned
    """

    def __init__(
        self,
        companies: CompanyRepository,
        requests: Optional[WizaRequestRepository] = None,
        wiza: Optional[WizaClient] = None,
        poll_interval: Optional[float] = None,
        wait_timeout: Optional[float] = None,
        stale_after: Optional[int] = None,
    ):
        settings = get_settings()
        self._companies = companies
        self._requests = requests or get_wiza_request_repository()
        self._wiza = wiza or get_wiza_client()
        self._max_profiles = settings.wiza_max_profiles
        self._poll_interval = poll_interval if poll_interval is not None else settings.wiza_reservation_poll_interval
        self._wait_timeout = wait_timeout if wait_timeout is not None else settings.wiza_reservation_wait_timeout
        self._stale_after = stale_after if stale_after is not None else settings.wiza_reservation_stale_after

    async def create_prospect_list(
        self,
        user_id: str,
        company_id: UUID,
        application_id: Optional[UUID] = None,
        job_titles: Optional[List[str]] = None,
        company_name: Optional[str] = None,
    ) -> ProspectListResult:
        """
        Create (or reuse) the prospect list for a company.

        Raises:
            NotFoundError: unknown company
            ValidationError: nothing to search by
            ConflictError: another request holds the reservation; retry
            WizaServiceError: the Wiza call failed (reservation stays pending)
        """
        company = await self._companies.get_for_user(company_id, user_id)
        if company is None:
            raise NotFoundError("Company not found", resource="company", identifier=str(company_id))

        if company.linkedin_url:
            search_value, search_type = company.linkedin_url, "linkedin_url"
        else:
            search_value, search_type = company_name or company.name, "company_name"

        if not search_value:
            raise ValidationError("Company name or LinkedIn URL is required")

        titles = job_titles or DEFAULT_JOB_TITLES
        user_uuid = UUID(user_id)

        reservation = None
        for attempt in range(2):
            try:
                reservation = await self._requests.reserve(
                    user_id=user_uuid,
                    company_id=company_id,
                    application_id=application_id,
                    search_name=search_value,
                    search_type=search_type,
                    max_profiles=self._max_profiles,
                    job_titles=titles,
                )
                break
            except ReservationConflictError as conflict:
                winner = await self._wait_for_winner(user_uuid, company_id, application_id)
                if winner is not None:
                    return ProspectListResult(
                        list_id=winner.wiza_list_id,
                        request_id=str(winner.id),
                        status=winner.wiza_status or winner.status,
                        reused=True,
                        message=REUSED_MESSAGE,
                    )
                if attempt == 0 and await self._release_abandoned(user_uuid, company_id, application_id):
                    continue
                raise ConflictError(
                    "Prospect list creation already in progress, please retry",
                    details=conflict.details,
                    original_error=conflict,
                )

        payload = build_prospect_list_payload(
            list_name=f"Product Managers at {company.name}",
            job_titles=titles,
            max_profiles=self._max_profiles,
            linkedin_url=company.linkedin_url,
            company_name=search_value,
        )
        result = await self._wiza.create_prospect_list(payload)

        await self._requests.record_list(
            reservation.id,
            wiza_list_id=result.list_id,
            wiza_status=result.status,
            wiza_response=result.raw,
        )

        return ProspectListResult(
            list_id=result.list_id,
            request_id=str(reservation.id),
            status=result.status,
            reused=False,
            message=CREATED_MESSAGE,
        )

    async def _wait_for_winner(
        self,
        user_id: UUID,
        company_id: UUID,
        application_id: Optional[UUID],
    ) -> Optional[WizaRequestModel]:
        """
        Poll until the concurrent reservation records a list ID.

        Returns None on timeout or when the reservation went away.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait_timeout

        while True:
            active = await self._requests.find_active(user_id, company_id, application_id)
            if active is None:
                return None
            if active.wiza_list_id:
                return active
            if loop.time() + self._poll_interval > deadline:
                logger.info(
                    f"Gave up waiting for prospect-list reservation {active.id} "
                    f"after {self._wait_timeout}s"
                )
                return None
            await asyncio.sleep(self._poll_interval)

    async def _release_abandoned(
        self,
        user_id: UUID,
        company_id: UUID,
        application_id: Optional[UUID],
    ) -> bool:
        """True if the key is free again, either released here or by its owner."""
        active = await self._requests.find_active(user_id, company_id, application_id)
        if active is None:
            return True
        return await self._requests.release_if_stale(active.id, self._stale_after)
