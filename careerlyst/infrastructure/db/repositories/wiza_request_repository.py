"""
Wiza Request Repository

Reservation rows for prospect-list creation.

``reserve`` commits the pending row in its own transaction before the
caller touches Wiza, so a concurrent request for the same key hits the
partial unique index and gets :class:`ReservationConflictError` instead of
creating a second list.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlmodel import select
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from careerlyst.infrastructure.db.database import get_session_context
from careerlyst.infrastructure.db.models.wiza_request import (
    WizaRequestModel,
    WizaRequestStatus,
    ACTIVE_WIZA_STATUSES,
    NO_APPLICATION_KEY,
)
from careerlyst.infrastructure.exceptions import (
    PersistenceError,
    ReservationConflictError,
)


logger = logging.getLogger(__name__)


def application_key(application_id: Optional[UUID]) -> str:
    return str(application_id) if application_id else NO_APPLICATION_KEY


class WizaRequestRepository:
    """Repository for ``wiza_requests`` reservations."""

    async def reserve(
        self,
        user_id: UUID,
        company_id: UUID,
        application_id: Optional[UUID],
        search_name: str,
        search_type: str,
        max_profiles: int,
        job_titles: List[str],
    ) -> WizaRequestModel:
        """
        Insert a ``pending`` reservation.

        Raises:
            ReservationConflictError: an active reservation already exists
            PersistenceError: any other database error
        """
        model = WizaRequestModel(
            user_id=user_id,
            company_id=company_id,
            application_id=application_id,
            application_key=application_key(application_id),
            search_name=search_name,
            search_type=search_type,
            max_profiles=max_profiles,
            job_titles=job_titles,
            status=WizaRequestStatus.PENDING.value,
        )

        try:
            async with get_session_context() as session:
                session.add(model)
                await session.flush()
        except IntegrityError as e:
            key = {
                "user_id": str(user_id),
                "company_id": str(company_id),
                "application_id": str(application_id) if application_id else None,
            }
            logger.info(f"Duplicate prospect-list reservation: {key}")
            raise ReservationConflictError(key, original_error=e)
        except SQLAlchemyError as e:
            logger.error(f"Error reserving prospect list for user {user_id}: {e}")
            raise PersistenceError(
                "Failed to reserve prospect list request",
                operation="insert",
                table=WizaRequestModel.__tablename__,
                original_error=e,
            )

        return model

    async def find_active(
        self,
        user_id: UUID,
        company_id: UUID,
        application_id: Optional[UUID],
    ) -> Optional[WizaRequestModel]:
        """The pending/processing reservation for this key, if any."""
        async with get_session_context() as session:
            statement = select(WizaRequestModel).where(
                WizaRequestModel.user_id == user_id,
                WizaRequestModel.company_id == company_id,
                WizaRequestModel.application_key == application_key(application_id),
                WizaRequestModel.status.in_([s.value for s in ACTIVE_WIZA_STATUSES]),
            )
            result = await session.execute(statement)
            return result.scalars().first()

    async def record_list(
        self,
        request_id: UUID,
        wiza_list_id: str,
        wiza_status: str,
        wiza_response: dict,
    ) -> None:
        """Complete a reservation with the list Wiza created."""
        statement = (
            update(WizaRequestModel)
            .where(WizaRequestModel.id == request_id)
            .values(
                wiza_list_id=wiza_list_id,
                wiza_status=wiza_status,
                wiza_response=wiza_response,
                status=WizaRequestStatus.PROCESSING.value,
                updated_at=datetime.now(timezone.utc),
            )
        )

        try:
            async with get_session_context() as session:
                await session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Error recording Wiza list {wiza_list_id} on request {request_id}: {e}")
            raise PersistenceError(
                "Failed to store Wiza list",
                operation="update",
                table=WizaRequestModel.__tablename__,
                original_error=e,
            )

    async def release_if_stale(self, request_id: UUID, stale_after_seconds: int) -> bool:
        """
        Mark a pending reservation as failed if it is older than the cutoff.

        Pending rows are left behind when the Wiza call fails; releasing them
        lets the next request reserve the key again.

        Returns:
            True if the reservation was released
        """
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=stale_after_seconds)
        statement = (
            update(WizaRequestModel)
            .where(
                WizaRequestModel.id == request_id,
                WizaRequestModel.status == WizaRequestStatus.PENDING.value,
                WizaRequestModel.created_at < cutoff,
            )
            .values(status=WizaRequestStatus.FAILED.value, updated_at=datetime.now(timezone.utc))
        )

        async with get_session_context() as session:
            result = await session.execute(statement)

        released = result.rowcount > 0
        if released:
            logger.warning(f"Released stale prospect-list reservation {request_id}")
        return released


_wiza_request_repo_instance: Optional[WizaRequestRepository] = None


def get_wiza_request_repository() -> WizaRequestRepository:
    """Get or create Wiza request repository singleton."""
    global _wiza_request_repo_instance

    if _wiza_request_repo_instance is None:
        _wiza_request_repo_instance = WizaRequestRepository()

    return _wiza_request_repo_instance
