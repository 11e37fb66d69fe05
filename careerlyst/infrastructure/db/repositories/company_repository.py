"""
Company Repository

Read access to tracked companies for the prospect-list flow.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from careerlyst.infrastructure.db.repositories.base_repository import BaseRepository
from careerlyst.infrastructure.db.models.company import CompanyModel


class CompanyRepository(BaseRepository[CompanyModel]):
    """Repository for tracked companies."""

    def __init__(self, session: AsyncSession):
        super().__init__(CompanyModel, session)

    async def get_for_user(self, company_id: UUID, user_id: str) -> Optional[CompanyModel]:
        """Company by ID, only if it is shared (no owner) or owned by ``user_id``."""
        company = await self.get_by_id(company_id)
        if company is None:
            return None
        if company.user_id is not None and str(company.user_id) != user_id:
            return None
        return company
