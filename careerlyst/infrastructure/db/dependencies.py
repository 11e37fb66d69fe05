"""
Dependency Injection Providers for Careerlyst

FastAPI dependencies for request-scoped sessions and the repositories
built on them.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from careerlyst.infrastructure.db.database import get_session
from careerlyst.infrastructure.db.repositories import CompanyRepository


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_company_repository(
    session: SessionDep,
) -> AsyncGenerator[CompanyRepository, None]:
    """
    Dependency provider for CompanyRepository.

    Usage:
        @router.post("/jobs/wiza/create-list")
        async def create_list(companies: CompanyRepoDep):
            ...
    """
    yield CompanyRepository(session)


CompanyRepoDep = Annotated[
    CompanyRepository,
    Depends(get_company_repository)
]
