"""
Database Infrastructure Package for Careerlyst

Exports database utilities and request-scoped dependencies.
"""

from careerlyst.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from careerlyst.infrastructure.db.dependencies import (
    SessionDep,
    get_company_repository,
    CompanyRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_company_repository",
    "CompanyRepoDep",
]
