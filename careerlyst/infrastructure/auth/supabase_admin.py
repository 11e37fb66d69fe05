"""
Supabase Admin Client

Service-role access to Supabase Auth, used to look up a user's email
when the access token does not carry it.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from careerlyst.config.settings import get_settings


logger = logging.getLogger(__name__)


@lru_cache
def get_supabase_admin() -> Client:
    """Service-role Supabase client (no session persistence)."""
    settings = get_settings()
    options = ClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=10,
    )
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options,
    )


async def fetch_user_email(user_id: str) -> Optional[str]:
    """
    Email address of a Supabase Auth user.

    Returns None if the user does not exist or the lookup fails.
    """
    client = get_supabase_admin()
    try:
        response = await asyncio.to_thread(
            lambda: client.auth.admin.get_user_by_id(user_id)
        )
    except Exception as e:
        logger.warning(f"Supabase admin lookup failed for user {user_id}: {e}")
        return None

    user = getattr(response, "user", None)
    return getattr(user, "email", None)
