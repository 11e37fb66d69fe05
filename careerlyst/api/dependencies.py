"""
API Dependencies

FastAPI dependency injection for authentication and common services.

Security: JWT tokens are verified cryptographically using Supabase JWKS (ES256)
with HS256 fallback via the JWT secret. Never decode without verification.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from careerlyst.config.settings import get_settings
from careerlyst.domain.prospecting import ProspectListService
from careerlyst.domain.reconciliation import (
    SubscriptionReconciler,
    get_subscription_reconciler,
)
from careerlyst.infrastructure.auth.supabase_admin import fetch_user_email
from careerlyst.infrastructure.db.dependencies import CompanyRepoDep


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cached JWKS client; keys are not re-fetched per request.
# PyJWKClient caches keys internally and refreshes ~every 10 min.
_jwks_client: Optional[PyJWKClient] = None


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity resolved from the bearer token."""
    id: str
    email: Optional[str] = None


def _get_jwks_client() -> PyJWKClient:
    """Return a singleton PyJWKClient for the Supabase JWKS endpoint."""
    global _jwks_client
    if _jwks_client is None:
        settings = get_settings()
        jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
    return _jwks_client


def _decode_with_jwks(token: str, issuer: str) -> dict:
    """Verify JWT using Supabase JWKS endpoint (ES256 asymmetric keys)."""
    client = _get_jwks_client()
    signing_key = client.get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["ES256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _decode_with_secret(token: str, secret: str, issuer: str) -> dict:
    """Verify JWT using HS256 symmetric secret (legacy Supabase signing)."""
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _verify_token(credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    """
    Verify a Supabase JWT and return its claims.

    Verification strategy (in order):
      1. JWKS (ES256), which follows key rotation automatically.
      2. HS256 with ``SUPABASE_JWT_SECRET`` for legacy signing.

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    settings = get_settings()
    issuer = f"{settings.supabase_url}/auth/v1"

    payload: Optional[dict] = None

    # --- Strategy 1: JWKS (ES256) ---
    try:
        payload = _decode_with_jwks(token, issuer)
    except (jwt.exceptions.PyJWKClientError, jwt.InvalidTokenError) as jwks_err:
        logger.debug("JWKS verification failed, trying HS256 fallback: %s", jwks_err)

    # --- Strategy 2: HS256 fallback ---
    if payload is None and settings.supabase_jwt_secret:
        try:
            payload = _decode_with_secret(
                token, settings.supabase_jwt_secret, issuer
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            )
        except jwt.InvalidTokenError as e:
            logger.warning("HS256 JWT verification also failed: %s", e)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
        )

    return payload


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Authenticated caller.

    The email comes from the token's ``email`` claim; older tokens without
    it fall back to a Supabase Auth admin lookup.
    """
    payload = _verify_token(credentials)
    user_id = payload["sub"]

    email = payload.get("email") or await fetch_user_email(user_id)
    return AuthenticatedUser(id=user_id, email=email.strip().lower() if email else None)


async def get_current_user_id(
    user: AuthenticatedUser = Depends(get_current_user),
) -> str:
    """Authenticated user ID (``sub`` claim)."""
    return user.id


CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]


# =============================================================================
# Service Providers
# =============================================================================

def get_reconciler() -> SubscriptionReconciler:
    """Dependency provider for the subscription reconciler."""
    return get_subscription_reconciler()


def get_prospect_list_service(companies: CompanyRepoDep) -> ProspectListService:
    """Dependency provider for the prospect-list service (request-scoped)."""
    return ProspectListService(companies=companies)


ReconcilerDep = Annotated[SubscriptionReconciler, Depends(get_reconciler)]
ProspectListServiceDep = Annotated[ProspectListService, Depends(get_prospect_list_service)]


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from careerlyst.infrastructure.db.dependencies import (  # noqa: E402, F401
    SessionDep,
)
