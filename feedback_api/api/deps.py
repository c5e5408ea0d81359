# =============================================================================
# API Dependencies — Stores and Caller Identity
# =============================================================================
#
# Two kinds of caller:
#
# 1. require_api_key()         — POST /feedbacks. Bearer token is a tenant
#                                API key, resolved via the CredentialStore.
# 2. get_current_tenant_id()   — /account/*. Bearer token is an identity
#                                provider session token.
#
# Stores are built per request around the request's AsyncSession. Tests
# replace them through app.dependency_overrides.
#
# A missing/malformed header and an unknown key both produce 401. They are
# logged differently so operators can tell them apart; the client cannot.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_api.config import get_settings
from feedback_api.db.engine import get_async_session
from feedback_api.exceptions import InternalError, TenantAuthError, UnauthenticatedError
from feedback_api.services.auth import key_preview
from feedback_api.services.credentials import (
    CredentialStore,
    ResolvedCredential,
    SqlCredentialStore,
)
from feedback_api.services.feedback import FeedbackStore, SqlFeedbackStore
from feedback_api.services.identity import IdentityProvider, JwtIdentityProvider
from feedback_api.services.tenants import SqlTenantStore, TenantStore

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs. auto_error=False so missing or
# non-Bearer headers reach our own 401 handling.
_bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


def get_credential_store(
    session: AsyncSession = Depends(get_async_session),
) -> CredentialStore:
    return SqlCredentialStore(session)


def get_feedback_store(
    session: AsyncSession = Depends(get_async_session),
) -> FeedbackStore:
    return SqlFeedbackStore(session)


def get_tenant_store(
    session: AsyncSession = Depends(get_async_session),
) -> TenantStore:
    return SqlTenantStore(session)


def get_identity_provider() -> IdentityProvider:
    return JwtIdentityProvider.from_settings(get_settings())


def _bearer_token(bearer: HTTPAuthorizationCredentials | None) -> str | None:
    if bearer is None:
        return None
    return bearer.credentials.strip() or None


# ---------------------------------------------------------------------------
# API key callers (ingestion)
# ---------------------------------------------------------------------------


async def require_api_key(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    store: CredentialStore = Depends(get_credential_store),
) -> ResolvedCredential:
    """
    Resolve the request's bearer API key to its tenant and key.

    Stores the result on request.state for the request logger.

    Raises:
        UnauthenticatedError: Header missing/malformed, or no active key
            matches the token.
        InternalError: The credential store failed.
    """
    token = _bearer_token(bearer)
    if token is None:
        logger.info("Ingestion rejected: missing or malformed Authorization header")
        raise UnauthenticatedError("Missing or invalid API key")

    try:
        resolved = await store.resolve(token)
    except SQLAlchemyError:
        logger.exception("Credential lookup failed")
        raise InternalError() from None

    if resolved is None:
        logger.info(
            "Ingestion rejected: unknown or inactive API key %s",
            key_preview(token),
        )
        raise UnauthenticatedError("Invalid API key")

    request.state.tenant_id = resolved.tenant_id
    request.state.api_key_id = resolved.api_key_id
    return resolved


# ---------------------------------------------------------------------------
# Tenant callers (account, key management, dashboard)
# ---------------------------------------------------------------------------


async def get_current_tenant_id(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> str:
    """
    Authenticate the signed-in tenant via the identity provider.

    Raises:
        UnauthenticatedError: No session token, or the provider rejected it.
    """
    token = _bearer_token(bearer)
    if token is None:
        raise UnauthenticatedError("Missing or invalid session token")

    try:
        tenant_id = identity.authenticate_tenant(token)
    except TenantAuthError as e:
        logger.info("Account request rejected: %s", e)
        raise UnauthenticatedError("Missing or invalid session token") from None

    request.state.tenant_id = tenant_id
    return tenant_id
