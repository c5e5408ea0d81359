# =============================================================================
# Account API — Tenant Profile, API Key Management, Dashboard Reads
# =============================================================================
#
# Every endpoint here authenticates the caller through the identity provider
# (get_current_tenant_id) and only ever touches rows of that tenant.
#
# ENDPOINTS:
#   POST   /account                      — provision tenant + first key
#   GET    /account                      — tenant profile
#   PATCH  /account                      — rename tenant
#   DELETE /account                      — delete tenant (cascades)
#   GET    /account/api-key              — current active key
#   POST   /account/api-key/regenerate   — rotate the active key
#   GET    /account/api-keys             — all keys, old ones masked
#   GET    /account/feedbacks            — feedback list, optional type filter
#   GET    /account/feedbacks/summary    — per-type counts
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.exc import SQLAlchemyError

from feedback_api.api.deps import (
    get_credential_store,
    get_current_tenant_id,
    get_feedback_store,
    get_tenant_store,
)
from feedback_api.config import settings
from feedback_api.db.models import ApiKey, Feedback, FeedbackType, Tenant
from feedback_api.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    TenantExistsError,
    TenantNotFoundError,
)
from feedback_api.models.requests import (
    CreateAccountRequest,
    RegenerateKeyRequest,
    UpdateAccountRequest,
)
from feedback_api.models.responses import (
    AccountCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    FeedbackListResponse,
    FeedbackResponse,
    FeedbackSummaryResponse,
    TenantResponse,
)
from feedback_api.services.auth import key_preview
from feedback_api.services.credentials import CredentialStore
from feedback_api.services.feedback import FeedbackStore
from feedback_api.services.tenants import TenantStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account", tags=["Account"])


# ---------------------------------------------------------------------------
# Tenant profile
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=AccountCreatedResponse,
    status_code=201,
    summary="Provision the signed-in company",
)
async def create_account(
    request: CreateAccountRequest,
    tenant_id: str = Depends(get_current_tenant_id),
    tenants: TenantStore = Depends(get_tenant_store),
    credentials: CredentialStore = Depends(get_credential_store),
) -> AccountCreatedResponse:
    """Create the tenant record and its first API key."""
    try:
        tenant = await tenants.create(tenant_id, request.display_name)
    except TenantExistsError:
        raise ConflictError("Account already exists") from None
    except SQLAlchemyError:
        logger.exception("Failed to provision tenant %s", tenant_id)
        raise InternalError("Failed to create account") from None

    api_key = await credentials.current_active_key(tenant_id)
    if api_key is None:
        logger.error("Tenant %s provisioned without an active key", tenant_id)
        raise InternalError("Failed to create account")

    return AccountCreatedResponse(
        tenant=TenantResponse.model_validate(tenant),
        api_key=_to_key_response(api_key),
    )


@router.get("", response_model=TenantResponse, summary="Get the company profile")
async def get_account(
    tenant_id: str = Depends(get_current_tenant_id),
    tenants: TenantStore = Depends(get_tenant_store),
) -> TenantResponse:
    return TenantResponse.model_validate(await _get_tenant_or_404(tenants, tenant_id))


@router.patch("", response_model=TenantResponse, summary="Rename the company")
async def update_account(
    request: UpdateAccountRequest,
    tenant_id: str = Depends(get_current_tenant_id),
    tenants: TenantStore = Depends(get_tenant_store),
) -> TenantResponse:
    try:
        tenant = await tenants.rename(tenant_id, request.display_name)
    except TenantNotFoundError:
        raise NotFoundError("Account not found") from None
    return TenantResponse.model_validate(tenant)


@router.delete(
    "",
    status_code=204,
    summary="Delete the company with all its keys and feedback",
)
async def delete_account(
    tenant_id: str = Depends(get_current_tenant_id),
    tenants: TenantStore = Depends(get_tenant_store),
) -> Response:
    if not await tenants.delete(tenant_id):
        raise NotFoundError("Account not found")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------


@router.get(
    "/api-key",
    response_model=ApiKeyResponse,
    summary="Get the active API key",
)
async def get_active_key(
    tenant_id: str = Depends(get_current_tenant_id),
    credentials: CredentialStore = Depends(get_credential_store),
) -> ApiKeyResponse:
    api_key = await credentials.current_active_key(tenant_id)
    if api_key is None:
        raise NotFoundError("No active API key")
    return _to_key_response(api_key)


@router.post(
    "/api-key/regenerate",
    response_model=ApiKeyResponse,
    status_code=201,
    summary="Replace the active API key",
    description=(
        "Deactivates the current key and issues a new one in a single "
        "transaction. Integrations using the old key stop authenticating "
        "immediately."
    ),
)
async def regenerate_key(
    request: RegenerateKeyRequest | None = Body(default=None),
    tenant_id: str = Depends(get_current_tenant_id),
    credentials: CredentialStore = Depends(get_credential_store),
) -> ApiKeyResponse:
    name = request.name if request is not None else None
    try:
        api_key = await credentials.regenerate(tenant_id, name=name)
    except TenantNotFoundError:
        raise NotFoundError("Account not found") from None
    except SQLAlchemyError:
        logger.exception("Failed to regenerate API key for tenant=%s", tenant_id)
        raise InternalError("Failed to regenerate API key") from None

    return _to_key_response(api_key)


@router.get(
    "/api-keys",
    response_model=ApiKeyListResponse,
    summary="List all API keys, including deactivated ones",
)
async def list_keys(
    tenant_id: str = Depends(get_current_tenant_id),
    credentials: CredentialStore = Depends(get_credential_store),
) -> ApiKeyListResponse:
    keys = await credentials.list_keys(tenant_id)
    return ApiKeyListResponse(
        keys=[_to_key_response(k) for k in keys],
        total=len(keys),
    )


# ---------------------------------------------------------------------------
# Dashboard reads
# ---------------------------------------------------------------------------


@router.get(
    "/feedbacks",
    response_model=FeedbackListResponse,
    summary="List received feedback, newest first",
)
async def list_feedbacks(
    feedback_type: FeedbackType | None = Query(
        default=None, alias="type", description="Filter by type",
    ),
    limit: int = Query(
        default=settings.dashboard_page_size,
        ge=1,
        le=settings.dashboard_max_page_size,
    ),
    offset: int = Query(default=0, ge=0),
    tenant_id: str = Depends(get_current_tenant_id),
    feedbacks: FeedbackStore = Depends(get_feedback_store),
) -> FeedbackListResponse:
    rows = await feedbacks.list_for_tenant(
        tenant_id, feedback_type=feedback_type, limit=limit, offset=offset,
    )
    return FeedbackListResponse(
        feedbacks=[_to_feedback_response(f) for f in rows],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/feedbacks/summary",
    response_model=FeedbackSummaryResponse,
    summary="Feedback counts per type",
)
async def feedback_summary(
    tenant_id: str = Depends(get_current_tenant_id),
    feedbacks: FeedbackStore = Depends(get_feedback_store),
) -> FeedbackSummaryResponse:
    counts = await feedbacks.count_by_type(tenant_id)
    return FeedbackSummaryResponse(total=sum(counts.values()), counts=counts)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _get_tenant_or_404(tenants: TenantStore, tenant_id: str) -> Tenant:
    tenant = await tenants.get(tenant_id)
    if tenant is None:
        raise NotFoundError("Account not found")
    return tenant


def _to_key_response(key: ApiKey) -> ApiKeyResponse:
    """Only the active key is shown in full."""
    return ApiKeyResponse(
        id=key.id,
        name=key.name,
        key=key.key if key.is_active else key_preview(key.key),
        is_active=key.is_active,
        created_at=key.created_at,
    )


def _to_feedback_response(feedback: Feedback) -> FeedbackResponse:
    return FeedbackResponse(
        id=feedback.id,
        type=FeedbackType(feedback.type).value,
        message=feedback.message,
        external_user_id=feedback.external_user_id,
        metadata=feedback.metadata_ or {},
        api_key_id=feedback.api_key_id,
        created_at=feedback.created_at,
    )
