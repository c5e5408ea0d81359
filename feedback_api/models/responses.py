# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# The ingestion receipt deliberately echoes only id, type, message and
# created_at. Tenant ID, key ID, metadata and the external user ID stay out
# of it. Dashboard responses (account API) return full rows, scoped to the
# signed-in tenant.
# =============================================================================

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class FeedbackReceipt(BaseModel):
    """The minimal echo of a stored feedback record."""

    id: uuid.UUID
    type: str
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubmitFeedbackResponse(BaseModel):
    """Response for POST /feedbacks (201)."""

    success: bool = True
    feedback: FeedbackReceipt


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


class TenantResponse(BaseModel):
    id: str
    display_name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiKeyResponse(BaseModel):
    """
    An API key as shown in the account settings page.

    `key` holds the full secret for the active key and a masked preview for
    deactivated ones.
    """

    id: uuid.UUID
    name: str
    key: str
    is_active: bool
    created_at: datetime


class ApiKeyListResponse(BaseModel):
    keys: list[ApiKeyResponse]
    total: int


class AccountCreatedResponse(BaseModel):
    """Response for POST /account (201)."""

    tenant: TenantResponse
    api_key: ApiKeyResponse


class FeedbackResponse(BaseModel):
    """A full feedback row for the dashboard."""

    id: uuid.UUID
    type: str
    message: str
    external_user_id: str | None
    metadata: dict[str, Any] = Field(default_factory=dict)
    api_key_id: uuid.UUID
    created_at: datetime


class FeedbackListResponse(BaseModel):
    feedbacks: list[FeedbackResponse]
    limit: int
    offset: int


class FeedbackSummaryResponse(BaseModel):
    """Per-type counts for the dashboard header."""

    total: int
    counts: dict[str, int]
