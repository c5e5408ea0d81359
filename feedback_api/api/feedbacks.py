# =============================================================================
# Ingestion API — Public Feedback Endpoint
# =============================================================================
#
# ENDPOINTS:
#   POST    /feedbacks  — authenticate, validate, persist, return a receipt
#   OPTIONS /feedbacks  — CORS preflight (answered by OpenCorsMiddleware)
#   other methods       — 405
#
# FLOW:
#   1. Bearer API key → CredentialStore.resolve       (401 on failure)
#   2. Parse JSON body                                 (400 on failure)
#   3. validate_submission                             (400 on failure)
#   4. FeedbackStore.create with the resolved IDs      (500 on failure)
#   5. 201 with {success, feedback: {id, type, message, created_at}}
#
# The endpoint is not idempotent: a retried request stores a second row.
# Tenant and key IDs are taken from step 1 only. The body's `userId` is the
# submitting application's own end-user identifier.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError

from feedback_api.api.deps import get_feedback_store, require_api_key
from feedback_api.db.models import FeedbackType
from feedback_api.exceptions import (
    InternalError,
    InvalidRequestError,
    MethodNotAllowedError,
)
from feedback_api.models.responses import (
    ErrorResponse,
    FeedbackReceipt,
    SubmitFeedbackResponse,
)
from feedback_api.services.credentials import ResolvedCredential
from feedback_api.services.feedback import FeedbackStore, validate_submission

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])


# ---------------------------------------------------------------------------
# POST /feedbacks — Submit feedback
# ---------------------------------------------------------------------------


@router.post(
    "/feedbacks",
    response_model=SubmitFeedbackResponse,
    status_code=201,
    summary="Submit end-user feedback",
    description=(
        "Authenticate with 'Authorization: Bearer <api key>' and send a JSON "
        "body with `type` (bug, suggestion, praise, other), `message` "
        "(max 5000 characters), and optional `userId` and `metadata`."
    ),
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def submit_feedback(
    request: Request,
    credential: ResolvedCredential = Depends(require_api_key),
    store: FeedbackStore = Depends(get_feedback_store),
) -> SubmitFeedbackResponse:
    """Store one feedback record for the tenant that owns the API key."""
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError("Invalid JSON body") from None

    submission = validate_submission(body)

    try:
        feedback = await store.create(
            tenant_id=credential.tenant_id,
            api_key_id=credential.api_key_id,
            submission=submission,
        )
    except SQLAlchemyError:
        logger.exception(
            "Failed to save feedback for tenant=%s", credential.tenant_id,
        )
        raise InternalError("Failed to save feedback") from None

    return SubmitFeedbackResponse(
        feedback=FeedbackReceipt(
            id=feedback.id,
            type=FeedbackType(feedback.type).value,
            message=feedback.message,
            created_at=feedback.created_at,
        ),
    )


# ---------------------------------------------------------------------------
# Any other method — 405
# ---------------------------------------------------------------------------


@router.api_route(
    "/feedbacks",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def feedbacks_method_not_allowed() -> None:
    raise MethodNotAllowedError(headers={"Allow": "POST, OPTIONS"})
