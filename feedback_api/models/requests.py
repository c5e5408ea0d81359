# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Account endpoints take their bodies as these models directly.
#
# POST /feedbacks is the exception: its body is validated by
# services.feedback.validate_submission, which applies the rules in a fixed
# order and reports only the first failure. The result of that validation
# is a FeedbackSubmission.
# =============================================================================

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from feedback_api.db.models import FeedbackType


class FeedbackSubmission(BaseModel):
    """
    A validated, normalised POST /feedbacks body.

    `message` is already trimmed. `metadata` defaults to an empty mapping.
    """

    type: FeedbackType
    message: str = Field(..., min_length=1)
    user_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class CreateAccountRequest(BaseModel):
    """
    Request body for POST /account — provision the signed-in tenant.

    Example:
        {"display_name": "Acme Inc."}
    """

    display_name: str = Field(
        ...,
        min_length=2,
        max_length=200,
        description="Company name shown in the dashboard",
        examples=["Acme Inc."],
    )

    model_config = ConfigDict(str_strip_whitespace=True)


class UpdateAccountRequest(BaseModel):
    """Request body for PATCH /account."""

    display_name: str = Field(..., min_length=2, max_length=200)

    model_config = ConfigDict(str_strip_whitespace=True)


class RegenerateKeyRequest(BaseModel):
    """Optional body for POST /account/api-key/regenerate."""

    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Label for the new key. Defaults to 'Default API Key'.",
    )
