# =============================================================================
# Feedback Store & Submission Validation
# =============================================================================
#
# validate_submission() checks a decoded POST /feedbacks body. Rules run in
# a fixed order and the first failure is reported:
#
#   1. body is a JSON object
#   2. `type` and `message` present (a blank message counts as missing)
#   3. `type` is one of bug | suggestion | praise | other (case-sensitive)
#   4. `message` is a string
#   5. trimmed `message` fits the length limit (5000 by default)
#   6. `userId`, if given, is a string
#   7. `metadata`, if given, is a flat object of scalar values
#
# Text containing NUL characters and non-finite numbers (NaN, Infinity) are
# rejected at the step of the field they appear in; PostgreSQL cannot store
# them.
#
# Validation never touches the database, so a rejected request writes
# nothing.
#
# FeedbackStore.create() inserts exactly one row in its own transaction.
# Feedback is immutable: the store has no update or delete.
# =============================================================================

from __future__ import annotations

import logging
import math
import uuid
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_api.config import settings
from feedback_api.db.models import Feedback, FeedbackType
from feedback_api.exceptions import InvalidRequestError
from feedback_api.models.requests import FeedbackSubmission

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: type and message are required"

_SCALAR_TYPES = (str, int, float, bool)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_flat_mapping(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return all(
        isinstance(k, str) and (v is None or isinstance(v, _SCALAR_TYPES))
        for k, v in value.items()
    )


def _has_null_char(value: str) -> bool:
    return "\x00" in value


def _is_storable_scalar(value: Any) -> bool:
    # PostgreSQL TEXT/JSONB reject NUL characters and NaN/Infinity
    if isinstance(value, str):
        return not _has_null_char(value)
    if isinstance(value, float):
        return math.isfinite(value)
    return True


def validate_submission(
    body: Any, max_length: int | None = None,
) -> FeedbackSubmission:
    """
    Validate a decoded request body and return the normalised submission.

    Raises:
        InvalidRequestError: The first rule the body violates.
    """
    limit = max_length if max_length is not None else settings.feedback_message_max_length

    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    raw_type = body.get("type")
    raw_message = body.get("message")

    if _is_blank(raw_type) or _is_blank(raw_message):
        raise InvalidRequestError(MISSING_FIELDS_MESSAGE)

    if not isinstance(raw_type, str) or raw_type not in FeedbackType.values():
        raise InvalidRequestError(
            f"Invalid type. Must be one of: {', '.join(FeedbackType.values())}"
        )

    if not isinstance(raw_message, str):
        raise InvalidRequestError("message must be a string")

    if _has_null_char(raw_message):
        raise InvalidRequestError("message must not contain null characters")

    message = raw_message.strip()
    if len(message) > limit:
        raise InvalidRequestError(f"Message too long. Maximum {limit} characters.")

    user_id = body.get("userId")
    if user_id is not None and not isinstance(user_id, str):
        raise InvalidRequestError("userId must be a string")
    if user_id is not None and _has_null_char(user_id):
        raise InvalidRequestError("userId must not contain null characters")

    metadata = body.get("metadata")
    if metadata is not None and not _is_flat_mapping(metadata):
        raise InvalidRequestError("metadata must be a flat object")
    if metadata and not all(
        _is_storable_scalar(k) and _is_storable_scalar(v) for k, v in metadata.items()
    ):
        raise InvalidRequestError(
            "metadata values must be finite numbers or text without null characters"
        )

    return FeedbackSubmission(
        type=FeedbackType(raw_type),
        message=message,
        user_id=user_id or None,
        metadata=metadata or {},
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class FeedbackStore(Protocol):
    """Interface for feedback storage."""

    async def create(
        self,
        tenant_id: str,
        api_key_id: uuid.UUID,
        submission: FeedbackSubmission,
    ) -> Feedback:
        """Persist one feedback row atomically and return it."""
        ...

    async def list_for_tenant(
        self,
        tenant_id: str,
        feedback_type: FeedbackType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Feedback]:
        """The tenant's feedback, newest first."""
        ...

    async def count_by_type(self, tenant_id: str) -> dict[str, int]:
        """Number of feedback rows per type; every type is present."""
        ...


class SqlFeedbackStore:
    """FeedbackStore backed by the feedbacks table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        tenant_id: str,
        api_key_id: uuid.UUID,
        submission: FeedbackSubmission,
    ) -> Feedback:
        feedback = Feedback(
            tenant_id=tenant_id,
            api_key_id=api_key_id,
            external_user_id=submission.user_id,
            type=submission.type,
            message=submission.message,
            metadata_=dict(submission.metadata),
        )

        try:
            self._session.add(feedback)
            await self._session.flush()
            # Load server-assigned created_at before the commit
            await self._session.refresh(feedback)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info(
            "Feedback stored: id=%s, tenant=%s, key_id=%s, type=%s",
            feedback.id, tenant_id, api_key_id, submission.type.value,
        )
        return feedback

    async def list_for_tenant(
        self,
        tenant_id: str,
        feedback_type: FeedbackType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Feedback]:
        stmt = select(Feedback).where(Feedback.tenant_id == tenant_id)
        if feedback_type is not None:
            stmt = stmt.where(Feedback.type == feedback_type)

        stmt = (
            stmt.order_by(Feedback.created_at.desc(), Feedback.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_type(self, tenant_id: str) -> dict[str, int]:
        stmt = (
            select(Feedback.type, func.count(Feedback.id))
            .where(Feedback.tenant_id == tenant_id)
            .group_by(Feedback.type)
        )
        result = await self._session.execute(stmt)

        counts = {value: 0 for value in FeedbackType.values()}
        for feedback_type, count in result.all():
            counts[FeedbackType(feedback_type).value] = count
        return counts
