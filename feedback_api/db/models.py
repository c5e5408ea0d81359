# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────┐       ┌────────────────────────────┐
# │  tenants     │       │  api_keys                  │
# ├──────────────┤       ├────────────────────────────┤
# │ id (PK)      │──1:N─▶│ id (PK, uuid)              │
# │ display_name │       │ tenant_id (FK → tenants)   │
# │ created_at   │       │ key (unique, 64 hex chars) │
# │ updated_at   │       │ name                       │
# └──────┬───────┘       │ is_active                  │
#        │               │ created_at                 │
#        │               └─────────────┬──────────────┘
#        │                             │ 1:N
#        │               ┌─────────────▼──────────────┐
#        └──────1:N─────▶│  feedbacks                 │
#                        ├────────────────────────────┤
#                        │ id (PK, uuid)              │
#                        │ tenant_id (FK → tenants)   │
#                        │ api_key_id (FK → api_keys) │
#                        │ external_user_id           │
#                        │ type (feedback_type enum)  │
#                        │ message                    │
#                        │ metadata (jsonb)           │
#                        │ created_at                 │
#                        └────────────────────────────┘
#
# NOTES:
#
# 1. tenants.id is the identity provider's subject, stored as an opaque
#    string. It is never generated here.
#
# 2. The "current key" of a tenant is a query (newest active row), not a
#    pointer column. At most one active key per tenant is kept by the
#    regenerate transaction and by a partial unique index on PostgreSQL.
#
# 3. Regenerating a key deactivates the old row instead of deleting it, so
#    feedback already attributed to it keeps a valid api_key_id.
#
# 4. Every FK cascades on delete. Deleting a key therefore deletes the
#    feedback submitted with it; that is a retention policy decision owned
#    by the product, not by the ingestion contract.
# =============================================================================

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class. All ORM models inherit from this."""

    pass


class FeedbackType(str, enum.Enum):
    """The four kinds of feedback an end user can submit."""

    BUG = "bug"
    SUGGESTION = "suggestion"
    PRAISE = "praise"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class Tenant(Base):
    """
    A company account. Owns all API keys and feedback under it.

    Created when the company signs up with the identity provider.
    """

    __tablename__ = "tenants"

    # Identity-provider subject (opaque)
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Company name shown in the dashboard
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # passive_deletes: the database performs the cascade (ON DELETE CASCADE)
    api_keys: Mapped[list["ApiKey"]] = relationship(
        "ApiKey",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    feedbacks: Mapped[list["Feedback"]] = relationship(
        "Feedback",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Tenant(id='{self.id}', display_name='{self.display_name}')>"


class ApiKey(Base):
    """
    A bearer credential that identifies one tenant to POST /feedbacks.

    The secret is kept in plaintext so the account UI can show and copy it.
    Lookups are exact matches on the unique `key` column.
    """

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )

    tenant_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 32 random bytes, hex encoded (64 chars)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # Human-readable label
    name: Mapped[str] = mapped_column(
        String(200), nullable=False, default="Default API Key",
    )

    # Deactivated keys are kept for the audit trail and never re-validate
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="api_keys")
    feedbacks: Mapped[list["Feedback"]] = relationship(
        "Feedback",
        back_populates="api_key",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ApiKey(id={self.id}, tenant_id='{self.tenant_id}', "
            f"name='{self.name}', active={self.is_active})>"
        )


class Feedback(Base):
    """
    One end-user submission. Immutable once created.

    tenant_id and api_key_id always come from the resolved credential,
    never from the request body.
    """

    __tablename__ = "feedbacks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )

    api_key_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=False,
    )

    tenant_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Caller-supplied end-user identifier, not validated against anything
    external_user_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    type: Mapped[FeedbackType] = mapped_column(
        Enum(
            FeedbackType,
            name="feedback_type",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
    )

    # Stored trimmed
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Flat key → value mapping, opaque to the server. Named `metadata_` to
    # avoid the declarative base's `.metadata` attribute.
    metadata_: Mapped[dict] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="feedbacks")
    api_key: Mapped["ApiKey"] = relationship("ApiKey", back_populates="feedbacks")

    def __repr__(self) -> str:
        return (
            f"<Feedback(id={self.id}, tenant_id='{self.tenant_id}', "
            f"type={self.type})>"
        )


# =============================================================================
# Indexes
# =============================================================================

# Direct-index lookup for credential resolution
api_key_key_idx = Index("idx_api_keys_key", ApiKey.key)

# At most one active key per tenant (partial unique index, PostgreSQL only)
api_key_one_active_idx = Index(
    "uq_api_keys_tenant_active",
    ApiKey.tenant_id,
    unique=True,
    postgresql_where=ApiKey.is_active.is_(True),
)

feedback_tenant_idx = Index("idx_feedbacks_tenant_id", Feedback.tenant_id)

feedback_created_idx = Index(
    "idx_feedbacks_created_at", Feedback.created_at.desc(),
)

feedback_type_idx = Index("idx_feedbacks_type", Feedback.type)
