# =============================================================================
# Credential Store — API Key Resolution and Rotation
# =============================================================================
#
# Protocol plus a SQLAlchemy implementation. The protocol lets the API layer
# (and tests) swap in any object with the right methods.
#
# OPERATIONS:
#   resolve(token)               → ResolvedCredential | None   (read-only)
#   current_active_key(tenant)   → ApiKey | None               (derived query)
#   regenerate(tenant)           → ApiKey                      (one transaction)
#   list_keys(tenant)            → list[ApiKey]                (audit trail)
#
# ROTATION:
# regenerate() locks the tenant row, deactivates the active key(s), inserts
# a fresh key and commits once. Two concurrent regenerations for the same
# tenant queue on the row lock; a failure anywhere rolls back to the previous
# state, so the tenant never ends up with zero or two active keys. The
# partial unique index on api_keys backs this up at the database level.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_api.config import settings
from feedback_api.db.models import ApiKey, Tenant
from feedback_api.exceptions import TenantNotFoundError
from feedback_api.services.auth import generate_api_key, key_preview

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedCredential:
    """The tenant and key a bearer token belongs to."""

    tenant_id: str
    api_key_id: uuid.UUID


class CredentialStore(Protocol):
    """Interface for API key storage."""

    async def resolve(self, secret_token: str) -> ResolvedCredential | None:
        """
        Map a secret token to its tenant and key.

        Only active keys match, by exact string equality. No side effects.
        """
        ...

    async def current_active_key(self, tenant_id: str) -> ApiKey | None:
        """Return the tenant's active key, or None."""
        ...

    async def regenerate(self, tenant_id: str, name: str | None = None) -> ApiKey:
        """Deactivate the tenant's active key and issue a new one, atomically."""
        ...

    async def list_keys(self, tenant_id: str) -> list[ApiKey]:
        """All keys of the tenant, newest first."""
        ...


class SqlCredentialStore:
    """CredentialStore backed by the api_keys table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def resolve(self, secret_token: str) -> ResolvedCredential | None:
        if not secret_token:
            return None

        stmt = (
            select(ApiKey.id, ApiKey.tenant_id)
            .where(ApiKey.key == secret_token, ApiKey.is_active.is_(True))
            .limit(1)
        )
        result = await self._session.execute(stmt)
        row = result.first()
        if row is None:
            return None

        return ResolvedCredential(tenant_id=row.tenant_id, api_key_id=row.id)

    async def current_active_key(self, tenant_id: str) -> ApiKey | None:
        stmt = (
            select(ApiKey)
            .where(ApiKey.tenant_id == tenant_id, ApiKey.is_active.is_(True))
            .order_by(ApiKey.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def regenerate(self, tenant_id: str, name: str | None = None) -> ApiKey:
        try:
            # Serialise regenerations for this tenant
            tenant_stmt = (
                select(Tenant.id).where(Tenant.id == tenant_id).with_for_update()
            )
            tenant_row = (await self._session.execute(tenant_stmt)).first()
            if tenant_row is None:
                raise TenantNotFoundError(tenant_id)

            new_key = await issue_key(self._session, tenant_id, name)
            # Load server-assigned created_at before the commit
            await self._session.refresh(new_key)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info(
            "API key regenerated: tenant=%s, key_id=%s, prefix=%s",
            tenant_id, new_key.id, key_preview(new_key.key),
        )
        return new_key

    async def list_keys(self, tenant_id: str) -> list[ApiKey]:
        stmt = (
            select(ApiKey)
            .where(ApiKey.tenant_id == tenant_id)
            .order_by(ApiKey.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


async def issue_key(
    session: AsyncSession, tenant_id: str, name: str | None = None,
) -> ApiKey:
    """
    Deactivate the tenant's active keys and stage a new one.

    Runs inside the caller's transaction and does not commit.
    """
    await session.execute(
        update(ApiKey)
        .where(ApiKey.tenant_id == tenant_id, ApiKey.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )

    new_key = ApiKey(
        tenant_id=tenant_id,
        key=generate_api_key(),
        name=name or settings.api_key_default_name,
        is_active=True,
    )
    session.add(new_key)
    await session.flush()
    return new_key
