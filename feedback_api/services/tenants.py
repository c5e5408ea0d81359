# =============================================================================
# Tenant Store — Company Accounts
# =============================================================================
#
# A tenant row is created when a company signs up with the identity
# provider. Provisioning also issues the first API key in the same
# transaction, so an account always starts with exactly one active key.
#
# Deleting a tenant relies on ON DELETE CASCADE for keys and feedback.
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_api.db.models import Tenant
from feedback_api.exceptions import TenantExistsError, TenantNotFoundError
from feedback_api.services.credentials import issue_key

logger = logging.getLogger(__name__)


class TenantStore(Protocol):
    """Interface for tenant storage."""

    async def get(self, tenant_id: str) -> Tenant | None: ...

    async def create(self, tenant_id: str, display_name: str) -> Tenant: ...

    async def rename(self, tenant_id: str, display_name: str) -> Tenant: ...

    async def delete(self, tenant_id: str) -> bool: ...


class SqlTenantStore:
    """TenantStore backed by the tenants table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, tenant_id: str) -> Tenant | None:
        return await self._session.get(Tenant, tenant_id)

    async def create(self, tenant_id: str, display_name: str) -> Tenant:
        """Create the tenant and its first active API key."""
        if await self.get(tenant_id) is not None:
            raise TenantExistsError(tenant_id)

        tenant = Tenant(id=tenant_id, display_name=display_name)
        try:
            self._session.add(tenant)
            await self._session.flush()
            await issue_key(self._session, tenant_id)
            await self._session.refresh(tenant)
            await self._session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent signup for the same subject
            await self._session.rollback()
            raise TenantExistsError(tenant_id) from e
        except Exception:
            await self._session.rollback()
            raise

        logger.info("Tenant provisioned: id=%s, name='%s'", tenant_id, display_name)
        return tenant

    async def rename(self, tenant_id: str, display_name: str) -> Tenant:
        tenant = await self.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)

        tenant.display_name = display_name
        try:
            await self._session.flush()
            await self._session.refresh(tenant)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        return tenant

    async def delete(self, tenant_id: str) -> bool:
        """Delete the tenant. Keys and feedback go with it. False if absent."""
        try:
            result = await self._session.execute(
                delete(Tenant).where(Tenant.id == tenant_id)
            )
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info("Tenant deleted: id=%s", tenant_id)
        return deleted
