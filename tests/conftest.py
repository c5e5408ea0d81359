# =============================================================================
# Shared Test Fixtures — In-Memory Stores
# =============================================================================
#
# The HTTP tests run the real FastAPI app with the store and identity
# dependencies overridden by the in-memory fakes below. No database, no
# network.
#
# Seed data:
#   tenant "T1" (Acme)   active key "abc123"
#   tenant "T2" (Globex) active key "def456"
#   identity tokens: "session-t1" → T1, "session-t2" → T2, "session-new" → T9
# =============================================================================

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from feedback_api.api.deps import (
    get_credential_store,
    get_feedback_store,
    get_identity_provider,
    get_tenant_store,
)
from feedback_api.db.models import ApiKey, Feedback, FeedbackType, Tenant
from feedback_api.exceptions import TenantAuthError, TenantExistsError, TenantNotFoundError
from feedback_api.main import create_app
from feedback_api.models.requests import FeedbackSubmission
from feedback_api.services.auth import generate_api_key
from feedback_api.services.credentials import ResolvedCredential


def _db_down() -> OperationalError:
    return OperationalError("INSERT ...", {}, Exception("connection refused"))


@dataclass
class InMemoryData:
    """The shared "database" behind all fake stores."""

    tenants: dict[str, Tenant] = field(default_factory=dict)
    keys: list[ApiKey] = field(default_factory=list)
    feedbacks: list[Feedback] = field(default_factory=list)
    _clock: datetime = field(default_factory=lambda: datetime(2025, 1, 1, tzinfo=UTC))

    def now(self) -> datetime:
        # Strictly increasing so "newest first" is deterministic
        self._clock += timedelta(seconds=1)
        return self._clock

    def add_tenant(self, tenant_id: str, display_name: str) -> Tenant:
        now = self.now()
        tenant = Tenant(
            id=tenant_id, display_name=display_name, created_at=now, updated_at=now,
        )
        self.tenants[tenant_id] = tenant
        return tenant

    def add_key(self, tenant_id: str, token: str, active: bool = True) -> ApiKey:
        api_key = ApiKey(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            key=token,
            name="Default API Key",
            is_active=active,
            created_at=self.now(),
        )
        self.keys.append(api_key)
        return api_key

    def active_keys(self, tenant_id: str) -> list[ApiKey]:
        return [k for k in self.keys if k.tenant_id == tenant_id and k.is_active]


class FakeCredentialStore:
    def __init__(self, data: InMemoryData) -> None:
        self.data = data
        self.resolve_calls: list[str] = []
        self.fail_resolve = False
        self.fail_regenerate = False

    async def resolve(self, secret_token: str) -> ResolvedCredential | None:
        self.resolve_calls.append(secret_token)
        if self.fail_resolve:
            raise _db_down()
        for api_key in self.data.keys:
            if api_key.key == secret_token and api_key.is_active:
                return ResolvedCredential(api_key.tenant_id, api_key.id)
        return None

    async def current_active_key(self, tenant_id: str) -> ApiKey | None:
        active = self.data.active_keys(tenant_id)
        return max(active, key=lambda k: k.created_at) if active else None

    async def regenerate(self, tenant_id: str, name: str | None = None) -> ApiKey:
        if self.fail_regenerate:
            raise _db_down()
        if tenant_id not in self.data.tenants:
            raise TenantNotFoundError(tenant_id)
        for api_key in self.data.active_keys(tenant_id):
            api_key.is_active = False
        new_key = self.data.add_key(tenant_id, generate_api_key())
        if name:
            new_key.name = name
        return new_key

    async def list_keys(self, tenant_id: str) -> list[ApiKey]:
        keys = [k for k in self.data.keys if k.tenant_id == tenant_id]
        return sorted(keys, key=lambda k: k.created_at, reverse=True)


class FakeFeedbackStore:
    def __init__(self, data: InMemoryData) -> None:
        self.data = data
        self.failure: Exception | None = None

    async def create(
        self,
        tenant_id: str,
        api_key_id: uuid.UUID,
        submission: FeedbackSubmission,
    ) -> Feedback:
        if self.failure is not None:
            raise self.failure
        feedback = Feedback(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            api_key_id=api_key_id,
            external_user_id=submission.user_id,
            type=submission.type,
            message=submission.message,
            metadata_=dict(submission.metadata),
            created_at=self.data.now(),
        )
        self.data.feedbacks.append(feedback)
        return feedback

    async def list_for_tenant(
        self,
        tenant_id: str,
        feedback_type: FeedbackType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Feedback]:
        rows = [
            f for f in self.data.feedbacks
            if f.tenant_id == tenant_id
            and (feedback_type is None or f.type == feedback_type)
        ]
        rows.sort(key=lambda f: f.created_at, reverse=True)
        return rows[offset:offset + limit]

    async def count_by_type(self, tenant_id: str) -> dict[str, int]:
        counts = {value: 0 for value in FeedbackType.values()}
        for f in self.data.feedbacks:
            if f.tenant_id == tenant_id:
                counts[FeedbackType(f.type).value] += 1
        return counts


class FakeTenantStore:
    def __init__(self, data: InMemoryData) -> None:
        self.data = data

    async def get(self, tenant_id: str) -> Tenant | None:
        return self.data.tenants.get(tenant_id)

    async def create(self, tenant_id: str, display_name: str) -> Tenant:
        if tenant_id in self.data.tenants:
            raise TenantExistsError(tenant_id)
        tenant = self.data.add_tenant(tenant_id, display_name)
        self.data.add_key(tenant_id, generate_api_key())
        return tenant

    async def rename(self, tenant_id: str, display_name: str) -> Tenant:
        tenant = self.data.tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        tenant.display_name = display_name
        tenant.updated_at = self.data.now()
        return tenant

    async def delete(self, tenant_id: str) -> bool:
        if self.data.tenants.pop(tenant_id, None) is None:
            return False
        self.data.keys = [k for k in self.data.keys if k.tenant_id != tenant_id]
        self.data.feedbacks = [
            f for f in self.data.feedbacks if f.tenant_id != tenant_id
        ]
        return True


class FakeIdentityProvider:
    def __init__(self, sessions: dict[str, str]) -> None:
        self.sessions = sessions

    def authenticate_tenant(self, credentials: str) -> str:
        try:
            return self.sessions[credentials]
        except KeyError:
            raise TenantAuthError("unknown session") from None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def data() -> InMemoryData:
    store = InMemoryData()
    store.add_tenant("T1", "Acme")
    store.add_key("T1", "abc123")
    store.add_tenant("T2", "Globex")
    store.add_key("T2", "def456")
    return store


@pytest.fixture
def credential_store(data: InMemoryData) -> FakeCredentialStore:
    return FakeCredentialStore(data)


@pytest.fixture
def feedback_store(data: InMemoryData) -> FakeFeedbackStore:
    return FakeFeedbackStore(data)


@pytest.fixture
def tenant_store(data: InMemoryData) -> FakeTenantStore:
    return FakeTenantStore(data)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider(
        {"session-t1": "T1", "session-t2": "T2", "session-new": "T9"},
    )


@pytest.fixture
def client(
    credential_store: FakeCredentialStore,
    feedback_store: FakeFeedbackStore,
    tenant_store: FakeTenantStore,
    identity_provider: FakeIdentityProvider,
) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_credential_store] = lambda: credential_store
    app.dependency_overrides[get_feedback_store] = lambda: feedback_store
    app.dependency_overrides[get_tenant_store] = lambda: tenant_store
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    return TestClient(app)
