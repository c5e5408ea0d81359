# =============================================================================
# Unit Tests — SQL Stores (mocked AsyncSession)
# =============================================================================
#
# Exercises the SQLAlchemy stores against an AsyncMock session: which
# statements run, when the transaction commits and that every failure rolls
# back. No database required.
#
# Test groups:
#   1. SqlCredentialStore.resolve
#   2. SqlCredentialStore.regenerate
#   3. SqlFeedbackStore
#   4. SqlTenantStore
# =============================================================================

from __future__ import annotations

import asyncio
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.sql.dml import Update

from feedback_api.db.models import ApiKey, Feedback, FeedbackType, Tenant
from feedback_api.exceptions import TenantExistsError, TenantNotFoundError
from feedback_api.models.requests import FeedbackSubmission
from feedback_api.services.credentials import ResolvedCredential, SqlCredentialStore
from feedback_api.services.feedback import SqlFeedbackStore
from feedback_api.services.tenants import SqlTenantStore


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _session() -> AsyncMock:
    session = AsyncMock()
    # AsyncSession.add is synchronous
    session.add = MagicMock()
    return session


def _result(first=None, rows=None, scalars=None, rowcount=None) -> MagicMock:
    result = MagicMock()
    result.first.return_value = first
    result.all.return_value = rows or []
    result.scalars.return_value.all.return_value = scalars or []
    result.rowcount = rowcount
    return result


def _db_error() -> OperationalError:
    return OperationalError("INSERT ...", {}, Exception("connection reset"))


# ---------------------------------------------------------------------------
# 1. resolve
# ---------------------------------------------------------------------------


class TestResolve:
    def test_active_key_resolves_to_tenant(self):
        key_id = uuid.uuid4()
        session = _session()
        session.execute.return_value = _result(
            first=SimpleNamespace(id=key_id, tenant_id="T1"),
        )

        resolved = _run(SqlCredentialStore(session).resolve("abc123"))

        assert resolved == ResolvedCredential(tenant_id="T1", api_key_id=key_id)

    def test_query_matches_exact_token(self):
        session = _session()
        session.execute.return_value = _result(first=None)

        _run(SqlCredentialStore(session).resolve("abc123"))

        stmt = session.execute.call_args.args[0]
        assert "abc123" in stmt.compile().params.values()
        assert "is_active" in str(stmt)

    def test_unknown_token_returns_none(self):
        session = _session()
        session.execute.return_value = _result(first=None)

        assert _run(SqlCredentialStore(session).resolve("nope")) is None

    def test_empty_token_skips_query(self):
        session = _session()

        assert _run(SqlCredentialStore(session).resolve("")) is None
        session.execute.assert_not_awaited()

    def test_resolve_has_no_side_effects(self):
        session = _session()
        session.execute.return_value = _result(first=None)

        _run(SqlCredentialStore(session).resolve("abc123"))

        session.add.assert_not_called()
        session.commit.assert_not_awaited()

    def test_database_error_propagates(self):
        session = _session()
        session.execute.side_effect = _db_error()

        with pytest.raises(OperationalError):
            _run(SqlCredentialStore(session).resolve("abc123"))


# ---------------------------------------------------------------------------
# 2. regenerate
# ---------------------------------------------------------------------------


class TestRegenerate:
    def _session_with_tenant(self, exists: bool = True) -> AsyncMock:
        session = _session()
        session.execute.side_effect = [
            _result(first=("T1",) if exists else None),
            _result(),
        ]
        return session

    def test_deactivates_then_inserts_then_commits(self):
        session = self._session_with_tenant()

        new_key = _run(SqlCredentialStore(session).regenerate("T1"))

        assert session.execute.await_count == 2
        lock_stmt = session.execute.await_args_list[0].args[0]
        assert lock_stmt._for_update_arg is not None
        assert isinstance(session.execute.await_args_list[1].args[0], Update)

        session.add.assert_called_once_with(new_key)
        session.flush.assert_awaited_once()
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    def test_deactivation_is_scoped_to_tenant_active_keys(self):
        session = self._session_with_tenant()

        _run(SqlCredentialStore(session).regenerate("T1"))

        update_stmt = session.execute.await_args_list[1].args[0]
        compiled = update_stmt.compile(dialect=postgresql.dialect())
        sql = str(compiled)
        where = sql.split("WHERE", 1)[1]
        assert "api_keys.tenant_id =" in where
        assert "api_keys.is_active IS true" in where
        assert list(compiled.params.values()).count("T1") == 1
        assert compiled.params["is_active"] is False

    def test_new_key_is_active_and_random(self):
        session = self._session_with_tenant()

        new_key = _run(SqlCredentialStore(session).regenerate("T1"))

        assert isinstance(new_key, ApiKey)
        assert new_key.tenant_id == "T1"
        assert new_key.is_active is True
        assert len(new_key.key) == 64
        assert new_key.name == "Default API Key"

    def test_custom_name(self):
        session = self._session_with_tenant()

        new_key = _run(SqlCredentialStore(session).regenerate("T1", name="CI key"))

        assert new_key.name == "CI key"

    def test_insert_failure_rolls_back(self):
        session = self._session_with_tenant()
        session.flush.side_effect = _db_error()

        with pytest.raises(OperationalError):
            _run(SqlCredentialStore(session).regenerate("T1"))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    def test_refresh_runs_inside_transaction(self):
        session = self._session_with_tenant()
        session.refresh.side_effect = _db_error()

        with pytest.raises(OperationalError):
            _run(SqlCredentialStore(session).regenerate("T1"))

        session.commit.assert_not_awaited()
        session.rollback.assert_awaited_once()

    def test_commit_failure_rolls_back(self):
        session = self._session_with_tenant()
        session.commit.side_effect = _db_error()

        with pytest.raises(OperationalError):
            _run(SqlCredentialStore(session).regenerate("T1"))

        session.rollback.assert_awaited_once()

    def test_unknown_tenant(self):
        session = self._session_with_tenant(exists=False)

        with pytest.raises(TenantNotFoundError):
            _run(SqlCredentialStore(session).regenerate("T404"))

        session.add.assert_not_called()
        session.commit.assert_not_awaited()
        session.rollback.assert_awaited_once()


# ---------------------------------------------------------------------------
# 3. SqlFeedbackStore
# ---------------------------------------------------------------------------


class TestFeedbackStore:
    def _submission(self) -> FeedbackSubmission:
        return FeedbackSubmission(
            type=FeedbackType.BUG,
            message="crashes on save",
            user_id="u-1",
            metadata={"page": "/editor"},
        )

    def test_create_inserts_one_row_and_commits(self):
        session = _session()
        key_id = uuid.uuid4()

        feedback = _run(SqlFeedbackStore(session).create("T1", key_id, self._submission()))

        session.add.assert_called_once_with(feedback)
        assert isinstance(feedback, Feedback)
        assert feedback.tenant_id == "T1"
        assert feedback.api_key_id == key_id
        assert feedback.type is FeedbackType.BUG
        assert feedback.external_user_id == "u-1"
        assert feedback.metadata_ == {"page": "/editor"}
        session.commit.assert_awaited_once()

    def test_create_failure_rolls_back(self):
        session = _session()
        session.flush.side_effect = _db_error()

        with pytest.raises(OperationalError):
            _run(SqlFeedbackStore(session).create("T1", uuid.uuid4(), self._submission()))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    def test_list_filters_by_tenant_and_type(self):
        session = _session()
        session.execute.return_value = _result(scalars=["row"])

        rows = _run(SqlFeedbackStore(session).list_for_tenant(
            "T1", feedback_type=FeedbackType.PRAISE, limit=10, offset=20,
        ))

        assert rows == ["row"]
        stmt = session.execute.call_args.args[0]
        params = stmt.compile().params
        assert "T1" in params.values()
        assert 10 in params.values()
        assert 20 in params.values()

    def test_count_by_type_zero_fills(self):
        session = _session()
        session.execute.return_value = _result(
            rows=[(FeedbackType.BUG, 3), ("praise", 1)],
        )

        counts = _run(SqlFeedbackStore(session).count_by_type("T1"))

        assert counts == {"bug": 3, "suggestion": 0, "praise": 1, "other": 0}


# ---------------------------------------------------------------------------
# 4. SqlTenantStore
# ---------------------------------------------------------------------------


class TestTenantStore:
    def test_create_adds_tenant_and_first_key(self):
        session = _session()
        session.get.return_value = None

        tenant = _run(SqlTenantStore(session).create("T9", "Initech"))

        added = [call.args[0] for call in session.add.call_args_list]
        assert added[0] is tenant
        assert tenant.display_name == "Initech"
        assert isinstance(added[1], ApiKey)
        assert added[1].tenant_id == "T9"
        assert added[1].is_active is True
        session.commit.assert_awaited_once()

    def test_create_refreshes_before_commit(self):
        session = _session()
        session.get.return_value = None

        _run(SqlTenantStore(session).create("T9", "Initech"))

        calls = [name for name, _, _ in session.mock_calls]
        assert calls.index("refresh") < calls.index("commit")

    def test_create_refresh_failure_rolls_back(self):
        session = _session()
        session.get.return_value = None
        session.refresh.side_effect = _db_error()

        with pytest.raises(OperationalError):
            _run(SqlTenantStore(session).create("T9", "Initech"))

        session.commit.assert_not_awaited()
        session.rollback.assert_awaited_once()

    def test_create_existing_tenant(self):
        session = _session()
        session.get.return_value = Tenant(id="T1", display_name="Acme")

        with pytest.raises(TenantExistsError):
            _run(SqlTenantStore(session).create("T1", "Acme again"))

        session.add.assert_not_called()

    def test_create_race_becomes_exists_error(self):
        session = _session()
        session.get.return_value = None
        session.flush.side_effect = IntegrityError("INSERT ...", {}, Exception("dup"))

        with pytest.raises(TenantExistsError):
            _run(SqlTenantStore(session).create("T1", "Acme"))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    def test_rename_unknown_tenant(self):
        session = _session()
        session.get.return_value = None

        with pytest.raises(TenantNotFoundError):
            _run(SqlTenantStore(session).rename("T404", "Nobody"))

    def test_rename_commits(self):
        session = _session()
        tenant = Tenant(id="T1", display_name="Acme")
        session.get.return_value = tenant

        result = _run(SqlTenantStore(session).rename("T1", "Acme Corp"))

        assert result.display_name == "Acme Corp"
        session.commit.assert_awaited_once()

    @pytest.mark.parametrize(("rowcount", "expected"), [(1, True), (0, False)])
    def test_delete(self, rowcount, expected):
        session = _session()
        session.execute.return_value = _result(rowcount=rowcount)

        assert _run(SqlTenantStore(session).delete("T1")) is expected
        session.commit.assert_awaited_once()
