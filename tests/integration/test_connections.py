"""Integration tests for connection management against a real schema.

Covers encryption at rest, the default-flag rules and the persisted outcome
of connection tests.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from halosync.connections import service as connections
from halosync.db.models import ConnectionModel
from halosync.psa.errors import NotFoundError

pytestmark = pytest.mark.integration

BASE_URL = "https://acme.halopsa.com"


def token_transport(status: int = 200, body: dict | None = None) -> httpx.AsyncClient:
    body = {"access_token": "tok", "expires_in": 3600} if body is None else body

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/token"
        return httpx.Response(status, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _add(session, user_id, cipher, name="Acme", **kwargs):
    return await connections.create_connection(
        session, user_id, name, BASE_URL + "/", "client-id", "client-secret", cipher=cipher, **kwargs
    )


class TestCreateConnection:
    """Test storage of new connections."""

    @pytest.mark.asyncio
    async def test_credentials_encrypted(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)

        assert connection.client_id_encrypted != "client-id"
        assert connection.client_secret_encrypted != "client-secret"
        assert cipher.decrypt_credentials(
            connection.client_id_encrypted, connection.client_secret_encrypted
        ) == ("client-id", "client-secret")

    @pytest.mark.asyncio
    async def test_defaults(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher, tenant="")

        assert connection.base_url == BASE_URL
        assert connection.tenant is None
        assert connection.is_active is True
        assert connection.test_status == connections.TEST_UNTESTED

    @pytest.mark.asyncio
    async def test_first_connection_is_default(self, db_session, user_id, cipher):
        first = await _add(db_session, user_id, cipher, name="First")
        second = await _add(db_session, user_id, cipher, name="Second")

        assert first.is_default is True
        assert second.is_default is False

    @pytest.mark.asyncio
    async def test_default_is_per_user(self, db_session, user_id, cipher):
        await _add(db_session, user_id, cipher)
        other = await _add(db_session, "user-2", cipher)

        assert other.is_default is True


class TestQueries:
    """Test listing and lookup."""

    @pytest.mark.asyncio
    async def test_list_newest_first_without_secrets(self, db_session, user_id, cipher):
        await _add(db_session, user_id, cipher, name="Old")
        await _add(db_session, user_id, cipher, name="New")

        views = await connections.list_connections(db_session, user_id)

        assert [v.name for v in views] == ["New", "Old"]
        dumped = views[0].model_dump()
        assert "client_id_encrypted" not in dumped
        assert "client_secret_encrypted" not in dumped

    @pytest.mark.asyncio
    async def test_get_other_users_connection(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)

        with pytest.raises(NotFoundError):
            await connections.get_connection(db_session, "intruder", connection.id)

    @pytest.mark.asyncio
    async def test_active_prefers_default(self, db_session, user_id, cipher):
        await _add(db_session, user_id, cipher, name="First")
        second = await _add(db_session, user_id, cipher, name="Second")
        await connections.set_default_connection(db_session, user_id, second.id)

        active = await connections.get_active_connection(db_session, user_id)

        assert active.id == second.id

    @pytest.mark.asyncio
    async def test_active_falls_back_to_oldest(self, db_session, user_id, cipher):
        first = await _add(db_session, user_id, cipher, name="First")
        await _add(db_session, user_id, cipher, name="Second")
        await connections.update_connection(db_session, user_id, first.id, is_active=False)

        active = await connections.get_active_connection(db_session, user_id)

        assert active.name == "Second"

    @pytest.mark.asyncio
    async def test_no_active_connection(self, db_session, user_id):
        assert await connections.get_active_connection(db_session, user_id) is None


class TestDefaultRules:
    """Test the single-default invariant."""

    @pytest.mark.asyncio
    async def test_set_default_clears_others(self, db_session, user_id, cipher):
        first = await _add(db_session, user_id, cipher, name="First")
        second = await _add(db_session, user_id, cipher, name="Second")

        await connections.set_default_connection(db_session, user_id, second.id)

        views = await connections.list_connections(db_session, user_id)
        assert [v.name for v in views if v.is_default] == ["Second"]
        await db_session.refresh(first)
        assert first.is_default is False

    @pytest.mark.asyncio
    async def test_delete_default_promotes_oldest(self, db_session, user_id, cipher):
        first = await _add(db_session, user_id, cipher, name="First")
        await _add(db_session, user_id, cipher, name="Second")
        await _add(db_session, user_id, cipher, name="Third")

        await connections.delete_connection(db_session, user_id, first.id)

        views = await connections.list_connections(db_session, user_id)
        assert {v.name: v.is_default for v in views} == {"Second": True, "Third": False}

    @pytest.mark.asyncio
    async def test_delete_non_default(self, db_session, user_id, cipher):
        await _add(db_session, user_id, cipher, name="First")
        second = await _add(db_session, user_id, cipher, name="Second")

        await connections.delete_connection(db_session, user_id, second.id)

        views = await connections.list_connections(db_session, user_id)
        assert [(v.name, v.is_default) for v in views] == [("First", True)]

    @pytest.mark.asyncio
    async def test_delete_last_connection(self, db_session, user_id, cipher):
        only = await _add(db_session, user_id, cipher)

        await connections.delete_connection(db_session, user_id, only.id)

        assert await connections.list_connections(db_session, user_id) == []


class TestDefaultConstraint:
    """The schema allows one default connection per user."""

    @pytest.mark.asyncio
    async def test_second_default_rejected(self, db_session, user_id, cipher):
        await _add(db_session, user_id, cipher, name="First")
        second = await _add(db_session, user_id, cipher, name="Second")

        second.is_default = True
        with pytest.raises(IntegrityError, match="UNIQUE constraint failed|duplicate key"):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_racing_first_connections(self, db_session, user_id, cipher, monkeypatch):
        first = await _add(db_session, user_id, cipher, name="First")
        # Second request read the user's connections before the first was stored
        monkeypatch.setattr(connections, "_user_connections", AsyncMock(return_value=[]))

        second = await _add(db_session, user_id, cipher, name="Second")

        assert first.is_default is True
        assert second.is_default is False
        defaults = await db_session.execute(
            select(func.count())
            .select_from(ConnectionModel)
            .where(ConnectionModel.user_id == user_id, ConnectionModel.is_default.is_(True))
        )
        assert defaults.scalar() == 1


class TestUpdateConnection:
    @pytest.mark.asyncio
    async def test_credential_change_resets_test_status(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)
        connection.test_status = connections.TEST_SUCCESS

        updated = await connections.update_connection(
            db_session, user_id, connection.id, client_secret="rotated", cipher=cipher
        )

        assert updated.test_status == connections.TEST_UNTESTED
        assert cipher.decrypt(updated.client_secret_encrypted) == "rotated"

    @pytest.mark.asyncio
    async def test_rename_keeps_test_status(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)
        connection.test_status = connections.TEST_SUCCESS

        updated = await connections.update_connection(
            db_session, user_id, connection.id, name="Renamed", cipher=cipher
        )

        assert updated.name == "Renamed"
        assert updated.test_status == connections.TEST_SUCCESS


class TestConnectionTest:
    """Test persisted outcomes of connection tests."""

    @pytest.mark.asyncio
    async def test_success(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)

        result = await connections.test_connection(
            db_session, user_id, connection.id, cipher=cipher, http_client=token_transport()
        )

        assert result.success is True
        assert connection.test_status == connections.TEST_SUCCESS
        assert connection.test_message is None
        assert connection.last_tested_at is not None

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)

        result = await connections.test_connection(
            db_session,
            user_id,
            connection.id,
            cipher=cipher,
            http_client=token_transport(401, {"error": "invalid_client"}),
        )

        assert result.success is False
        assert result.error_code == "AUTHENTICATION_ERROR"
        assert result.status_code == 401
        assert connection.test_status == connections.TEST_FAILED
        assert connection.test_message

    @pytest.mark.asyncio
    async def test_unreadable_credentials(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)
        connection.client_secret_encrypted = "dGFtcGVyZWQ="

        result = await connections.test_connection(
            db_session, user_id, connection.id, cipher=cipher, http_client=token_transport()
        )

        assert result.success is False
        assert result.message.startswith("Stored credentials are unreadable")
        assert connection.test_status == connections.TEST_FAILED

    @pytest.mark.asyncio
    async def test_previous_failure_cleared(self, db_session, user_id, cipher):
        connection = await _add(db_session, user_id, cipher)
        await connections.test_connection(
            db_session, user_id, connection.id, cipher=cipher, http_client=token_transport(500)
        )
        assert connection.test_status == connections.TEST_FAILED

        await connections.test_connection(
            db_session, user_id, connection.id, cipher=cipher, http_client=token_transport()
        )

        assert connection.test_status == connections.TEST_SUCCESS
        assert connection.test_message is None

    @pytest.mark.asyncio
    async def test_ad_hoc_credentials(self):
        result = await connections.test_credentials(
            BASE_URL, "cid", "secret", http_client=token_transport()
        )
        assert result.success is True

        result = await connections.test_credentials(
            BASE_URL, "cid", "bad", http_client=token_transport(400, {"error": "invalid_grant"})
        )
        assert result.success is False
        assert "400" in result.message
