"""HaloPSA connection management.

Stores a user's PSA endpoints with encrypted credentials and enforces the
default-flag rules: a user's first connection is the default, at most one
connection per user is default, and deleting the default promotes the
oldest remaining connection.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from halosync.config import get_config
from halosync.db.models import ConnectionModel
from halosync.psa.cache import ResponseCache
from halosync.psa.client import PSAClient
from halosync.psa.errors import HaloError, NotFoundError
from halosync.security.cipher import CredentialCipher, get_cipher

logger = logging.getLogger(__name__)

TEST_UNTESTED = "UNTESTED"
TEST_SUCCESS = "SUCCESS"
TEST_FAILED = "FAILED"


class ConnectionView(BaseModel):
    """Connection as shown to users. Never carries credentials."""

    id: UUID
    name: str
    base_url: str
    tenant: str | None = None
    is_active: bool
    is_default: bool
    test_status: str
    test_message: str | None = None
    last_tested_at: datetime | None = None
    last_used_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: ConnectionModel) -> ConnectionView:
        return cls(
            id=model.id,
            name=model.name,
            base_url=model.base_url,
            tenant=model.tenant,
            is_active=model.is_active,
            is_default=model.is_default,
            test_status=model.test_status,
            test_message=model.test_message,
            last_tested_at=model.last_tested_at,
            last_used_at=model.last_used_at,
            created_at=model.created_at,
        )


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    error_code: str | None = None
    status_code: int | None = None


def normalize_base_url(base_url: str) -> str:
    return base_url.strip().rstrip("/")


def build_client(
    connection: ConnectionModel,
    cipher: CredentialCipher | None = None,
    cache: ResponseCache | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> PSAClient:
    """Decrypt a stored connection's credentials and build its API client.

    Raises:
        AuthenticationFailure: Stored credentials could not be decrypted
    """
    cipher = cipher or get_cipher()
    psa_config = get_config().psa
    client_id, client_secret = cipher.decrypt_credentials(
        connection.client_id_encrypted, connection.client_secret_encrypted
    )
    return PSAClient(
        connection.base_url,
        client_id,
        client_secret,
        connection.tenant,
        connection_id=str(connection.id),
        cache=cache,
        timeout=psa_config.http_timeout,
        scope=psa_config.token_scope,
        token_expiry_margin=psa_config.token_expiry_margin_seconds,
        http_client=http_client,
    )


async def _user_connections(session: AsyncSession, user_id: str, newest_first: bool):
    order = ConnectionModel.created_at.desc() if newest_first else ConnectionModel.created_at.asc()
    stmt = select(ConnectionModel).where(ConnectionModel.user_id == user_id).order_by(order)
    return list((await session.execute(stmt)).scalars().all())


async def create_connection(
    session: AsyncSession,
    user_id: str,
    name: str,
    base_url: str,
    client_id: str,
    client_secret: str,
    tenant: str | None = None,
    cipher: CredentialCipher | None = None,
) -> ConnectionModel:
    """Store a new connection with encrypted credentials.

    The connection becomes the user's default only if it is their first.
    """
    cipher = cipher or get_cipher()
    existing = await _user_connections(session, user_id, newest_first=False)
    enc_id, enc_secret = cipher.encrypt_credentials(client_id, client_secret)

    connection = ConnectionModel(
        user_id=user_id,
        name=name,
        base_url=normalize_base_url(base_url),
        client_id_encrypted=enc_id,
        client_secret_encrypted=enc_secret,
        tenant=tenant or None,
        is_active=True,
        is_default=not existing,
        test_status=TEST_UNTESTED,
    )
    if connection.is_default:
        try:
            async with session.begin_nested():
                session.add(connection)
        except IntegrityError:
            # A concurrent request stored this user's first connection
            logger.info(f"Default already taken for user {user_id}, adding as non-default")
            connection.is_default = False
            session.add(connection)
    else:
        session.add(connection)
    await session.flush()

    logger.info(f"Created connection {connection.id} ({connection.name}) for user {user_id}")
    return connection


async def list_connections(session: AsyncSession, user_id: str) -> list[ConnectionView]:
    """User's connections, newest first, without credentials."""
    return [
        ConnectionView.from_model(c)
        for c in await _user_connections(session, user_id, newest_first=True)
    ]


async def get_connection(
    session: AsyncSession, user_id: str, connection_id: UUID
) -> ConnectionModel:
    """Fetch one of the user's connections.

    Raises:
        NotFoundError: No such connection for this user
    """
    stmt = select(ConnectionModel).where(
        ConnectionModel.id == connection_id, ConnectionModel.user_id == user_id
    )
    connection = (await session.execute(stmt)).scalars().first()
    if connection is None:
        raise NotFoundError("Connection", connection_id)
    return connection


async def update_connection(
    session: AsyncSession,
    user_id: str,
    connection_id: UUID,
    *,
    name: str | None = None,
    base_url: str | None = None,
    client_id: str | None = None,
    client_secret: str | None = None,
    tenant: str | None = None,
    is_active: bool | None = None,
    cipher: CredentialCipher | None = None,
) -> ConnectionModel:
    """Apply partial changes; changed endpoint or credentials reset the test status."""
    connection = await get_connection(session, user_id, connection_id)
    cipher = cipher or get_cipher()
    retest = False

    if name is not None:
        connection.name = name
    if is_active is not None:
        connection.is_active = is_active
    if tenant is not None:
        connection.tenant = tenant or None
        retest = True
    if base_url is not None:
        connection.base_url = normalize_base_url(base_url)
        retest = True
    if client_id is not None:
        connection.client_id_encrypted = cipher.encrypt(client_id)
        retest = True
    if client_secret is not None:
        connection.client_secret_encrypted = cipher.encrypt(client_secret)
        retest = True

    if retest:
        connection.test_status = TEST_UNTESTED
        connection.test_message = None

    await session.flush()
    return connection


async def delete_connection(session: AsyncSession, user_id: str, connection_id: UUID) -> None:
    """Delete a connection, promoting the oldest remaining one if it was the default."""
    connection = await get_connection(session, user_id, connection_id)
    was_default = connection.is_default

    await session.delete(connection)
    await session.flush()

    if was_default:
        remaining = await _user_connections(session, user_id, newest_first=False)
        if remaining:
            remaining[0].is_default = True
            await session.flush()
            logger.info(f"Promoted connection {remaining[0].id} to default for user {user_id}")


async def set_default_connection(
    session: AsyncSession, user_id: str, connection_id: UUID
) -> ConnectionModel:
    """Make one connection the user's default, clearing the flag on all others."""
    connection = await get_connection(session, user_id, connection_id)

    await session.execute(
        update(ConnectionModel)
        .where(ConnectionModel.user_id == user_id, ConnectionModel.id != connection_id)
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )
    connection.is_default = True
    await session.flush()
    return connection


async def get_active_connection(session: AsyncSession, user_id: str) -> ConnectionModel | None:
    """User's active connection: the default first, else the earliest created."""
    stmt = (
        select(ConnectionModel)
        .where(ConnectionModel.user_id == user_id, ConnectionModel.is_active.is_(True))
        .order_by(ConnectionModel.is_default.desc(), ConnectionModel.created_at.asc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalars().first()


async def _authenticate(client: PSAClient) -> ConnectionTestResult:
    try:
        await client.authenticate()
    except HaloError as exc:
        return ConnectionTestResult(
            success=False,
            message=str(exc) or "Connection test failed",
            error_code=exc.code,
            status_code=getattr(exc, "status_code", None),
        )
    finally:
        await client.close()
    return ConnectionTestResult(success=True, message="Connection successful")


async def test_connection(
    session: AsyncSession,
    user_id: str,
    connection_id: UUID,
    *,
    cipher: CredentialCipher | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ConnectionTestResult:
    """Authenticate with a stored connection and persist the outcome.

    Success sets SUCCESS and clears the message; any failure (including
    undecryptable credentials) sets FAILED with a non-empty message.
    """
    connection = await get_connection(session, user_id, connection_id)

    try:
        client = build_client(connection, cipher=cipher, http_client=http_client)
    except HaloError as exc:
        result = ConnectionTestResult(
            success=False, message=f"Stored credentials are unreadable: {exc}", error_code=exc.code
        )
    else:
        result = await _authenticate(client)

    connection.last_tested_at = datetime.now(timezone.utc)
    if result.success:
        connection.test_status = TEST_SUCCESS
        connection.test_message = None
    else:
        connection.test_status = TEST_FAILED
        connection.test_message = result.message
        logger.warning(f"Connection test failed for {connection.id}: {result.message}")
    await session.flush()

    return result


async def test_credentials(
    base_url: str,
    client_id: str,
    client_secret: str,
    tenant: str | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ConnectionTestResult:
    """Authenticate with ad-hoc credentials. Nothing is persisted."""
    psa_config = get_config().psa
    client = PSAClient(
        normalize_base_url(base_url),
        client_id,
        client_secret,
        tenant or None,
        timeout=psa_config.http_timeout,
        scope=psa_config.token_scope,
        http_client=http_client,
    )
    return await _authenticate(client)


async def mark_used(session: AsyncSession, connection: ConnectionModel) -> None:
    connection.last_used_at = datetime.now(timezone.utc)
    await session.flush()


def describe(connection: ConnectionModel) -> dict[str, Any]:
    """Log-safe summary of a connection."""
    return {"id": str(connection.id), "name": connection.name, "base_url": connection.base_url}
