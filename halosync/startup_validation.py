"""Startup validation for HaloSync.

Fail fast and loud when the encryption secret or the database is unusable,
rather than on the first connection test or sync.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from halosync.db.models import ConnectionModel
from halosync.psa.errors import HaloError
from halosync.security.cipher import get_cipher

logger = logging.getLogger(__name__)


class StartupValidationError(Exception):
    """Raised when startup validation fails."""
    pass


def validate_encryption_key() -> None:
    """Resolve the encryption key and prove it round-trips.

    Raises:
        StartupValidationError: ENCRYPTION_KEY missing or unusable
    """
    try:
        cipher = get_cipher()
        probe = "halosync-startup-probe"
        if cipher.decrypt(cipher.encrypt(probe)) != probe:
            raise StartupValidationError("Encryption round-trip returned different plaintext")
    except HaloError as e:
        raise StartupValidationError(
            f"Encryption key check failed: {e}. Set ENCRYPTION_KEY "
            "(64 hex characters, or a passphrase)."
        ) from e

    logger.info("✓ Encryption key OK")


async def validate_database_connection(session: AsyncSession) -> None:
    """Validate database connection and schema.

    Raises:
        StartupValidationError: If database connection or schema is invalid
    """
    try:
        result = await session.execute(select(func.count()).select_from(ConnectionModel))
        connection_count = result.scalar()
    except Exception as e:
        raise StartupValidationError(
            f"Database connection failed: {e}. "
            "Check DATABASE_URL and run `halosync init`."
        ) from e

    logger.info(f"✓ Database connection OK ({connection_count} connections)")


async def run_startup_validation(session: AsyncSession) -> None:
    validate_encryption_key()
    await validate_database_connection(session)
