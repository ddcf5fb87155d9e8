"""Stored OAuth grants for external integrations (Google Drive).

Refresh and access tokens are Fernet-encrypted before they reach the database.
The environment refresh token only seeds the table on first start; after that
the stored grant wins, so a re-authorization survives restarts.
"""
import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.config import Settings, settings
from salon.core.timeutils import utc_naive_now
from salon.models.integration_token import IntegrationToken
from salon.services.drive_service import DriveService

logger = logging.getLogger(__name__)

DRIVE_PROVIDER = "google_drive"


class TokenDecryptionError(Exception):
    pass


@dataclass(frozen=True)
class StoredToken:
    provider: str
    refresh_token: str
    access_token: str | None
    expires_at: datetime | None
    needs_auth: bool
    last_checked_at: datetime | None
    last_error: str | None


def _cipher(config: Settings) -> Fernet:
    # Any secret string becomes a valid 32-byte urlsafe Fernet key
    digest = hashlib.sha256((config.token_encryption_key or config.secret_key).encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_token(token: str, config: Settings = settings) -> str:
    return _cipher(config).encrypt(token.encode("utf-8")).decode("ascii")


def decrypt_token(value: str, config: Settings = settings) -> str:
    try:
        plain = _cipher(config).decrypt(value.encode("ascii"))
    except (InvalidToken, UnicodeEncodeError) as e:
        raise TokenDecryptionError("Stored integration token could not be decrypted") from e
    return plain.decode("utf-8")


async def _get_row(session: AsyncSession, provider: str) -> IntegrationToken | None:
    result = await session.execute(select(IntegrationToken).where(IntegrationToken.provider == provider))
    return result.scalar_one_or_none()


async def save_token(
    session: AsyncSession,
    provider: str,
    refresh_token: str,
    access_token: str | None = None,
    expires_at: datetime | None = None,
) -> IntegrationToken:
    """Insert or replace the grant for `provider`; a fresh grant is always healthy."""
    now = utc_naive_now()
    row = await _get_row(session, provider) or IntegrationToken(provider=provider, refresh_token="")
    row.refresh_token = encrypt_token(refresh_token)
    row.access_token = encrypt_token(access_token) if access_token else None
    row.expires_at = expires_at
    row.needs_auth = False
    row.last_error = None
    row.last_checked_at = now
    row.updated_at = now
    session.add(row)
    await session.flush()
    logger.info("Integration token for %s saved", provider)
    return row


async def get_token(session: AsyncSession, provider: str) -> StoredToken | None:
    row = await _get_row(session, provider)
    if row is None:
        return None
    return StoredToken(
        provider=row.provider,
        refresh_token=decrypt_token(row.refresh_token),
        access_token=decrypt_token(row.access_token) if row.access_token else None,
        expires_at=row.expires_at,
        needs_auth=row.needs_auth,
        last_checked_at=row.last_checked_at,
        last_error=row.last_error,
    )


async def update_token_check(
    session: AsyncSession, provider: str, is_valid: bool, error: str | None = None
) -> bool:
    """Record the outcome of a token check. Returns False when nothing is stored for `provider`."""
    row = await _get_row(session, provider)
    if row is None:
        return False
    now = utc_naive_now()
    row.needs_auth = not is_valid
    row.last_error = None if is_valid else error
    row.last_checked_at = now
    row.updated_at = now
    session.add(row)
    await session.flush()
    if is_valid:
        logger.info("Integration token for %s verified", provider)
    else:
        logger.warning("Integration token for %s needs re-authorization", provider)
    return True


async def mark_needs_auth(session: AsyncSession, provider: str, error: str | None = None) -> bool:
    return await update_token_check(session, provider, False, error)


async def providers_needing_auth(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(IntegrationToken.provider)
        .where(IntegrationToken.needs_auth == True)  # noqa: E712
        .order_by(IntegrationToken.provider)
    )
    return list(result.scalars().all())


async def delete_token(session: AsyncSession, provider: str) -> bool:
    row = await _get_row(session, provider)
    if row is None:
        return False
    await session.delete(row)
    await session.flush()
    logger.info("Integration token for %s deleted", provider)
    return True


async def load_drive_token(session: AsyncSession, drive: DriveService) -> StoredToken | None:
    """Point `drive` at the stored grant, seeding the table from the environment if empty."""
    stored = await get_token(session, DRIVE_PROVIDER)
    if stored is None:
        if not drive.config.google_drive_refresh_token:
            return None
        await save_token(session, DRIVE_PROVIDER, drive.config.google_drive_refresh_token)
        logger.info("Google Drive token seeded from environment")
        return await get_token(session, DRIVE_PROVIDER)
    drive.use_refresh_token(stored.refresh_token)
    drive.needs_reauth = stored.needs_auth
    if stored.needs_auth:
        logger.warning("Stored Google Drive token is waiting for re-authorization")
    return stored
