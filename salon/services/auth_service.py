import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.config import settings
from salon.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from salon.core.timeutils import utc_naive_now
from salon.models.refresh_token import RefreshToken
from salon.models.user import User, UserCreate, UserPublic

logger = logging.getLogger(__name__)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    user = User(
        email=data.email.strip().lower(),
        full_name=data.full_name,
        role=data.role,
        hashed_password=hash_password(data.password),
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


def user_to_public(user: User) -> UserPublic:
    return UserPublic(id=user.id, email=user.email, full_name=user.full_name, role=user.role)


def make_token_pair(user: User) -> tuple[str, str, int]:
    access = create_access_token(user.id, user.role.value)
    refresh = create_refresh_token(user.id)
    expires_in = settings.access_token_expire_minutes * 60
    return access, refresh, expires_in


async def store_refresh_token(
    session: AsyncSession, user_id: int, refresh_token: str
) -> None:
    user_id_str, jti = decode_refresh_token(refresh_token)
    if not user_id_str or not jti:
        return
    expires_at = utc_naive_now() + timedelta(days=settings.refresh_token_expire_days)
    session.add(RefreshToken(user_id=user_id, jti=jti, expires_at=expires_at))
    await session.flush()


async def login_user(
    session: AsyncSession, email: str, password: str
) -> tuple[User, str, str, int] | None:
    user = await get_user_by_email(session, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        logger.info("Failed login for %s", email)
        return None
    access, refresh, expires_in = make_token_pair(user)
    await store_refresh_token(session, user_id=user.id, refresh_token=refresh)
    return user, access, refresh, expires_in


async def revoke_refresh_token(session: AsyncSession, jti: str) -> None:
    result = await session.execute(select(RefreshToken).where(RefreshToken.jti == jti))
    row = result.scalar_one_or_none()
    if row:
        row.revoked = True
        session.add(row)


async def refresh_tokens(
    session: AsyncSession, refresh_token: str
) -> tuple[User, str, str, int] | None:
    """Rotate a refresh token: the old one is revoked, a new pair is issued."""
    user_id_str, jti = decode_refresh_token(refresh_token)
    if not user_id_str or not jti:
        return None
    result = await session.execute(
        select(RefreshToken).where(
            RefreshToken.jti == jti,
            RefreshToken.revoked == False,  # noqa: E712
            RefreshToken.expires_at > utc_naive_now(),
        )
    )
    token_row = result.scalar_one_or_none()
    if not token_row:
        return None
    user = await session.get(User, int(user_id_str))
    if not user or not user.is_active:
        return None
    token_row.revoked = True
    session.add(token_row)
    access, refresh, expires_in = make_token_pair(user)
    await store_refresh_token(session, user_id=user.id, refresh_token=refresh)
    return user, access, refresh, expires_in
