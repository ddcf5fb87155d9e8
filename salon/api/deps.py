from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.db import get_session
from salon.core.security import decode_access_token
from salon.models.user import User, UserRole
from salon.services.drive_service import DriveService, drive_service
from salon.services.google_oauth import GoogleOAuthClient, google_oauth
from salon.services.token_monitor import TokenMonitor, token_monitor

security = HTTPBearer(auto_error=False)

__all__ = ["get_session", "get_current_user", "require_admin", "refresh_header", "get_drive", "get_token_monitor", "get_oauth_client"]


def refresh_header(x_refresh_token: str | None = Header(default=None, alias="X-Refresh-Token")) -> str | None:
    """Extract X-Refresh-Token header for logout/refresh endpoints."""
    return x_refresh_token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid authorization header")
    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise _unauthorized("Invalid or expired token")
    try:
        uid = int(user_id)
    except ValueError:
        raise _unauthorized("Invalid token")
    user = await session.get(User, uid)
    if not user or not user.is_active:
        raise _unauthorized("User not found")
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def get_drive() -> DriveService:
    return drive_service


def get_token_monitor() -> TokenMonitor:
    return token_monitor


def get_oauth_client() -> GoogleOAuthClient:
    return google_oauth
