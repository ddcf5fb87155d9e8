from datetime import UTC, datetime, timedelta
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from salon.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, role: str) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"sub": str(user_id), "role": role, "exp": expire, "type": "access"}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def create_refresh_token(user_id: int) -> str:
    expire = datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days)
    claims = {
        "sub": str(user_id),
        "exp": expire,
        "type": "refresh",
        "jti": str(uuid4()),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def _decode(token: str, expected_type: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def decode_access_token(token: str) -> str | None:
    """Returns the user id claim of a valid access token."""
    payload = _decode(token, "access")
    if not payload:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


def decode_refresh_token(token: str) -> tuple[str | None, str | None]:
    """Returns (user_id_str, jti) or (None, None)."""
    payload = _decode(token, "refresh")
    if not payload:
        return None, None
    return payload.get("sub"), payload.get("jti")


def create_oauth_state(provider: str) -> str:
    """Signed, short-lived `state` for an OAuth authorization request."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.oauth_state_expire_minutes)
    claims = {"provider": provider, "exp": expire, "type": "oauth_state", "nonce": uuid4().hex}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_oauth_state(state: str) -> str | None:
    """Returns the provider named by a valid state, or None."""
    payload = _decode(state, "oauth_state")
    if not payload:
        return None
    return payload.get("provider")
