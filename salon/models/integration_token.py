from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class IntegrationToken(SQLModel, table=True):
    """OAuth grant for an external provider. Token columns hold Fernet ciphertext."""
    __tablename__ = "integration_tokens"
    id: int | None = Field(default=None, primary_key=True)
    provider: str = Field(unique=True, index=True)
    refresh_token: str
    access_token: str | None = None
    expires_at: datetime | None = Field(default=None, sa_type=DateTime())
    needs_auth: bool = False
    last_checked_at: datetime | None = Field(default=None, sa_type=DateTime())
    last_error: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
