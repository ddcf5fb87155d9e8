
from salon.api.schemas.common import CamelModel, UtcDatetime


class OAuthStartOut(CamelModel):
    auth_url: str
    message: str


class TokenStatusOut(CamelModel):
    tokens_needing_auth: list[str]
    message: str


class TokenVerifyOut(CamelModel):
    provider: str
    needs_auth: bool
    last_checked_at: UtcDatetime | None = None
    message: str
