from datetime import datetime

from salon.api.schemas.common import CamelModel


class DriveStatusOut(CamelModel):
    configured: bool
    healthy: bool
    needs_reauth: bool
    running: bool
    notified: bool
    last_checked_at: datetime | None = None
    last_error: str | None = None
