import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import asdict, dataclass
from datetime import datetime

from google.auth.exceptions import RefreshError, TransportError
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.config import settings
from salon.core.db import async_session_maker
from salon.core.timeutils import utc_naive_now
from salon.services import integration_token_service as integration_tokens
from salon.services.drive_service import DriveService, drive_service
from salon.services.email_service import send_drive_reauth_email

logger = logging.getLogger(__name__)


@dataclass
class TokenStatus:
    configured: bool = False
    healthy: bool = False
    needs_reauth: bool = False
    last_checked_at: datetime | None = None
    last_error: str | None = None
    notified: bool = False


class TokenMonitor:
    """Periodically refreshes the Drive OAuth token and flags revoked grants.

    `start()` checks immediately and then every `interval_seconds`; `stop()` cancels
    the loop and waits for it to finish. With a `session_factory` every verdict
    is also written to the stored Drive grant.
    """

    def __init__(
        self,
        drive: DriveService = drive_service,
        interval_seconds: float | None = None,
        notify: Callable[[str], None] = send_drive_reauth_email,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] | None = None,
    ):
        self.drive = drive
        self.interval_seconds = interval_seconds or settings.drive_token_check_minutes * 60
        self._notify = notify
        self._sleep = sleep
        self._session_factory = session_factory
        self._task: asyncio.Task | None = None
        self.status = TokenStatus(configured=drive.configured)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_once(self) -> TokenStatus:
        self.status.configured = self.drive.configured
        if not self.status.configured:
            self.status.healthy = False
            return self.status
        self.status.last_checked_at = utc_naive_now()
        try:
            await self.drive.check_token()
        except RefreshError as e:
            self.status.healthy = False
            self.status.last_error = str(e)
            if "invalid_grant" in str(e):
                await self._mark_needs_reauth(str(e))
                await self._record(False, str(e))
            else:
                logger.warning("Drive token refresh failed: %s", e)
        except (TransportError, OSError) as e:
            # Network trouble says nothing about the grant itself
            self.status.last_error = str(e)
            logger.warning("Drive token check could not reach Google: %s", e)
        else:
            if self.status.needs_reauth:
                logger.info("Drive token is valid again")
            self.status.healthy = True
            self.status.needs_reauth = False
            self.status.notified = False
            self.status.last_error = None
            self.drive.needs_reauth = False
            await self._record(True)
        return self.status

    async def _record(self, is_valid: bool, error: str | None = None) -> None:
        if self._session_factory is None:
            return
        try:
            async with self._session_factory() as session:
                await integration_tokens.update_token_check(session, integration_tokens.DRIVE_PROVIDER, is_valid, error)
                await session.commit()
        except Exception:
            logger.exception("Could not record Drive token state")

    def mark_authorized(self) -> None:
        """Forget a revoked grant after the admin authorized Drive again."""
        self.status.configured = self.drive.configured
        self.status.needs_reauth = False
        self.status.notified = False
        self.status.last_error = None

    async def _mark_needs_reauth(self, message: str) -> None:
        logger.warning("Drive refresh token was rejected; uploads will use local storage")
        self.status.needs_reauth = True
        self.drive.needs_reauth = True
        if self.status.notified:
            return
        self.status.notified = True
        try:
            await asyncio.to_thread(self._notify, message)
        except Exception:
            logger.exception("Could not send Drive re-authorization notice")

    async def _run(self) -> None:
        while True:
            try:
                await self.check_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Drive token check failed")
            await self._sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting Drive token monitor (every %d minutes)", self.interval_seconds // 60)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Drive token monitor stopped")

    def snapshot(self) -> dict:
        return {**asdict(self.status), "running": self.running}


token_monitor = TokenMonitor(session_factory=async_session_maker)
