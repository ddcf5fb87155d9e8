import asyncio

from google.auth.exceptions import RefreshError, TransportError

from salon.core.config import settings
from salon.services import integration_token_service as integration_tokens
from salon.services.drive_service import DriveService
from salon.services.integration_token_service import DRIVE_PROVIDER
from salon.services.token_monitor import TokenMonitor

DRIVE_CONFIG = settings.model_copy(
    update={
        'google_drive_client_id': 'client-id',
        'google_drive_client_secret': 'client-secret',
        'google_drive_refresh_token': 'refresh-token',
    }
)


class ScriptedDrive(DriveService):
    """check_token raises the queued errors in order, then succeeds."""

    def __init__(self, errors=(), config=DRIVE_CONFIG):
        super().__init__(config=config, client=object())
        self.errors = list(errors)
        self.checks = 0

    async def check_token(self) -> None:
        self.checks += 1
        if self.errors:
            raise self.errors.pop(0)


def make_monitor(drive):
    notices = []
    monitor = TokenMonitor(drive=drive, interval_seconds=60, notify=notices.append)
    return monitor, notices


def test_healthy_token() -> None:
    drive = ScriptedDrive()
    monitor, notices = make_monitor(drive)

    status = asyncio.run(monitor.check_once())

    assert status.healthy is True
    assert status.needs_reauth is False
    assert status.last_checked_at is not None
    assert notices == []


def test_revoked_grant_flags_reauth_and_notifies_once() -> None:
    revoked = RefreshError('invalid_grant: Token has been expired or revoked.')
    drive = ScriptedDrive(errors=[revoked, revoked])
    monitor, notices = make_monitor(drive)

    async def scenario():
        await monitor.check_once()
        return await monitor.check_once()

    status = asyncio.run(scenario())

    assert status.needs_reauth is True
    assert status.healthy is False
    assert drive.needs_reauth is True
    assert len(notices) == 1
    assert 'invalid_grant' in notices[0]


def test_recovery_clears_flags() -> None:
    drive = ScriptedDrive(errors=[RefreshError('invalid_grant')])
    monitor, notices = make_monitor(drive)

    async def scenario():
        await monitor.check_once()
        return await monitor.check_once()

    status = asyncio.run(scenario())

    assert status.healthy is True
    assert status.needs_reauth is False
    assert status.notified is False
    assert drive.needs_reauth is False
    assert len(notices) == 1


def test_network_errors_do_not_flag_reauth() -> None:
    drive = ScriptedDrive(errors=[TransportError('connection reset')])
    monitor, notices = make_monitor(drive)

    status = asyncio.run(monitor.check_once())

    assert status.needs_reauth is False
    assert status.last_error == 'connection reset'
    assert notices == []


def test_unconfigured_drive_is_not_checked() -> None:
    drive = ScriptedDrive(config=settings.model_copy(update={'google_drive_refresh_token': ''}))
    monitor, _ = make_monitor(drive)

    status = asyncio.run(monitor.check_once())

    assert status.configured is False
    assert drive.checks == 0


def test_start_checks_immediately_and_stop_cancels() -> None:
    drive = ScriptedDrive()
    monitor, _ = make_monitor(drive)

    async def scenario():
        checked = asyncio.Event()

        async def sleep(seconds):
            checked.set()
            await asyncio.sleep(3600)

        monitor._sleep = sleep
        monitor.start()
        await asyncio.wait_for(checked.wait(), timeout=5)
        running = monitor.running
        await monitor.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert monitor.running is False
    assert drive.checks == 1
    assert monitor.snapshot()['healthy'] is True


def test_verdicts_are_recorded_on_the_stored_grant(file_db) -> None:
    drive = ScriptedDrive(errors=[RefreshError('invalid_grant: Token has been revoked.')])
    monitor = TokenMonitor(drive=drive, interval_seconds=60, notify=lambda message: None, session_factory=file_db)

    async def stored():
        async with file_db() as session:
            return await integration_tokens.get_token(session, DRIVE_PROVIDER)

    async def scenario():
        async with file_db() as session:
            await integration_tokens.save_token(session, DRIVE_PROVIDER, 'refresh-token')
            await session.commit()
        await monitor.check_once()
        revoked = await stored()
        await monitor.check_once()
        return revoked, await stored()

    revoked, recovered = asyncio.run(scenario())

    assert revoked.needs_auth is True
    assert 'invalid_grant' in revoked.last_error
    assert recovered.needs_auth is False
    assert recovered.last_error is None


def test_reauthorization_resets_the_notice() -> None:
    drive = ScriptedDrive(errors=[RefreshError('invalid_grant')])
    monitor, notices = make_monitor(drive)
    asyncio.run(monitor.check_once())

    drive.use_refresh_token('new-refresh-token')
    monitor.mark_authorized()

    assert drive.needs_reauth is False
    assert drive.refresh_token == 'new-refresh-token'
    assert monitor.status.needs_reauth is False
    assert monitor.status.notified is False
    assert len(notices) == 1
