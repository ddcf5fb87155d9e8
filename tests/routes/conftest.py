import asyncio

import pytest
from fastapi.testclient import TestClient

from salon.api.deps import get_drive, get_session, require_admin
from salon.main import app
from salon.models.user import User, UserRole
from salon.services.drive_service import DriveService, DriveUploadError


class OfflineDrive(DriveService):
    """A configured-looking Drive whose uploads always fail, forcing local storage."""

    def __init__(self):
        super().__init__(client=object())

    async def upload_image(self, *args, **kwargs):
        raise DriveUploadError('offline')

    async def delete_file(self, file_id):
        return None


@pytest.fixture
def db(file_db):
    """Run `fn(session)` against the same database the client uses and commit."""

    def run(fn):
        async def inner():
            async with file_db() as session:
                result = await fn(session)
                await session.commit()
                return result

        return asyncio.run(inner())

    return run


def _override_session(file_db):
    async def override():
        async with file_db() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return override


@pytest.fixture
def client(file_db):
    app.dependency_overrides[get_session] = _override_session(file_db)
    app.dependency_overrides[get_drive] = OfflineDrive
    app.dependency_overrides[require_admin] = lambda: User(
        id=1, email='admin@rachellnails.com', role=UserRole.ADMIN, hashed_password='x'
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(file_db):
    app.dependency_overrides[get_session] = _override_session(file_db)
    yield TestClient(app)
    app.dependency_overrides.clear()
