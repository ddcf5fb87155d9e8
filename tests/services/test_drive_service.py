import asyncio

import httplib2
import pytest
from googleapiclient.errors import HttpError

from salon.core.config import settings
from salon.models.image import ImageType
from salon.services.drive_service import (
    DriveService,
    DriveUploadError,
    generate_file_name,
    is_transient,
    sanitize_name,
)

FILE_ID = '1AbCdEfGhIjKlMnOpQrStUvWxYz012345'


class FakeRequest:
    def __init__(self, fn):
        self.fn = fn

    def execute(self):
        return self.fn()


class FakeDriveClient:
    """Mimics the chained `client.files().create(...).execute()` API."""

    def __init__(self, upload_failures=(), sharing_failures=()):
        self.upload_failures = list(upload_failures)
        self.sharing_failures = list(sharing_failures)
        self.uploads = 0
        self.url_lookups = 0
        self.deleted = []
        self.permissions_created = []
        self.folders = {}

    def files(self):
        return self

    def permissions(self):
        return _Permissions(self)

    def create(self, body=None, media_body=None, fields=None):
        def run():
            if media_body is None:
                folder_id = f'folder-{len(self.folders) + 1}'
                self.folders[folder_id] = body
                return {'id': folder_id}
            self.uploads += 1
            if self.upload_failures:
                raise self.upload_failures.pop(0)
            return {'id': FILE_ID}

        return FakeRequest(run)

    def get(self, fileId, fields=None):
        def run():
            if fields == 'webContentLink':
                self.url_lookups += 1
                return {'webContentLink': f'https://drive.google.com/uc?id={fileId}&export=download'}
            return {'id': fileId, 'name': 'folder'}

        return FakeRequest(run)

    def list(self, **kwargs):
        return FakeRequest(lambda: {'files': []})

    def delete(self, fileId):
        return FakeRequest(lambda: self.deleted.append(fileId))


class _Permissions:
    def __init__(self, client):
        self.client = client

    def create(self, fileId, body):
        def run():
            if self.client.sharing_failures:
                raise self.client.sharing_failures.pop(0)
            self.client.permissions_created.append(fileId)

        return FakeRequest(run)


def make_service(client, **overrides):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    config = settings.model_copy(update={'google_drive_gallery_folder_id': 'gallery-folder', **overrides})
    return DriveService(config=config, client=client, sleep=fake_sleep), sleeps


def test_upload_succeeds_after_transient_failures() -> None:
    client = FakeDriveClient(upload_failures=[ConnectionError('reset'), TimeoutError('slow')])
    drive, sleeps = make_service(client)

    uploaded = asyncio.run(drive.upload_image(b'webp-bytes', ImageType.GALLERY))

    assert uploaded.file_id == FILE_ID
    assert uploaded.url.startswith('https://drive.google.com/')
    assert sleeps == [1.0, 2.0]
    assert client.uploads == 3
    assert FILE_ID in client.permissions_created


def test_upload_gives_up_after_three_retries() -> None:
    client = FakeDriveClient(upload_failures=[ConnectionError('down')] * 4)
    drive, sleeps = make_service(client)

    with pytest.raises(DriveUploadError):
        asyncio.run(drive.upload_image(b'webp-bytes', ImageType.GALLERY))

    assert sleeps == [1.0, 2.0, 4.0]
    assert client.uploads == 4


def test_permanent_failure_is_not_retried() -> None:
    client = FakeDriveClient(upload_failures=[ValueError('bad request body')])
    drive, sleeps = make_service(client)

    with pytest.raises(DriveUploadError):
        asyncio.run(drive.upload_image(b'webp-bytes', ImageType.GALLERY))

    assert sleeps == []
    assert client.uploads == 1


def test_sharing_failure_does_not_upload_twice() -> None:
    unavailable = HttpError(httplib2.Response({'status': 503}), b'{}')
    client = FakeDriveClient(sharing_failures=[unavailable])
    drive, sleeps = make_service(client)

    uploaded = asyncio.run(drive.upload_image(b'webp-bytes', ImageType.GALLERY))

    assert uploaded.file_id == FILE_ID
    assert client.uploads == 1
    assert sleeps == [1.0]


def test_unshareable_upload_is_removed() -> None:
    client = FakeDriveClient(sharing_failures=[ConnectionError('down')] * 4)
    drive, sleeps = make_service(client)

    with pytest.raises(DriveUploadError):
        asyncio.run(drive.upload_image(b'webp-bytes', ImageType.GALLERY))

    assert client.uploads == 1
    assert sleeps == [1.0, 2.0, 4.0]
    assert client.deleted == [FILE_ID]


@pytest.mark.parametrize(('status', 'expected'), [(503, True), (429, True), (404, False), (403, False)])
def test_http_errors_classified_by_status(status: int, expected: bool) -> None:
    error = HttpError(httplib2.Response({'status': status}), b'{}')

    assert is_transient(error) is expected


def test_public_url_is_cached() -> None:
    client = FakeDriveClient()
    drive, _ = make_service(client)

    async def scenario():
        first = await drive.get_public_url(FILE_ID)
        second = await drive.get_public_url(FILE_ID)
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second
    assert client.url_lookups == 1


def test_delete_evicts_cached_url() -> None:
    client = FakeDriveClient()
    drive, _ = make_service(client)

    async def scenario():
        await drive.get_public_url(FILE_ID)
        await drive.delete_file(FILE_ID)
        await drive.get_public_url(FILE_ID)

    asyncio.run(scenario())

    assert client.deleted == [FILE_ID]
    assert client.url_lookups == 2


def test_service_images_go_to_dated_service_folder() -> None:
    client = FakeDriveClient()
    drive, _ = make_service(client, google_drive_services_folder_id='')

    asyncio.run(drive.upload_image(b'webp-bytes', ImageType.SERVICE, service_name='Uñas Acrílicas'))

    names = [body['name'] for body in client.folders.values()]
    assert names[0] == 'Rachell-Services'
    assert names[1].startswith('unas-acrilicas-')
    assert client.folders['folder-2']['parents'] == ['folder-1']


def test_file_id_from_url() -> None:
    url = f'https://drive.google.com/uc?id={FILE_ID}&export=download'

    assert DriveService.file_id_from_url(url) == FILE_ID
    assert DriveService.file_id_from_url('https://example.com/uploads/a.webp') is None


def test_generated_names() -> None:
    assert sanitize_name('Uñas  Acrílicas!') == 'unas-acrilicas'
    assert generate_file_name(ImageType.GALLERY).startswith('galeria-')
    assert generate_file_name(ImageType.SERVICE, service_name='Gel Polish').startswith('gel-polish-')
    assert generate_file_name(ImageType.BEFORE_AFTER, 'Mi Foto.JPG').endswith('.webp')
