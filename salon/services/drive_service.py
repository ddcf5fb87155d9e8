"""Google Drive storage for salon images.

Files land in one folder per image type (services get a dated sub-folder per
service), are made world-readable, and are served through their
``webContentLink``. Every Drive request runs in a worker thread and is retried
with exponential backoff on transient failures.
"""
import asyncio
import io
import logging
import re
import threading
import time
import unicodedata
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Any, TypeVar

from cachetools import TTLCache
from google.auth.exceptions import TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from salon.core.config import Settings, settings
from salon.models.image import ImageType

logger = logging.getLogger(__name__)

T = TypeVar("T")

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
FOLDER_MIME = "application/vnd.google-apps.folder"
TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}
_FILE_ID_RE = re.compile(r"[-\w]{25,}")


class DriveError(Exception):
    pass


class DriveNotConfiguredError(DriveError):
    pass


class DriveUploadError(DriveError):
    pass


@dataclass(frozen=True)
class DriveFile:
    file_id: str
    url: str


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, HttpError):
        return exc.resp is not None and int(exc.resp.status) in TRANSIENT_STATUSES
    return isinstance(exc, (TransportError, OSError))


def sanitize_name(name: str) -> str:
    """'Uñas Acrílicas' -> 'unas-acrilicas'."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9-]", "-", ascii_name.lower())
    return re.sub(r"-+", "-", slug).strip("-")


def generate_file_name(image_type: ImageType, original_name: str = "", service_name: str | None = None) -> str:
    today = date.today().isoformat()
    stamp = int(time.time() * 1000)
    if image_type == ImageType.SERVICE:
        base = sanitize_name(service_name) if service_name else "servicio"
    elif image_type == ImageType.GALLERY:
        base = "galeria"
    elif image_type == ImageType.TEMP:
        base = "temp"
    else:
        base = sanitize_name(original_name.rsplit(".", 1)[0]) or "imagen"
    return f"{base}-{today}-{stamp}.webp"


class DriveService:
    """Thin async facade over the Drive v3 API.

    `client` and `sleep` are injectable so tests can run without Google or real delays.
    """

    def __init__(
        self,
        config: Settings = settings,
        client: Any = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._url_cache: TTLCache = TTLCache(maxsize=2048, ttl=config.drive_url_cache_ttl_seconds)
        self._folders: dict[str, str] = {}
        # httplib2 connections are not thread-safe
        self._http_lock = threading.Lock()
        self.needs_reauth = False
        self.refresh_token = config.google_drive_refresh_token

    @property
    def configured(self) -> bool:
        return bool(self.config.google_drive_client_id and self.config.google_drive_client_secret and self.refresh_token)

    @property
    def enabled(self) -> bool:
        return self._client is not None or self.configured

    def use_refresh_token(self, refresh_token: str) -> None:
        """Switch to a newly authorized grant; the API client is rebuilt on next use."""
        self.refresh_token = refresh_token
        if self._owns_client:
            self._client = None
        self.needs_reauth = False

    def _credentials(self) -> Credentials:
        return Credentials(
            token=None,
            refresh_token=self.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.config.google_drive_client_id,
            client_secret=self.config.google_drive_client_secret,
            scopes=DRIVE_SCOPES,
        )

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.configured:
                raise DriveNotConfiguredError("Google Drive credentials are not configured")
            self._client = build("drive", "v3", credentials=self._credentials(), cache_discovery=False)
        return self._client

    async def _call(self, request_factory: Callable[[Any], Any]) -> Any:
        """Build a request from the client and execute it off the event loop."""
        client = self._get_client()

        def run() -> Any:
            with self._http_lock:
                return request_factory(client).execute()

        return await asyncio.to_thread(run)

    async def _retry(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Run `operation`, retrying transient failures with delays base, 2*base, 4*base..."""
        attempts = self.config.drive_max_retries + 1
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as e:
                if attempt >= attempts or not is_transient(e):
                    logger.error("Drive %s failed after %d attempt(s): %s", description, attempt, e)
                    raise
                delay = self.config.drive_retry_base_seconds * 2 ** (attempt - 1)
                logger.warning("Drive %s attempt %d failed (%s); retrying in %.1fs", description, attempt, e, delay)
                await self._sleep(delay)
                attempt += 1

    # --- Folders ---

    def _configured_folder_id(self, image_type: ImageType) -> str:
        return {
            ImageType.GALLERY: self.config.google_drive_gallery_folder_id,
            ImageType.SERVICE: self.config.google_drive_services_folder_id,
            ImageType.BEFORE_AFTER: self.config.google_drive_before_after_folder_id,
        }.get(image_type) or self.config.google_drive_default_folder_id

    async def _make_public(self, file_id: str) -> None:
        await self._call(
            lambda c: c.permissions().create(fileId=file_id, body={"role": "reader", "type": "anyone"})
        )

    async def find_folder(self, name: str, parent_id: str | None = None) -> str | None:
        query = f"name = '{name}' and mimeType = '{FOLDER_MIME}' and trashed = false"
        if parent_id:
            query += f" and '{parent_id}' in parents"
        response = await self._call(
            lambda c: c.files().list(q=query, fields="files(id, name)", spaces="drive", pageSize=1)
        )
        files = response.get("files") or []
        return files[0]["id"] if files else None

    async def create_folder(self, name: str, parent_id: str | None = None) -> str:
        body: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id:
            body["parents"] = [parent_id]
        response = await self._call(lambda c: c.files().create(body=body, fields="id"))
        folder_id = response.get("id")
        if not folder_id:
            raise DriveError(f'Could not create folder "{name}"')
        await self._make_public(folder_id)
        logger.info('Drive folder "%s" created: %s', name, folder_id)
        return folder_id

    async def _find_or_create(self, name: str, parent_id: str | None = None) -> str:
        key = f"{parent_id or ''}/{name}"
        if key not in self._folders:
            self._folders[key] = await self.find_folder(name, parent_id) or await self.create_folder(name, parent_id)
        return self._folders[key]

    async def resolve_folder(self, image_type: ImageType, service_name: str | None = None) -> str:
        """Configured id (if it still exists) -> folder found by name -> new folder."""
        prefix = self.config.drive_folder_prefix
        configured = self._configured_folder_id(image_type)
        root = configured if configured and await self.verify_file(configured) else None
        if image_type == ImageType.SERVICE and service_name:
            services_root = root or await self._find_or_create(f"{prefix}-Services")
            sub = f"{sanitize_name(service_name)}-{date.today().isoformat()}"
            return await self._find_or_create(sub, services_root)
        if root:
            return root
        if configured:
            logger.warning("Configured Drive folder for %s is not accessible", image_type.value)
        return await self._find_or_create(f"{prefix}-{image_type.value.lower()}")

    # --- Files ---

    async def get_public_url(self, file_id: str) -> str:
        cached = self._url_cache.get(file_id)
        if cached:
            return cached
        await self._make_public(file_id)
        response = await self._call(lambda c: c.files().get(fileId=file_id, fields="webContentLink"))
        url = response.get("webContentLink") or f"https://drive.google.com/uc?export=view&id={file_id}"
        self._url_cache[file_id] = url
        return url

    async def upload_image(
        self,
        data: bytes,
        image_type: ImageType,
        original_name: str = "",
        service_name: str | None = None,
        mime_type: str = "image/webp",
    ) -> DriveFile:
        """Upload already-optimized bytes. Raises DriveUploadError once retries are exhausted."""
        file_name = generate_file_name(image_type, original_name, service_name)

        async def create() -> str:
            folder_id = await self.resolve_folder(image_type, service_name)
            media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
            response = await self._call(
                lambda c: c.files().create(
                    body={"name": file_name, "parents": [folder_id]},
                    media_body=media,
                    fields="id",
                )
            )
            file_id = response.get("id")
            if not file_id:
                raise DriveUploadError("Drive did not return a file id")
            logger.info("Uploaded %s to Drive folder %s as %s", file_name, folder_id, file_id)
            return file_id

        try:
            file_id = await self._retry(create, f"upload of {file_name}")
        except DriveError:
            raise
        except Exception as e:
            raise DriveUploadError(str(e)) from e
        # Retried on its own so a sharing failure never uploads the file twice
        try:
            url = await self._retry(lambda: self.get_public_url(file_id), f"sharing of {file_id}")
        except Exception as e:
            await self._discard(file_id)
            raise DriveUploadError(str(e)) from e
        return DriveFile(file_id=file_id, url=url)

    async def _discard(self, file_id: str) -> None:
        try:
            await self._call(lambda c: c.files().delete(fileId=file_id))
        except Exception:
            logger.warning("Could not remove unshared Drive file %s", file_id, exc_info=True)

    async def delete_file(self, file_id: str) -> None:
        await self._retry(lambda: self._call(lambda c: c.files().delete(fileId=file_id)), f"delete of {file_id}")
        self._url_cache.pop(file_id, None)

    async def verify_file(self, file_id: str) -> bool:
        try:
            await self._call(lambda c: c.files().get(fileId=file_id, fields="id, name"))
        except HttpError:
            return False
        return True

    async def list_files(self, image_type: ImageType, page_size: int = 10) -> list[dict]:
        folder_id = self._configured_folder_id(image_type)
        query = f"'{folder_id}' in parents and trashed = false"
        response = await self._retry(
            lambda: self._call(
                lambda c: c.files().list(
                    q=query,
                    pageSize=page_size,
                    fields="files(id, name, mimeType, webViewLink, webContentLink)",
                    orderBy="createdTime desc",
                )
            ),
            "list",
        )
        return response.get("files") or []

    @staticmethod
    def file_id_from_url(url: str) -> str | None:
        match = _FILE_ID_RE.search(url or "")
        return match.group(0) if match else None

    async def check_token(self) -> None:
        """Refresh the OAuth access token. Raises google.auth.exceptions.RefreshError if revoked."""
        if not self.configured:
            raise DriveNotConfiguredError("Google Drive credentials are not configured")
        creds = self._credentials()
        await asyncio.to_thread(creds.refresh, Request())


drive_service = DriveService()
