import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.config import settings
from salon.core.timeutils import utc_naive_now
from salon.models.image import Image, ImageType, StorageBackend
from salon.services.drive_service import DriveError, DriveService, drive_service, sanitize_name
from salon.services.image_optimizer import optimize_image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    url: str
    backend: StorageBackend
    file_id: str
    size_bytes: int
    mime_type: str


def _upload_dir() -> Path:
    return Path(settings.upload_dir)


async def _save_locally(data: bytes, original_name: str, extension: str) -> tuple[str, str]:
    stem = sanitize_name(Path(original_name).stem) or "imagen"
    name = f"{secrets.token_hex(8)}_{stem}.{extension}"
    directory = _upload_dir()
    directory.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread((directory / name).write_bytes, data)
    return name, f"{settings.public_base_url.rstrip('/')}/uploads/{name}"


async def store_image_file(
    data: bytes,
    original_name: str,
    image_type: ImageType,
    service_name: str | None = None,
    drive: DriveService = drive_service,
) -> StoredFile:
    """Optimize, then store on Drive; fall back to local disk if Drive is unavailable.

    Raises ImageValidationError before anything is stored.
    """
    # Pillow decode, resize and encode are CPU-bound
    optimized = await asyncio.to_thread(optimize_image, data, image_type)
    if drive.enabled and not drive.needs_reauth:
        try:
            uploaded = await drive.upload_image(
                optimized.data, image_type, original_name=original_name, service_name=service_name
            )
            return StoredFile(
                url=uploaded.url,
                backend=StorageBackend.DRIVE,
                file_id=uploaded.file_id,
                size_bytes=optimized.size,
                mime_type=optimized.mime_type,
            )
        except DriveError as e:
            logger.warning("Drive upload failed, storing %s locally: %s", original_name, e)
    name, url = await _save_locally(optimized.data, original_name, optimized.extension)
    logger.info("Stored %s locally as %s", original_name, name)
    return StoredFile(
        url=url,
        backend=StorageBackend.LOCAL,
        file_id=name,
        size_bytes=optimized.size,
        mime_type=optimized.mime_type,
    )


async def delete_stored_file(image: Image, drive: DriveService = drive_service) -> None:
    """Best-effort removal of the file behind `image`; failures are logged only."""
    try:
        if image.storage_backend == StorageBackend.LOCAL:
            name = image.storage_file_id or image.url.rsplit("/", 1)[-1]
            # Never follow a stored name outside the upload directory
            path = _upload_dir() / Path(name).name
            await asyncio.to_thread(path.unlink, missing_ok=True)
        else:
            file_id = image.storage_file_id or drive.file_id_from_url(image.url)
            if file_id:
                await drive.delete_file(file_id)
    except Exception:
        logger.warning("Could not delete stored file for image %s", image.id, exc_info=True)


async def create_image(
    session: AsyncSession,
    stored: StoredFile,
    image_type: ImageType = ImageType.GALLERY,
    title: str | None = None,
    description: str | None = None,
    category: str | None = None,
    service_id: int | None = None,
    tags: list[str] | None = None,
    order: int = 0,
    is_active: bool = True,
    is_highlight: bool = False,
) -> Image:
    image = Image(
        url=stored.url,
        type=image_type,
        title=title,
        description=description,
        category=category,
        service_id=service_id,
        tags=tags or [],
        order=order,
        is_active=is_active,
        is_highlight=is_highlight,
        storage_backend=stored.backend,
        storage_file_id=stored.file_id,
        size_bytes=stored.size_bytes,
        mime_type=stored.mime_type,
    )
    session.add(image)
    await session.flush()
    await session.refresh(image)
    return image


async def list_images(
    session: AsyncSession,
    is_active: bool | None = None,
    image_type: ImageType | None = None,
    category: str | None = None,
) -> list[Image]:
    q = select(Image)
    if is_active is not None:
        q = q.where(Image.is_active == is_active)
    if image_type is not None:
        q = q.where(Image.type == image_type)
    if category:
        q = q.where(Image.category == category)
    result = await session.execute(q.order_by(Image.order, Image.created_at.desc()))
    return list(result.scalars().all())


async def get_image(session: AsyncSession, image_id: int) -> Image | None:
    return await session.get(Image, image_id)


async def update_image(session: AsyncSession, image_id: int, changes: dict) -> Image | None:
    image = await session.get(Image, image_id)
    if not image:
        return None
    for field, value in changes.items():
        setattr(image, field, value)
    image.updated_at = utc_naive_now()
    session.add(image)
    await session.flush()
    return image


async def delete_image(session: AsyncSession, image_id: int, drive: DriveService = drive_service) -> bool:
    image = await session.get(Image, image_id)
    if not image:
        return False
    await delete_stored_file(image, drive)
    await session.delete(image)
    await session.flush()
    return True


async def delete_temp_images_older_than(
    session: AsyncSession, hours: int, drive: DriveService = drive_service
) -> int:
    """Remove TEMP images created more than `hours` ago. Returns the number of rows deleted."""
    cutoff = utc_naive_now() - timedelta(hours=hours)
    result = await session.execute(
        select(Image).where(Image.type == ImageType.TEMP, Image.created_at < cutoff)
    )
    images = list(result.scalars().all())
    for image in images:
        await delete_stored_file(image, drive)
        await session.delete(image)
    await session.flush()
    return len(images)
