import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_drive, get_session, require_admin
from salon.api.schemas.image import ImageOut, ImageUpdateIn
from salon.models.catalog import Service
from salon.models.image import ImageType
from salon.services import image_service
from salon.services.drive_service import DriveService
from salon.services.image_optimizer import ImageValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/images", tags=["images"])

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _split_tags(raw: str | None) -> list[str]:
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


@router.get("", response_model=list[ImageOut])
async def list_images(
    is_active: bool | None = Query(None, alias="isActive"),
    image_type: ImageType | None = Query(None, alias="type"),
    category: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[ImageOut]:
    images = await image_service.list_images(session, is_active, image_type, category)
    return [ImageOut.model_validate(i) for i in images]


@router.get("/{image_id}", response_model=ImageOut)
async def get_image(image_id: int, session: AsyncSession = Depends(get_session)) -> ImageOut:
    image = await image_service.get_image(session, image_id)
    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return ImageOut.model_validate(image)


@router.post(
    "",
    response_model=ImageOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def upload_image(
    file: UploadFile = File(...),
    image_type: ImageType = Form(ImageType.GALLERY, alias="type"),
    title: str | None = Form(None),
    description: str | None = Form(None),
    category: str | None = Form(None),
    service_id: int | None = Form(None, alias="serviceId"),
    tags: str | None = Form(None),
    order: int = Form(0, ge=0),
    is_highlight: bool = Form(False, alias="isHighlight"),
    session: AsyncSession = Depends(get_session),
    drive: DriveService = Depends(get_drive),
) -> ImageOut:
    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File exceeds 10 MB")
    service_name = None
    if service_id is not None:
        service = await session.get(Service, service_id)
        if not service:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Service not found")
        service_name = service.name
    try:
        stored = await image_service.store_image_file(
            data, file.filename or "imagen", image_type, service_name=service_name, drive=drive
        )
    except ImageValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    image = await image_service.create_image(
        session,
        stored,
        image_type=image_type,
        title=title,
        description=description,
        category=category,
        service_id=service_id,
        tags=_split_tags(tags),
        order=order,
        is_highlight=is_highlight,
    )
    logger.info("Image %s stored on %s", image.id, stored.backend.value)
    return ImageOut.model_validate(image)


@router.put("/{image_id}", response_model=ImageOut, dependencies=[Depends(require_admin)])
async def update_image(
    image_id: int,
    body: ImageUpdateIn,
    session: AsyncSession = Depends(get_session),
) -> ImageOut:
    image = await image_service.update_image(session, image_id, body.model_dump(exclude_unset=True))
    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return ImageOut.model_validate(image)


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_image(
    image_id: int,
    session: AsyncSession = Depends(get_session),
    drive: DriveService = Depends(get_drive),
) -> None:
    if not await image_service.delete_image(session, image_id, drive):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
