from pydantic import Field

from salon.api.schemas.common import CamelModel, UtcDatetime
from salon.models.image import ImageType, StorageBackend


class ImageOut(CamelModel):
    id: int
    url: str
    thumbnail_url: str | None = None
    type: ImageType
    category: str | None = None
    title: str | None = None
    description: str | None = None
    order: int
    is_active: bool
    is_highlight: bool
    tags: list[str] = []
    service_id: int | None = None
    storage_backend: StorageBackend
    size_bytes: int | None = None
    mime_type: str | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ImageUpdateIn(CamelModel):
    type: ImageType | None = None
    category: str | None = None
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    is_highlight: bool | None = None
    tags: list[str] | None = None
    service_id: int | None = None
