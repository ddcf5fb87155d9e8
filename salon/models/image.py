from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class ImageType(str, Enum):
    GALLERY = "GALLERY"
    SERVICE = "SERVICE"
    BEFORE_AFTER = "BEFORE_AFTER"
    TEMP = "TEMP"


class StorageBackend(str, Enum):
    DRIVE = "DRIVE"
    LOCAL = "LOCAL"


class Image(SQLModel, table=True):
    __tablename__ = "images"
    id: int | None = Field(default=None, primary_key=True)
    url: str
    thumbnail_url: str | None = None
    type: ImageType = Field(default=ImageType.GALLERY, index=True)
    category: str | None = None
    title: str | None = None
    description: str | None = None
    order: int = 0
    is_active: bool = True
    is_highlight: bool = False
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    service_id: int | None = Field(default=None, foreign_key="services.id", index=True)
    # Where the file lives; recorded at upload time, never inferred from the URL
    storage_backend: StorageBackend = StorageBackend.DRIVE
    storage_file_id: str | None = None
    size_bytes: int | None = None
    mime_type: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
