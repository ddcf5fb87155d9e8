from salon.models.user import User, UserCreate, UserPublic, UserRole
from salon.models.refresh_token import RefreshToken
from salon.models.catalog import Category, Service
from salon.models.appointment import Appointment, AppointmentStatus
from salon.models.availability import Availability
from salon.models.public_hour import PublicHour
from salon.models.image import Image, ImageType, StorageBackend
from salon.models.review import Review
from salon.models.integration_token import IntegrationToken

__all__ = [
    "User",
    "UserCreate",
    "UserPublic",
    "UserRole",
    "RefreshToken",
    "Category",
    "Service",
    "Appointment",
    "AppointmentStatus",
    "Availability",
    "PublicHour",
    "Image",
    "ImageType",
    "StorageBackend",
    "Review",
    "IntegrationToken",
]
