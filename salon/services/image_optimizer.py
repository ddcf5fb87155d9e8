"""Validate uploaded images and re-encode them as WebP."""
import io
import logging
from dataclasses import dataclass

from PIL import Image as PILImage
from PIL import ImageOps, UnidentifiedImageError

from salon.models.image import ImageType

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = {"JPEG", "PNG", "WEBP"}
MIN_WIDTH = 200
MIN_HEIGHT = 200
MIN_ASPECT_RATIO = 1 / 3
MAX_ASPECT_RATIO = 3.0


class ImageValidationError(ValueError):
    pass


@dataclass(frozen=True)
class OptimizeProfile:
    max_width: int
    max_height: int
    quality: int


DEFAULT_PROFILE = OptimizeProfile(1920, 1080, 80)
BEFORE_AFTER_PROFILE = OptimizeProfile(800, 800, 85)


@dataclass(frozen=True)
class OptimizedImage:
    data: bytes
    width: int
    height: int
    mime_type: str = "image/webp"
    extension: str = "webp"

    @property
    def size(self) -> int:
        return len(self.data)


def profile_for(image_type: ImageType) -> OptimizeProfile:
    if image_type == ImageType.BEFORE_AFTER:
        return BEFORE_AFTER_PROFILE
    return DEFAULT_PROFILE


def _open(data: bytes) -> PILImage.Image:
    try:
        img = PILImage.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageValidationError("File is not a readable image") from e
    return img


def validate_image(data: bytes) -> tuple[int, int]:
    """Check format, minimum size and aspect ratio. Returns (width, height)."""
    if not data:
        raise ImageValidationError("Empty file")
    img = _open(data)
    if img.format not in ALLOWED_FORMATS:
        raise ImageValidationError(f"Unsupported image format: {img.format}")
    width, height = img.size
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        raise ImageValidationError(f"Image must be at least {MIN_WIDTH}x{MIN_HEIGHT} pixels")
    ratio = width / height
    if not MIN_ASPECT_RATIO <= ratio <= MAX_ASPECT_RATIO:
        raise ImageValidationError("Aspect ratio must be between 1:3 and 3:1")
    return width, height


def optimize_image(data: bytes, image_type: ImageType = ImageType.GALLERY) -> OptimizedImage:
    """Validate, then fit inside the type's bounding box (never upscaling) and encode as WebP."""
    validate_image(data)
    profile = profile_for(image_type)
    img = ImageOps.exif_transpose(_open(data))
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    img.thumbnail((profile.max_width, profile.max_height), PILImage.Resampling.LANCZOS)
    out = io.BytesIO()
    img.save(out, format="WEBP", quality=profile.quality, method=6)
    logger.debug(
        "Optimized image %dx%d -> %d bytes (quality %d)", img.width, img.height, out.tell(), profile.quality
    )
    return OptimizedImage(data=out.getvalue(), width=img.width, height=img.height)
