"""Asset photos: camera captures arrive as base64 data URLs."""

import base64
import binascii
import logging
import re
from io import BytesIO

from pi_heif import register_heif_opener
from PIL import Image as PILImage
from PIL import ImageOps, UnidentifiedImageError

from django.core.files.base import ContentFile

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(
    r"^data:(?P<mime>image/[\w.+-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$",
    re.DOTALL,
)

# Longest edge kept for stored photos
MAX_EDGE = 3264
MAX_DATA_URL_BYTES = 15 * 1024 * 1024


class InvalidImage(ValueError):
    """The submitted image could not be decoded."""


def is_data_url(value: str) -> bool:
    return value.startswith("data:")


def decode_data_url(data_url: str) -> bytes:
    match = DATA_URL_RE.match(data_url.strip())
    if not match:
        raise InvalidImage("Expected a base64 encoded image data URL.")
    if len(match.group("data")) > MAX_DATA_URL_BYTES:
        raise InvalidImage("Image is too large.")
    try:
        return base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImage("Image data is not valid base64.")


def convert_to_jpeg(raw: bytes) -> bytes:
    """Re-encode any supported image as an upright RGB JPEG.

    Handles JPEG, PNG, WebP and HEIC captures, applying EXIF orientation
    and capping the longest edge.
    """
    register_heif_opener()
    try:
        img = PILImage.open(BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImage("Unsupported or corrupt image.") from exc

    img = ImageOps.exif_transpose(img)
    img = img.convert("RGB")
    if max(img.size) > MAX_EDGE:
        img.thumbnail((MAX_EDGE, MAX_EDGE))

    buf = BytesIO()
    img.save(buf, format="JPEG", quality=85)
    return buf.getvalue()


def set_asset_image(asset, image_url: str, user=None):
    """Point the asset at a new image.

    A plain URL is stored as ``image_url``. A data URL is decoded and
    saved as the asset's photo; ``image_url`` then points at the stored
    file.
    """
    if is_data_url(image_url):
        jpeg = convert_to_jpeg(decode_data_url(image_url))
        if asset.photo:
            asset.photo.delete(save=False)
        asset.photo.save(f"{asset.pk}.jpg", ContentFile(jpeg), save=False)
        asset.image_url = asset.photo.url
        source = "capture"
    else:
        asset.image_url = image_url
        source = "url"
    asset.save(update_fields=["photo", "image_url", "updated_at"])
    asset.record_event("image_updated", user=user, source=source)
    logger.info("Image updated for asset %s (%s)", asset.pk, source)
    return asset
