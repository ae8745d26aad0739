"""QR code generation for asset deep links."""

import base64
import logging
from io import BytesIO

import qrcode

from django.core.files.base import ContentFile

from ..models import QRCode
from .sticker import asset_link

logger = logging.getLogger(__name__)


def render_qr_png(data: str, box_size: int = 6, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    buffer = BytesIO()
    img = qr.make_image(fill_color="black", back_color="white")
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def qr_data_uri(data: str) -> str:
    """Inline PNG for HTML label sheets."""
    encoded = base64.b64encode(
        render_qr_png(data, box_size=4, border=1)
    ).decode()
    return f"data:image/png;base64,{encoded}"


def generate_qr_code(asset, user=None) -> QRCode:
    """Create or regenerate the asset's QR code and its PNG."""
    url = asset_link(asset.pk)
    payload = {
        "asset_id": str(asset.pk),
        "url": url,
        "serial_number": asset.serial_number,
        "template": asset.template.name if asset.template else None,
    }
    qr_code, created = QRCode.objects.update_or_create(
        asset=asset,
        defaults={"payload": payload, "qr_url": url},
    )
    if qr_code.image:
        qr_code.image.delete(save=False)
    qr_code.image.save(
        f"{asset.pk}.png", ContentFile(render_qr_png(url)), save=True
    )
    asset.record_event(
        "qr_generated", user=user, regenerated=not created, url=url
    )
    logger.info(
        "QR code %s for asset %s",
        "created" if created else "regenerated",
        asset.pk,
    )
    return qr_code
