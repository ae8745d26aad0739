"""Celery tasks for the assets app."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def print_asset_sticker(asset_id: str, address=None, user_id=None) -> bool:
    """Print one asset's sticker on the Bluetooth label printer.

    Printer failures are logged and reported as ``False``; printing is
    never retried.
    """
    from django.contrib.auth import get_user_model

    from .models import Asset
    from .services.bluetooth import PrinterError
    from .services.printing import print_stickers

    try:
        asset = Asset.objects.with_related().get(pk=asset_id)
    except Asset.DoesNotExist:
        logger.warning("Sticker requested for missing asset %s", asset_id)
        return False

    user = None
    if user_id is not None:
        user = get_user_model().objects.filter(pk=user_id).first()

    try:
        print_stickers([asset], address=address, user=user)
    except PrinterError:
        logger.exception("Sticker print failed for asset %s", asset_id)
        return False
    return True
