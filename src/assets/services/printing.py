"""Print asset stickers on the Bluetooth label printer."""

import asyncio
import logging

from .bluetooth import BluetoothPrinter
from .sticker import build_sticker

logger = logging.getLogger(__name__)


def print_stickers(assets, address=None, user=None) -> int:
    """Print one sticker per asset over a single connection.

    Raises ``PrinterError`` on the first failure; assets printed before
    it keep their ``sticker_printed`` event. Returns the number printed.
    """
    assets = list(assets)
    stickers = [build_sticker(asset) for asset in assets]
    printed = []

    async def run():
        printer = BluetoothPrinter(address=address)
        try:
            for asset, sticker in zip(assets, stickers):
                await printer.print_text(sticker)
                printed.append(asset)
        finally:
            await printer.close()

    try:
        asyncio.run(run())
    finally:
        for asset in printed:
            asset.record_event("sticker_printed", user=user)
    logger.info("Printed %d sticker(s)", len(printed))
    return len(printed)
