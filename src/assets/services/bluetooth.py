"""Bluetooth LE transport for TSPL label printers.

The printer exposes a single writable GATT characteristic. Commands are
written in fixed-size frames with a short pause between frames and a
longer one after the last, giving the printer time to drain its buffer.
There is no acknowledgement, retry or checksum.
"""

import asyncio
import logging

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from django.conf import settings

logger = logging.getLogger(__name__)

FRAME_DELAY = 0.1
FINAL_DELAY = 0.5

TRANSPORT_ERRORS = (BleakError, asyncio.TimeoutError, OSError)


class PrinterError(Exception):
    """The sticker could not be printed."""


def split_frames(data: bytes, size: int = 512) -> list:
    """Split ``data`` into consecutive frames of at most ``size`` bytes."""
    if size < 1:
        raise ValueError("Frame size must be positive.")
    return [data[i : i + size] for i in range(0, len(data), size)]


class BluetoothPrinter:
    """A label printer reached over one cached BLE connection.

    The connection (client and characteristic) is opened on first use and
    reused for later prints until :meth:`close`. Prints are serialised so
    concurrent callers never interleave frames.
    """

    def __init__(
        self,
        address=None,
        service_uuid=None,
        characteristic_uuid=None,
        chunk_size=None,
        scan_timeout=None,
    ):
        self.address = address or settings.STICKER_PRINTER_ADDRESS
        self.service_uuid = (
            service_uuid or settings.STICKER_PRINTER_SERVICE_UUID
        ).lower()
        self.characteristic_uuid = (
            characteristic_uuid or settings.STICKER_PRINTER_CHARACTERISTIC_UUID
        ).lower()
        self.chunk_size = chunk_size or settings.STICKER_CHUNK_SIZE
        self.scan_timeout = (
            scan_timeout or settings.STICKER_PRINTER_SCAN_TIMEOUT
        )
        self._client = None
        self._characteristic = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def _advertises_service(self, device, advertisement) -> bool:
        return self.service_uuid in (
            uuid.lower() for uuid in advertisement.service_uuids
        )

    async def _discover(self):
        if self.address:
            device = await BleakScanner.find_device_by_address(
                self.address, timeout=self.scan_timeout
            )
        else:
            device = await BleakScanner.find_device_by_filter(
                self._advertises_service, timeout=self.scan_timeout
            )
        if device is None:
            raise PrinterError("No label printer found.")
        return device

    async def connect(self):
        """Return the cached client and characteristic, connecting once."""
        if self.is_connected:
            return self._client, self._characteristic

        try:
            device = await self._discover()
            client = BleakClient(device)
            await client.connect()
            characteristic = client.services.get_characteristic(
                self.characteristic_uuid
            )
            if characteristic is None:
                await client.disconnect()
                raise PrinterError(
                    "Printer does not expose the label characteristic."
                )
        except TRANSPORT_ERRORS as exc:
            logger.error("Printer connection failed: %s", exc)
            raise PrinterError("Could not connect to the printer.") from exc

        logger.info("Connected to label printer %s", device.address)
        self._client = client
        self._characteristic = characteristic
        return client, characteristic

    async def write(self, data: bytes) -> int:
        """Send ``data`` frame by frame. Returns the number of frames."""
        async with self._lock:
            client, characteristic = await self.connect()
            frames = split_frames(data, self.chunk_size)
            try:
                for index, frame in enumerate(frames):
                    await client.write_gatt_char(
                        characteristic, frame, response=True
                    )
                    if index < len(frames) - 1:
                        await asyncio.sleep(FRAME_DELAY)
                await asyncio.sleep(FINAL_DELAY)
            except TRANSPORT_ERRORS as exc:
                logger.error("Printer write failed: %s", exc)
                await self.close()
                raise PrinterError("Printing failed.") from exc

        logger.info("Sent %d bytes in %d frame(s)", len(data), len(frames))
        return len(frames)

    async def print_text(self, commands: str) -> int:
        return await self.write(commands.encode("utf-8"))

    async def close(self):
        client = self._client
        self._client = None
        self._characteristic = None
        if client is not None and client.is_connected:
            try:
                await client.disconnect()
            except TRANSPORT_ERRORS as exc:
                logger.warning("Printer disconnect failed: %s", exc)
