"""
Device registry: the single current device record and its durable copy
"""

import asyncio
import logging
import time
from typing import Optional

from .store import DeviceStore, MemoryDeviceStore
from ..discovery.models import DeviceCapabilities, DeviceRecord

logger = logging.getLogger(__name__)

ADDRESS_KEY = "device_address"
CAPABILITIES_KEY = "device_capabilities"
VERIFIED_KEY = "device_last_verified_at"


class DeviceRegistry:
    """
    Holds at most one DeviceRecord.

    Readers see `current`, an immutable record swapped in one assignment, so
    they never observe a half-updated device. Writes to the durable store are
    serialized with a lock.
    """

    def __init__(self, store: Optional[DeviceStore] = None):
        self.store = store or MemoryDeviceStore()
        self._record: Optional[DeviceRecord] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[DeviceRecord]:
        return self._record

    async def load(self) -> Optional[DeviceRecord]:
        """Restore the last known device from the durable store"""
        try:
            address = await self.store.get(ADDRESS_KEY)
            capabilities = await self.store.get(CAPABILITIES_KEY)
            verified = await self.store.get(VERIFIED_KEY)
        except Exception as e:
            logger.error(f"Failed to load device registry: {e}")
            return None

        if not address:
            logger.debug("No stored device address")
            return None

        try:
            last_verified_at = float(verified or 0.0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring corrupt verification time {verified!r} for {address}")
            last_verified_at = 0.0

        self._record = DeviceRecord(
            address=address,
            capabilities=DeviceCapabilities.from_dict(capabilities),
            last_verified_at=last_verified_at,
        )
        logger.info(f"Loaded stored device {address}")
        return self._record

    async def save(self, address: str, capabilities: DeviceCapabilities,
                   verified_at: Optional[float] = None) -> DeviceRecord:
        """Replace the current record and persist it"""
        record = DeviceRecord(
            address=address,
            capabilities=capabilities,
            last_verified_at=verified_at if verified_at is not None else time.time(),
        )
        async with self._lock:
            self._record = record
            try:
                await self.store.set_many({
                    ADDRESS_KEY: record.address,
                    CAPABILITIES_KEY: record.capabilities.to_dict(),
                    VERIFIED_KEY: record.last_verified_at,
                })
            except Exception as e:
                # In-memory record stays valid for this session
                logger.error(f"Failed to persist device {address}: {e}")
        logger.info(f"Device registry updated: {address}")
        return record

    async def clear(self) -> None:
        """Forget the device, in memory and in the durable store"""
        async with self._lock:
            await self._clear_locked()

    async def invalidate(self, address: str) -> bool:
        """Clear the record only if it still points at `address`"""
        async with self._lock:
            record = self._record
            if record is None or record.address != address:
                return False
            await self._clear_locked()
        return True

    async def _clear_locked(self) -> None:
        # Caller holds self._lock
        previous = self._record
        self._record = None
        try:
            await self.store.delete_many(ADDRESS_KEY, CAPABILITIES_KEY, VERIFIED_KEY)
        except Exception as e:
            logger.error(f"Failed to clear stored device: {e}")
        if previous:
            logger.info(f"Device registry cleared (was {previous.address})")

    async def close(self) -> None:
        await self.store.close()
