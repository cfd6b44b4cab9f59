"""
Pairing handshake for devices that refuse commands from unknown controllers
"""

import logging

from ..discovery.models import DeviceRecord
from ..errors import classify_exception, classify_status
from ..http_helper import DirectTransport

logger = logging.getLogger(__name__)


class PairingHandshake:
    """
    Asks the device to start its on-screen authorization prompt.

    Called at most once per refused command; the user approves on the TV and
    re-issues the command.
    """

    def __init__(self, transport: DirectTransport, path: str = "pair", timeout: float = 5.0):
        self.transport = transport
        self.path = path
        self.timeout = timeout

    async def __call__(self, device: DeviceRecord) -> bool:
        logger.info(f"Requesting pairing with {device.address}")
        try:
            response = await self.transport.request("POST", device.address, self.path, self.timeout)
        except Exception as e:
            logger.warning(f"Pairing request to {device.address} failed: "
                           f"{classify_exception(e).value} ({e})")
            return False

        cause = classify_status(response.status)
        if cause is not None:
            logger.warning(f"Pairing request to {device.address} refused: HTTP {response.status}")
            return False

        logger.info(f"Pairing prompt requested on {device.address}")
        return True
