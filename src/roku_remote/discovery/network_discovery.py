"""
Network probing of candidate Roku addresses
"""

import asyncio
import logging
import re
from typing import Optional

from .models import DeviceCapabilities, ProbeResult
from ..errors import ErrorCause, classify_exception, classify_status
from ..http_helper import DirectTransport

logger = logging.getLogger(__name__)

DEVICE_INFO_PATH = "query/device-info"
DEVICE_INFO_MARKER = "device-info"


def _field(body: str, tag: str) -> Optional[str]:
    match = re.search(rf"<{tag}>\s*(.*?)\s*</{tag}>", body, re.IGNORECASE | re.DOTALL)
    return match.group(1) if match else None


def _flag(body: str, tag: str) -> bool:
    value = _field(body, tag)
    return value is not None and value.lower() == "true"


def parse_device_info(body: str) -> DeviceCapabilities:
    """Extract capability fields from a device-info document"""
    return DeviceCapabilities(
        model_name=_field(body, "model-name") or "Unknown",
        model_number=_field(body, "model-number") or "Unknown",
        is_display=_flag(body, "is-tv"),
        requires_pairing=_flag(body, "requires-pairing"),
        friendly_name=_field(body, "friendly-device-name") or _field(body, "user-device-name"),
        software_version=_field(body, "software-version"),
        serial_number=_field(body, "serial-number"),
    )


class ConnectionProber:
    """Issues bounded-time device-info requests and classifies the outcome"""

    def __init__(self, transport: DirectTransport, default_timeout: float = 2.0):
        self.transport = transport
        self.default_timeout = default_timeout

    async def probe(self, address: str, deadline: Optional[float] = None) -> ProbeResult:
        """
        Probe one address. `deadline` is an absolute event-loop time shared by
        every probe in a batch. Failures come back as values; only task
        cancellation propagates.
        """
        loop = asyncio.get_running_loop()
        if deadline is None:
            timeout = self.default_timeout
        else:
            timeout = deadline - loop.time()
        if timeout <= 0:
            return ProbeResult(address, False, error_cause=ErrorCause.UNREACHABLE,
                               error="Deadline passed before probe started")

        try:
            response = await asyncio.wait_for(
                self.transport.request("GET", address, DEVICE_INFO_PATH, timeout),
                timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            cause = classify_exception(e)
            logger.debug(f"Probe failed for {address}: {type(e).__name__} {e}")
            return ProbeResult(address, False, error_cause=cause, error=str(e) or type(e).__name__)

        cause = classify_status(response.status)
        if cause is not None:
            logger.debug(f"Probe of {address} got HTTP {response.status}")
            return ProbeResult(address, False, error_cause=cause, error=f"HTTP {response.status}")

        if response.status != 200 or DEVICE_INFO_MARKER not in response.body:
            logger.debug(f"Probe of {address} answered without a device-info document")
            return ProbeResult(address, False, error_cause=ErrorCause.PROTOCOL_VIOLATION,
                               error="Invalid Roku response")

        capabilities = parse_device_info(response.body)
        logger.info(f"[OK] Roku responded at {address}: {capabilities.model_name} "
                    f"({capabilities.model_number}) pairing={capabilities.requires_pairing}")
        return ProbeResult(address, True, capabilities=capabilities)
