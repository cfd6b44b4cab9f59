# HTTP Helper for Roku Connections
# Session configuration plus the direct and relayed transports used by probes and commands

import aiohttp
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import RelayUpstreamError

logger = logging.getLogger(__name__)

CONTROL_PORT = 8060
RELAY_ERROR_HEADER = "X-Relay-Error"


@dataclass
class TransportResponse:
    """Status and body of a device response, exactly as the device sent them"""
    status: int
    body: str


def create_device_session(timeout_seconds: float = 5, limit: int = 64) -> aiohttp.ClientSession:
    """
    Create properly configured aiohttp session for local Roku connections (always HTTP)
    Prevents connection leaks with proper cleanup and limits
    """
    connector = aiohttp.TCPConnector(
        limit=limit,                # Enough for one full discovery batch
        limit_per_host=2,           # Max 2 connections per device IP
        ssl=False,                  # ECP is plain HTTP only
        force_close=True,           # Force connection cleanup
        enable_cleanup_closed=True  # Additional cleanup
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )


class DirectTransport:
    """Talks to http://{address}:{port}/{path} directly"""

    relayed = False

    def __init__(self, port: int = CONTROL_PORT, session: Optional[aiohttp.ClientSession] = None):
        self.port = port
        self._own_session = session is None
        self.session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = create_device_session()
            self._own_session = True
        return self.session

    def build_url(self, address: str, path: str) -> str:
        return f"http://{address}:{self.port}/{path.lstrip('/')}"

    async def request(self, method: str, address: str, path: str, timeout: float,
                      headers: Optional[Dict[str, str]] = None) -> TransportResponse:
        """Issue one request; transport failures propagate as aiohttp/asyncio errors"""
        url = self.build_url(address, path)
        session = self._get_session()
        # Roku expects an empty form body on POST
        data = b"" if method.upper() == "POST" else None
        async with session.request(
            method.upper(),
            url,
            data=data,
            headers=headers or {"Content-Type": "application/x-www-form-urlencoded"},
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=False,
        ) as response:
            body = await response.text(errors="replace")
            return TransportResponse(status=response.status, body=body)

    async def close(self):
        if self._own_session and self.session is not None and not self.session.closed:
            await self.session.close()


class RelayTransport(DirectTransport):
    """Talks to the device through the relay endpoint of a remote-server instance"""

    relayed = True

    def __init__(self, relay_url: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(session=session)
        self.relay_url = relay_url.rstrip('/')

    def build_url(self, address: str, path: str) -> str:
        return f"{self.relay_url}/api/relay/{address}/{path.lstrip('/')}"

    async def request(self, method: str, address: str, path: str, timeout: float,
                      headers: Optional[Dict[str, str]] = None) -> TransportResponse:
        url = self.build_url(address, path)
        session = self._get_session()
        async with session.request(
            method.upper(),
            url,
            data=b"" if method.upper() == "POST" else None,
            headers={
                "Cache-Control": "no-cache, no-store, must-revalidate",
                "Pragma": "no-cache",
                **(headers or {}),
            },
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=False,
        ) as response:
            body = await response.text(errors="replace")
            relay_error = response.headers.get(RELAY_ERROR_HEADER)
            if relay_error:
                # Relay could not reach the device: same outcome as a direct connect failure
                raise RelayUpstreamError(f"Relay could not reach {address}: {relay_error}")
            return TransportResponse(status=response.status, body=body)


def create_transport(config: Dict, session: Optional[aiohttp.ClientSession] = None) -> DirectTransport:
    """Pick the direct or relayed transport from configuration"""
    relay = config.get('relay', {})
    if relay.get('enabled') and relay.get('url'):
        logger.info(f"Using relay transport via {relay['url']}")
        return RelayTransport(relay['url'], session=session)

    port = config.get('device', {}).get('control_port', CONTROL_PORT)
    logger.info(f"Using direct transport on port {port}")
    return DirectTransport(port=port, session=session)
