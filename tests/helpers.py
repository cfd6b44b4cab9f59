"""Shared test utilities for roku_remote tests."""

import asyncio
from typing import Awaitable, Callable, List, Optional

from roku_remote.discovery.models import ProbeResult
from roku_remote.errors import ErrorCause
from roku_remote.http_helper import TransportResponse

Handler = Callable[[str, str, str], Awaitable[TransportResponse]]


def device_info_body(model_name: str = "Roku Ultra", model_number: str = "4800X",
                     is_tv: bool = False, requires_pairing: bool = False) -> str:
    """A trimmed device-info document as a Roku returns it."""
    return (
        '<?xml version="1.0" encoding="UTF-8" ?>\n'
        "<device-info>\n"
        "  <udn>29380007-0800-1025-80a4-d83134b5e1c0</udn>\n"
        "  <serial-number>X01500ABCDEF</serial-number>\n"
        f"  <model-name>{model_name}</model-name>\n"
        f"  <model-number>{model_number}</model-number>\n"
        "  <friendly-device-name>Living Room</friendly-device-name>\n"
        "  <software-version>12.5.0</software-version>\n"
        f"  <is-tv>{'true' if is_tv else 'false'}</is-tv>\n"
        f"  <requires-pairing>{'true' if requires_pairing else 'false'}</requires-pairing>\n"
        "</device-info>\n"
    )


class FakeTransport:
    """Records every request and answers through an async handler."""

    relayed = False

    def __init__(self, handler: Optional[Handler] = None):
        self.handler = handler or self._ok
        self.calls: List[tuple] = []
        self.starts: List[float] = []
        self.ends: List[float] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @staticmethod
    async def _ok(method: str, address: str, path: str) -> TransportResponse:
        return TransportResponse(200, "")

    async def request(self, method, address, path, timeout, headers=None) -> TransportResponse:
        loop = asyncio.get_running_loop()
        self.calls.append((method, address, path))
        self.starts.append(loop.time())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            return await self.handler(method, address, path)
        finally:
            self.in_flight -= 1
            self.ends.append(loop.time())

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [path for m, _, path in self.calls if method is None or m == method]

    async def close(self):
        self.closed = True


class FakeProber:
    """Answers probes from a set of responding addresses."""

    def __init__(self, responding=(), delay: float = 0.0, requires_pairing: bool = False):
        self.responding = set(responding)
        self.delay = delay
        self.requires_pairing = requires_pairing
        self.probed: List[str] = []
        self.cancelled: List[str] = []

    async def probe(self, address: str, deadline: Optional[float] = None) -> ProbeResult:
        from roku_remote.discovery.network_discovery import parse_device_info

        self.probed.append(address)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled.append(address)
            raise
        if address in self.responding:
            caps = parse_device_info(device_info_body(requires_pairing=self.requires_pairing))
            return ProbeResult(address, True, capabilities=caps)
        return ProbeResult(address, False, error_cause=ErrorCause.UNREACHABLE, error="timeout")


def fixed_subnet(prefix: Optional[str]):
    """Subnet detector stand-in returning a fixed prefix."""

    async def detect(timeout: float) -> Optional[str]:
        return prefix

    return detect
