"""Tests for the connection prober and device-info parsing."""

import asyncio

import aiohttp
import pytest

from roku_remote.discovery.network_discovery import ConnectionProber, parse_device_info
from roku_remote.errors import ErrorCause
from roku_remote.http_helper import TransportResponse
from tests.helpers import FakeTransport, device_info_body


class TestParseDeviceInfo:
    def test_extracts_capabilities(self):
        caps = parse_device_info(device_info_body(
            model_name="Roku Express", model_number="3930X", is_tv=True, requires_pairing=True))
        assert caps.model_name == "Roku Express"
        assert caps.model_number == "3930X"
        assert caps.is_display is True
        assert caps.requires_pairing is True
        assert caps.friendly_name == "Living Room"
        assert caps.software_version == "12.5.0"
        assert caps.serial_number == "X01500ABCDEF"

    def test_missing_fields_default(self):
        caps = parse_device_info("<device-info></device-info>")
        assert caps.model_name == "Unknown"
        assert caps.model_number == "Unknown"
        assert caps.is_display is False
        assert caps.requires_pairing is False
        assert caps.friendly_name is None

    def test_flags_are_case_insensitive(self):
        caps = parse_device_info("<device-info><is-tv>TRUE</is-tv></device-info>")
        assert caps.is_display is True


def _transport(status=200, body=None, exc=None):
    async def handler(method, address, path):
        if exc is not None:
            raise exc
        return TransportResponse(status, device_info_body() if body is None else body)

    return FakeTransport(handler)


class TestConnectionProber:
    @pytest.mark.asyncio
    async def test_success(self):
        transport = _transport()
        result = await ConnectionProber(transport).probe("192.168.1.30")
        assert result.success
        assert result.address == "192.168.1.30"
        assert result.capabilities.model_name == "Roku Ultra"
        assert transport.calls == [("GET", "192.168.1.30", "query/device-info")]

    @pytest.mark.asyncio
    async def test_body_without_marker_is_protocol_violation(self):
        result = await ConnectionProber(_transport(body="<html>router login</html>")).probe("192.168.1.1")
        assert not result.success
        assert result.error_cause == ErrorCause.PROTOCOL_VIOLATION

    @pytest.mark.asyncio
    async def test_denied(self):
        result = await ConnectionProber(_transport(status=403, body="")).probe("192.168.1.2")
        assert not result.success
        assert result.error_cause == ErrorCause.AUTHORIZATION_REQUIRED

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        result = await ConnectionProber(_transport(exc=ConnectionRefusedError())).probe("192.168.1.3")
        assert not result.success
        assert result.error_cause == ErrorCause.UNREACHABLE

    @pytest.mark.asyncio
    async def test_payload_error(self):
        result = await ConnectionProber(_transport(exc=aiohttp.ClientPayloadError("cut"))).probe("192.168.1.3")
        assert result.error_cause == ErrorCause.PROTOCOL_VIOLATION

    @pytest.mark.asyncio
    async def test_times_out_at_shared_deadline(self):
        async def hang(method, address, path):
            await asyncio.sleep(10)

        prober = ConnectionProber(FakeTransport(hang))
        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await prober.probe("192.168.1.4", deadline=started + 0.05)
        assert not result.success
        assert result.error_cause == ErrorCause.UNREACHABLE
        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_expired_deadline_skips_request(self):
        transport = _transport()
        loop = asyncio.get_running_loop()
        result = await ConnectionProber(transport).probe("192.168.1.5", deadline=loop.time() - 1)
        assert not result.success
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def hang(method, address, path):
            await asyncio.sleep(10)

        task = asyncio.create_task(ConnectionProber(FakeTransport(hang)).probe("192.168.1.6"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
