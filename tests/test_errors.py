"""Tests for the error classifier."""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from roku_remote.errors import (
    ErrorCause,
    RelayUpstreamError,
    UnsupportedCommandError,
    classify_exception,
    classify_status,
    describe,
)


class TestClassifyStatus:
    @pytest.mark.parametrize("status", [200, 202, 204, 302])
    def test_success(self, status):
        assert classify_status(status) is None

    @pytest.mark.parametrize("status", [401, 403])
    def test_denied(self, status):
        assert classify_status(status) == ErrorCause.AUTHORIZATION_REQUIRED

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_other_errors(self, status):
        assert classify_status(status) == ErrorCause.PROTOCOL_VIOLATION


class TestClassifyException:
    @pytest.mark.parametrize(
        "exc",
        [
            asyncio.TimeoutError(),
            ConnectionRefusedError(),
            OSError("No route to host"),
            aiohttp.ServerDisconnectedError(),
            aiohttp.ClientConnectionError("boom"),
            RelayUpstreamError("relay could not connect"),
        ],
    )
    def test_unreachable(self, exc):
        assert classify_exception(exc) == ErrorCause.UNREACHABLE

    def test_denied_response(self):
        exc = aiohttp.ClientResponseError(MagicMock(), (), status=403)
        assert classify_exception(exc) == ErrorCause.AUTHORIZATION_REQUIRED

    def test_bad_response(self):
        exc = aiohttp.ClientResponseError(MagicMock(), (), status=500)
        assert classify_exception(exc) == ErrorCause.PROTOCOL_VIOLATION

    @pytest.mark.parametrize(
        "exc",
        [
            aiohttp.ClientPayloadError("truncated"),
            UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad"),
            ValueError("malformed body"),
        ],
    )
    def test_protocol_violation(self, exc):
        assert classify_exception(exc) == ErrorCause.PROTOCOL_VIOLATION

    def test_cancelled(self):
        assert classify_exception(asyncio.CancelledError()) == ErrorCause.CANCELLED

    def test_unsupported_carries_cause(self):
        exc = UnsupportedCommandError("teleport")
        assert classify_exception(exc) == ErrorCause.UNSUPPORTED
        assert "teleport" in str(exc)

    def test_unknown_defaults_to_unreachable(self):
        assert classify_exception(RuntimeError("?")) == ErrorCause.UNREACHABLE


class TestDescribe:
    def test_unreachable_mentions_address(self):
        message = describe(ErrorCause.UNREACHABLE, "10.0.0.5")
        assert "10.0.0.5" in message
        assert "same network" in message
        assert "relay" not in message

    def test_unreachable_relayed_adds_hint(self):
        assert "relay" in describe(ErrorCause.UNREACHABLE, "10.0.0.5", relayed=True)

    def test_every_cause_has_a_message(self):
        for cause in ErrorCause:
            assert describe(cause)
