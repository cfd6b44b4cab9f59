"""
Error classification for device probes and commands
Maps raw transport failures onto the small set of causes surfaced to callers
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)


class ErrorCause(str, Enum):
    """Closed set of user-facing failure causes"""
    UNREACHABLE = "unreachable"
    AUTHORIZATION_REQUIRED = "authorization_required"
    PROTOCOL_VIOLATION = "protocol_violation"
    UNSUPPORTED = "unsupported"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"


class UnsupportedCommandError(LookupError):
    """Raised by the translator for a command name with no protocol token"""

    cause = ErrorCause.UNSUPPORTED

    def __init__(self, command: str):
        super().__init__(f"Unsupported command: {command}")
        self.command = command


class RelayUpstreamError(aiohttp.ClientConnectionError):
    """Relay reached but could not reach the device behind it"""


def classify_status(status: int) -> Optional[ErrorCause]:
    """Classify an HTTP status from the device; None means success"""
    if 200 <= status < 400:
        return None
    if status in (401, 403):
        return ErrorCause.AUTHORIZATION_REQUIRED
    return ErrorCause.PROTOCOL_VIOLATION


def classify_exception(exc: BaseException) -> ErrorCause:
    """Classify a raw exception raised while talking to a device"""
    cause = getattr(exc, "cause", None)
    if isinstance(cause, ErrorCause):
        return cause

    if isinstance(exc, asyncio.CancelledError):
        return ErrorCause.CANCELLED

    if isinstance(exc, aiohttp.ClientResponseError):
        return classify_status(exc.status) or ErrorCause.PROTOCOL_VIOLATION

    # Must precede the connection/OSError checks: payload errors are client errors too
    if isinstance(exc, (aiohttp.ClientPayloadError, UnicodeDecodeError, ValueError)):
        return ErrorCause.PROTOCOL_VIOLATION

    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ClientError, OSError)):
        return ErrorCause.UNREACHABLE

    logger.debug(f"Unclassified transport failure {type(exc).__name__}: {exc}")
    return ErrorCause.UNREACHABLE


def describe(cause: ErrorCause, address: Optional[str] = None, relayed: bool = False) -> str:
    """Human readable message for a failure cause"""
    if cause == ErrorCause.UNREACHABLE:
        target = f" at {address}" if address else ""
        lines = [
            f"Could not connect to Roku device{target}. Please check:",
            "1. The IP address is correct",
            "2. Your Roku is turned on",
            "3. You're on the same network as your Roku",
        ]
        if relayed:
            lines.append("4. The relay server can reach your local network")
        return "\n".join(lines)
    if cause == ErrorCause.AUTHORIZATION_REQUIRED:
        return ("The Roku refused the command. Approve this remote on the TV "
                "(or enable 'Control by mobile apps') and try again.")
    if cause == ErrorCause.PROTOCOL_VIOLATION:
        return "The device answered, but not like a Roku. Check the IP address."
    if cause == ErrorCause.UNSUPPORTED:
        return "Invalid command"
    if cause == ErrorCause.CANCELLED:
        return "Operation cancelled"
    if cause == ErrorCause.EXHAUSTED:
        return ("No Roku device found on the local network. "
                "Enter the IP address manually (Settings > Network > About on the Roku).")
    return str(cause.value)
