"""
Serialized, rate-limited command dispatch to the current Roku
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from .translator import CommandToken, translate
from ..discovery.models import DeviceRecord
from ..errors import ErrorCause, UnsupportedCommandError, classify_exception, classify_status, describe
from ..http_helper import DirectTransport

logger = logging.getLogger(__name__)

PairingCallback = Callable[[DeviceRecord], Awaitable[bool]]


@dataclass
class CommandResult:
    """Outcome of one dispatched command"""
    command: str
    success: bool
    cause: Optional[ErrorCause] = None
    error: Optional[str] = None
    address: Optional[str] = None
    token: Optional[str] = None
    pairing_requested: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "success": self.success,
            "cause": self.cause.value if self.cause else None,
            "error": self.error,
            "address": self.address,
            "token": self.token,
            "pairing_requested": self.pairing_requested,
        }


@dataclass
class CommandJob:
    command_name: str
    enqueued_at: float
    future: "asyncio.Future[CommandResult]" = field(repr=False)


class CommandDispatcher:
    """
    Single-worker FIFO in front of the device.

    enqueue() returns a future immediately; one worker task drains the queue
    so there is never more than one send in flight. Consecutive sends are
    spaced at least `min_interval` seconds apart, measured from the end of
    the previous send.
    """

    def __init__(self, registry, transport: DirectTransport,
                 pairing: Optional[PairingCallback] = None,
                 min_interval: float = 0.1, send_timeout: float = 5.0):
        self.registry = registry
        self.transport = transport
        self.pairing = pairing
        self.min_interval = min_interval
        self.send_timeout = send_timeout
        self._queue: Deque[CommandJob] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._last_send_end: Optional[float] = None
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, command: str) -> "asyncio.Future[CommandResult]":
        """Queue a command and return a future for its result"""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if self._closed:
            future.set_result(CommandResult(command, False, ErrorCause.CANCELLED,
                                            "Dispatcher is closed"))
            return future

        self._queue.append(CommandJob(command, time.time(), future))
        logger.debug(f"Queued command {command} ({len(self._queue)} pending)")

        if not self.busy:
            self._worker = asyncio.create_task(self._drain())
        return future

    async def send(self, command: str) -> CommandResult:
        """Queue a command and wait for it to be sent"""
        return await self.enqueue(command)

    def cancel_pending(self, cause: ErrorCause = ErrorCause.CANCELLED,
                       error: Optional[str] = None) -> int:
        """Fail every queued job that has not started yet"""
        cancelled = 0
        while self._queue:
            job = self._queue.popleft()
            if self._resolve(job, CommandResult(job.command_name, False, cause,
                                                error or describe(cause))):
                cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} queued commands ({cause.value})")
        return cancelled

    async def close(self):
        self._closed = True
        self.cancel_pending(ErrorCause.CANCELLED)
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None

    # ================== WORKER ==================

    async def _drain(self):
        while self._queue:
            job = self._queue.popleft()
            if job.future.done():
                # Caller gave up on it before it started
                continue
            try:
                result = await self._execute(job)
            except asyncio.CancelledError:
                self._resolve(job, CommandResult(job.command_name, False, ErrorCause.CANCELLED,
                                                 describe(ErrorCause.CANCELLED)))
                raise
            except Exception as e:
                logger.exception(f"Unexpected error dispatching {job.command_name}")
                cause = classify_exception(e)
                result = CommandResult(job.command_name, False, cause, str(e))
            self._resolve(job, result)

    async def _execute(self, job: CommandJob) -> CommandResult:
        command = job.command_name
        try:
            token = translate(command)
        except UnsupportedCommandError as e:
            logger.warning(str(e))
            return CommandResult(command, False, ErrorCause.UNSUPPORTED, describe(ErrorCause.UNSUPPORTED))

        device = self.registry.current
        if device is None:
            return CommandResult(command, False, ErrorCause.UNREACHABLE, "No Roku device IP set",
                                 token=token.path)

        await self._wait_for_interval()
        return await self._send(command, token, device)

    async def _wait_for_interval(self):
        if self._last_send_end is None:
            return
        loop = asyncio.get_running_loop()
        remaining = self.min_interval - (loop.time() - self._last_send_end)
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def _send(self, command: str, token: CommandToken, device: DeviceRecord) -> CommandResult:
        loop = asyncio.get_running_loop()
        logger.info(f"Sending {command} -> {token.path} to {device.address}")
        try:
            response = await asyncio.wait_for(
                self.transport.request("POST", device.address, token.path, self.send_timeout),
                self.send_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._last_send_end = loop.time()
            cause = classify_exception(e)
            logger.warning(f"Command {command} to {device.address} failed: {cause.value} ({e})")
            if cause == ErrorCause.UNREACHABLE:
                await self._invalidate(device)
            return CommandResult(command, False, cause,
                                 describe(cause, device.address, getattr(self.transport, "relayed", False)),
                                 address=device.address, token=token.path)

        self._last_send_end = loop.time()
        cause = classify_status(response.status)
        if cause is None:
            return CommandResult(command, True, address=device.address, token=token.path)

        if cause == ErrorCause.AUTHORIZATION_REQUIRED:
            return await self._handle_refusal(command, token, device)

        logger.warning(f"Command {command} to {device.address} failed with HTTP {response.status}")
        return CommandResult(command, False, cause,
                             f"Command failed: {response.status} - {response.body[:100]}",
                             address=device.address, token=token.path)

    async def _handle_refusal(self, command: str, token: CommandToken,
                              device: DeviceRecord) -> CommandResult:
        """One pairing attempt at most; the command itself is never re-sent"""
        result = CommandResult(command, False, ErrorCause.AUTHORIZATION_REQUIRED,
                               describe(ErrorCause.AUTHORIZATION_REQUIRED),
                               address=device.address, token=token.path)
        if not device.capabilities.requires_pairing or self.pairing is None:
            logger.warning(f"{device.address} refused {command}")
            return result

        result.pairing_requested = True
        try:
            accepted = await self.pairing(device)
        except Exception as e:
            logger.error(f"Pairing handshake with {device.address} failed: {e}")
            accepted = False

        if not accepted:
            result.error = f"{result.error} (pairing request was not accepted)"
        logger.info(f"{device.address} requires pairing; retry {command} after approving on the TV")
        return result

    async def _invalidate(self, device: DeviceRecord):
        if await self.registry.invalidate(device.address):
            logger.warning(f"Device {device.address} unreachable - cleared, rediscovery required")
        self.cancel_pending(ErrorCause.UNREACHABLE, describe(ErrorCause.UNREACHABLE, device.address))

    @staticmethod
    def _resolve(job: CommandJob, result: CommandResult) -> bool:
        if job.future.done():
            return False
        job.future.set_result(result)
        return True
