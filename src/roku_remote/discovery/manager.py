"""
Main discovery manager: cached address first, then batched subnet scanning
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .address_space import DEFAULT_FALLBACK_PREFIXES, AddressSpace, batched, is_valid_ip
from .models import DiscoveryResult, DiscoveryStatus, ProbeResult
from .network_discovery import ConnectionProber
from .subnet import detect_local_subnet
from ..errors import ErrorCause, describe

logger = logging.getLogger(__name__)

SubnetDetector = Callable[[float], Awaitable[Optional[str]]]


@dataclass
class _BatchOutcome:
    winner: Optional[ProbeResult] = None
    cancelled: bool = False
    last_cause: Optional[ErrorCause] = None


class DeviceDiscovery:
    """
    Discovery orchestrator.

    Idle -> TryingCached -> Scanning -> Found | Exhausted, with Cancelled
    reachable from any state through the caller's cancel event. One discovery
    runs at a time; concurrent callers queue on the lock and then normally
    hit the cached-address short-circuit.
    """

    def __init__(self, config: Dict, registry, prober: ConnectionProber,
                 subnet_detector: SubnetDetector = detect_local_subnet):
        self.config = config
        self.registry = registry
        self.prober = prober
        self.subnet_detector = subnet_detector
        self.batch_size = config.get('batch_size', 25)
        self.batch_timeout = config.get('batch_timeout', 2.0)
        self.subnet_timeout = config.get('subnet_timeout', 1.0)
        self.detect_subnet = config.get('detect_subnet', True)
        self.fallback_prefixes = config.get('fallback_prefixes', DEFAULT_FALLBACK_PREFIXES)
        self._lock = asyncio.Lock()

    async def discover(self, cancel_event: Optional[asyncio.Event] = None) -> DiscoveryResult:
        """Locate the Roku. Returns Found, Exhausted or Cancelled; never raises for network failures"""
        async with self._lock:
            start_time = time.time()
            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled(start_time, 0, 0, [])

            result, probes_issued = await self._try_cached(cancel_event, start_time)
            if result is not None:
                return result

            return await self._scan(cancel_event, start_time, probes_issued)

    async def connect_manual(self, address: str) -> DiscoveryResult:
        """
        Probe a user-entered address (the manual fallback after Exhausted).
        Raises ValueError for a malformed address.
        """
        address = (address or "").strip()
        if not is_valid_ip(address):
            raise ValueError("Invalid IP address format. Please enter a valid IPv4 address (e.g., 192.168.1.100)")

        start_time = time.time()
        async with self._lock:
            outcome = await self._run_batch([address], None)
            duration = time.time() - start_time
            if outcome.winner is None:
                return DiscoveryResult(
                    status=DiscoveryStatus.FAILED,
                    cause=outcome.last_cause,
                    error=describe(outcome.last_cause, address),
                    method="manual",
                    probes_issued=1,
                    duration_seconds=duration,
                )

            record = await self.registry.save(address, outcome.winner.capabilities)
            logger.info(f"[PASS] Manual connection to {address} verified")
            return DiscoveryResult(DiscoveryStatus.FOUND, device=record, method="manual",
                                   probes_issued=1, duration_seconds=duration)

    # ================== PHASES ==================

    async def _try_cached(self, cancel_event: Optional[asyncio.Event],
                          start_time: float) -> Tuple[Optional[DiscoveryResult], int]:
        record = self.registry.current
        if record is None:
            logger.debug("No stored device to try")
            return None, 0

        logger.info(f"Trying stored device address {record.address}")
        outcome = await self._run_batch([record.address], cancel_event)
        if outcome.cancelled:
            return self._cancelled(start_time, 1, 0, []), 1

        if outcome.winner is not None:
            refreshed = await self.registry.save(record.address, outcome.winner.capabilities)
            logger.info(f"[PASS] Stored device {record.address} still responding")
            return DiscoveryResult(DiscoveryStatus.FOUND, device=refreshed, method="cached",
                                   probes_issued=1, duration_seconds=time.time() - start_time), 1

        # Recovered locally: fall through to scanning
        logger.info(f"Stored device {record.address} not responding - clearing and scanning")
        await self.registry.invalidate(record.address)
        return None, 1

    async def _scan(self, cancel_event: Optional[asyncio.Event], start_time: float,
                    probes_issued: int = 0) -> DiscoveryResult:
        detected = None
        if self.detect_subnet:
            try:
                detected = await self.subnet_detector(self.subnet_timeout)
            except Exception as e:
                # Only affects scan order
                logger.warning(f"Subnet detection failed: {e}")

        space = AddressSpace.with_detected(detected, self.fallback_prefixes)
        logger.info(f"[SEARCH] Scanning {len(space)} addresses across {len(space.prefixes)} prefixes "
                    f"(batch size {self.batch_size}, timeout {self.batch_timeout}s)")

        batches_scanned = 0
        for batch in batched(space, self.batch_size):
            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled(start_time, probes_issued, batches_scanned, space.prefixes)

            outcome = await self._run_batch([candidate.host for candidate in batch], cancel_event)
            probes_issued += len(batch)
            batches_scanned += 1

            if outcome.cancelled:
                return self._cancelled(start_time, probes_issued, batches_scanned, space.prefixes)

            if outcome.winner is not None:
                record = await self.registry.save(outcome.winner.address, outcome.winner.capabilities)
                duration = time.time() - start_time
                logger.info(f"[PASS] Found Roku at {record.address} after {probes_issued} probes "
                            f"in {duration:.1f}s")
                return DiscoveryResult(DiscoveryStatus.FOUND, device=record, method="scan",
                                       probes_issued=probes_issued, batches_scanned=batches_scanned,
                                       duration_seconds=duration, prefixes=space.prefixes)

            if batches_scanned % 10 == 0:
                logger.info(f"Scan progress: {probes_issued}/{len(space)} addresses checked")

        duration = time.time() - start_time
        logger.warning(f"No Roku found after {probes_issued} probes in {duration:.1f}s")
        return DiscoveryResult(DiscoveryStatus.EXHAUSTED, cause=ErrorCause.EXHAUSTED,
                               error=describe(ErrorCause.EXHAUSTED), method="scan",
                               probes_issued=probes_issued, batches_scanned=batches_scanned,
                               duration_seconds=duration, prefixes=space.prefixes)

    # ================== BATCH PROBING ==================

    async def _run_batch(self, addresses: List[str],
                         cancel_event: Optional[asyncio.Event]) -> _BatchOutcome:
        """
        Probe every address concurrently against one shared deadline.
        First success wins; the rest of the batch is cancelled.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.batch_timeout

        pending = {asyncio.ensure_future(self.prober.probe(address, deadline)) for address in addresses}
        cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        outcome = _BatchOutcome()

        try:
            while pending and outcome.winner is None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                wait_set = set(pending)
                if cancel_waiter is not None:
                    wait_set.add(cancel_waiter)
                done, _ = await asyncio.wait(wait_set, timeout=remaining,
                                             return_when=asyncio.FIRST_COMPLETED)
                if cancel_waiter is not None and cancel_waiter in done:
                    logger.info("Discovery cancelled by caller")
                    outcome.cancelled = True
                    break
                if not done:
                    break

                for task in done:
                    pending.discard(task)
                    if task.exception() is not None:
                        logger.warning(f"Probe raised unexpectedly: {task.exception()}")
                        outcome.last_cause = ErrorCause.UNREACHABLE
                        continue
                    result = task.result()
                    if result.success:
                        outcome.winner = result
                        break
                    outcome.last_cause = result.error_cause
        finally:
            leftovers = list(pending)
            if cancel_waiter is not None:
                leftovers.append(cancel_waiter)
            for task in leftovers:
                task.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)

        if outcome.winner is None and not outcome.cancelled and outcome.last_cause is None:
            outcome.last_cause = ErrorCause.UNREACHABLE
        return outcome

    def _cancelled(self, start_time: float, probes_issued: int, batches_scanned: int,
                   prefixes: List[str]) -> DiscoveryResult:
        return DiscoveryResult(DiscoveryStatus.CANCELLED, cause=ErrorCause.CANCELLED,
                               error=describe(ErrorCause.CANCELLED), probes_issued=probes_issued,
                               batches_scanned=batches_scanned,
                               duration_seconds=time.time() - start_time, prefixes=prefixes)
