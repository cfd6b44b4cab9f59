"""
Remote Engine - owns the device registry, discovery and the command queue
"""

import asyncio
import logging
from typing import Dict, Optional

from ..commands.dispatcher import CommandDispatcher, CommandResult
from ..commands.pairing import PairingHandshake
from ..discovery.manager import DeviceDiscovery, SubnetDetector
from ..discovery.models import DeviceRecord, DiscoveryResult
from ..discovery.network_discovery import ConnectionProber
from ..discovery.subnet import detect_local_subnet
from ..http_helper import DirectTransport, create_transport
from ..registry.manager import DeviceRegistry
from ..registry.store import DeviceStore, create_store

logger = logging.getLogger(__name__)


class RemoteEngine:
    """One instance per process: the only owner of the current device and its queue"""

    def __init__(self, config: Dict, store: Optional[DeviceStore] = None,
                 transport: Optional[DirectTransport] = None,
                 subnet_detector: SubnetDetector = detect_local_subnet):
        self.config = config
        device_config = config.get('device', {})

        self.transport = transport or create_transport(config)
        self.registry = DeviceRegistry(store or create_store(config))
        self.prober = ConnectionProber(self.transport, device_config.get('probe_timeout', 2.0))
        self.discovery = DeviceDiscovery(config.get('discovery', {}), self.registry, self.prober,
                                         subnet_detector=subnet_detector)
        self.pairing = PairingHandshake(self.transport,
                                        path=device_config.get('pairing_path', 'pair'),
                                        timeout=device_config.get('command_timeout', 5.0))
        self.dispatcher = CommandDispatcher(
            self.registry,
            self.transport,
            pairing=self.pairing,
            min_interval=device_config.get('min_command_interval', 0.1),
            send_timeout=device_config.get('command_timeout', 5.0),
        )
        self.running = False

    async def start(self):
        """Restore the stored device; does not touch the network"""
        device = await self.registry.load()
        self.running = True
        if device:
            logger.info(f"Remote engine started with stored device {device.address}")
        else:
            logger.info("Remote engine started with no stored device")

    async def stop(self):
        logger.info("Stopping remote engine...")
        self.running = False
        await self.dispatcher.close()
        await self.transport.close()
        await self.registry.close()
        logger.info("Remote engine stopped")

    async def discover(self, cancel_event: Optional[asyncio.Event] = None) -> DiscoveryResult:
        return await self.discovery.discover(cancel_event)

    async def connect_manual(self, address: str) -> DiscoveryResult:
        return await self.discovery.connect_manual(address)

    def enqueue(self, command: str) -> "asyncio.Future[CommandResult]":
        return self.dispatcher.enqueue(command)

    async def send_command(self, command: str) -> CommandResult:
        return await self.dispatcher.send(command)

    def get_current_device(self) -> Optional[DeviceRecord]:
        return self.registry.current

    async def forget(self):
        """Drop the stored device and anything still queued for it"""
        self.dispatcher.cancel_pending()
        await self.registry.clear()
