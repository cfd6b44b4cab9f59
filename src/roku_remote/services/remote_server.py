"""
Remote Server - Main orchestrator for the engine and the local API
"""

import asyncio
import logging
from typing import Dict, Optional

import uvicorn

from ..api.main_api import RemoteAPI
from ..config_loader import load_config, setup_logging
from ..discovery.models import DiscoveryStatus
from .remote_engine import RemoteEngine

logger = logging.getLogger(__name__)


class RemoteServer:
    """Runs the remote engine behind the local HTTP API"""

    def __init__(self, config_path: str = "config/config.yaml", config: Optional[Dict] = None):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config)

        self.engine = RemoteEngine(self.config)
        self.api = RemoteAPI(self.engine, self.config)

        self.running = False
        self.tasks = []
        self._server: Optional[uvicorn.Server] = None

    async def start(self):
        """Start the engine, optional startup discovery, then the API server"""
        logger.info("Starting Roku Remote Local Server...")

        try:
            await self.engine.start()
            self.running = True

            if self.config['discovery'].get('discover_on_startup'):
                self.tasks.append(asyncio.create_task(self._startup_discovery()))

            await self._start_api_server()

        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop all server services gracefully"""
        if not self.running and not self.tasks:
            return
        logger.info("Stopping server...")
        self.running = False

        if self._server is not None:
            self._server.should_exit = True

        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        await self.api.close()
        await self.engine.stop()
        logger.info("Server stopped")

    async def _startup_discovery(self):
        """Background discovery so the API is available immediately"""
        result = await self.engine.discover()
        if result.status == DiscoveryStatus.FOUND:
            logger.info(f"[SUCCESS] Roku ready at {result.address} ({result.method}, "
                        f"{result.duration_seconds:.1f}s)")
        else:
            logger.warning(f"Startup discovery ended: {result.status.value} - "
                           f"waiting for a manual address via POST /api/device")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        config = uvicorn.Config(
            self.api.app,
            host=self.config['api']['host'],
            port=self.config['api']['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        self._server = uvicorn.Server(config)

        logger.info(f"Starting API server on {self.config['api']['host']}:{self.config['api']['port']}")
        logger.info(f"API documentation: http://localhost:{self.config['api']['port']}/docs")
        if self.config['relay']['enabled']:
            logger.info(f"Commands are relayed through {self.config['relay']['url']}")
        else:
            logger.info("Commands go directly to the Roku on the local network")

        await self._server.serve()
