"""
Main FastAPI application setup
Local HTTP API for the Roku remote: device discovery, commands and the relay
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Dict, Optional
import logging
from datetime import datetime, timezone

from .device_routes import create_device_routes
from .relay_routes import create_relay_routes
from ..http_helper import DirectTransport

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    device_address: Optional[str]
    relay_transport: bool
    pending_commands: int
    timestamp: datetime


class RemoteAPI:
    """Local HTTP API for Roku discovery, remote commands and relaying"""

    def __init__(self, engine, config: Dict, relay_transport: Optional[DirectTransport] = None, lifespan=None):
        self.engine = engine
        self.config = config
        # The relay always talks to the device directly, even when the engine itself is relayed
        self.relay_transport = relay_transport or DirectTransport(
            port=config.get('device', {}).get('control_port', 8060))
        self.app = FastAPI(
            title="Roku Remote Local Server",
            description="Local API for Roku discovery, remote-control commands and the ECP relay",
            version="1.0.0",
            lifespan=lifespan,
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        origins = self.config.get('api', {}).get('cors_origins', ['*'])
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["*"],
            max_age=86400,
        )

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        device_config = self.config.get('device', {})
        relay_config = self.config.get('relay', {})

        self.app.include_router(create_device_routes(self.engine))
        self.app.include_router(create_relay_routes(
            self.relay_transport,
            timeout=device_config.get('command_timeout', 5.0),
            private_only=relay_config.get('private_only', True),
        ))

        @self.app.get("/api/system/health", response_model=HealthResponse)
        async def system_health():
            """System health check"""
            device = self.engine.get_current_device()
            return HealthResponse(
                status="healthy" if device else "no_device",
                device_address=device.address if device else None,
                relay_transport=getattr(self.engine.transport, 'relayed', False),
                pending_commands=self.engine.dispatcher.pending,
                timestamp=datetime.now(timezone.utc),
            )

    async def close(self):
        await self.relay_transport.close()
